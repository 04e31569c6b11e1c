"""
LLM gateway for the issue manager.

Every AI-assisted step (extraction, matching, question generation, deadline
parsing) goes through a single ``complete()`` call on a gateway object. The
gateway is constructed once per run and passed to each component, so tests can
substitute a deterministic stub.

## Prefix priming

Steps that expect a JSON array pre-seed the assistant turn with ``[``. The
model continues from the bracket and cannot open with commentary, which
removes most "Here is the JSON you asked for:" parse failures. The gateway
returns only the continuation; ``complete_json_array`` puts the bracket back
before decoding.

## Adapters

- LiteLLMGateway (default): unified provider access through LiteLLM
- AnthropicGateway: the Anthropic SDK directly

Configure via environment:
    MODEL=claude-sonnet-4-5-20250929   (default - Claude Sonnet 4.5)
    MODEL=claude-haiku                 (alias, cheaper)
    LLM_BACKEND=anthropic              (bypass LiteLLM)
"""

import json
import os
from typing import Any, Dict, List, Optional, Protocol, Type

import anthropic
import litellm
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import GatewayError, ResponseParseError, UnexpectedResponseKind

# Suppress LiteLLM's verbose logging
litellm.suppress_debug_info = True

# Provider failures surfaced by LiteLLM
LITELLM_ERRORS = (
    litellm.exceptions.APIError,
    litellm.exceptions.APIConnectionError,
    litellm.exceptions.AuthenticationError,
    litellm.exceptions.BadRequestError,
    litellm.exceptions.NotFoundError,
    litellm.exceptions.RateLimitError,
    litellm.exceptions.ServiceUnavailableError,
    litellm.exceptions.InternalServerError,
    litellm.exceptions.Timeout,
)

JSON_ARRAY_PRIME = "["

# Default model
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Model aliases for convenience
MODEL_ALIASES = {
    "claude": "claude-sonnet-4-5-20250929",
    "claude-sonnet": "claude-sonnet-4-5-20250929",
    "claude-sonnet-4": "claude-sonnet-4-20250514",
    "claude-sonnet-4.5": "claude-sonnet-4-5-20250929",
    "claude-opus": "claude-opus-4-5-20251101",
    "claude-opus-4.5": "claude-opus-4-5-20251101",
    "claude-haiku": "claude-haiku-4-5-20251001",
    "claude-haiku-4.5": "claude-haiku-4-5-20251001",
    # Cost/speed tiers
    "cheap": "claude-haiku-4-5-20251001",
    "default": "claude-sonnet-4-5-20250929",
    "powerful": "claude-opus-4-5-20251101",
}


class LLMUsage(BaseModel):
    """Token usage and cost information, accumulated over a run."""

    model_config = ConfigDict(strict=True, frozen=True)

    model: str = Field(description="Model identifier used for the calls")
    calls: int = Field(default=0, ge=0, description="Number of completions")
    prompt_tokens: int = Field(default=0, ge=0, description="Number of input tokens")
    completion_tokens: int = Field(default=0, ge=0, description="Number of output tokens")
    cost_usd: float = Field(default=0.0, ge=0.0, description="Estimated cost in USD")

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, prompt_tokens: int, completion_tokens: int, cost_usd: float) -> "LLMUsage":
        """Return a copy with one more call added."""
        return self.model_copy(
            update={
                "calls": self.calls + 1,
                "prompt_tokens": self.prompt_tokens + prompt_tokens,
                "completion_tokens": self.completion_tokens + completion_tokens,
                "cost_usd": self.cost_usd + cost_usd,
            }
        )

    def format_compact(self) -> str:
        """Format a compact single-line summary."""
        return (
            f"{self.calls} calls · {self.total_tokens:,} tokens · "
            f"${self.cost_usd:.4f} · {self.model}"
        )


def get_model(model: Optional[str] = None) -> str:
    """Get the model to use, resolving aliases. Falls back to $MODEL, then the default."""
    model = model or os.environ.get("MODEL") or DEFAULT_MODEL
    return MODEL_ALIASES.get(model, model)


def build_messages(prompt: str, prime: Optional[str] = None) -> List[Dict[str, Any]]:
    """Build the conversation, with an optional assistant-turn primer."""
    messages: List[Dict[str, Any]] = [{"role": "user", "content": prompt}]
    if prime:
        messages.append({"role": "assistant", "content": prime})
    return messages


class CompletionGateway(Protocol):
    """Anything that can turn a prompt into raw text."""

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 2048,
        prime: Optional[str] = None,
    ) -> str: ...


class LiteLLMGateway:
    """Gateway backed by ``litellm.completion``."""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None):
        self.model = get_model(model)
        self.api_key = api_key
        self.usage = LLMUsage(model=self.model)

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 2048,
        prime: Optional[str] = None,
    ) -> str:
        messages = build_messages(prompt, prime)
        if system:
            messages.insert(0, {"role": "system", "content": system})

        kwargs: Dict[str, Any] = {}
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = litellm.completion(
                model=self.model, messages=messages, max_tokens=max_tokens, **kwargs
            )
        except LITELLM_ERRORS as e:
            raise GatewayError(f"{self.model} request failed: {e}") from e

        content = response.choices[0].message.content
        if not isinstance(content, str):
            raise UnexpectedResponseKind(
                f"Expected text response from {self.model}, got {type(content).__name__}"
            )

        usage_data = response.usage
        prompt_tokens = getattr(usage_data, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage_data, "completion_tokens", 0) or 0
        try:
            cost = litellm.completion_cost(completion_response=response)
        except Exception:
            cost = 0.0
        self.usage = self.usage.add(prompt_tokens, completion_tokens, cost or 0.0)

        return content


class AnthropicGateway:
    """Gateway calling the Anthropic Messages API without LiteLLM."""

    def __init__(self, api_key: str, model: Optional[str] = None):
        if not api_key:
            raise ValueError("Anthropic API key not provided")
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = get_model(model)
        self.usage = LLMUsage(model=self.model)

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 2048,
        prime: Optional[str] = None,
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": build_messages(prompt, prime),
        }
        if system:
            kwargs["system"] = system

        try:
            message = self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise GatewayError(f"{self.model} request failed: {e}") from e

        if not message.content or message.content[0].type != "text":
            raise UnexpectedResponseKind(f"Expected text response from {self.model}")

        prompt_tokens = getattr(message.usage, "input_tokens", 0) or 0
        completion_tokens = getattr(message.usage, "output_tokens", 0) or 0
        try:
            prompt_cost, completion_cost = litellm.cost_per_token(
                model=self.model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
            )
            cost = prompt_cost + completion_cost
        except Exception:
            cost = 0.0
        self.usage = self.usage.add(prompt_tokens, completion_tokens, cost)

        return message.content[0].text


def create_gateway(
    backend: str = "litellm", api_key: Optional[str] = None, model: Optional[str] = None
) -> CompletionGateway:
    """Construct the configured gateway adapter."""
    if backend == "anthropic":
        return AnthropicGateway(api_key=api_key or "", model=model)
    if backend == "litellm":
        return LiteLLMGateway(model=model, api_key=api_key)
    raise ValueError(f"Unknown LLM backend '{backend}'. Use 'litellm' or 'anthropic'.")


def decode_json_array(continuation: str, prime: str = JSON_ARRAY_PRIME) -> List[Any]:
    """
    Re-prepend the primer and decode the array the model completed.

    Raises:
        json.JSONDecodeError: If the primed text isn't valid JSON
        ValueError: If the JSON isn't an array
    """
    data = json.loads(prime + continuation)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return data


def complete_json_array(
    gateway: CompletionGateway,
    prompt: str,
    system: Optional[str] = None,
    max_tokens: int = 2048,
    item_model: Optional[Type[BaseModel]] = None,
    error_cls: Type[ResponseParseError] = ResponseParseError,
) -> List[Any]:
    """
    Call the gateway primed with ``[`` and decode the array it completes.

    Args:
        gateway: Gateway to call
        prompt: User prompt
        system: Optional system prompt
        max_tokens: Completion budget
        item_model: Validate every element into this pydantic model
        error_cls: Parse error raised for this step

    Returns:
        The decoded elements (model instances when ``item_model`` is given)

    Raises:
        ResponseParseError: ``error_cls``, carrying the primed raw text, if the
            continuation isn't a JSON array or any element fails validation
    """
    raw = gateway.complete(prompt, system=system, max_tokens=max_tokens, prime=JSON_ARRAY_PRIME)
    try:
        items = decode_json_array(raw)
        if item_model is not None:
            items = [item_model.model_validate(item) for item in items]
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        print(f"Failed to parse {error_cls.step} response as JSON: {JSON_ARRAY_PRIME}{raw}")
        raise error_cls(
            f"Model did not return a valid JSON array for {error_cls.step}: {e}",
            raw_text=JSON_ARRAY_PRIME + raw,
        ) from e
    return items
