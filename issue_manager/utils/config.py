"""
Configuration and credentials for the issue manager.

Settings come from, highest priority first:
1. Environment variables (ANTHROPIC_API_KEY, LINEAR_API_KEY, GITHUB_TOKEN, MODEL, ...)
2. ~/.issue-manager/config.yaml (override the path with ISSUE_MANAGER_CONFIG)

Missing API keys are asked for through the prompter and can be saved to the
config file for future runs.
"""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path.home() / ".issue-manager" / "config.yaml"

# Settings field -> environment variable
ENV_VARS = {
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "linear_api_key": "LINEAR_API_KEY",
    "github_token": "GITHUB_TOKEN",
    "model": "MODEL",
    "llm_backend": "LLM_BACKEND",
    "tracker": "ISSUE_TRACKER",
}

# Settings field -> (display name, where to get one)
API_KEYS = {
    "anthropic_api_key": ("Anthropic API key", "https://console.anthropic.com/"),
    "linear_api_key": ("Linear API key", "https://linear.app/settings/api"),
    "github_token": ("GitHub token", "https://github.com/settings/tokens"),
}


class Settings(BaseModel):
    """Resolved configuration for one run."""

    model_config = ConfigDict(strict=True)

    anthropic_api_key: Optional[str] = Field(default=None, description="LLM provider key")
    linear_api_key: Optional[str] = Field(default=None, description="Linear API key")
    github_token: Optional[str] = Field(default=None, description="GitHub token")
    model: Optional[str] = Field(default=None, description="Model name or alias")
    llm_backend: Literal["litellm", "anthropic"] = Field(
        default="litellm", description="Gateway adapter"
    )
    tracker: Literal["linear", "github"] = Field(default="linear", description="Ticket store")
    comment_header: str = Field(
        default="New feedback:", description="First line of comments posted on tickets"
    )

    def tracker_key_field(self) -> str:
        return "github_token" if self.tracker == "github" else "linear_api_key"


def get_config_path() -> Path:
    override = os.environ.get("ISSUE_MANAGER_CONFIG")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the YAML config file. Missing or unreadable files count as empty."""
    path = path or get_config_path()
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        print(f"Warning: Could not read config file {path}: {e}")
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        print(f"Warning: Ignoring config file {path}: expected a mapping")
        return {}
    return data


def save_config_values(updates: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Merge ``updates`` into the config file (None values remove keys)."""
    path = path or get_config_path()
    data = load_config_file(path)
    for key, value in updates.items():
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value

    path.parent.mkdir(parents=True, exist_ok=True)
    # Owner-only before any secret is written (O_CREAT's mode doesn't apply to existing files)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    path.chmod(0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(yaml.safe_dump(data, sort_keys=True))
    return path


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Build settings from the config file overlaid with environment variables.

    Raises:
        ConfigError: If a value has the wrong type or an unknown choice
    """
    data = {key: value for key, value in load_config_file(path).items() if key in Settings.model_fields}
    for field_name, env_var in ENV_VARS.items():
        value = os.environ.get(env_var)
        if value:
            data[field_name] = value

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def get_api_key(settings: Settings, field: str, prompter, path: Optional[Path] = None) -> str:
    """
    Return a configured API key, or ask for one.

    Raises:
        ConfigError: If no key is configured and none is entered
    """
    value = getattr(settings, field)
    if value:
        return value

    label, url = API_KEYS[field]
    print(f"\n{label} required")
    print(f"You can get one from: {url}\n")

    key = prompter.text(f"Enter your {label}", password=True)
    if not key:
        raise ConfigError("API key is required to use this tool")

    if prompter.confirm("Save this key for future use?", default=False):
        saved_to = save_config_values({field: key}, path)
        print(f"{label} saved to {saved_to}")

    setattr(settings, field, key)
    return key


def clear_api_keys(path: Optional[Path] = None) -> None:
    """Remove every saved API key from the config file."""
    path = path or get_config_path()
    if not path.exists():
        return
    save_config_values({field: None for field in API_KEYS}, path)
