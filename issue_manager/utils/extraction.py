"""Extract structured candidate issues from client feedback."""

from typing import Dict, List, Optional

from .errors import ExtractionParseError
from .llm_client import CompletionGateway, complete_json_array
from .models import CandidateIssue

EXTRACTION_MAX_TOKENS = 2048


def format_enrichment_context(context: Optional[Dict[str, str]]) -> str:
    """Format clarifying question/answer pairs as grounding text."""
    if not context:
        return ""

    lines = ["Additional context provided by the user:"]
    for question, answer in context.items():
        lines.append(f"Q: {question}")
        lines.append(f"A: {answer}")
    return "\n".join(lines)


def build_extraction_prompt(feedback: str, context: Optional[Dict[str, str]] = None) -> str:
    """Build the prompt asking the model to enumerate every distinct issue."""
    sections = []

    grounding = format_enrichment_context(context)
    if grounding:
        sections.append(grounding)

    sections.append(
        """Extract all issues, problems, or feature requests from this client feedback and return them as a JSON array.

Each distinct problem or request gets its own entry. For each issue, provide:
- title: A concise title (5-10 words)
- description: A brief description (1-2 sentences)
- type: One of: "bug", "feature", "improvement", "question"
- priority: One of: "low", "medium", "high", "urgent"

Use exactly these type and priority values, in lowercase."""
    )

    sections.append(
        f"""Client feedback:
{feedback}"""
    )

    sections.append(
        """Return ONLY a valid JSON array with no additional text. Example format:
[
  {
    "title": "Issue title",
    "description": "Issue description",
    "type": "bug",
    "priority": "high"
  }
]"""
    )

    return "\n\n".join(sections)


def extract_issues(
    gateway: CompletionGateway,
    feedback: str,
    context: Optional[Dict[str, str]] = None,
) -> List[CandidateIssue]:
    """
    Turn raw feedback (plus optional clarifying answers) into candidate issues.

    All or nothing: one malformed element discards the whole extraction.

    Raises:
        ExtractionParseError: If the model didn't return a JSON array of valid issues
    """
    prompt = build_extraction_prompt(feedback, context)
    return complete_json_array(
        gateway,
        prompt,
        max_tokens=EXTRACTION_MAX_TOKENS,
        item_model=CandidateIssue,
        error_cls=ExtractionParseError,
    )
