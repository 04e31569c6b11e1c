"""Exceptions raised by the issue manager pipeline."""

from typing import Optional


class IssueManagerError(Exception):
    """Base class for all issue manager errors."""


class ConfigError(IssueManagerError):
    """Missing or unusable configuration (API keys, answers file, ...)."""


class GatewayError(IssueManagerError):
    """The language model provider rejected or failed the request."""


class UnexpectedResponseKind(IssueManagerError):
    """The language model returned something other than text."""


class ResponseParseError(IssueManagerError):
    """The model's text failed JSON decoding or schema validation."""

    step = "response"

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class ExtractionParseError(ResponseParseError):
    step = "extraction"


class MatchParseError(ResponseParseError):
    step = "matching"


class QuestionParseError(ResponseParseError):
    step = "question generation"


class DeadlineParseError(ResponseParseError):
    step = "deadline parsing"


class TrackerAPIError(IssueManagerError):
    """The issue tracker rejected a request."""


class ExternalMutationFailure(IssueManagerError):
    """A create/update/comment call failed; earlier changes stay applied."""

    def __init__(self, candidate_title: str, result, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to process: {candidate_title} ({cause})")
        self.candidate_title = candidate_title
        self.result = result
        self.cause = cause
