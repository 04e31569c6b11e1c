# Issue Manager Utilities
# Re-exports for convenient imports from utils package
from .enrichment import generate_issue_questions, generate_transcript_questions  # noqa: F401
from .enrichment import parse_deadline  # noqa: F401
from .errors import ExternalMutationFailure, IssueManagerError, ResponseParseError  # noqa: F401
from .executor import apply_actions  # noqa: F401
from .extraction import extract_issues  # noqa: F401
from .llm_client import CompletionGateway, create_gateway  # noqa: F401
from .matching import match_issues  # noqa: F401
from .models import CandidateIssue, ExternalTicket, ResolvedAction, RunResult  # noqa: F401
from .tracker import TicketStore, create_store  # noqa: F401
