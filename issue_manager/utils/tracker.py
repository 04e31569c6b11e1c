"""Ticket store interface and factory."""

from typing import List, Optional, Protocol

from .github_client import GitHubIssueStore, get_github_client
from .linear_client import LinearClient
from .models import CreatedTicket, ExternalTicket, Team


class TicketStore(Protocol):
    """Reads the ticket snapshot and applies mutations."""

    def list_teams(self) -> List[Team]: ...

    def list_issues(self, team_id: str) -> List[ExternalTicket]: ...

    def create_issue(
        self,
        team_id: str,
        title: str,
        description: str,
        priority: int,
        due_date: Optional[str] = None,
    ) -> CreatedTicket: ...

    def update_issue(
        self, issue_id: str, description: Optional[str] = None, priority: Optional[int] = None
    ) -> None: ...

    def add_comment(self, issue_id: str, body: str) -> None: ...


def create_store(tracker: str, api_key: str) -> TicketStore:
    """Construct the ticket store for ``tracker`` ("linear" or "github")."""
    if tracker == "linear":
        return LinearClient(api_key)
    if tracker == "github":
        return GitHubIssueStore(get_github_client(api_key))
    raise ValueError(f"Unknown tracker '{tracker}'. Use 'linear' or 'github'.")
