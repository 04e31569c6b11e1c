"""GitHub Issues utilities for the issue manager.

GitHub has no teams-with-tickets or numeric priority, so:
- a "team" is a repository the token can see (id = full name)
- priority travels as a ``priority: <level>`` label
- a due date is written as a ``Due: YYYY-MM-DD`` line at the end of the body
"""

import functools
import os
from typing import List, Optional, Tuple

from github import Github, GithubException

from .errors import TrackerAPIError
from .models import PRIORITY_SCALE, CreatedTicket, ExternalTicket, Team

PRIORITY_LABEL_PREFIX = "priority: "
PRIORITY_BY_LEVEL = {level: name for name, level in PRIORITY_SCALE.items()}


def get_github_client(token: Optional[str] = None) -> Github:
    """Get authenticated GitHub client."""
    token = token or os.environ.get("GITHUB_TOKEN")
    if not token:
        raise ValueError("GITHUB_TOKEN environment variable not set")
    return Github(token)


def priority_label(priority: int) -> Optional[str]:
    name = PRIORITY_BY_LEVEL.get(priority)
    return f"{PRIORITY_LABEL_PREFIX}{name}" if name else None


def priority_from_labels(labels) -> int:
    """Read the numeric priority back from ``priority: <level>`` labels (0 if none)."""
    for lbl in labels:
        name = getattr(lbl, "name", lbl)
        if name.startswith(PRIORITY_LABEL_PREFIX):
            return PRIORITY_SCALE.get(name[len(PRIORITY_LABEL_PREFIX):].strip(), 0)
    return 0


def format_body(description: str, due_date: Optional[str] = None) -> str:
    if due_date:
        return f"{description}\n\nDue: {due_date}"
    return description


def github_call(func):
    """Report PyGithub failures as TrackerAPIError."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GithubException as e:
            raise TrackerAPIError(f"GitHub API error: {e}") from e

    return wrapper


def split_issue_id(issue_id: str) -> Tuple[str, int]:
    """Split ``owner/repo#123`` into repository name and issue number."""
    repo_name, _, number = issue_id.rpartition("#")
    if not repo_name or not number.isdigit():
        raise ValueError(f"Not a GitHub issue id: {issue_id}")
    return repo_name, int(number)


class GitHubIssueStore:
    """Ticket store backed by GitHub Issues."""

    def __init__(self, gh: Github):
        self.gh = gh

    def _get_issue(self, issue_id: str):
        repo_name, number = split_issue_id(issue_id)
        return self.gh.get_repo(repo_name).get_issue(number)

    @github_call
    def list_teams(self) -> List[Team]:
        """List repositories the token can see."""
        return [
            Team(id=repo.full_name, name=repo.full_name, key=repo.name)
            for repo in self.gh.get_user().get_repos()
        ]

    @github_call
    def list_issues(self, team_id: str) -> List[ExternalTicket]:
        """List open issues (not pull requests) of a repository."""
        repo = self.gh.get_repo(team_id)
        tickets = []
        for issue in repo.get_issues(state="open"):
            if issue.pull_request is not None:
                continue
            tickets.append(
                ExternalTicket(
                    id=f"{repo.full_name}#{issue.number}",
                    identifier=f"{repo.name}#{issue.number}",
                    title=issue.title,
                    description=issue.body or None,
                    priority=priority_from_labels(issue.labels),
                    state=issue.state,
                )
            )
        return tickets

    @github_call
    def create_issue(
        self,
        team_id: str,
        title: str,
        description: str,
        priority: int,
        due_date: Optional[str] = None,
    ) -> CreatedTicket:
        """Create a new issue."""
        repo = self.gh.get_repo(team_id)
        kwargs = {"title": title, "body": format_body(description, due_date)}
        label = priority_label(priority)
        if label:
            kwargs["labels"] = [label]
        issue = repo.create_issue(**kwargs)
        return CreatedTicket(
            id=f"{repo.full_name}#{issue.number}", identifier=f"{repo.name}#{issue.number}"
        )

    @github_call
    def update_issue(
        self, issue_id: str, description: Optional[str] = None, priority: Optional[int] = None
    ) -> None:
        """Edit issue body and/or priority label."""
        issue = self._get_issue(issue_id)
        if description is not None:
            issue.edit(body=description)
        if priority is not None:
            for lbl in issue.labels:
                if lbl.name.startswith(PRIORITY_LABEL_PREFIX):
                    issue.remove_from_labels(lbl.name)
            label = priority_label(priority)
            if label:
                issue.add_to_labels(label)

    @github_call
    def add_comment(self, issue_id: str, body: str) -> None:
        """Add a comment to an issue."""
        self._get_issue(issue_id).create_comment(body)
