"""Shared pytest fixtures for Issue Manager tests."""

from typing import List, Optional

import pytest

from issue_manager.utils.models import CandidateIssue, CreatedTicket, ExternalTicket, Team


class StubGateway:
    """Replays canned model continuations and records every call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, prompt, system=None, max_tokens=2048, prime=None):
        self.calls.append({"prompt": prompt, "system": system, "max_tokens": max_tokens, "prime": prime})
        if not self.responses:
            raise AssertionError("StubGateway ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class InMemoryStore:
    """Ticket store that keeps everything in lists."""

    def __init__(self, teams: List[Team], tickets: List[ExternalTicket], fail_on_title: Optional[str] = None):
        self.teams = teams
        self.tickets = tickets
        self.fail_on_title = fail_on_title
        self.created = []
        self.updated = []
        self.comments = []
        self.attempted = []
        self.next_number = 200

    def list_teams(self):
        return list(self.teams)

    def list_issues(self, team_id):
        return list(self.tickets)

    def _check(self, title):
        self.attempted.append(title)
        if title == self.fail_on_title:
            raise RuntimeError("tracker unavailable")

    def create_issue(self, team_id, title, description, priority, due_date=None):
        self._check(title)
        self.next_number += 1
        self.created.append(
            {"team_id": team_id, "title": title, "description": description,
             "priority": priority, "due_date": due_date}
        )
        return CreatedTicket(id=f"uuid-{self.next_number}", identifier=f"ACME-{self.next_number}")

    def update_issue(self, issue_id, description=None, priority=None):
        self._check(issue_id)
        self.updated.append({"id": issue_id, "description": description, "priority": priority})

    def add_comment(self, issue_id, body):
        self._check(issue_id)
        self.comments.append({"id": issue_id, "body": body})


@pytest.fixture
def make_gateway():
    """Factory for a StubGateway replaying the given continuations."""
    return StubGateway


@pytest.fixture
def sample_feedback():
    """Client feedback describing two distinct problems."""
    return """Hi team, quick notes from today's call. The login page still hangs forever
when people use Safari - it just spins. Also, the client would really like to export
their monthly report as a CSV instead of only PDF."""


@pytest.fixture
def team():
    return Team(id="team-uuid-1", name="Acme Corp", key="ACME")


@pytest.fixture
def existing_tickets():
    """Snapshot with one ticket matching the login problem."""
    return [
        ExternalTicket(
            id="uuid-101",
            identifier="ACME-101",
            title="Login spinner never finishes on Safari",
            description="Users on Safari report the login page hanging.",
            priority=3,
            state="In Progress",
        ),
        ExternalTicket(
            id="uuid-102",
            identifier="ACME-102",
            title="Update footer copyright year",
            description=None,
            priority=1,
            state="Todo",
        ),
    ]


@pytest.fixture
def candidates():
    return [
        CandidateIssue(
            title="Login hangs on Safari",
            description="The login page spins forever for Safari users.",
            type="bug",
            priority="high",
        ),
        CandidateIssue(
            title="Export monthly report as CSV",
            description="Client wants CSV export in addition to PDF.",
            type="feature",
            priority="medium",
        ),
        CandidateIssue(
            title="Clarify invoice due dates",
            description="Client asked when invoices are due.",
            type="question",
            priority="low",
        ),
    ]


@pytest.fixture
def store(team, existing_tickets):
    return InMemoryStore([team], existing_tickets)


# Model continuations (everything after the primed "[")

EXTRACTION_RESPONSE = """
  {"title": "Login hangs on Safari", "description": "The login page spins forever for Safari users.", "type": "bug", "priority": "high"},
  {"title": "Export monthly report as CSV", "description": "Client wants CSV export in addition to PDF.", "type": "feature", "priority": "medium"}
]"""

MATCH_RESPONSE = """
  {"issueIndex": 0, "action": "update", "matchedIssueIdentifier": "ACME-101", "reason": "Same Safari login hang"},
  {"issueIndex": 1, "action": "create", "reason": "No existing export ticket"}
]"""


@pytest.fixture
def extraction_response():
    return EXTRACTION_RESPONSE


@pytest.fixture
def match_response():
    return MATCH_RESPONSE
