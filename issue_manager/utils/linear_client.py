"""Linear GraphQL API utilities for the issue manager."""

from typing import Any, Dict, List, Optional

import requests

from .errors import TrackerAPIError
from .models import CreatedTicket, ExternalTicket, Team

LINEAR_API_URL = "https://api.linear.app/graphql"
PAGE_SIZE = 100

TEAMS_QUERY = """
query {
    teams {
        nodes { id name key }
    }
}
"""

ISSUES_QUERY = """
query($teamId: ID!, $cursor: String) {
    issues(first: %d, after: $cursor, filter: { team: { id: { eq: $teamId } } }) {
        nodes {
            id
            identifier
            title
            description
            priority
            state { name }
        }
        pageInfo { hasNextPage endCursor }
    }
}
""" % PAGE_SIZE

CREATE_ISSUE_MUTATION = """
mutation($input: IssueCreateInput!) {
    issueCreate(input: $input) {
        success
        issue { id identifier }
    }
}
"""

UPDATE_ISSUE_MUTATION = """
mutation($id: String!, $input: IssueUpdateInput!) {
    issueUpdate(id: $id, input: $input) { success }
}
"""

CREATE_COMMENT_MUTATION = """
mutation($input: CommentCreateInput!) {
    commentCreate(input: $input) { success }
}
"""


class LinearClient:
    """Ticket store backed by Linear."""

    def __init__(self, api_key: str, api_url: str = LINEAR_API_URL, timeout: int = 30):
        if not api_key:
            raise ValueError("Linear API key not provided")
        self.api_url = api_url
        self.timeout = timeout
        self.headers = {"Authorization": api_key, "Content-Type": "application/json"}

    def _request(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a GraphQL document and return its ``data`` payload."""
        try:
            resp = requests.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TrackerAPIError(f"Linear API request failed: {e}") from e
        if resp.status_code != 200:
            raise TrackerAPIError(f"Linear API returned {resp.status_code}: {resp.text[:500]}")

        payload = resp.json()
        if payload.get("errors"):
            raise TrackerAPIError(f"Linear API returned errors: {payload['errors']}")
        return payload.get("data") or {}

    def _mutate(self, name: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a mutation and require ``success: true``."""
        result = self._request(query, variables).get(name) or {}
        if not result.get("success"):
            raise TrackerAPIError(f"{name} returned success=false")
        return result

    # === Reads ===

    def list_teams(self) -> List[Team]:
        """Fetch all teams visible to the API key."""
        nodes = self._request(TEAMS_QUERY).get("teams", {}).get("nodes", [])
        return [Team(id=n["id"], name=n["name"], key=n["key"]) for n in nodes]

    def list_issues(self, team_id: str) -> List[ExternalTicket]:
        """Fetch every issue for a team, following pagination."""
        tickets: List[ExternalTicket] = []
        cursor = None

        while True:
            data = self._request(ISSUES_QUERY, {"teamId": team_id, "cursor": cursor})
            issues = data.get("issues", {})
            for node in issues.get("nodes", []):
                tickets.append(ticket_from_node(node))

            page_info = issues.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")

        return tickets

    # === Writes ===

    def create_issue(
        self,
        team_id: str,
        title: str,
        description: str,
        priority: int,
        due_date: Optional[str] = None,
    ) -> CreatedTicket:
        """Create a new issue. Returns its id and identifier."""
        issue_input: Dict[str, Any] = {
            "teamId": team_id,
            "title": title,
            "description": description,
            "priority": priority,
        }
        if due_date:
            issue_input["dueDate"] = due_date

        result = self._mutate("issueCreate", CREATE_ISSUE_MUTATION, {"input": issue_input})
        issue = result.get("issue")
        if not issue:
            raise TrackerAPIError("Failed to create issue")
        return CreatedTicket(id=issue["id"], identifier=issue["identifier"])

    def update_issue(
        self, issue_id: str, description: Optional[str] = None, priority: Optional[int] = None
    ) -> None:
        """Update an existing issue's description and/or priority."""
        updates: Dict[str, Any] = {}
        if description is not None:
            updates["description"] = description
        if priority is not None:
            updates["priority"] = priority
        if not updates:
            return
        self._mutate("issueUpdate", UPDATE_ISSUE_MUTATION, {"id": issue_id, "input": updates})

    def add_comment(self, issue_id: str, body: str) -> None:
        """Add a comment to an existing issue."""
        self._mutate(
            "commentCreate", CREATE_COMMENT_MUTATION, {"input": {"issueId": issue_id, "body": body}}
        )


def ticket_from_node(node: Dict[str, Any]) -> ExternalTicket:
    """Convert a GraphQL issue node into an ExternalTicket."""
    state = node.get("state") or {}
    return ExternalTicket(
        id=node["id"],
        identifier=node["identifier"],
        title=node["title"],
        description=node.get("description") or None,
        priority=int(node.get("priority") or 0),
        state=state.get("name") or "Unknown",
    )
