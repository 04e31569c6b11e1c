"""
Apply resolved actions to the issue tracker.

Actions run strictly one after another. The first tracker error stops the
run: later actions are neither applied nor reported, earlier ones stay
applied (there is no rollback).
"""

from typing import Dict, List, Optional

from .errors import ExternalMutationFailure
from .models import ResolvedAction, RunResult

COMMENT_HEADER = "New feedback:"


def format_comment(description: str, header: str = COMMENT_HEADER) -> str:
    return f"{header}\n{description}"


def apply_action(
    store,
    action: ResolvedAction,
    team_id: str,
    result: RunResult,
    due_date: Optional[str] = None,
    comment_header: str = COMMENT_HEADER,
) -> None:
    """Apply a single action and record it in ``result``."""
    candidate = action.candidate

    if action.action == "create":
        created = store.create_issue(
            team_id=team_id,
            title=candidate.title,
            description=candidate.description,
            priority=candidate.tracker_priority(),
            due_date=due_date,
        )
        result.created.append(created.identifier)
        return

    if action.matched_ticket_id is None:
        raise ValueError(f"{action.action} for '{candidate.title}' has no target ticket")

    if action.action == "update":
        store.update_issue(action.matched_ticket_id, description=candidate.description)
        result.updated.append(action.target_label())
    elif action.action == "comment":
        store.add_comment(
            action.matched_ticket_id, format_comment(candidate.description, comment_header)
        )
        result.commented.append(action.target_label())


def apply_actions(
    store,
    actions: List[ResolvedAction],
    team_id: str,
    due_dates: Optional[Dict[int, str]] = None,
    comment_header: str = COMMENT_HEADER,
) -> RunResult:
    """
    Apply every action in order.

    Args:
        store: Ticket store (LinearClient, GitHubIssueStore, ...)
        actions: Actions to apply; update/comment must carry a target id
        team_id: Team that new tickets are created in
        due_dates: Due date per position in ``actions`` (create only)
        comment_header: First line of every comment body

    Returns:
        RunResult with the identifiers touched

    Raises:
        ExternalMutationFailure: On the first failing action, carrying the
            partial result and the title of the candidate in flight
    """
    due_dates = due_dates or {}
    result = RunResult()

    for index, action in enumerate(actions):
        try:
            apply_action(
                store,
                action,
                team_id,
                result,
                due_date=due_dates.get(index),
                comment_header=comment_header,
            )
        except Exception as e:
            raise ExternalMutationFailure(action.candidate.title, result, cause=e) from e

    return result
