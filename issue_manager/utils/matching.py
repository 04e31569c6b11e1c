"""
Reconcile extracted issues against the tracker's existing tickets.

One prompt shows the model the whole ticket snapshot and every candidate, and
asks it to classify each candidate index as create / update / comment.

Validation policy:
- entries whose issueIndex is out of range are dropped with a warning
- repeated indexes are all kept, in the order the model emitted them, each with
  its own copy of the candidate
- update/comment entries naming an identifier that isn't in the snapshot are
  dropped with a warning (or kept without a target when strict_targets=False)
- output order follows the model, not the candidate list
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import MatchParseError
from .llm_client import CompletionGateway, complete_json_array
from .models import CandidateIssue, ExternalTicket, ResolvedAction

MATCH_MAX_TOKENS = 2048


class MatchEntry(BaseModel):
    """One classification as returned by the model."""

    model_config = ConfigDict(strict=True, populate_by_name=True)

    issue_index: int = Field(alias="issueIndex", description="Index into the candidate list")
    action: Literal["create", "update", "comment"] = Field(description="Chosen action")
    matched_issue_identifier: Optional[str] = Field(
        default=None, alias="matchedIssueIdentifier", description="Target ticket identifier"
    )
    reason: str = Field(default="", description="Brief explanation")


def format_existing_tickets(existing: List[ExternalTicket]) -> str:
    if not existing:
        return "(none)"
    lines = []
    for ticket in existing:
        lines.append(f"- {ticket.identifier}: {ticket.title}")
        if ticket.description:
            lines.append(f"  Description: {ticket.description}")
    return "\n".join(lines)


def format_candidates(candidates: List[CandidateIssue]) -> str:
    blocks = []
    for i, issue in enumerate(candidates):
        blocks.append(
            f"[{i}] {issue.title}\n"
            f"    Description: {issue.description}\n"
            f"    Type: {issue.type}, Priority: {issue.priority}"
        )
    return "\n\n".join(blocks)


def build_match_prompt(candidates: List[CandidateIssue], existing: List[ExternalTicket]) -> str:
    return f"""You are helping match newly reported issues to existing tracker tickets.

Existing tickets:
{format_existing_tickets(existing)}

Newly extracted issues from client feedback (issueIndex in brackets):
{format_candidates(candidates)}

For each newly extracted issue, determine if you should:
- "create": Create a new ticket (no similar existing ticket found)
- "update": Update an existing ticket (very similar ticket exists)
- "comment": Add a comment to an existing ticket (related but not the same)

Return a JSON array with one entry per extracted issue:
[
  {{
    "issueIndex": 0,
    "action": "create" | "update" | "comment",
    "matchedIssueIdentifier": "ACME-123" (only if action is update or comment),
    "reason": "Brief explanation of why this action was chosen"
  }}
]

Return ONLY valid JSON."""


def resolve_entries(
    entries: List[MatchEntry],
    candidates: List[CandidateIssue],
    existing: List[ExternalTicket],
    strict_targets: bool = True,
) -> List[ResolvedAction]:
    """Turn validated model entries into actions against the snapshot."""
    by_identifier: Dict[str, ExternalTicket] = {t.identifier: t for t in existing}
    actions: List[ResolvedAction] = []

    for entry in entries:
        if not 0 <= entry.issue_index < len(candidates):
            print(
                f"Warning: Dropping match entry with out-of-range issueIndex "
                f"{entry.issue_index} (have {len(candidates)} issues)"
            )
            continue

        # Own copy per action: enrichment appends to a create's description in place
        candidate = candidates[entry.issue_index].model_copy()

        if entry.action == "create":
            actions.append(ResolvedAction(candidate=candidate, action="create", reason=entry.reason))
            continue

        target = by_identifier.get(entry.matched_issue_identifier or "")
        if target is None:
            if strict_targets:
                print(
                    f"Warning: Dropping {entry.action} for '{candidate.title}': "
                    f"'{entry.matched_issue_identifier}' is not an existing ticket"
                )
                continue
            print(
                f"Warning: {entry.action} for '{candidate.title}' has no resolvable target "
                f"'{entry.matched_issue_identifier}'"
            )

        actions.append(
            ResolvedAction(
                candidate=candidate,
                action=entry.action,
                matched_ticket_id=target.id if target else None,
                matched_ticket_identifier=entry.matched_issue_identifier,
                reason=entry.reason,
            )
        )

    return actions


def match_issues(
    gateway: CompletionGateway,
    candidates: List[CandidateIssue],
    existing: List[ExternalTicket],
    strict_targets: bool = True,
) -> List[ResolvedAction]:
    """Decide, for each candidate, whether to create, update or comment."""
    if not candidates:
        return []

    prompt = build_match_prompt(candidates, existing)
    entries = complete_json_array(
        gateway,
        prompt,
        max_tokens=MATCH_MAX_TOKENS,
        item_model=MatchEntry,
        error_cls=MatchParseError,
    )
    return resolve_entries(entries, candidates, existing, strict_targets=strict_targets)
