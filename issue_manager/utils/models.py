"""
Data model for the feedback-to-tickets pipeline.

Every record that flows between the pipeline stages is a pydantic model:
- CandidateIssue: extracted from raw feedback, not persisted anywhere yet
- ExternalTicket / Team: read-only snapshot of the issue tracker
- ResolvedAction: create/update/comment decision for one candidate
- EnrichmentQuestion: multiple-choice clarifying question
- RunResult: identifiers touched by the executor
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

IssueType = Literal["bug", "feature", "improvement", "question"]
Priority = Literal["low", "medium", "high", "urgent"]
ActionKind = Literal["create", "update", "comment"]

# Tracker priority scale (Linear: 0 = none, 1 = low ... 4 = urgent)
PRIORITY_SCALE = {"low": 1, "medium": 2, "high": 3, "urgent": 4}


# =============================================================================
# EXTRACTED ISSUES
# =============================================================================


class CandidateIssue(BaseModel):
    """A problem or request extracted from client feedback."""

    model_config = ConfigDict(strict=True)

    title: str = Field(description="Concise title (5-10 words)")
    description: str = Field(description="Brief description (1-2 sentences)")
    type: IssueType = Field(description="Kind of issue")
    priority: Priority = Field(description="How urgent the issue is")

    def append_context(self, heading: str, lines: List[str]) -> None:
        """Append an enrichment block to the description."""
        if not lines:
            return
        block = "\n".join(f"- {line}" for line in lines)
        self.description = f"{self.description}\n\n{heading}\n{block}"

    def tracker_priority(self) -> int:
        """Priority on the tracker's integer scale."""
        return PRIORITY_SCALE[self.priority]


# =============================================================================
# TRACKER SNAPSHOT
# =============================================================================


class Team(BaseModel):
    """A team (or repository) that owns tickets."""

    model_config = ConfigDict(strict=True, frozen=True)

    id: str = Field(description="Opaque tracker id")
    name: str = Field(description="Display name")
    key: str = Field(description="Short key, e.g. ACME")


class ExternalTicket(BaseModel):
    """A ticket that already exists in the tracker."""

    model_config = ConfigDict(strict=True, frozen=True)

    id: str = Field(description="Opaque tracker handle")
    identifier: str = Field(description="Human-readable code, e.g. ACME-123")
    title: str = Field(description="Ticket title")
    description: Optional[str] = Field(default=None, description="Ticket body")
    priority: int = Field(default=0, ge=0, description="Numeric tracker priority")
    state: str = Field(default="Unknown", description="Workflow state label")


class CreatedTicket(BaseModel):
    """Handle returned by the tracker after creating a ticket."""

    model_config = ConfigDict(strict=True, frozen=True)

    id: str = Field(description="Opaque tracker handle")
    identifier: str = Field(description="Human-readable code")


# =============================================================================
# MATCHING
# =============================================================================


class ResolvedAction(BaseModel):
    """What to do with one candidate issue."""

    model_config = ConfigDict(strict=True)

    candidate: CandidateIssue = Field(description="The extracted issue")
    action: ActionKind = Field(description="create, update or comment")
    matched_ticket_id: Optional[str] = Field(
        default=None, description="Tracker handle of the target ticket"
    )
    matched_ticket_identifier: Optional[str] = Field(
        default=None, description="Identifier the model named as target"
    )
    reason: str = Field(default="", description="Why this action was chosen")

    def needs_target(self) -> bool:
        return self.action != "create"

    def is_executable(self) -> bool:
        """Create always is; update/comment need a resolved target."""
        return not self.needs_target() or self.matched_ticket_id is not None

    def target_label(self) -> str:
        return self.matched_ticket_identifier or self.matched_ticket_id or ""


# =============================================================================
# ENRICHMENT
# =============================================================================


class QuestionOption(BaseModel):
    """One answer choice for a clarifying question."""

    model_config = ConfigDict(strict=True, frozen=True)

    label: str = Field(description="Text shown to the user")
    value: str = Field(description="Answer recorded when chosen")


class EnrichmentQuestion(BaseModel):
    """A multiple-choice clarifying question."""

    model_config = ConfigDict(strict=True)

    question: str = Field(description="The question text")
    options: List[QuestionOption] = Field(
        min_length=2, max_length=4, description="Ordered answer choices"
    )


# =============================================================================
# EXECUTION
# =============================================================================


class RunResult(BaseModel):
    """Identifiers of every ticket touched by a run."""

    model_config = ConfigDict(strict=True)

    created: List[str] = Field(default_factory=list, description="Identifiers created")
    updated: List[str] = Field(default_factory=list, description="Identifiers updated")
    commented: List[str] = Field(default_factory=list, description="Identifiers commented on")

    def total(self) -> int:
        return len(self.created) + len(self.updated) + len(self.commented)

    def format_summary(self) -> str:
        """Format a human-readable summary of applied changes."""
        lines = []
        if self.created:
            lines.append("Created:")
            lines.extend(f"  + {identifier}" for identifier in self.created)
        if self.updated:
            lines.append("Updated:")
            lines.extend(f"  ~ {identifier}" for identifier in self.updated)
        if self.commented:
            lines.append("Commented:")
            lines.extend(f"  > {identifier}" for identifier in self.commented)
        if not lines:
            return "No changes applied."
        return "\n".join(lines)
