"""
Enrichment: clarifying questions and deadline parsing.

Three independent operations, composed by the shell:
- generate_transcript_questions: before extraction, answers become grounding context
- generate_issue_questions: after matching, answers are appended to a new issue
- parse_deadline: free-text phrase -> ISO date, or None for "no deadline"

Question answering is expressed through the Prompter primitives (select with a
write-in escape), so a scripted driver can stand in for a human.
"""

import re
from datetime import date
from typing import Dict, List, Optional

from .errors import DeadlineParseError, QuestionParseError
from .llm_client import CompletionGateway, complete_json_array
from .models import CandidateIssue, EnrichmentQuestion

MAX_TRANSCRIPT_QUESTIONS = 3
MAX_ISSUE_QUESTIONS = 4
QUESTION_MAX_TOKENS = 1500
DEADLINE_MAX_TOKENS = 100

ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")

ANSWER_HEADING = "Additional context:"

QUESTION_FORMAT = """Each question has 2-4 answer options. Return ONLY a valid JSON array with no additional text. Example format:
[
  {
    "question": "Which browsers are affected?",
    "options": [
      {"label": "All browsers", "value": "all browsers"},
      {"label": "Safari only", "value": "safari only"}
    ]
  }
]"""


# =============================================================================
# QUESTION GENERATION
# =============================================================================


def build_transcript_questions_prompt(feedback: str) -> str:
    return f"""You are preparing to turn client feedback into issue tracker tickets.

Read the feedback below and decide whether anything is too ambiguous to file well
(which area of the product, how severe, who is affected, what "broken" means).
Ask at most {MAX_TRANSCRIPT_QUESTIONS} short multiple-choice questions that would resolve the
ambiguity. If the feedback is already clear, return an empty array.

Client feedback:
{feedback}

{QUESTION_FORMAT}"""


def build_issue_questions_prompt(candidate: CandidateIssue, feedback: str) -> str:
    return f"""A new ticket is about to be created from client feedback.

Ticket:
- Title: {candidate.title}
- Description: {candidate.description}
- Type: {candidate.type}, Priority: {candidate.priority}

Original client feedback:
{feedback}

Ask 2-{MAX_ISSUE_QUESTIONS} short multiple-choice questions whose answers would make this
ticket actionable for an engineer (reproduction steps, scope, expected behaviour,
acceptance criteria). Do not ask about anything the feedback already answers.

{QUESTION_FORMAT}"""


def generate_transcript_questions(
    gateway: CompletionGateway, feedback: str
) -> List[EnrichmentQuestion]:
    """Generate 0-3 clarifying questions about the feedback as a whole."""
    questions = complete_json_array(
        gateway,
        build_transcript_questions_prompt(feedback),
        max_tokens=QUESTION_MAX_TOKENS,
        item_model=EnrichmentQuestion,
        error_cls=QuestionParseError,
    )
    return questions[:MAX_TRANSCRIPT_QUESTIONS]


def generate_issue_questions(
    gateway: CompletionGateway, candidate: CandidateIssue, feedback: str
) -> List[EnrichmentQuestion]:
    """Generate 2-4 follow-up questions for a single issue about to be created."""
    questions = complete_json_array(
        gateway,
        build_issue_questions_prompt(candidate, feedback),
        max_tokens=QUESTION_MAX_TOKENS,
        item_model=EnrichmentQuestion,
        error_cls=QuestionParseError,
    )
    return questions[:MAX_ISSUE_QUESTIONS]


# =============================================================================
# ANSWERING
# =============================================================================


def collect_answers(prompter, questions: List[EnrichmentQuestion]) -> Dict[str, str]:
    """Ask each question through the prompter. Returns question -> answer."""
    answers: Dict[str, str] = {}
    for q in questions:
        choices = [(option.label, option.value) for option in q.options]
        answer = prompter.select(q.question, choices, allow_write_in=True)
        if answer:
            answers[q.question] = answer
    return answers


def apply_answers(candidate: CandidateIssue, answers: Dict[str, str]) -> None:
    """Fold per-issue answers into the candidate's description."""
    lines = [f"{question} {answer}" for question, answer in answers.items()]
    candidate.append_context(ANSWER_HEADING, lines)


def enrich_candidate(
    gateway: CompletionGateway, prompter, candidate: CandidateIssue, feedback: str
) -> Dict[str, str]:
    """Ask follow-up questions for one candidate and append the answers."""
    questions = generate_issue_questions(gateway, candidate, feedback)
    answers = collect_answers(prompter, questions)
    apply_answers(candidate, answers)
    return answers


# =============================================================================
# DEADLINES
# =============================================================================


def build_deadline_prompt(phrase: str, reference_date: date) -> str:
    return f"""Convert a deadline phrase into a calendar date.

Today is {reference_date.strftime('%A')}, {reference_date.isoformat()}.

Rules:
- "next <weekday>" (e.g. "next friday") means the soonest <weekday> strictly after today
- "this <weekday>" means that day in the current week; if it has already passed, the same day next week
- "<N> working days" or "<N> business days" means N weekdays after today, skipping Saturdays and Sundays
- "<N> days" means N calendar days after today
- Explicit dates are returned as given, in the nearest future year when no year is stated
- If the phrase is ambiguous or not a deadline, answer null

Deadline phrase: {phrase}

Return ONLY a JSON array with exactly one element: the date as "YYYY-MM-DD", or null.
Example: ["2025-01-17"]"""


def normalize_deadline(value) -> Optional[str]:
    """Accept only strict, real YYYY-MM-DD dates."""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.fullmatch(value):
        return None
    try:
        date.fromisoformat(value)
    except ValueError:
        return None
    return value


def parse_deadline(
    gateway: CompletionGateway, phrase: str, reference_date: Optional[date] = None
) -> Optional[str]:
    """
    Resolve a free-text deadline to an ISO date.

    None means "no deadline set"; it is a normal outcome, never an error.
    Empty phrases return None without calling the model.
    """
    if not phrase or not phrase.strip():
        return None

    reference_date = reference_date or date.today()
    try:
        items = complete_json_array(
            gateway,
            build_deadline_prompt(phrase.strip(), reference_date),
            max_tokens=DEADLINE_MAX_TOKENS,
            error_cls=DeadlineParseError,
        )
    except DeadlineParseError:
        print("Warning: Could not parse deadline response, no due date set")
        return None

    if len(items) != 1:
        return None
    return normalize_deadline(items[0])
