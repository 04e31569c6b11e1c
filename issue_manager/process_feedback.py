#!/usr/bin/env python3
"""
Process client feedback into issue tracker changes.

This script:
1. Reads the feedback text (file, or pasted at the prompt)
2. Fetches the chosen team's existing tickets once
3. Optionally asks clarifying questions before extraction
4. Calls the LLM to extract issues and match them against existing tickets
5. Shows the proposed create/update/comment actions for review
6. Optionally enriches new tickets with follow-up answers and deadlines
7. Applies the changes one by one, stopping at the first failure

Use --dry-run to stop after review, --answers to drive every prompt from a
YAML list instead of the terminal.
"""

import argparse
import sys
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from issue_manager.utils.config import (
    clear_api_keys,
    get_api_key,
    get_config_path,
    load_settings,
)
from issue_manager.utils.enrichment import (
    collect_answers,
    enrich_candidate,
    generate_transcript_questions,
    parse_deadline,
)
from issue_manager.utils.errors import (
    ConfigError,
    ExternalMutationFailure,
    GatewayError,
    QuestionParseError,
    ResponseParseError,
    TrackerAPIError,
    UnexpectedResponseKind,
)
from issue_manager.utils.executor import apply_actions
from issue_manager.utils.extraction import extract_issues
from issue_manager.utils.llm_client import create_gateway
from issue_manager.utils.matching import match_issues
from issue_manager.utils.models import ResolvedAction, Team
from issue_manager.utils.prompter import RichPrompter, ScriptedPrompter
from issue_manager.utils.tracker import create_store

ACTION_STYLES = {"create": "green", "update": "yellow", "comment": "blue"}

REVIEW_CHOICES = [
    ("Proceed with these changes", "proceed"),
    ("Refine with more context", "refine"),
    ("Cancel", "cancel"),
]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="issue-manager",
        description="Turn client feedback into issue tracker tickets",
    )
    parser.add_argument("--dry-run", action="store_true", help="Preview changes without applying them")
    parser.add_argument("--team", help="Team key (or repository name) to file against")
    parser.add_argument("--input", type=Path, help="Read feedback from this file")
    parser.add_argument(
        "--no-enrich", action="store_true", help="Skip clarifying and follow-up questions"
    )
    parser.add_argument("--answers", type=Path, help="YAML list of scripted prompt answers")
    parser.add_argument("--clear-keys", action="store_true", help="Remove saved API keys and exit")
    return parser.parse_args(argv)


def read_feedback(prompter, input_path: Optional[Path] = None) -> str:
    if input_path:
        return input_path.read_text(encoding="utf-8").strip()
    return prompter.text("Paste your transcript/message")


def select_team(store, prompter, team_key: Optional[str] = None) -> Team:
    """Pick the team by key, or ask."""
    teams = store.list_teams()
    if not teams:
        raise ConfigError("No teams available for this API key")

    if team_key:
        for team in teams:
            if team_key.lower() in (team.key.lower(), team.name.lower(), team.id.lower()):
                return team
        raise ConfigError(f"Team '{team_key}' not found")

    choices = [(f"{team.name} ({team.key})", team.id) for team in teams]
    team_id = prompter.select("Which client/team is this for?", choices)
    return next(team for team in teams if team.id == team_id)


def gather_context(gateway, prompter, feedback: str) -> Dict[str, str]:
    """Ask up-front clarifying questions. Generation failures mean no questions."""
    try:
        questions = generate_transcript_questions(gateway, feedback)
    except QuestionParseError as e:
        print(f"Warning: Skipping clarifying questions: {e}")
        return {}
    return collect_answers(prompter, questions)


def analyze(gateway, feedback: str, existing, context: Dict[str, str]) -> List[ResolvedAction]:
    """Extract candidates and match them; keep only actions the executor can apply."""
    candidates = extract_issues(gateway, feedback, context)
    print(f"Extracted {len(candidates)} issues from feedback")
    actions = match_issues(gateway, candidates, existing)
    return [action for action in actions if action.is_executable()]


def render_actions(console: Console, actions: List[ResolvedAction], team: Team, existing_count: int):
    """Show the proposed actions and a summary."""
    console.print(f"\n[bold]Team:[/] {escape(team.name)}")
    console.print(f"[bold]Existing tickets:[/] {existing_count}")

    table = Table(title="Proposed Actions", show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("Action")
    table.add_column("Issue")
    table.add_column("Target")
    table.add_column("Reason", style="italic dim")

    for i, item in enumerate(actions, start=1):
        issue = item.candidate
        style = ACTION_STYLES[item.action]
        table.add_row(
            str(i),
            f"[{style}]{item.action.upper()}[/]",
            f"{escape(issue.title)}\n[dim]{escape(issue.description)}\nType: {issue.type} | Priority: {issue.priority}[/]",
            item.matched_ticket_identifier or "",
            escape(item.reason),
        )
    console.print(table)

    counts = {kind: sum(1 for a in actions if a.action == kind) for kind in ACTION_STYLES}
    console.print("\n[bold]Summary:[/]")
    console.print(f"[green]  {counts['create']} new tickets to create[/]")
    console.print(f"[yellow]  {counts['update']} tickets to update[/]")
    console.print(f"[blue]  {counts['comment']} comments to add[/]\n")


def ask_review_choice(prompter) -> Tuple[str, Optional[str]]:
    """Ask proceed/refine/cancel. A refine choice always comes back with a non-empty note."""
    while True:
        choice = prompter.select("What would you like to do?", REVIEW_CHOICES)
        if choice != "refine":
            return choice, None
        note = prompter.text("What should be different?")
        if note:
            return choice, note
        print("No refinement entered, keeping the current proposal")


def review(
    gateway, prompter, console: Console, feedback: str, existing, team: Team,
    context: Dict[str, str], dry_run: bool = False,
) -> Optional[List[ResolvedAction]]:
    """Show proposed actions until the user proceeds (list) or cancels (None)."""
    refinements = 0
    while True:
        actions = analyze(gateway, feedback, existing, context)
        render_actions(console, actions, team, len(existing))

        if dry_run:
            console.print("[cyan]Dry run mode - no changes will be applied[/]")
            return None

        choice, note = ask_review_choice(prompter)
        if choice == "proceed":
            return actions
        if choice == "cancel":
            return None

        refinements += 1
        context[f"Reviewer refinement {refinements}"] = note


def prepare_creates(
    gateway, prompter, actions: List[ResolvedAction], feedback: str,
    enrich: bool = True, today: Optional[date] = None,
) -> Dict[int, str]:
    """Follow-up questions and deadlines for new tickets. Returns due dates by action index."""
    creates = [(i, a) for i, a in enumerate(actions) if a.action == "create"]
    if not creates:
        return {}

    if enrich and prompter.confirm("Ask follow-up questions for new tickets?", default=True):
        for _, action in creates:
            print(f"\nFollow-up for: {action.candidate.title}")
            try:
                enrich_candidate(gateway, prompter, action.candidate, feedback)
            except QuestionParseError as e:
                print(f"Warning: No follow-up questions for '{action.candidate.title}': {e}")

    due_dates: Dict[int, str] = {}
    if not prompter.confirm("Set deadlines for new tickets?", default=False):
        return due_dates

    for index, action in creates:
        phrase = prompter.text(
            f"Deadline for '{action.candidate.title}' (e.g. next friday, blank for none)",
            default="",
        )
        due = parse_deadline(gateway, phrase, today or date.today())
        if due:
            due_dates[index] = due
            print(f"Due date: {due}")
        elif phrase:
            print("Could not understand that deadline - no due date set")
    return due_dates


def run(args: argparse.Namespace, prompter, console: Console, settings=None, gateway=None, store=None) -> int:
    """Drive one feedback run. Returns the process exit code."""
    settings = settings or load_settings()

    if gateway is None:
        llm_key = get_api_key(settings, "anthropic_api_key", prompter)
        gateway = create_gateway(settings.llm_backend, api_key=llm_key, model=settings.model)
    if store is None:
        tracker_key = get_api_key(settings, settings.tracker_key_field(), prompter)
        store = create_store(settings.tracker, tracker_key)

    feedback = read_feedback(prompter, args.input)
    if not feedback.strip():
        console.print("[red]No feedback text provided.[/]")
        return 1
    print(f"Captured {len(feedback)} characters")

    try:
        team = select_team(store, prompter, args.team)
        print("Fetching existing issues...")
        existing = store.list_issues(team.id)
    except TrackerAPIError as e:
        console.print(f"[red]✗ Fetching teams and tickets failed: {escape(str(e))}[/]")
        return 1
    print(f"Found {len(existing)} existing issues")

    step = "clarifying questions"
    try:
        context: Dict[str, str] = {}
        if not args.no_enrich:
            context = gather_context(gateway, prompter, feedback)

        step = "extraction and matching"
        actions = review(
            gateway, prompter, console, feedback, existing, team, context, dry_run=args.dry_run
        )
        if actions is None:
            if not args.dry_run:
                console.print("[yellow]✗ Cancelled. No changes made.[/]")
            return 0
        if not actions:
            console.print("[yellow]Nothing to apply.[/]")
            return 0

        step = "follow-up questions and deadlines"
        due_dates = prepare_creates(gateway, prompter, actions, feedback, enrich=not args.no_enrich)
    except ResponseParseError as e:
        console.print(f"[red]✗ {e.step.capitalize()} failed: {escape(str(e))}[/]")
        return 1
    except (GatewayError, UnexpectedResponseKind) as e:
        console.print(f"[red]✗ Language model call failed during {step}: {escape(str(e))}[/]")
        return 1

    try:
        with console.status("Applying changes..."):
            result = apply_actions(
                store, actions, team.id, due_dates=due_dates, comment_header=settings.comment_header
            )
    except ExternalMutationFailure as e:
        console.print(f"[red]✗ Failed to process: {escape(e.candidate_title)}[/]")
        console.print(f"[red]{escape(str(e.cause))}[/]")
        if e.result.total():
            console.print("Applied before the failure:")
            console.print(e.result.format_summary())
        return 1

    console.print("[bold green]✓ Complete![/]")
    console.print(result.format_summary())

    usage = getattr(gateway, "usage", None)
    if usage is not None:
        print(f"LLM usage: {usage.format_compact()}")
    return 0


def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)
    console = Console()

    if args.clear_keys:
        clear_api_keys()
        print(f"API keys cleared from {get_config_path()}")
        sys.exit(0)

    try:
        prompter = ScriptedPrompter.from_file(args.answers) if args.answers else RichPrompter(console)
        code = run(args, prompter, console)
    except (
        ConfigError, GatewayError, TrackerAPIError, UnexpectedResponseKind, OSError, ValueError
    ) as e:
        console.print(f"[red]ERROR: {escape(str(e))}[/]")
        code = 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. No further changes made.[/]")
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
