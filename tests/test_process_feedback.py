"""End-to-end tests for the feedback processing flow."""

import io
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

from issue_manager.process_feedback import main, parse_args, prepare_creates, run, select_team
from issue_manager.utils.config import Settings
from issue_manager.utils.errors import ConfigError, GatewayError, TrackerAPIError
from issue_manager.utils.models import ResolvedAction
from issue_manager.utils.prompter import ScriptedPrompter

FOLLOW_UP_QUESTION = """
  {"question": "Include column headers?",
   "options": [{"label": "Yes", "value": "yes"}, {"label": "No", "value": "no"}]}
]"""


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def feedback_file(tmp_path, sample_feedback):
    path = tmp_path / "feedback.txt"
    path.write_text(sample_feedback)
    return path


def output(console):
    return console.file.getvalue()


class TestRun:
    """Tests for run function."""

    def test_full_run(self, make_gateway, store, console, feedback_file,
                      extraction_response, match_response):
        gateway = make_gateway(
            "]", extraction_response, match_response, FOLLOW_UP_QUESTION, '"2025-01-17"]'
        )
        prompter = ScriptedPrompter(["proceed", True, "Yes", True, "next friday"])
        args = parse_args(["--team", "ACME", "--input", str(feedback_file)])

        code = run(args, prompter, console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert len(gateway.calls) == 5
        assert store.updated[0]["id"] == "uuid-101"
        created = store.created[0]
        assert created["title"] == "Export monthly report as CSV"
        assert created["team_id"] == "team-uuid-1"
        assert created["priority"] == 2
        assert created["due_date"] == "2025-01-17"
        assert "- Include column headers? yes" in created["description"]
        text = output(console)
        assert "Complete!" in text
        assert "+ ACME-201" in text
        assert "~ ACME-101" in text

    def test_no_enrich_skips_questions(self, make_gateway, store, console, feedback_file,
                                       extraction_response, match_response):
        gateway = make_gateway(extraction_response, match_response)
        prompter = ScriptedPrompter(["proceed", False])
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, prompter, console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert len(gateway.calls) == 2
        assert store.created[0]["due_date"] is None
        assert prompter.asked == ["What would you like to do?", "Set deadlines for new tickets?"]

    def test_feedback_from_prompt_and_team_choice(self, make_gateway, store, console,
                                                  sample_feedback, extraction_response,
                                                  match_response):
        gateway = make_gateway(extraction_response, match_response)
        prompter = ScriptedPrompter([sample_feedback, "Acme Corp (ACME)", "cancel"])
        args = parse_args(["--no-enrich"])

        code = run(args, prompter, console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert store.attempted == []
        assert "Cancelled" in output(console)

    def test_empty_feedback(self, make_gateway, store, console, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("   \n")
        args = parse_args(["--input", str(path)])

        code = run(args, ScriptedPrompter(), console, settings=Settings(),
                   gateway=make_gateway(), store=store)

        assert code == 1
        assert "No feedback text provided" in output(console)

    def test_dry_run_applies_nothing(self, make_gateway, store, console, feedback_file,
                                     extraction_response, match_response):
        gateway = make_gateway(extraction_response, match_response)
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich", "--dry-run"])

        code = run(args, ScriptedPrompter(), console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert store.attempted == []
        text = output(console)
        assert "Dry run mode" in text
        assert "Login hangs on Safari" in text
        assert "1 new tickets to create" in text

    def test_extraction_failure_exits_nonzero(self, make_gateway, store, console, feedback_file):
        gateway = make_gateway("Sorry, I can't help with that.")
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, ScriptedPrompter(), console, settings=Settings(), gateway=gateway, store=store)

        assert code == 1
        assert "Extraction failed" in output(console)
        assert store.attempted == []

    def test_clarifying_question_failure_degrades(self, make_gateway, store, console, feedback_file,
                                                  extraction_response, match_response, capsys):
        gateway = make_gateway("not questions", extraction_response, match_response)
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--dry-run"])

        code = run(args, ScriptedPrompter(), console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert "Warning: Skipping clarifying questions" in capsys.readouterr().out

    def test_mutation_failure_stops_run(self, make_gateway, store, console, feedback_file,
                                        extraction_response, match_response):
        store.fail_on_title = "Export monthly report as CSV"
        gateway = make_gateway(extraction_response, match_response)
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, ScriptedPrompter(["proceed", False]), console,
                   settings=Settings(), gateway=gateway, store=store)

        assert code == 1
        text = output(console)
        assert "Failed to process: Export monthly report as CSV" in text
        assert "Applied before the failure" in text
        assert "~ ACME-101" in text
        assert store.created == []

    def test_refine_reruns_with_note(self, make_gateway, store, console, feedback_file,
                                     extraction_response, match_response):
        gateway = make_gateway(extraction_response, match_response, extraction_response, match_response)
        prompter = ScriptedPrompter(["refine", "Treat Safari and Chrome separately", "cancel"])
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, prompter, console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert len(gateway.calls) == 4
        assert "Reviewer refinement 1" in gateway.calls[2]["prompt"]
        assert "Treat Safari and Chrome separately" in gateway.calls[2]["prompt"]
        assert store.attempted == []

    def test_refine_without_note_asks_again(self, make_gateway, store, console, feedback_file,
                                            extraction_response, match_response, capsys):
        gateway = make_gateway(extraction_response, match_response)
        prompter = ScriptedPrompter(["refine", "", "cancel"])
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, prompter, console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert len(gateway.calls) == 2
        assert prompter.asked == [
            "What would you like to do?",
            "What should be different?",
            "What would you like to do?",
        ]
        assert "No refinement entered" in capsys.readouterr().out

    def test_follow_up_answers_stay_on_the_new_ticket(self, make_gateway, store, console,
                                                      feedback_file, extraction_response):
        """One candidate both updating ACME-101 and creating a ticket keeps the bodies apart."""
        match = """
          {"issueIndex": 0, "action": "update", "matchedIssueIdentifier": "ACME-101", "reason": "x"},
          {"issueIndex": 0, "action": "create", "reason": "y"}
        ]"""
        gateway = make_gateway("]", extraction_response, match, FOLLOW_UP_QUESTION)
        prompter = ScriptedPrompter(["proceed", True, "Yes", False])
        args = parse_args(["--team", "ACME", "--input", str(feedback_file)])

        code = run(args, prompter, console, settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert store.updated[0]["id"] == "uuid-101"
        assert "Additional context" not in store.updated[0]["description"]
        assert "- Include column headers? yes" in store.created[0]["description"]

    def test_gateway_failure_names_the_step(self, make_gateway, store, console, feedback_file):
        gateway = make_gateway(GatewayError("claude-sonnet request failed: rate limited"))
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, ScriptedPrompter(), console, settings=Settings(), gateway=gateway, store=store)

        assert code == 1
        text = output(console)
        assert "Language model call failed during extraction and matching" in text
        assert "rate limited" in text
        assert store.attempted == []

    def test_tracker_read_failure_exits_nonzero(self, make_gateway, store, console, feedback_file):
        store.list_issues = MagicMock(side_effect=TrackerAPIError("Linear API returned 503: down"))
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, ScriptedPrompter(), console, settings=Settings(),
                   gateway=make_gateway(), store=store)

        assert code == 1
        assert "Fetching teams and tickets failed: Linear API returned 503" in output(console)

    def test_unresolved_targets_never_reach_executor(self, make_gateway, store, console,
                                                     feedback_file, extraction_response):
        match = '{"issueIndex": 0, "action": "update", "matchedIssueIdentifier": "ACME-999", "reason": "x"}]'
        gateway = make_gateway(extraction_response, match)
        args = parse_args(["--team", "ACME", "--input", str(feedback_file), "--no-enrich"])

        code = run(args, ScriptedPrompter(["proceed"]), console,
                   settings=Settings(), gateway=gateway, store=store)

        assert code == 0
        assert store.attempted == []
        assert "Nothing to apply" in output(console)


class TestSelectTeam:
    """Tests for select_team function."""

    def test_by_key_case_insensitive(self, store):
        assert select_team(store, ScriptedPrompter(), "acme").id == "team-uuid-1"

    def test_unknown_key_raises(self, store):
        with pytest.raises(ConfigError, match="not found"):
            select_team(store, ScriptedPrompter(), "NOPE")


class TestPrepareCreates:
    """Tests for prepare_creates function."""

    def test_unparseable_deadline_leaves_no_due_date(self, make_gateway, candidates, capsys):
        actions = [ResolvedAction(candidate=candidates[0], action="create")]
        prompter = ScriptedPrompter([True, "whenever"])

        due = prepare_creates(make_gateway("null]"), prompter, actions, "feedback",
                              enrich=False, today=date(2025, 1, 10))

        assert due == {}
        assert "no due date set" in capsys.readouterr().out

    def test_no_creates_asks_nothing(self, make_gateway, candidates):
        actions = [ResolvedAction(candidate=candidates[0], action="comment", matched_ticket_id="uuid-1")]
        prompter = ScriptedPrompter()

        assert prepare_creates(make_gateway(), prompter, actions, "feedback") == {}
        assert prompter.asked == []


class TestMain:
    """Tests for main entry point."""

    def test_clear_keys(self):
        with patch("issue_manager.process_feedback.clear_api_keys") as mock_clear:
            with pytest.raises(SystemExit) as exc_info:
                main(["--clear-keys"])

        mock_clear.assert_called_once()
        assert exc_info.value.code == 0

    def test_missing_answers_file_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--answers", str(tmp_path / "missing.yaml")])

        assert exc_info.value.code == 1
