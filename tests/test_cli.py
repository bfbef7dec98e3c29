"""Tests for CLI interface.

Test Coverage:
    - Argument parsing
    - Command routing
    - Help text generation
    - Error handling
    - Analysis, task and cache commands with mocked pipeline
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from dossier.cli import cmd_analyze, cmd_cache, cmd_task, cmd_version, create_parser, main


def _company_payload(success: bool = True) -> dict:
    if not success:
        return {
            "success": False,
            "data": None,
            "cached": False,
            "coalesced": False,
            "error": "Upstream provider failed",
            "status": 502,
        }
    return {
        "success": True,
        "data": {
            "companyName": "Acme Corp",
            "domain": "acme.com",
            "industry": "Manufacturing",
        },
        "cached": False,
        "coalesced": False,
        "usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
        "costBreakdown": {"knowledge": 0.0, "primary": 0.48, "total": 0.48},
    }


class TestParserCreation:
    """Test CLI parser creation."""

    def test_parser_help_exits(self):
        """Parser prints help and exits."""
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["--help"])

    def test_parser_prog_name(self):
        """Parser has correct program name."""
        parser = create_parser()
        assert parser.prog == "dossier"


class TestAnalyzeCommands:
    """Test company and person command parsing."""

    def test_company_requires_name(self):
        """Company command requires a name."""
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["company"])

    def test_company_name_parsed(self):
        """Company command parses the name and defaults to text."""
        parser = create_parser()
        args = parser.parse_args(["company", "Acme Corp"])
        assert args.command == "company"
        assert args.name == "Acme Corp"
        assert args.format == "text"

    def test_person_options(self):
        """Person command accepts --title and --company."""
        parser = create_parser()
        args = parser.parse_args(
            ["person", "Jane Doe", "--title", "CTO", "--company", "Acme Corp", "--format", "json"]
        )
        assert args.command == "person"
        assert args.name == "Jane Doe"
        assert args.title == "CTO"
        assert args.company == "Acme Corp"
        assert args.format == "json"

    def test_person_defaults(self):
        """Title and company default to empty strings."""
        parser = create_parser()
        args = parser.parse_args(["person", "Jane Doe"])
        assert args.title == ""
        assert args.company == ""

    def test_invalid_format_rejected(self):
        """Unknown --format values are rejected."""
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["company", "Acme Corp", "--format", "xml"])


class TestTaskAndCacheParsing:
    """Test task and cache command parsing."""

    def test_task_arguments(self):
        """Task command collects the task name and prompt arguments."""
        parser = create_parser()
        args = parser.parse_args(["task", "recent_news", "Acme Corp"])
        assert args.task_name == "recent_news"
        assert args.task_args == ["Acme Corp"]

    def test_cache_stats(self):
        """Cache stats subcommand is parsed."""
        parser = create_parser()
        args = parser.parse_args(["cache", "stats"])
        assert args.command == "cache"
        assert args.cache_command == "stats"

    def test_cache_invalidate_requires_key(self):
        """Invalidate needs a key."""
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["cache", "invalidate"])

    def test_cache_invalidate_key(self):
        """Invalidate parses the key."""
        parser = create_parser()
        args = parser.parse_args(["cache", "invalidate", "company:acme-corp"])
        assert args.key == "company:acme-corp"


class TestVersionCommand:
    """Test version command."""

    def test_version_output(self, capsys):
        """Version prints the package version."""
        parser = create_parser()
        args = parser.parse_args(["version"])
        exit_code = cmd_version(args)

        assert exit_code == 0
        assert "DOSSIER v0.3.0" in capsys.readouterr().out

    def test_main_version(self, capsys):
        """main() routes version."""
        assert main(["version"]) == 0
        assert "DOSSIER" in capsys.readouterr().out

    def test_main_no_command_shows_help(self, capsys):
        """main() without a command prints help and succeeds."""
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestAnalyzeExecution:
    """Test cmd_analyze with a mocked pipeline."""

    @patch("dossier.cli._analyze", new_callable=AsyncMock)
    def test_company_text_output(self, mock_analyze, capsys):
        """Text format prints one line per field."""
        mock_analyze.return_value = _company_payload()

        parser = create_parser()
        args = parser.parse_args(["company", "Acme Corp"])
        exit_code = cmd_analyze(args)

        assert exit_code == 0
        out = capsys.readouterr().out
        assert "success: True" in out
        assert "acme.com" in out
        mock_analyze.assert_called_once_with("company", args)

    @patch("dossier.cli._analyze", new_callable=AsyncMock)
    def test_company_json_output(self, mock_analyze, capsys):
        """JSON format prints the response envelope."""
        mock_analyze.return_value = _company_payload()

        parser = create_parser()
        args = parser.parse_args(["company", "Acme Corp", "--format", "json"])
        exit_code = cmd_analyze(args)

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["data"]["companyName"] == "Acme Corp"
        assert data["costBreakdown"]["total"] == 0.48

    @patch("dossier.cli._analyze", new_callable=AsyncMock)
    def test_unsuccessful_response_returns_1(self, mock_analyze, capsys):
        """A failed analysis still prints the envelope but exits 1."""
        mock_analyze.return_value = _company_payload(success=False)

        parser = create_parser()
        args = parser.parse_args(["company", "Acme Corp", "--format", "json"])
        exit_code = cmd_analyze(args)

        assert exit_code == 1
        data = json.loads(capsys.readouterr().out)
        assert data["status"] == 502

    @patch("dossier.cli._analyze", new_callable=AsyncMock)
    def test_pipeline_error_returns_1(self, mock_analyze, capsys):
        """Unexpected exceptions return exit code 1."""
        mock_analyze.side_effect = RuntimeError("store unreachable")

        parser = create_parser()
        args = parser.parse_args(["person", "Jane Doe"])
        exit_code = cmd_analyze(args)

        assert exit_code == 1
        assert "store unreachable" in capsys.readouterr().err

    @patch("dossier.cli._analyze", new_callable=AsyncMock)
    def test_main_person_routing(self, mock_analyze, capsys):
        """main() routes person to the analysis pipeline."""
        mock_analyze.return_value = {"success": True, "data": {"name": "Jane Doe"}}

        exit_code = main(["person", "Jane Doe", "--company", "Acme Corp"])

        assert exit_code == 0
        kind, args = mock_analyze.call_args.args
        assert kind == "person"
        assert args.company == "Acme Corp"


class TestTaskExecution:
    """Test cmd_task with a mocked orchestrator."""

    @patch("dossier.cli._run_task", new_callable=AsyncMock)
    def test_task_output(self, mock_run_task, capsys):
        """Task result is printed as JSON."""
        mock_run_task.return_value = {"success": True, "data": {"news": []}}

        parser = create_parser()
        args = parser.parse_args(["task", "recent_news", "Acme Corp", "--format", "json"])
        exit_code = cmd_task(args)

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out)["data"] == {"news": []}
        mock_run_task.assert_called_once_with("recent_news", ["Acme Corp"])

    @patch("dossier.cli._run_task", new_callable=AsyncMock)
    def test_unknown_task_returns_1(self, mock_run_task, capsys):
        """An unknown task name surfaces as an error."""
        mock_run_task.side_effect = KeyError("no_such_task")

        parser = create_parser()
        args = parser.parse_args(["task", "no_such_task", "Acme Corp"])

        assert cmd_task(args) == 1
        assert "no_such_task" in capsys.readouterr().err


class TestCacheExecution:
    """Test cmd_cache with a mocked cache."""

    def test_missing_subcommand_returns_2(self, capsys):
        """Cache without a subcommand prints usage and exits 2."""
        parser = create_parser()
        args = parser.parse_args(["cache"])

        assert cmd_cache(args) == 2
        assert "Usage" in capsys.readouterr().err

    @patch("dossier.cli._cache_command", new_callable=AsyncMock)
    def test_stats_output(self, mock_cache, capsys):
        """Stats are printed."""
        mock_cache.return_value = {"memory_size": 3, "pending_requests": 0}

        parser = create_parser()
        args = parser.parse_args(["cache", "stats", "--format", "json"])

        assert cmd_cache(args) == 0
        assert json.loads(capsys.readouterr().out)["memory_size"] == 3

    @patch("dossier.cli._cache_command", new_callable=AsyncMock)
    def test_invalidate_failure_returns_1(self, mock_cache, capsys):
        """A failed invalidation exits 1."""
        mock_cache.return_value = {"success": False, "errors": ["store: timeout"]}

        parser = create_parser()
        args = parser.parse_args(["cache", "invalidate", "company:acme-corp"])

        assert cmd_cache(args) == 1
        assert "store: timeout" in capsys.readouterr().out
