"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(command: str, input: str | None = None, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m flashdeck')
        input: Text fed to stdin for interactive prompts
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    full_command = f"{sys.executable} -m flashdeck {command}"

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        input=input,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def data_opts(tmp_path):
    """Options pointing the CLI at a throwaway dataset."""
    return f'--data-dir "{tmp_path}" --dataset smoke'


@pytest.fixture
def deck_file(tmp_path):
    """A small deck mixing current and legacy records."""
    path = tmp_path / "deck.json"
    path.write_text(json.dumps([
        {"id": "w1", "front": "house", "back": "дом", "state": "review", "ivl": 10, "due": "2000-01-01"},
        {"id": "w2", "english": "to read", "russian": "читать", "repetition": 0},
    ]), encoding="utf-8")
    return path


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "flashdeck" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("command", [
        "study", "preview", "stats", "forecast", "cards", "phrases", "rate", "import", "export",
    ])
    def test_command_help(self, command):
        """Each command's help should work."""
        code, stdout, stderr = run_cli_command(f"{command} --help")

        assert code == 0, f"{command} help failed: {stderr}"


class TestCLIEmptyDeck:
    """Commands on a fresh dataset."""

    def test_stats_runs(self, data_opts):
        """Stats command should complete without error."""
        code, stdout, stderr = run_cli_command(f"stats {data_opts}")

        assert code == 0, f"Stats failed: {stderr}"
        assert "Total cards" in stdout

    def test_study_nothing_due(self, data_opts):
        """Study exits cleanly when there is nothing to study."""
        code, stdout, stderr = run_cli_command(f"study {data_opts}")

        assert code == 0, f"Study failed: {stderr}"
        assert "No cards to study" in stdout

    def test_forecast_runs(self, data_opts):
        code, stdout, stderr = run_cli_command(f"forecast {data_opts} --days 3")

        assert code == 0, f"Forecast failed: {stderr}"


class TestCLIImportExport:
    """Import, inspect, study and export a deck."""

    def test_import_missing_file(self, data_opts, tmp_path):
        """A missing file is reported with a non-zero exit."""
        code, stdout, stderr = run_cli_command(f'import "{tmp_path / "nope.json"}" {data_opts}')

        assert code == 1

    def test_import_then_list(self, data_opts, deck_file):
        code, stdout, stderr = run_cli_command(f'import "{deck_file}" {data_opts}')
        assert code == 0, f"Import failed: {stderr}"
        assert "Imported 2 cards" in stdout

        code, stdout, stderr = run_cli_command(f"cards {data_opts} --filter learning")
        assert code == 0, f"Cards failed: {stderr}"
        assert "house" in stdout

        code, stdout, stderr = run_cli_command(f"preview {data_opts}")
        assert code == 0, f"Preview failed: {stderr}"
        assert "house" in stdout

    def test_unknown_filter(self, data_opts):
        code, stdout, stderr = run_cli_command(f"cards {data_opts} --filter mastered")

        assert code == 1

    def test_study_and_export(self, data_opts, deck_file, tmp_path):
        """Answer the due card Easy, skip new cards, then export."""
        run_cli_command(f'import "{deck_file}" {data_opts}')

        code, stdout, stderr = run_cli_command(
            f"study {data_opts} --new 0",
            input="y\n\n5\n",
        )
        assert code == 0, f"Study failed: {stderr}"
        assert "Session Complete" in stdout

        out = tmp_path / "out.json"
        code, stdout, stderr = run_cli_command(f'export "{out}" {data_opts}')
        assert code == 0, f"Export failed: {stderr}"

        cards = {c["id"]: c for c in json.loads(out.read_text(encoding="utf-8"))}
        assert cards["w1"]["ivl"] > 10
        assert cards["w2"]["state"] == "new"

    def test_stats_progress(self, data_opts, deck_file):
        run_cli_command(f'import "{deck_file}" {data_opts}')

        code, stdout, stderr = run_cli_command(f"stats {data_opts} --progress 30")

        assert code == 0, f"Stats failed: {stderr}"
        assert "Known Cards" in stdout


class TestCLIPhrases:
    """Phrase list and ratings."""

    def test_rate_then_list(self, data_opts, tmp_path):
        path = tmp_path / "phrases.json"
        path.write_text(json.dumps([
            {"id": "h1", "phrase": "# Greetings", "tags": ""},
            {"id": "p1", "phrase": "Hello there", "tags": "casual"},
            {"id": "p2", "phrase": "Good morning", "tags": "formal"},
        ]), encoding="utf-8")
        run_cli_command(f'import "{path}" {data_opts}')

        code, stdout, stderr = run_cli_command(f"rate p2 5 {data_opts}")
        assert code == 0, f"Rate failed: {stderr}"

        code, stdout, stderr = run_cli_command(f"phrases {data_opts}")
        assert code == 0, f"Phrases failed: {stderr}"
        assert "Greetings" in stdout
        assert stdout.index("Good morning") < stdout.index("Hello there")

    def test_rate_unknown_card(self, data_opts):
        code, stdout, stderr = run_cli_command(f"rate missing 3 {data_opts}")

        assert code == 1
