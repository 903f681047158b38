"""Tests for the tabterm CLI."""

from unittest.mock import patch

from typer.testing import CliRunner

from tabterm.cli import app

runner = CliRunner()


def test_detect_reports_options(tmp_path):
    transcript = tmp_path / "capture.txt"
    transcript.write_text(
        "Reading src/app.py\n"
        "╭──────────────────────────╮\n"
        "│ Do you want to proceed?  │\n"
        "│ ❯ 1. Yes                 │\n"
        "│   2. No                  │\n"
        "╰──────────────────────────╯\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["detect", str(transcript)])

    assert result.exit_code == 0
    assert "box structure:        yes" in result.output
    assert "[1] Yes" in result.output
    assert "[2] No" in result.output


def test_detect_reads_stdin_and_fails_without_menu():
    result = runner.invoke(app, ["detect"], input="Compiling...\nDone.\n")

    assert result.exit_code == 1
    assert "no menu detected" in result.output


def test_detect_tail_limits_window(tmp_path):
    transcript = tmp_path / "capture.txt"
    menu = "┌────┐\n│ 1. Yes │\n│ 2. No │\n└────┘\n"
    transcript.write_text(menu + "plain line\n" * 10, encoding="utf-8")

    assert runner.invoke(app, ["detect", str(transcript)]).exit_code == 0
    assert runner.invoke(app, ["detect", str(transcript), "--tail", "5"]).exit_code == 1


def test_serve_builds_config_from_options(tmp_path):
    with patch("uvicorn.run") as mock_run, patch("tabterm.facilitator.service.create_app") as mock_create:
        result = runner.invoke(
            app,
            ["serve", "--port", "9000", "--command", "bash", "--cwd", str(tmp_path), "--debounce", "0.2"],
        )

    assert result.exit_code == 0, result.output
    config = mock_create.call_args.args[0]
    assert config.port == 9000
    assert config.command == "bash"
    assert config.cwd == str(tmp_path)
    assert config.debounce_seconds == 0.2
    assert config.max_buffer_lines == 50
    mock_run.assert_called_once_with(mock_create.return_value, host="127.0.0.1", port=9000)


def test_serve_reads_environment(monkeypatch):
    monkeypatch.setenv("TABTERM_COMMAND", "zsh")
    with patch("uvicorn.run"), patch("tabterm.facilitator.service.create_app") as mock_create:
        result = runner.invoke(app, ["serve"])

    assert result.exit_code == 0, result.output
    assert mock_create.call_args.args[0].command == "zsh"
