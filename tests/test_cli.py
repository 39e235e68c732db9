from __future__ import annotations

import json
import shlex
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from uni_flow import __version__
from uni_flow.main import uni

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("uni run / flow / pipe"),
]

REPOS = [
    {"name": "alpha", "stars": 5},
    {"name": "beta", "stars": 50},
    {"name": "gamma", "stars": 500},
]


def _json_source(data) -> str:
    return f"json {shlex.quote(json.dumps(data))}"


@pytest.fixture()
def runner(echo_env: Path) -> CliRunner:
    return CliRunner()


def test_version_option(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_sequential_commands(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "echo hello", "echo world"])

    assert result.exit_code == 0, result.output
    assert "⟳ Running 2 commands..." in result.stdout
    assert "hello\n" in result.stdout
    assert "world\n" in result.stdout
    assert "✓ Done (" in result.stdout


def test_run_stops_on_unconditional_failure(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "fail boom", "echo never-printed"])

    assert result.exit_code == 1
    assert "✗ fail boom: boom" in result.stdout
    assert "never-printed" not in result.stdout
    assert "✗ 1 command failed" in result.stdout


def test_run_json_reports_results_only(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "--json", "echo hi there | echo got"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [entry["command"] for entry in payload["results"]] == [
        "echo hi there",
        "echo got 'hi there'",
    ]
    assert payload["results"][1]["output"] == "got hi there"
    assert payload["results"][1]["attempts"] == 1


def test_run_structured_pipe_fans_out(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "emit-text one 'two words' | echo item"])

    assert result.exit_code == 0, result.output
    assert "─ echo item (piping 2 items)" in result.stdout
    assert "item one\n" in result.stdout
    assert "item two words\n" in result.stdout
    assert "plain preamble line" not in result.stdout


def test_run_structured_file_items_use_file_flag(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "emit-file /tmp/shot.png 'Daily chart' | echo upload"])

    assert result.exit_code == 0, result.output
    assert "file=/tmp/shot.png upload Daily chart\n" in result.stdout


def test_run_brace_expansion(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "echo page-{1..3}"])

    assert result.exit_code == 0, result.output
    for number in (1, 2, 3):
        assert f"page-{number}\n" in result.stdout


def test_run_dry_run_spawns_nothing(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "-n", "fail boom && echo b"])

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == ["→ fail boom", "→ echo b"]


def test_run_parallel(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run", "--parallel", "echo one", "fail two", "echo three"])

    assert result.exit_code == 1
    assert "one\n" in result.stdout
    assert "three\n" in result.stdout
    assert "✗ 1 command failed" in result.stdout


def test_run_retry_recovers_flaky_command(runner: CliRunner, tmp_path: Path) -> None:
    counter = tmp_path / "counter"

    result = runner.invoke(uni, ["run", "--retry", "2", f"flaky {shlex.quote(str(counter))} 1"])

    assert result.exit_code == 0, result.output
    assert "↻ Retry 1/2 in 0s..." in result.stdout
    assert "succeeded after 2 attempt(s)" in result.stdout


def test_run_reads_commands_file(runner: CliRunner, tmp_path: Path) -> None:
    commands_file = tmp_path / "morning.uni"
    commands_file.write_text("# morning routine\necho from-file\n\necho second\n", "utf-8")

    result = runner.invoke(uni, ["run", "--file", str(commands_file), "echo from-args"])

    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    assert lines.index("from-args") < lines.index("from-file") < lines.index("second")


def test_run_without_commands_is_usage_error(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["run"])

    assert result.exit_code == 1
    assert "No commands given" in result.stderr


def test_invalid_log_level_is_reported(runner: CliRunner, monkeypatch) -> None:
    monkeypatch.setenv("UNI_LOG_LEVEL", "chatty")

    result = runner.invoke(uni, ["run", "echo x"])

    assert result.exit_code == 1
    assert "UNI_LOG_LEVEL" in result.stderr


def test_flow_lifecycle(runner: CliRunner, echo_env: Path) -> None:
    added = runner.invoke(uni, ["flow", "add", "greet", "echo hello $1", "echo bye $2"])
    assert added.exit_code == 0, added.output
    assert added.stdout.splitlines() == [
        "Created flow: greet",
        "  Commands: echo hello $1 → echo bye $2",
    ]
    assert echo_env.exists()

    listed = runner.invoke(uni, ["flow", "list"])
    assert listed.exit_code == 0, listed.output
    assert "  greet        echo hello $1 → echo bye $2" in listed.stdout

    listed_json = runner.invoke(uni, ["flow", "list", "--json"])
    assert json.loads(listed_json.stdout) == {"flows": {"greet": ["echo hello $1", "echo bye $2"]}}

    ran = runner.invoke(uni, ["flow", "run", "greet", "Bo"])
    assert ran.exit_code == 0, ran.output
    assert "hello Bo\n" in ran.stdout
    assert "bye $2\n" in ran.stdout

    removed = runner.invoke(uni, ["flow", "rm", "greet"])
    assert removed.exit_code == 0
    assert removed.stdout.strip() == "Removed flow: greet"

    missing = runner.invoke(uni, ["flow", "remove", "greet"])
    assert missing.exit_code == 1
    assert "Flow not found: greet" in missing.stderr


def test_flow_commands_accept_db_path(runner: CliRunner, tmp_path: Path) -> None:
    db_path = tmp_path / "other" / "flows.db"

    runner.invoke(uni, ["flow", "add", "--db-path", str(db_path), "solo", "echo solo"])
    default_list = runner.invoke(uni, ["flow", "list"])
    custom_list = runner.invoke(uni, ["flow", "list", "--db-path", str(db_path), "--json"])

    assert "No flows defined" in default_list.stdout
    assert json.loads(custom_list.stdout) == {"flows": {"solo": ["echo solo"]}}


def test_flow_run_json(runner: CliRunner) -> None:
    runner.invoke(uni, ["flow", "add", "twice", "echo $1", "echo $1 again"])

    result = runner.invoke(uni, ["flow", "run", "twice", "x", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [entry["output"] for entry in payload["results"]] == ["x", "x again"]


def test_flow_run_unknown_flow(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["flow", "run", "ghost"])

    assert result.exit_code == 1
    assert "Flow not found: ghost" in result.stderr


def test_flow_add_rejects_reserved_name(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["flow", "add", "pipe", "echo x"])

    assert result.exit_code == 1
    assert "conflicts with a builtin command" in result.stderr


def test_pipe_filter_and_each(runner: CliRunner) -> None:
    result = runner.invoke(
        uni,
        [
            "pipe",
            _json_source(REPOS),
            "--filter",
            "stars >= 50",
            "--each",
            "echo star {{name}} #{{index}}",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "star beta #0\n" in result.stdout
    assert "star gamma #1\n" in result.stdout
    assert "star alpha" not in result.stdout
    assert "✓ Completed 2 item(s)" in result.stdout


def test_pipe_select_json_outputs_array_only(runner: CliRunner) -> None:
    result = runner.invoke(
        uni,
        ["pipe", _json_source({"items": REPOS}), "--select", "items[*].name", "--json"],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == ["alpha", "beta", "gamma"]


def test_pipe_each_json_outputs_pipe_result(runner: CliRunner) -> None:
    result = runner.invoke(
        uni,
        ["pipe", _json_source(["a", "b"]), "--each", "echo got {{value}}", "--json"],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["success"] is True
    assert payload["items_processed"] == 2
    assert [entry["output"] for entry in payload["results"]] == ["got a", "got b"]


def test_pipe_human_mode_prints_items_per_line(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["pipe", _json_source(REPOS), "--select", "[*].stars"])

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines()[-3:] == ["5", "50", "500"]


def test_pipe_source_failure_exits_non_zero(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["pipe", "fail"])

    assert result.exit_code == 1
    assert "Pipe failed." in result.stderr


def test_pipe_source_failure_json_reports_error(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["pipe", "fail", "--json"])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["success"] is False
    assert payload["results"][0]["item"] is None
    assert payload["results"][0]["error"]


def test_pipe_dry_run(runner: CliRunner) -> None:
    result = runner.invoke(uni, ["pipe", "anything", "-n", "--each", "echo {{sample}}"])

    assert result.exit_code == 0, result.output
    assert "  → Would execute: anything --json" in result.stdout
    assert "  [1/2] echo data" in result.stdout
