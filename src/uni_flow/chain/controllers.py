"""Controllers for ``uni run`` and ``uni flow`` CLI commands."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from uni_flow.chain.models import ExecutionResult, RunOptions
from uni_flow.chain.service import ChainService, read_commands_from_file
from uni_flow.config import Settings
from uni_flow.flows.repository import SqlFlowRepository
from uni_flow.flows.services import FlowService

ProgressCallback = Callable[[str], None]


@dataclass(slots=True)
class RunCommandsCommand:
    """CLI input for ad-hoc multi-command execution."""

    commands: tuple[str, ...]
    commands_file: Path | None
    parallel: bool
    dry_run: bool
    json_output: bool
    retry: int | None


@dataclass(slots=True)
class FlowListCommand:
    """CLI input for flow listing."""

    db_path: Path | None
    json_output: bool


@dataclass(slots=True)
class FlowAddCommand:
    """CLI input for flow creation."""

    db_path: Path | None
    name: str
    commands: tuple[str, ...]


@dataclass(slots=True)
class FlowRemoveCommand:
    """CLI input for flow removal."""

    db_path: Path | None
    name: str


@dataclass(slots=True)
class FlowRunCommand:
    """CLI input for running a saved flow."""

    db_path: Path | None
    name: str
    args: tuple[str, ...]
    parallel: bool
    dry_run: bool
    json_output: bool
    retry: int | None


@dataclass(slots=True)
class CliReport:
    """Lines to render plus the overall outcome."""

    lines: list[str]
    success: bool


class ChainCliController:
    """Coordinates chain runs and flow management for the CLI."""

    def run(self, command: RunCommandsCommand, *, on_progress: ProgressCallback) -> CliReport:
        settings = _settings()
        commands = list(command.commands)
        if command.commands_file is not None:
            commands.extend(read_commands_from_file(command.commands_file))
        if not commands:
            raise ValueError("No commands given. Pass commands as arguments or use --file.")

        options = RunOptions(
            parallel=command.parallel,
            dry_run=command.dry_run,
            json=command.json_output,
            retry=command.retry if command.retry is not None else settings.retry.default_retry,
        )
        chain = ChainService.from_settings(
            settings,
            on_progress=None if command.json_output else on_progress,
        )
        return _results_report(chain.run_commands(commands, options), json_output=options.json)

    def list_flows(self, command: FlowListCommand) -> list[str]:
        settings = _settings(db_path=command.db_path)
        with _flow_service(settings) as service:
            flows = service.list_flows()

        if command.json_output:
            return [json.dumps({"flows": flows}, indent=2, ensure_ascii=False)]
        if not flows:
            return [
                "No flows defined",
                "Use 'uni flow add <name> <commands...>' to create one",
            ]
        width = max(12, *(len(name) for name in flows))
        lines = ["Flows", ""]
        for name, commands in flows.items():
            lines.append(f"  {name.ljust(width)} {' → '.join(commands)}")
        lines.extend(["", "Run 'uni flow run <name> [args...]' to execute"])
        return lines

    def add_flow(self, command: FlowAddCommand) -> list[str]:
        settings = _settings(db_path=command.db_path)
        with _flow_service(settings) as service:
            service.add_flow(command.name, list(command.commands))
        return [
            f"Created flow: {command.name}",
            f"  Commands: {' → '.join(command.commands)}",
        ]

    def remove_flow(self, command: FlowRemoveCommand) -> CliReport:
        settings = _settings(db_path=command.db_path)
        with _flow_service(settings) as service:
            removed = service.remove_flow(command.name)
        if removed:
            return CliReport(lines=[f"Removed flow: {command.name}"], success=True)
        return CliReport(lines=[f"Flow not found: {command.name}"], success=False)

    def run_flow(self, command: FlowRunCommand, *, on_progress: ProgressCallback) -> CliReport:
        settings = _settings(db_path=command.db_path)
        options = RunOptions(
            parallel=command.parallel,
            dry_run=command.dry_run,
            json=command.json_output,
            retry=command.retry if command.retry is not None else settings.retry.default_retry,
        )
        chain = ChainService.from_settings(
            settings,
            on_progress=None if command.json_output else on_progress,
        )
        with _flow_service(settings) as service:
            results = service.run_flow(command.name, list(command.args), options, chain=chain)
        return _results_report(results, json_output=options.json)


def _results_report(results: list[ExecutionResult], *, json_output: bool) -> CliReport:
    success = all(result.success for result in results)
    if not json_output:
        return CliReport(lines=[], success=success)
    payload = {"results": [result.to_dict() for result in results]}
    return CliReport(lines=[json.dumps(payload, indent=2, ensure_ascii=False)], success=success)


def _settings(db_path: Path | None = None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


@contextmanager
def _flow_service(settings: Settings) -> Iterator[FlowService]:
    repository = SqlFlowRepository(settings.db_path)
    repository.init_schema()
    try:
        yield FlowService(repository)
    finally:
        repository.close()
