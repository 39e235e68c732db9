"""Flow management and execution."""

from __future__ import annotations

import logging

from uni_flow.chain.models import ExecutionResult, RunOptions
from uni_flow.chain.service import ChainService
from uni_flow.flows.macros import substitute_args
from uni_flow.flows.repository import FlowRepository

logger = logging.getLogger(__name__)

RESERVED_NAMES = frozenset(
    {"list", "auth", "config", "completions", "alias", "history", "ask", "run", "flow", "pipe"},
)


class FlowNotFoundError(LookupError):
    """Requested flow name is not stored."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Flow not found: {name}")
        self.name = name


class FlowService:
    """CRUD over an injected repository plus ``$N`` expansion and execution."""

    def __init__(self, repository: FlowRepository) -> None:
        self.repository = repository

    def list_flows(self) -> dict[str, list[str]]:
        return self.repository.list_flows()

    def add_flow(self, name: str, commands: list[str]) -> None:
        name = name.strip()
        if not name:
            raise ValueError("Flow name must not be empty.")
        if name in RESERVED_NAMES:
            raise ValueError(f"Cannot create flow {name!r}: conflicts with a builtin command.")
        cleaned = [command.strip() for command in commands if command.strip()]
        if not cleaned:
            raise ValueError(f"Flow {name!r} needs at least one command.")
        self.repository.save_flow(name, cleaned)
        logger.info("Saved flow %s with %d command(s)", name, len(cleaned))

    def remove_flow(self, name: str) -> bool:
        removed = self.repository.remove_flow(name)
        logger.info("Remove flow %s: %s", name, "removed" if removed else "not found")
        return removed

    def expand_flow(self, name: str, args: list[str]) -> list[str]:
        """Return the flow's commands with positional arguments substituted."""

        commands = self.repository.get_flow(name)
        if commands is None:
            raise FlowNotFoundError(name)
        return substitute_args(commands, args)

    def run_flow(
        self,
        name: str,
        args: list[str],
        options: RunOptions,
        *,
        chain: ChainService,
    ) -> list[ExecutionResult]:
        return chain.run_commands(self.expand_flow(name, args), options)
