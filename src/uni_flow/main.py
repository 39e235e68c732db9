"""CLI entrypoint for uni."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from uni_flow import __version__
from uni_flow.chain.controllers import (
    ChainCliController,
    FlowAddCommand,
    FlowListCommand,
    FlowRemoveCommand,
    FlowRunCommand,
    RunCommandsCommand,
)
from uni_flow.config import Settings
from uni_flow.flows.services import FlowNotFoundError
from uni_flow.pipe.controllers import PipeCliController, PipeCommand

click.rich_click.USE_MARKDOWN = True
CHAIN_CONTROLLER = ChainCliController()
PIPE_CONTROLLER = PipeCliController()

_DB_PATH_OPTION = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path for saved flows.",
)


@click.group()
@click.version_option(version=__version__, prog_name="uni")
def uni() -> None:
    """Chain, parallelize, retry and pipe CLI commands."""

    with _user_errors():
        _configure_logging(Settings.from_env())


@uni.command("run")
@click.argument("commands", nargs=-1)
@click.option(
    "-f",
    "--file",
    "commands_file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="Read commands from a file, one per line. `#` starts a comment line.",
)
@click.option("-p", "--parallel", is_flag=True, help="Run all commands concurrently.")
@click.option("-n", "--dry-run", is_flag=True, help="Show what would run without executing.")
@click.option(
    "--retry",
    type=click.IntRange(min=0),
    default=None,
    help="Retry each failing command up to N times with exponential backoff.",
)
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON.")
def run_commands(  # noqa: PLR0913
    commands: tuple[str, ...],
    commands_file: Path | None,
    parallel: bool,
    dry_run: bool,
    retry: int | None,
    json_output: bool,
) -> None:
    """Run commands in sequence or parallel.

    Inside one argument `&&` runs the next command on success, `||` on failure
    and `|` feeds the previous output in. Braces like `item{1..3}` expand first.
    """

    with _user_errors():
        report = CHAIN_CONTROLLER.run(
            RunCommandsCommand(
                commands=commands,
                commands_file=commands_file,
                parallel=parallel,
                dry_run=dry_run,
                json_output=json_output,
                retry=retry,
            ),
            on_progress=click.echo,
        )
    _emit_lines(report.lines)
    if not report.success:
        raise click.ClickException("One or more commands failed.")


@uni.group()
def flow() -> None:
    """Saved command sequences with `$1`, `$2` argument placeholders."""


@flow.command("list")
@_DB_PATH_OPTION
@click.option("--json", "json_output", is_flag=True, help="Print flows as JSON.")
def flow_list(db_path: Path | None, json_output: bool) -> None:
    """List saved flows."""

    with _user_errors():
        lines = CHAIN_CONTROLLER.list_flows(FlowListCommand(db_path=db_path, json_output=json_output))
    _emit_lines(lines)


@flow.command("add")
@_DB_PATH_OPTION
@click.argument("name")
@click.argument("commands", nargs=-1, required=True)
def flow_add(db_path: Path | None, name: str, commands: tuple[str, ...]) -> None:
    """Save a flow; an existing flow with the same name is replaced."""

    with _user_errors():
        lines = CHAIN_CONTROLLER.add_flow(
            FlowAddCommand(db_path=db_path, name=name, commands=commands),
        )
    _emit_lines(lines)


def _remove_flow(db_path: Path | None, name: str) -> None:
    with _user_errors():
        report = CHAIN_CONTROLLER.remove_flow(FlowRemoveCommand(db_path=db_path, name=name))
    if not report.success:
        raise click.ClickException("\n".join(report.lines))
    _emit_lines(report.lines)


@flow.command("remove")
@_DB_PATH_OPTION
@click.argument("name")
def flow_remove(db_path: Path | None, name: str) -> None:
    """Delete a saved flow."""

    _remove_flow(db_path, name)


@flow.command("rm")
@_DB_PATH_OPTION
@click.argument("name")
def flow_rm(db_path: Path | None, name: str) -> None:
    """Alias for `uni flow remove`."""

    _remove_flow(db_path, name)


@flow.command("run")
@_DB_PATH_OPTION
@click.argument("name")
@click.argument("args", nargs=-1)
@click.option("-p", "--parallel", is_flag=True, help="Run the flow's commands concurrently.")
@click.option("-n", "--dry-run", is_flag=True, help="Show what would run without executing.")
@click.option(
    "--retry",
    type=click.IntRange(min=0),
    default=None,
    help="Retry each failing command up to N times with exponential backoff.",
)
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON.")
def flow_run(  # noqa: PLR0913
    db_path: Path | None,
    name: str,
    args: tuple[str, ...],
    parallel: bool,
    dry_run: bool,
    retry: int | None,
    json_output: bool,
) -> None:
    """Run a saved flow, substituting ARGS into `$1`, `$2`, ..."""

    with _user_errors():
        report = CHAIN_CONTROLLER.run_flow(
            FlowRunCommand(
                db_path=db_path,
                name=name,
                args=args,
                parallel=parallel,
                dry_run=dry_run,
                json_output=json_output,
                retry=retry,
            ),
            on_progress=click.echo,
        )
    _emit_lines(report.lines)
    if not report.success:
        raise click.ClickException(f"Flow {name!r} failed.")


@uni.command("pipe")
@click.argument("source")
@click.option(
    "-s",
    "--select",
    default=None,
    help="Path into the source JSON, for example `items[*].name`.",
)
@click.option(
    "-f",
    "--filter",
    "filter_expression",
    default=None,
    help="Keep items matching an expression, for example `stars > 100 and lang == \"py\"`.",
)
@click.option(
    "-e",
    "--each",
    default=None,
    help="Command template run per item, for example `notes add {{title}}`.",
)
@click.option("-n", "--dry-run", is_flag=True, help="Use sample data and print the commands.")
@click.option("--json", "json_output", is_flag=True, help="Print items or results as JSON.")
def pipe(  # noqa: PLR0913
    source: str,
    select: str | None,
    filter_expression: str | None,
    each: str | None,
    dry_run: bool,
    json_output: bool,
) -> None:
    """Run SOURCE with `--json`, then select, filter and fan out over its items."""

    with _user_errors():
        report = PIPE_CONTROLLER.pipe(
            PipeCommand(
                source=source,
                select=select,
                filter=filter_expression,
                each=each,
                dry_run=dry_run,
                json_output=json_output,
            ),
            on_progress=click.echo,
            emit=click.echo,
        )
    _emit_lines(report.lines)
    if not report.success:
        raise click.ClickException("Pipe failed.")


@contextmanager
def _user_errors() -> Iterator[None]:
    try:
        yield
    except (ValueError, FlowNotFoundError) as error:
        raise click.ClickException(str(error)) from error


def _configure_logging(settings: Settings) -> None:
    settings.validate()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    uni()
