"""CLI entrypoint for taskforce."""

import logging
from pathlib import Path

import rich_click as click

from taskforce import __version__
from taskforce.supervisor.controllers import (
    ReplayCommand,
    RunTaskCommand,
    SupervisorCliController,
)
from taskforce.supervisor.errors import SupervisorError
from taskforce.supervisor.models import OutputFormat, PermissionMode

click.rich_click.USE_MARKDOWN = True
SUPERVISOR_CONTROLLER = SupervisorCliController()


@click.group()
@click.version_option(version=__version__, prog_name="taskforce")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity (logs go to stderr).",
)
def taskforce(log_level: str) -> None:
    """Supervise CLI coding agents and follow their progress."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@taskforce.command("run")
@click.argument("description")
@click.option(
    "--cwd",
    "working_dir",
    type=click.Path(path_type=Path),
    default=Path.cwd,
    help="Project directory the agent works in (defaults to the current directory).",
)
@click.option("--model", default=None, help="Optional model override, e.g. opus or sonnet.")
@click.option(
    "--permission-mode",
    type=click.Choice([mode.value for mode in PermissionMode]),
    default=PermissionMode.DEFAULT.value,
    show_default=True,
    help="Permission mode passed to the agent.",
)
@click.option(
    "--output-format",
    type=click.Choice([fmt.value for fmt in OutputFormat]),
    default=OutputFormat.STREAM_JSON.value,
    show_default=True,
    help="Worker output format; progress tracking needs stream-json.",
)
@click.option(
    "--tail",
    "tail_lines",
    type=click.IntRange(min=1),
    default=None,
    help="Only print the last N lines of the agent output.",
)
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Cancel the task when it runs longer than this many seconds.",
)
def run(  # noqa: PLR0913
    description: str,
    working_dir: Path,
    model: str | None,
    permission_mode: str,
    output_format: str,
    tail_lines: int | None,
    timeout_seconds: float | None,
) -> None:
    """Dispatch one agent task and follow it until it exits."""

    try:
        result = SUPERVISOR_CONTROLLER.run_task(
            RunTaskCommand(
                description=description,
                working_dir=working_dir,
                model=model,
                permission_mode=permission_mode,
                output_format=output_format,
                tail_lines=tail_lines,
                timeout_seconds=timeout_seconds,
            ),
            emit=click.echo,
        )
    except SupervisorError as error:
        raise click.ClickException(str(error)) from error
    except ValueError as error:
        raise click.UsageError(str(error)) from error

    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Agent task did not complete successfully.")


@taskforce.command("replay")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--tail",
    "tail_lines",
    type=click.IntRange(min=1),
    default=None,
    help="Only print the last N lines of the assembled output.",
)
def replay(path: Path, tail_lines: int | None) -> None:
    """Parse a recorded stream-json capture and print its progress timeline."""

    _emit_lines(SUPERVISOR_CONTROLLER.replay(ReplayCommand(path=path, tail_lines=tail_lines)))


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    taskforce()
