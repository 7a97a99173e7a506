"""Shared helpers for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer

from shipline.core.errors import ExitCode
from shipline.core.result import Err, Ok, Result
from shipline.output.console import Style
from shipline.services.pipeline.errors import PipelineError
from shipline.services.pipeline.model import PushEvent
from shipline.services.trigger import event_from_env, load_event_file, manual_event

if TYPE_CHECKING:
    from shipline.cli.context import CLIContext


def exit_with_error(ctx: CLIContext, error: PipelineError, code: ExitCode) -> NoReturn:
    ctx.console.error(error.message)
    if error.hint:
        ctx.console.print(f"hint: {error.hint}", Style.DIM)
    raise typer.Exit(code=int(code))


def resolve_event(
    ctx: CLIContext,
    *,
    event_file: Path | None,
    event_name: str,
    sha: str | None,
    branch: str | None,
    message: str,
) -> Result[PushEvent, PipelineError]:
    """Pick the event to evaluate: --event file, then --sha, then $GITHUB_EVENT_PATH."""
    if event_file is not None:
        return load_event_file(event_file, event_type=event_name)

    if sha is not None:
        return manual_event(
            sha=sha,
            branch=branch or ctx.config.trigger.branch,
            message=message,
            event_type=event_name,
        )

    from_env = event_from_env()
    if from_env is not None:
        return from_env

    return Err(
        PipelineError(
            kind="invalid_event",
            message="no event given",
            hint="Pass --event <payload.json>, --sha <commit>, or run under GitHub Actions",
        )
    )


def require_event(ctx: CLIContext, result: Result[PushEvent, PipelineError]) -> PushEvent:
    if isinstance(result, Ok):
        return result.value
    exit_with_error(ctx, result.error, ExitCode.USER_ERROR)
