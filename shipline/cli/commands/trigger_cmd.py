from __future__ import annotations

from pathlib import Path

import typer

from shipline.cli.commands._helpers import require_event, resolve_event
from shipline.cli.context import build_context
from shipline.output.console import Style
from shipline.services.trigger import evaluate


def trigger(
    event_file: Path | None = typer.Option(
        None, "--event", help="GitHub push event payload (JSON)"
    ),
    event_name: str = typer.Option("push", "--event-name", help="Event type of the payload"),
    sha: str | None = typer.Option(None, "--sha", help="Commit (instead of --event)"),
    branch: str | None = typer.Option(None, "--branch", help="Branch pushed to (with --sha)"),
    config: Path | None = typer.Option(None, "--config", help="Path to shipline.toml"),
) -> None:
    """Tell whether an event would start a run. A skip exits 0."""
    ctx = build_context(config)
    event = require_event(
        ctx,
        resolve_event(
            ctx,
            event_file=event_file,
            event_name=event_name,
            sha=sha,
            branch=branch,
            message="",
        ),
    )

    decision = evaluate(event, branch=ctx.config.trigger.branch)
    if decision.start:
        ctx.console.success(f"start: {decision.reason}")
    else:
        ctx.console.print(f"skip: {decision.reason}", Style.DIM)
