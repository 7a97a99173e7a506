from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import typer

from shipline.cli.commands._helpers import require_event, resolve_event
from shipline.cli.context import build_context
from shipline.core.errors import ExitCode
from shipline.services.pipeline.service import PipelineService, RunReport


def run(
    event_file: Path | None = typer.Option(
        None, "--event", help="GitHub push event payload (JSON)"
    ),
    event_name: str = typer.Option("push", "--event-name", help="Event type of the payload"),
    sha: str | None = typer.Option(None, "--sha", help="Commit to build (instead of --event)"),
    branch: str | None = typer.Option(None, "--branch", help="Branch pushed to (with --sha)"),
    message: str = typer.Option("", "--message", help="Commit message (with --sha)"),
    config: Path | None = typer.Option(None, "--config", help="Path to shipline.toml"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Build and archive, but only print the release command"
    ),
    keep_workspace: bool = typer.Option(
        False, "--keep-workspace", help="Keep the run directory after the run"
    ),
    report: Path | None = typer.Option(None, "--report", help="Write a JSON run report here"),
) -> None:
    """Run the release pipeline for a push event."""
    ctx = build_context(config)
    event = require_event(
        ctx,
        resolve_event(
            ctx,
            event_file=event_file,
            event_name=event_name,
            sha=sha,
            branch=branch,
            message=message,
        ),
    )

    cfg = ctx.config
    if keep_workspace:
        cfg = replace(cfg, run=replace(cfg.run, keep_workspace=True))

    service = PipelineService(
        config=cfg,
        console=ctx.console,
        base_dir=ctx.base_dir,
        dry_run=dry_run,
    )
    result = service.run(event)

    if report is not None and not _write_report(report, result):
        ctx.console.error(f"cannot write report: {report}")
        raise typer.Exit(code=int(ExitCode.IO_ERROR))

    raise typer.Exit(code=int(result.exit_code))


def _write_report(path: Path, report: RunReport) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError:
        return False
    return True
