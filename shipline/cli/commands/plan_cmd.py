from __future__ import annotations

from pathlib import Path

import typer

from shipline.cli.context import build_context
from shipline.output.console import Style
from shipline.platform.detection import detect_platform
from shipline.services.pipeline.model import STEP_ORDER, STEP_TITLES
from shipline.services.pipeline.publisher import release_tag


def plan(
    sha: str = typer.Option("<sha>", "--sha", help="Commit to show release fields for"),
    message: str = typer.Option("<commit message>", "--message", help="Commit message"),
    config: Path | None = typer.Option(None, "--config", help="Path to shipline.toml"),
) -> None:
    """Show the fixed steps and what a run would publish."""
    ctx = build_context(config)
    cfg = ctx.config
    console = ctx.console
    binary = detect_platform().exe_name(cfg.project.binary_name)

    console.header(f"Pipeline (push to {cfg.trigger.branch})")
    for index, name in enumerate(STEP_ORDER, start=1):
        console.print(f"{index}. {STEP_TITLES[name]}")
    console.print(f"toolchain: {cfg.toolchain.channel} ({cfg.toolchain.profile})", Style.DIM)
    console.print(f"archive: {cfg.project.archive_name} -> {binary}", Style.DIM)

    console.header("Release")
    console.print(f"repository: {cfg.project.repository or '(not set)'}")
    console.print(f"tag: {release_tag(sha, cfg.release)}")
    console.print(f"title: {cfg.release.title_prefix} {sha}")
    console.print("body:")
    console.print(cfg.release.body_template.format(sha=sha, message=message), Style.DIM)
