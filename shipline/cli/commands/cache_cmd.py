from __future__ import annotations

from pathlib import Path

import typer

from shipline.cli.context import build_context
from shipline.core.errors import ExitCode
from shipline.platform.detection import detect_platform
from shipline.services.pipeline.cache import CacheStore, cache_key, hash_lock_files


def cache_key_cmd(
    source: Path = typer.Option(Path("."), "--source", help="Source tree to hash"),
    config: Path | None = typer.Option(None, "--config", help="Path to shipline.toml"),
) -> None:
    """Print the dependency cache key for a source tree."""
    ctx = build_context(config)
    if not source.is_dir():
        ctx.console.error(f"not a directory: {source}")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    lock_hash = hash_lock_files(source.resolve(), name=ctx.config.cache.lock_file)
    key = cache_key(detect_platform(), lock_hash)
    typer.echo(key)

    store = CacheStore(ctx.base_dir / ctx.config.cache.dir)
    state = "present" if store.entry_path(key).is_file() else "absent"
    ctx.console.info(f"entry {state} in {store.root}")
