"""The five pipeline steps.

Each step takes the Run's StepContext and returns
`Result[StepOutput, PipelineError]`; it never raises for an expected failure.
The executor decides what happens next.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from time import monotonic

from shipline.core.config import Config
from shipline.core.result import Err, Ok, Result
from shipline.output.console import ConsoleProtocol, Style
from shipline.platform.detection import Platform
from shipline.platform.process import ProcessError
from shipline.platform.process import run as run_process
from shipline.services.pipeline.archive import create_archive
from shipline.services.pipeline.cache import CacheError, CacheStore, cache_key, hash_lock_files
from shipline.services.pipeline.errors import PipelineError, PipelineErrorKind
from shipline.services.pipeline.model import Artifact, PushEvent
from shipline.services.pipeline.timeouts import (
    GIT_CLONE_TIMEOUT_SECONDS,
    GIT_TIMEOUT_SECONDS,
    TOOLCHAIN_TIMEOUT_SECONDS,
)

__all__ = [
    "StepContext",
    "StepOutput",
    "archive",
    "build",
    "checkout",
    "restore_cache",
    "seed_cache",
    "toolchain",
]


@dataclass(frozen=True, slots=True)
class StepContext:
    """Everything a step may touch. Scoped to one Run."""

    event: PushEvent
    config: Config
    run_dir: Path
    platform: Platform
    console: ConsoleProtocol
    deadline: float
    cache: CacheStore | None = None

    @property
    def src_dir(self) -> Path:
        return self.run_dir / "src"

    @property
    def cargo_home(self) -> Path:
        return self.run_dir / "cargo-home"

    @property
    def dist_dir(self) -> Path:
        return self.run_dir / "dist"

    @property
    def manifest_path(self) -> Path:
        return self.src_dir / self.config.project.manifest

    @property
    def target_dir(self) -> Path:
        return self.manifest_path.parent / "target"

    @property
    def binary_path(self) -> Path:
        release_dir = self.target_dir / "release"
        return release_dir / self.platform.exe_name(self.config.project.binary_name)

    def cache_paths(self) -> tuple[str, ...]:
        """Paths to cache, relative to the run directory. The target dir comes first."""
        target = self.target_dir.relative_to(self.run_dir).as_posix()
        extra = tuple(p for p in self.config.cache.paths if p != target)
        return (target, *extra)

    @property
    def archive_path(self) -> Path:
        return self.dist_dir / self.config.project.archive_name

    def remaining(self) -> float:
        return self.deadline - monotonic()

    def build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["CARGO_HOME"] = str(self.cargo_home)
        env["CARGO_TERM_COLOR"] = "never"
        return env


@dataclass(frozen=True, slots=True)
class StepOutput:
    summary: str
    cache_key: str | None = None
    artifact: Artifact | None = None
    resolved_sha: str | None = None


def _timeout_for(ctx: StepContext, ceiling: float | None) -> Result[float, PipelineError]:
    remaining = ctx.remaining()
    if remaining <= 0:
        return Err(
            PipelineError(
                kind="timeout",
                message="run exceeded its time limit",
                hint="Raise run.timeout_minutes in shipline.toml",
            )
        )
    return Ok(remaining if ceiling is None else min(remaining, ceiling))


def _from_process(kind: PipelineErrorKind, message: str, error: ProcessError) -> PipelineError:
    if error.returncode == -1 and "timed out" in error.stderr:
        return PipelineError(kind="timeout", message=f"{message}: timed out", hint=str(error))
    return PipelineError(kind=kind, message=message, hint=error.tail() or str(error))


def _exec(
    ctx: StepContext,
    cmd: list[str],
    *,
    cwd: Path,
    kind: PipelineErrorKind,
    message: str,
    ceiling: float | None = None,
    env: dict[str, str] | None = None,
) -> Result[str, PipelineError]:
    timeout = _timeout_for(ctx, ceiling)
    if isinstance(timeout, Err):
        return timeout

    ctx.console.print("$ " + " ".join(cmd), Style.DIM)
    result = run_process(cmd, cwd=cwd, env=env, timeout=timeout.value)
    return result.map_err(lambda e: _from_process(kind, message, e))


def checkout(ctx: StepContext) -> Result[StepOutput, PipelineError]:
    source = ctx.config.project.clone_source()
    if source is None:
        return Err(
            PipelineError(
                kind="invalid_input",
                message="no source repository configured",
                hint="Set project.repository or project.source in shipline.toml",
            )
        )

    try:
        ctx.run_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Err(PipelineError(kind="workspace_failed", message=f"cannot create {ctx.run_dir}: {e}"))

    cloned = _exec(
        ctx,
        ["git", "clone", "--quiet", "--no-checkout", source, str(ctx.src_dir)],
        cwd=ctx.run_dir,
        kind="checkout_failed",
        message=f"failed to clone {source}",
        ceiling=GIT_CLONE_TIMEOUT_SECONDS,
    )
    if isinstance(cloned, Err):
        return cloned

    checked_out = _exec(
        ctx,
        ["git", "-c", "advice.detachedHead=false", "checkout", "--quiet", "--detach", ctx.event.sha],
        cwd=ctx.src_dir,
        kind="checkout_failed",
        message=f"failed to check out {ctx.event.sha}",
        ceiling=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(checked_out, Err):
        return checked_out

    head = _exec(
        ctx,
        ["git", "rev-parse", "HEAD"],
        cwd=ctx.src_dir,
        kind="checkout_failed",
        message="failed to resolve HEAD",
        ceiling=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(head, Err):
        return head

    head_sha = head.value.strip().lower()
    if not head_sha.startswith(ctx.event.sha):
        return Err(
            PipelineError(
                kind="checkout_failed",
                message=f"checked out {head_sha[:12]}, expected {ctx.event.sha}",
            )
        )
    return Ok(StepOutput(summary=f"checked out {head_sha[:12]}", resolved_sha=head_sha))


def toolchain(ctx: StepContext) -> Result[StepOutput, PipelineError]:
    channel = ctx.config.toolchain.channel
    installed = _exec(
        ctx,
        [
            "rustup",
            "toolchain",
            "install",
            channel,
            "--profile",
            ctx.config.toolchain.profile,
            "--no-self-update",
        ],
        cwd=ctx.run_dir,
        kind="toolchain_failed",
        message=f"failed to install the {channel} toolchain",
        ceiling=TOOLCHAIN_TIMEOUT_SECONDS,
    )
    if isinstance(installed, Err):
        return installed

    version = _exec(
        ctx,
        ["rustc", f"+{channel}", "--version"],
        cwd=ctx.run_dir,
        kind="toolchain_failed",
        message=f"the {channel} toolchain is not usable",
        ceiling=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(version, Err):
        return version
    return Ok(StepOutput(summary=version.value.strip() or channel))


def restore_cache(ctx: StepContext) -> Result[StepOutput, PipelineError]:
    """Restore the dependency cache. Never fails: a miss just means a slower build."""
    if ctx.cache is None or not ctx.config.cache.enabled:
        return Ok(StepOutput(summary="cache disabled"))

    try:
        lock_hash = hash_lock_files(ctx.src_dir, name=ctx.config.cache.lock_file)
    except OSError as e:
        ctx.console.warning(f"cannot hash lock files: {e}")
        return Ok(StepOutput(summary=f"cache disabled: cannot hash lock files: {e}"))

    key = cache_key(ctx.platform, lock_hash)
    hit = ctx.cache.restore(key, dest=ctx.run_dir)
    return Ok(StepOutput(summary=f"{hit.reason} ({key})", cache_key=key))


def seed_cache(ctx: StepContext, key: str) -> Result[Path | None, CacheError]:
    """Store this Run's dependencies under `key` after a successful build."""
    if ctx.cache is None or not ctx.config.cache.enabled:
        return Ok(None)
    return ctx.cache.save(key, source=ctx.run_dir, paths=ctx.cache_paths())


def build(ctx: StepContext) -> Result[StepOutput, PipelineError]:
    channel = ctx.config.toolchain.channel
    built = _exec(
        ctx,
        [
            "cargo",
            f"+{channel}",
            "build",
            "--release",
            "--manifest-path",
            str(ctx.manifest_path),
        ],
        cwd=ctx.src_dir,
        kind="build_failed",
        message="cargo build --release failed",
        env=ctx.build_env(),
    )
    if isinstance(built, Err):
        return built

    if not ctx.binary_path.is_file():
        return Err(
            PipelineError(
                kind="build_failed",
                message=f"build produced no binary at {ctx.binary_path}",
                hint="Check project.binary in shipline.toml",
            )
        )
    return Ok(StepOutput(summary=f"built {ctx.binary_path.name}"))


def archive(ctx: StepContext) -> Result[StepOutput, PipelineError]:
    created = create_archive(binary=ctx.binary_path, out_path=ctx.archive_path)
    if isinstance(created, Err):
        return created

    artifact = created.value
    return Ok(
        StepOutput(
            summary=f"{artifact.file_name} ({artifact.size} bytes, sha256 {artifact.sha256[:12]})",
            artifact=artifact,
        )
    )
