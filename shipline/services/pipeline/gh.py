from __future__ import annotations

import shutil
from pathlib import Path
from time import sleep

from shipline.core.result import Err, Ok, Result
from shipline.platform.process import ProcessError
from shipline.platform.process import run as run_process
from shipline.services.pipeline.errors import PipelineError, PipelineErrorKind
from shipline.services.pipeline.model import Release
from shipline.services.pipeline.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)

__all__ = [
    "create_release",
    "ensure_gh_auth",
    "ensure_gh_available",
    "release_create_command",
    "tag_exists",
]


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "http 404" in text or "not found" in text


def _is_tag_collision(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "already exists" in text or "already_exists" in text


def _publish_error(error: ProcessError, *, message: str) -> PipelineError:
    text = f"{error.stderr}\n{error.stdout}".lower()
    kind: PipelineErrorKind = "publish_failed"
    hint = error.stderr.strip() or None
    if "http 401" in text or "gh auth login" in text:
        kind = "gh_auth_required"
        hint = "Run: gh auth login (or set GH_TOKEN)"
    elif "http 403" in text:
        hint = "The token needs write access to repository contents (releases)"
    return PipelineError(kind=kind, message=message, hint=hint)


def run_gh_read(
    *,
    cwd: Path,
    cmd: list[str],
    message: str,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ProcessError | PipelineError]:
    """Run a read-only gh command, retrying transient failures.

    Returns the last ProcessError for non-transient failures so callers can
    inspect it (a 404 is often an answer, not an error).
    """
    attempts = max(1, retry_attempts)
    last: ProcessError | None = None
    for attempt in range(attempts):
        result = run_process(cmd, cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            return result

        last = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(last):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue
        return Err(last)

    return Err(PipelineError(kind="publish_failed", message=message, hint=str(last) if last else None))


def ensure_gh_available() -> Result[None, PipelineError]:
    if shutil.which("gh") is None:
        return Err(
            PipelineError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(*, cwd: Path) -> Result[None, PipelineError]:
    result = run_process(["gh", "auth", "status"], cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            PipelineError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login (or set GH_TOKEN)",
            )
        )
    return Ok(None)


def tag_exists(*, cwd: Path, repo: str, tag: str) -> Result[bool, PipelineError]:
    """Whether `tag` already exists in `repo` (with or without a release)."""
    message = f"failed to query tag {tag} in {repo}"
    result = run_gh_read(
        cwd=cwd,
        cmd=["gh", "api", f"repos/{repo}/git/ref/tags/{tag}", "--jq", ".ref"],
        message=message,
    )
    if isinstance(result, Ok):
        return Ok(True)

    error = result.error
    if isinstance(error, PipelineError):
        return Err(error)
    if _is_not_found(error):
        return Ok(False)
    return Err(_publish_error(error, message=message))


def release_create_command(release: Release, *, repo: str) -> list[str]:
    cmd = ["gh", "release", "create", release.tag]
    cmd.extend(str(p) for p in release.files)
    cmd.extend(
        [
            "--repo",
            repo,
            "--target",
            release.target_sha,
            "--title",
            release.title,
            "--notes",
            release.body,
        ]
    )
    return cmd


def create_release(*, cwd: Path, repo: str, release: Release) -> Result[str, PipelineError]:
    """Create the release and upload its files. Returns the release URL.

    Not retried: a half-finished create followed by a retry would collide
    with its own tag.
    """
    result = run_process(
        release_create_command(release, repo=repo),
        cwd=cwd,
        timeout=GH_UPLOAD_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        error = result.error
        if _is_tag_collision(error):
            return Err(
                PipelineError(
                    kind="tag_exists",
                    message=f"release {release.tag} already exists",
                    hint="Releases are never overwritten; delete it manually to publish again",
                )
            )
        return Err(_publish_error(error, message=f"failed to create release {release.tag}"))

    url = result.value.strip().splitlines()[-1] if result.value.strip() else ""
    return Ok(url)
