"""Turn a successful Run's Artifact into a GitHub release.

tag   = <tag prefix><sha>           release-<sha> by default
title = <title prefix> <sha>
body  = body template with {sha} and {message} filled in verbatim

A release that already exists for the tag is an error, never overwritten.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from shipline.core.config import ReleaseConfig
from shipline.core.result import Err, Ok, Result
from shipline.output.console import ConsoleProtocol, Style
from shipline.services.pipeline import gh
from shipline.services.pipeline.errors import PipelineError
from shipline.services.pipeline.model import Artifact, PushEvent, Release

__all__ = ["derive_release", "publish_release", "release_tag"]


def release_tag(sha: str, config: ReleaseConfig) -> str:
    return f"{config.tag_prefix}{sha}"


def derive_release(
    event: PushEvent,
    artifact: Artifact,
    config: ReleaseConfig,
    *,
    target_sha: str | None = None,
) -> Release:
    """Tag and title use the sha as pushed; `target_sha` is the full commit id."""
    return Release(
        tag=release_tag(event.sha, config),
        title=f"{config.title_prefix} {event.sha}",
        body=config.body_template.format(sha=event.sha, message=event.message),
        target_sha=target_sha or event.sha,
        files=(artifact.path,),
    )


def publish_release(
    release: Release,
    *,
    repo: str,
    cwd: Path,
    console: ConsoleProtocol,
    dry_run: bool = False,
) -> Result[Release, PipelineError]:
    """Publish `release` to `repo`. Returns the release with its URL set."""
    if len(release.files) != 1:
        return Err(
            PipelineError(
                kind="invalid_input",
                message=f"a release carries exactly one archive, got {len(release.files)}",
            )
        )

    cmd = gh.release_create_command(release, repo=repo)
    console.print(" ".join(cmd[:4]) + " ...", Style.DIM)
    if dry_run:
        return Ok(replace(release, url="(dry-run)"))

    archive = release.files[0]
    if not archive.is_file():
        return Err(PipelineError(kind="publish_failed", message=f"archive missing: {archive}"))

    available = gh.ensure_gh_available()
    if isinstance(available, Err):
        return available

    auth = gh.ensure_gh_auth(cwd=cwd)
    if isinstance(auth, Err):
        return auth

    exists = gh.tag_exists(cwd=cwd, repo=repo, tag=release.tag)
    if isinstance(exists, Err):
        return exists
    if exists.value:
        return Err(
            PipelineError(
                kind="tag_exists",
                message=f"tag {release.tag} already exists in {repo}",
                hint="Releases are never overwritten; delete it manually to publish again",
            )
        )

    created = gh.create_release(cwd=cwd, repo=repo, release=release)
    if isinstance(created, Err):
        return created
    return Ok(replace(release, url=created.value or None))
