from __future__ import annotations

import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from time import monotonic
from typing import Literal
from uuid import uuid4

from shipline.core.config import Config
from shipline.core.errors import ExitCode
from shipline.core.result import Err
from shipline.output.console import ConsoleProtocol, Style
from shipline.platform.detection import Platform, detect_platform
from shipline.services.pipeline.cache import CacheStore
from shipline.services.pipeline.errors import PipelineError, PipelineErrorKind
from shipline.services.pipeline.executor import DEFAULT_STEPS, StepFn, execute
from shipline.services.pipeline.model import Artifact, PushEvent, Release, Run, StepName
from shipline.services.pipeline.publisher import derive_release, publish_release
from shipline.services.pipeline.steps import StepContext
from shipline.services.trigger import TriggerDecision, evaluate

Outcome = Literal["skipped", "succeeded", "failed"]

_EXIT_CODES: dict[PipelineErrorKind, ExitCode] = {
    "invalid_event": ExitCode.USER_ERROR,
    "invalid_input": ExitCode.USER_ERROR,
    "tag_exists": ExitCode.USER_ERROR,
    "gh_missing": ExitCode.ENV_ERROR,
    "gh_auth_required": ExitCode.ENV_ERROR,
    "checkout_failed": ExitCode.BUILD_ERROR,
    "toolchain_failed": ExitCode.BUILD_ERROR,
    "build_failed": ExitCode.BUILD_ERROR,
    "archive_failed": ExitCode.BUILD_ERROR,
    "timeout": ExitCode.BUILD_ERROR,
    "publish_failed": ExitCode.NETWORK_ERROR,
    "workspace_failed": ExitCode.IO_ERROR,
}


def exit_code_for(error: PipelineError) -> ExitCode:
    return _EXIT_CODES.get(error.kind, ExitCode.BUILD_ERROR)


@dataclass(frozen=True, slots=True)
class RunReport:
    """What happened to one event: skipped, or a Run that ended."""

    decision: TriggerDecision
    run: Run | None = None
    artifact: Artifact | None = None
    release: Release | None = None
    error: PipelineError | None = None

    @property
    def outcome(self) -> Outcome:
        if self.run is None and self.error is None:
            return "skipped"
        if self.run is not None and self.run.status == "succeeded":
            return "succeeded"
        return "failed"

    @property
    def exit_code(self) -> ExitCode:
        if self.error is not None:
            return exit_code_for(self.error)
        return ExitCode.OK

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {
            "outcome": self.outcome,
            "reason": self.decision.reason,
        }
        if self.run is not None:
            out["run"] = {
                "id": self.run.id,
                "sha": self.run.sha,
                "branch": self.run.branch,
                "triggered_at": self.run.triggered_at,
                "status": self.run.status,
                "steps": [
                    {
                        "name": s.name,
                        "status": s.status,
                        "detail": s.detail,
                        "duration_seconds": s.duration_seconds,
                    }
                    for s in self.run.steps
                ],
            }
        if self.artifact is not None:
            out["artifact"] = {
                "file": self.artifact.file_name,
                "entry": self.artifact.entry_name,
                "size": self.artifact.size,
                "sha256": self.artifact.sha256,
            }
        if self.release is not None:
            out["release"] = {
                "tag": self.release.tag,
                "title": self.release.title,
                "url": self.release.url,
            }
        if self.error is not None:
            out["error"] = {
                "kind": self.error.kind,
                "message": self.error.message,
                "hint": self.error.hint,
            }
        return out


def _now_utc() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


class PipelineService:
    """Drives one Run from trigger to release.

    pending -> running on a matching push; running -> succeeded only once
    the release is published; any step or publish error -> failed.
    """

    def __init__(
        self,
        *,
        config: Config,
        console: ConsoleProtocol,
        base_dir: Path,
        platform: Platform | None = None,
        dry_run: bool = False,
        steps: Sequence[tuple[StepName, StepFn]] = DEFAULT_STEPS,
    ) -> None:
        self._config = config
        self._console = console
        self._base_dir = base_dir
        self._platform = platform or detect_platform()
        self._dry_run = dry_run
        self._steps = steps

    @property
    def work_dir(self) -> Path:
        return self._base_dir / self._config.run.work_dir

    @property
    def cache_dir(self) -> Path:
        return self._base_dir / self._config.cache.dir

    def _repository(self) -> str | None:
        repo = self._config.project.repository
        if repo is None and self._dry_run:
            return "<repository>"
        return repo

    def run(self, event: PushEvent) -> RunReport:
        decision = evaluate(event, branch=self._config.trigger.branch)
        if not decision.start:
            self._console.info(f"skipped: {decision.reason}")
            return RunReport(decision=decision)

        repo = self._repository()
        if repo is None:
            error = PipelineError(
                kind="invalid_input",
                message="no repository to publish to",
                hint="Set project.repository in shipline.toml or GITHUB_REPOSITORY",
            )
            self._console.error(error.message)
            return RunReport(decision=decision, error=error)

        run = Run(
            id=uuid4().hex[:8],
            sha=event.sha,
            branch=event.branch or "",
            message=event.message,
            triggered_at=event.timestamp or _now_utc(),
        )
        run_dir = self.work_dir / "runs" / f"{event.sha[:12]}-{run.id}"

        run = run.transition("running")
        self._console.header(f"Run {run.id}: {decision.reason}")

        ctx = StepContext(
            event=event,
            config=self._config,
            run_dir=run_dir,
            platform=self._platform,
            console=self._console,
            deadline=monotonic() + self._config.run.timeout_seconds,
            cache=CacheStore(self.cache_dir) if self._config.cache.enabled else None,
        )

        try:
            return self._execute_and_publish(run, ctx, decision=decision, repo=repo)
        finally:
            if not self._config.run.keep_workspace:
                shutil.rmtree(run_dir, ignore_errors=True)

    def _execute_and_publish(
        self,
        run: Run,
        ctx: StepContext,
        *,
        decision: TriggerDecision,
        repo: str,
    ) -> RunReport:
        executed = execute(run, ctx, steps=self._steps)
        run = executed.run
        if executed.error is not None or executed.artifact is None:
            run = run.transition("failed")
            self._console.error(f"run {run.id} failed; nothing was published")
            return RunReport(decision=decision, run=run, error=executed.error)

        artifact = executed.artifact
        release = derive_release(
            ctx.event,
            artifact,
            self._config.release,
            target_sha=executed.resolved_sha,
        )
        self._console.header(f"Publish {release.tag}")
        published = publish_release(
            release,
            repo=repo,
            cwd=self._base_dir,
            console=self._console,
            dry_run=self._dry_run,
        )
        if isinstance(published, Err):
            run = run.transition("failed")
            self._console.error(published.error.message)
            if published.error.hint:
                self._console.print(published.error.hint, Style.DIM)
            return RunReport(decision=decision, run=run, artifact=artifact, error=published.error)

        run = run.transition("succeeded")
        url = published.value.url or release.tag
        self._console.success(f"published {release.tag}: {url}")
        return RunReport(decision=decision, run=run, artifact=artifact, release=published.value)
