"""Fail-fast sequential step execution.

Step N starts only if steps 1..N-1 succeeded. The first Err marks its step
failed and every later step skipped. Nothing is retried and nothing runs in
parallel.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from time import monotonic

from shipline.core.result import Err, Result
from shipline.services.pipeline import steps as step_impl
from shipline.services.pipeline.errors import PipelineError
from shipline.services.pipeline.model import STEP_TITLES, Artifact, Run, StepName, StepRecord
from shipline.services.pipeline.steps import StepContext, StepOutput

StepFn = Callable[[StepContext], Result[StepOutput, PipelineError]]

DEFAULT_STEPS: tuple[tuple[StepName, StepFn], ...] = (
    ("checkout", step_impl.checkout),
    ("toolchain", step_impl.toolchain),
    ("cache", step_impl.restore_cache),
    ("build", step_impl.build),
    ("archive", step_impl.archive),
)


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    run: Run
    artifact: Artifact | None = None
    error: PipelineError | None = None
    resolved_sha: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.artifact is not None


def _skip_rest(run: Run, names: Sequence[StepName]) -> Run:
    for name in names:
        run = run.with_step(StepRecord(name=name, status="skipped"))
    return run


def execute(
    run: Run,
    ctx: StepContext,
    *,
    steps: Sequence[tuple[StepName, StepFn]] = DEFAULT_STEPS,
) -> ExecutionResult:
    """Run `steps` in order for a running Run.

    The returned Run carries the per-step statuses; its own status is left
    to the caller, who still has to publish.
    """
    if run.status != "running":
        raise ValueError(f"run {run.id} is {run.status}, not running")

    artifact: Artifact | None = None
    key: str | None = None
    resolved_sha: str | None = None
    total = len(steps)

    for index, (name, fn) in enumerate(steps):
        ctx.console.step(index + 1, total, STEP_TITLES[name])
        run = run.with_step(StepRecord(name=name, status="running"))

        started = monotonic()
        outcome = fn(ctx)
        elapsed = monotonic() - started

        if isinstance(outcome, Err):
            error = outcome.error
            run = run.with_step(
                StepRecord(
                    name=name,
                    status="failed",
                    detail=error.message,
                    duration_seconds=elapsed,
                )
            )
            run = _skip_rest(run, [n for n, _ in steps[index + 1 :]])
            ctx.console.error(error.message)
            if error.hint:
                ctx.console.print(error.hint)
            return ExecutionResult(run=run, error=error, resolved_sha=resolved_sha)

        output = outcome.value
        run = run.with_step(
            StepRecord(
                name=name,
                status="succeeded",
                detail=output.summary,
                duration_seconds=elapsed,
            )
        )
        ctx.console.success(output.summary)

        if output.resolved_sha is not None:
            resolved_sha = output.resolved_sha
        if output.cache_key is not None:
            key = output.cache_key
        if output.artifact is not None:
            artifact = output.artifact
        if name == "build" and key is not None:
            saved = step_impl.seed_cache(ctx, key)
            if isinstance(saved, Err):
                ctx.console.warning(f"cache not saved: {saved.error.message}")
            elif saved.value is not None:
                ctx.console.info(f"cache saved ({key})")

    if artifact is None:
        return ExecutionResult(
            run=run,
            error=PipelineError(kind="archive_failed", message="pipeline produced no artifact"),
            resolved_sha=resolved_sha,
        )
    return ExecutionResult(run=run, artifact=artifact, resolved_sha=resolved_sha)
