from __future__ import annotations

import pytest

from shipline.services.pipeline.model import STEP_ORDER, PushEvent, Run, StepRecord


def _run() -> Run:
    return Run(id="r1", sha="abc123", branch="main", message="fix bug", triggered_at="now")


def test_new_run_is_pending_with_pending_steps() -> None:
    run = _run()
    assert run.status == "pending"
    assert tuple(s.name for s in run.steps) == STEP_ORDER
    assert all(s.status == "pending" for s in run.steps)


def test_step_order_is_fixed() -> None:
    assert STEP_ORDER == ("checkout", "toolchain", "cache", "build", "archive")


@pytest.mark.parametrize("final", ["succeeded", "failed"])
def test_valid_transitions(final: str) -> None:
    run = _run().transition("running").transition(final)  # type: ignore[arg-type]
    assert run.status == final
    assert run.is_terminal


@pytest.mark.parametrize(
    ("start", "target"),
    [
        ("pending", "succeeded"),
        ("pending", "failed"),
        ("running", "pending"),
        ("succeeded", "failed"),
        ("failed", "running"),
    ],
)
def test_invalid_transitions(start: str, target: str) -> None:
    run = _run()
    if start != "pending":
        run = run.transition("running")
        if start != "running":
            run = run.transition(start)  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="invalid run transition"):
        run.transition(target)  # type: ignore[arg-type]


def test_with_step_replaces_one_record() -> None:
    run = _run().with_step(StepRecord(name="build", status="failed", detail="boom"))
    assert run.step("build").status == "failed"
    assert run.step("build").detail == "boom"
    assert run.step("checkout").status == "pending"
    assert not run.all_steps_succeeded


def test_all_steps_succeeded() -> None:
    run = _run()
    for name in STEP_ORDER:
        run = run.with_step(StepRecord(name=name, status="succeeded"))
    assert run.all_steps_succeeded


def test_short_sha() -> None:
    event = PushEvent(event_type="push", branch="main", sha="0123456789abcdef", message="")
    assert event.short_sha == "01234567"
