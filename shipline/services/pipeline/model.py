from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal

RunStatus = Literal["pending", "running", "succeeded", "failed"]
StepStatus = Literal["pending", "running", "succeeded", "failed", "skipped"]
StepName = Literal["checkout", "toolchain", "cache", "build", "archive"]

# Fixed for every Run; not configurable.
STEP_ORDER: tuple[StepName, ...] = ("checkout", "toolchain", "cache", "build", "archive")

STEP_TITLES: dict[StepName, str] = {
    "checkout": "Check out source",
    "toolchain": "Install Rust toolchain",
    "cache": "Restore dependency cache",
    "build": "Build release binary",
    "archive": "Compress binary",
}

_RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    "pending": frozenset({"running"}),
    "running": frozenset({"succeeded", "failed"}),
    "succeeded": frozenset(),
    "failed": frozenset(),
}


@dataclass(frozen=True, slots=True)
class PushEvent:
    """A repository event, normalized from a webhook payload or CLI flags."""

    event_type: str
    branch: str | None
    sha: str
    message: str
    timestamp: str | None = None
    deleted: bool = False

    @property
    def short_sha(self) -> str:
        return self.sha[:8]


@dataclass(frozen=True, slots=True)
class StepRecord:
    name: StepName
    status: StepStatus = "pending"
    detail: str | None = None
    duration_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class Artifact:
    """The archive produced by one Run."""

    path: Path
    entry_name: str
    size: int
    sha256: str

    @property
    def file_name(self) -> str:
        return self.path.name


@dataclass(frozen=True, slots=True)
class Release:
    tag: str
    title: str
    body: str
    target_sha: str
    files: tuple[Path, ...]
    url: str | None = None


def _pending_steps() -> tuple[StepRecord, ...]:
    return tuple(StepRecord(name=name) for name in STEP_ORDER)


@dataclass(frozen=True, slots=True)
class Run:
    """One execution of the pipeline for one pushed commit.

    Runs are immutable; every change returns a new Run. Status moves
    pending -> running -> succeeded|failed and never back.
    """

    id: str
    sha: str
    branch: str
    message: str
    triggered_at: str
    status: RunStatus = "pending"
    steps: tuple[StepRecord, ...] = field(default_factory=_pending_steps)

    def transition(self, status: RunStatus) -> Run:
        if status not in _RUN_TRANSITIONS[self.status]:
            raise ValueError(f"invalid run transition: {self.status} -> {status}")
        return replace(self, status=status)

    def with_step(self, record: StepRecord) -> Run:
        steps = tuple(record if s.name == record.name else s for s in self.steps)
        return replace(self, steps=steps)

    def step(self, name: StepName) -> StepRecord:
        for s in self.steps:
            if s.name == name:
                return s
        raise KeyError(name)

    @property
    def all_steps_succeeded(self) -> bool:
        return all(s.status == "succeeded" for s in self.steps)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("succeeded", "failed")
