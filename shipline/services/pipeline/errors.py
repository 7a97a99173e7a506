from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PipelineErrorKind = Literal[
    "invalid_event",
    "invalid_input",
    "workspace_failed",
    "checkout_failed",
    "toolchain_failed",
    "build_failed",
    "archive_failed",
    "timeout",
    "gh_missing",
    "gh_auth_required",
    "tag_exists",
    "publish_failed",
]


@dataclass(frozen=True, slots=True)
class PipelineError:
    kind: PipelineErrorKind
    message: str
    hint: str | None = None

    def __str__(self) -> str:
        return self.message
