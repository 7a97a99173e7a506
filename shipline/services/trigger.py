"""Decide whether a repository event starts a Run.

Only a push to the configured branch starts one. Everything else (other
branches, tags, pull requests, branch deletions) is skipped, and a skip is
not a failure.

Events come from a GitHub webhook payload (the file Actions exposes as
`$GITHUB_EVENT_PATH`) or from explicit CLI values.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from shipline.core.result import Err, Ok, Result
from shipline.core.structured import as_str_dict, get_raw_str, get_str, get_table
from shipline.services.pipeline.errors import PipelineError
from shipline.services.pipeline.model import PushEvent

__all__ = [
    "TriggerDecision",
    "branch_from_ref",
    "evaluate",
    "event_from_env",
    "event_from_payload",
    "load_event_file",
    "manual_event",
]

PUSH_EVENT = "push"

_SHA_RE = re.compile(r"^[0-9a-f]{4,64}$")
_NULL_SHA = "0" * 40
_BRANCH_REF_PREFIX = "refs/heads/"


@dataclass(frozen=True, slots=True)
class TriggerDecision:
    start: bool
    reason: str


def branch_from_ref(ref: str | None) -> str | None:
    """refs/heads/main -> main. Tag refs and anything else -> None.

    A bare name (no refs/ prefix) is taken as a branch name.
    """
    if ref is None:
        return None
    if ref.startswith(_BRANCH_REF_PREFIX):
        return ref[len(_BRANCH_REF_PREFIX) :] or None
    if ref.startswith("refs/"):
        return None
    return ref or None


def evaluate(event: PushEvent, *, branch: str) -> TriggerDecision:
    if event.event_type != PUSH_EVENT:
        return TriggerDecision(False, f"event '{event.event_type}' is not a push")
    if event.branch is None:
        return TriggerDecision(False, "push is not to a branch")
    if event.branch != branch:
        return TriggerDecision(False, f"push to '{event.branch}', not '{branch}'")
    if event.deleted:
        return TriggerDecision(False, f"branch '{event.branch}' was deleted")
    return TriggerDecision(True, f"push to '{branch}' at {event.short_sha}")


def _normalize_sha(sha: str | None) -> str | None:
    if sha is None:
        return None
    s = sha.strip().lower()
    return s if _SHA_RE.match(s) else None


def manual_event(
    *,
    sha: str,
    branch: str,
    message: str,
    timestamp: str | None = None,
    event_type: str = PUSH_EVENT,
) -> Result[PushEvent, PipelineError]:
    norm = _normalize_sha(sha)
    if norm is None:
        return Err(
            PipelineError(
                kind="invalid_event",
                message=f"invalid commit sha: {sha!r}",
                hint="Expected a hexadecimal commit id",
            )
        )
    return Ok(
        PushEvent(
            event_type=event_type,
            branch=branch_from_ref(branch),
            sha=norm,
            message=message,
            timestamp=timestamp,
        )
    )


def event_from_payload(payload: object, *, event_type: str) -> Result[PushEvent, PipelineError]:
    """Normalize a GitHub webhook payload.

    Non-push payloads are accepted with whatever they carry, so that the
    trigger can skip them; push payloads must identify a commit.
    """
    data = as_str_dict(payload)
    if data is None:
        return Err(
            PipelineError(kind="invalid_event", message="event payload must be a JSON object")
        )

    head = get_table(data, "head_commit") or {}
    ref = get_str(data, "ref")
    after = get_str(data, "after")
    deleted_obj = data.get("deleted")
    deleted = (deleted_obj is True) or after == _NULL_SHA

    sha = _normalize_sha(get_str(head, "id")) or _normalize_sha(after)
    if event_type == PUSH_EVENT and sha is None and not deleted:
        return Err(
            PipelineError(
                kind="invalid_event",
                message="push payload has no commit sha",
                hint="Expected head_commit.id or after",
            )
        )

    return Ok(
        PushEvent(
            event_type=event_type,
            branch=branch_from_ref(ref),
            sha=sha or "",
            message=get_raw_str(head, "message") or "",
            timestamp=get_str(head, "timestamp"),
            deleted=deleted,
        )
    )


def load_event_file(path: Path, *, event_type: str) -> Result[PushEvent, PipelineError]:
    try:
        payload: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(PipelineError(kind="invalid_event", message=f"event file not found: {path}"))
    except (OSError, UnicodeDecodeError) as e:
        return Err(PipelineError(kind="invalid_event", message=f"cannot read event file: {e}"))
    except json.JSONDecodeError as e:
        return Err(
            PipelineError(
                kind="invalid_event",
                message=f"invalid JSON in event file: {e}",
                hint=str(path),
            )
        )
    return event_from_payload(payload, event_type=event_type)


def event_from_env(env: Mapping[str, str] | None = None) -> Result[PushEvent, PipelineError] | None:
    """Read the event GitHub Actions describes via GITHUB_EVENT_PATH/NAME.

    Returns None when not running under Actions.
    """
    env = os.environ if env is None else env
    path = env.get("GITHUB_EVENT_PATH")
    if not path:
        return None
    return load_event_file(Path(path), event_type=env.get("GITHUB_EVENT_NAME") or PUSH_EVENT)
