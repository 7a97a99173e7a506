"""Subprocess execution returning Result instead of raising.

This is the only module that calls `subprocess` directly. Pipeline steps
and the `gh` wrapper go through `run()` so a test can swap in a fake.

    result = run(["cargo", "+nightly", "build", "--release"], cwd=src, timeout=600)
    match result:
        case Ok(stdout):
            ...
        case Err(error):
            console.error(str(error))
"""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from shipline.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

_TAIL_CHARS = 4000


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command exited non-zero, timed out, or could not be started.

    `returncode` is -1 when the process never produced an exit status.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"

    def tail(self) -> str:
        """Last part of the output, stderr preferred, for run logs."""
        text = self.stderr.strip() or self.stdout.strip()
        return text[-_TAIL_CHARS:]


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run `cmd` in `cwd` and capture its output.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Full environment for the child (inherits ours when None).
        timeout: Seconds before the process is killed (None for no limit).

    Returns:
        Ok(stdout) on exit 0, Err(ProcessError) otherwise.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else ""
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=stdout,
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr=str(e),
            )
        )

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)
