"""Wrap the built binary into the release archive.

The archive name (`<project>.zip`) and its single entry (the binary's file
name at the archive root) never change between Runs, so publishing can
reference them without looking. The entry carries a fixed timestamp and
mode, so the same binary always yields the same bytes.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from zipfile import ZIP_DEFLATED, BadZipFile, ZipFile, ZipInfo

from shipline.core.result import Err, Ok, Result
from shipline.services.pipeline.errors import PipelineError
from shipline.services.pipeline.model import Artifact

__all__ = ["create_archive", "list_entries"]

# Earliest timestamp the ZIP format can represent.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_EXECUTABLE_MODE = 0o100755


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def create_archive(*, binary: Path, out_path: Path) -> Result[Artifact, PipelineError]:
    if not binary.is_file():
        return Err(
            PipelineError(
                kind="archive_failed",
                message=f"built binary not found: {binary}",
                hint="Check project.binary in shipline.toml",
            )
        )

    entry_name = binary.name
    info = ZipInfo(entry_name, date_time=_FIXED_DATE_TIME)
    info.compress_type = ZIP_DEFLATED
    info.external_attr = _EXECUTABLE_MODE << 16
    # Stored as created on Unix so the mode bits are honoured by unzip.
    info.create_system = 3

    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.unlink(missing_ok=True)
        with ZipFile(out_path, "w") as zf, binary.open("rb") as src, zf.open(info, "w") as dst:
            for chunk in iter(lambda: src.read(1024 * 1024), b""):
                dst.write(chunk)
        size = out_path.stat().st_size
        digest = _sha256_file(out_path)
    except OSError as e:
        return Err(PipelineError(kind="archive_failed", message=f"failed to write archive: {e}"))

    return Ok(Artifact(path=out_path, entry_name=entry_name, size=size, sha256=digest))


def list_entries(path: Path) -> Result[list[str], PipelineError]:
    try:
        with ZipFile(path) as zf:
            return Ok(zf.namelist())
    except (OSError, BadZipFile) as e:
        return Err(PipelineError(kind="archive_failed", message=f"unreadable archive {path}: {e}"))
