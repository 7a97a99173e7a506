"""Dependency cache shared across Runs.

Entries are tar.gz archives of the cargo registry and target directories,
stored under a content-derived key:

    <runner os>-cargo-<sha256 over every Cargo.lock in the checkout>

The cache is advisory. A miss, an unreadable entry or a failed save only
costs a full rebuild, so none of them fail the Run. Writes go to a unique
temp file renamed into place: concurrent Runs never see a half-written
entry, and the last writer wins.
"""

from __future__ import annotations

import hashlib
import os
import tarfile
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from shipline.core.result import Err, Ok, Result
from shipline.platform.detection import Platform

__all__ = [
    "CacheError",
    "CacheHit",
    "CacheStore",
    "cache_key",
    "hash_lock_files",
]

_SKIP_DIRS = frozenset({".git", "target", "node_modules"})


@dataclass(frozen=True, slots=True)
class CacheHit:
    hit: bool
    key: str
    reason: str


@dataclass(frozen=True, slots=True)
class CacheError:
    key: str
    message: str


def _iter_lock_files(root: Path, name: str) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        if name in filenames:
            yield Path(dirpath) / name


def hash_lock_files(root: Path, *, name: str = "Cargo.lock") -> str:
    """Hash every lock file under `root`, like `hashFiles('**/Cargo.lock')`.

    Returns "" when there is no lock file.

    Raises:
        OSError: A lock file exists but cannot be read.
    """
    files = sorted(_iter_lock_files(root, name), key=lambda p: p.relative_to(root).as_posix())
    if not files:
        return ""

    h = hashlib.sha256()
    for path in files:
        file_hash = hashlib.sha256()
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(1024 * 1024), b""):
                file_hash.update(chunk)
        h.update(file_hash.digest())
    return h.hexdigest()


def cache_key(platform: Platform, lock_hash: str) -> str:
    return f"{platform.runner_os}-cargo-{lock_hash}"


class CacheStore:
    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def entry_path(self, key: str) -> Path:
        return self._root / f"{key}.tar.gz"

    def restore(self, key: str, *, dest: Path) -> CacheHit:
        entry = self.entry_path(key)
        if not entry.is_file():
            return CacheHit(hit=False, key=key, reason="cache miss")

        try:
            with tarfile.open(entry, mode="r:gz") as tar:
                tar.extractall(path=dest, filter="data")
        except (OSError, tarfile.TarError) as e:
            return CacheHit(hit=False, key=key, reason=f"cache entry unreadable, rebuilding: {e}")

        return CacheHit(hit=True, key=key, reason="cache hit")

    def save(
        self,
        key: str,
        *,
        source: Path,
        paths: Sequence[str],
    ) -> Result[Path | None, CacheError]:
        """Archive `paths` (relative to `source`) under `key`.

        Returns Ok(None) when there is nothing to store or the entry already
        exists (same key means same content).
        """
        entry = self.entry_path(key)
        if entry.exists():
            return Ok(None)

        present = [p for p in paths if (source / p).exists()]
        if not present:
            return Ok(None)

        tmp = self._root / f".{key}.{uuid4().hex}.tmp"
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            with tarfile.open(tmp, mode="w:gz") as tar:
                for rel in present:
                    tar.add(source / rel, arcname=Path(rel).as_posix())
            os.replace(tmp, entry)
        except (OSError, tarfile.TarError) as e:
            return Err(CacheError(key=key, message=str(e)))
        finally:
            if tmp.exists():
                tmp.unlink(missing_ok=True)

        return Ok(entry)
