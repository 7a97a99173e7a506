from __future__ import annotations

import os
from pathlib import Path
from zipfile import ZipFile

from shipline.core.result import Err, Ok
from shipline.services.pipeline.archive import create_archive, list_entries


def _binary(tmp_path: Path, name: str = "Unilyric.exe", content: bytes = b"MZ binary") -> Path:
    path = tmp_path / "target" / "release" / name
    path.parent.mkdir(parents=True)
    path.write_bytes(content)
    return path


def test_single_entry_at_fixed_path(tmp_path: Path) -> None:
    binary = _binary(tmp_path)
    result = create_archive(binary=binary, out_path=tmp_path / "dist" / "Unilyric.zip")

    assert isinstance(result, Ok)
    artifact = result.value
    assert artifact.file_name == "Unilyric.zip"
    assert artifact.entry_name == "Unilyric.exe"
    assert artifact.size == artifact.path.stat().st_size
    assert len(artifact.sha256) == 64

    entries = list_entries(artifact.path)
    assert isinstance(entries, Ok)
    assert entries.value == ["Unilyric.exe"]
    with ZipFile(artifact.path) as zf:
        assert zf.read("Unilyric.exe") == b"MZ binary"


def test_entry_is_executable(tmp_path: Path) -> None:
    binary = _binary(tmp_path, name="Unilyric")
    result = create_archive(binary=binary, out_path=tmp_path / "Unilyric.zip")
    assert isinstance(result, Ok)
    with ZipFile(result.value.path) as zf:
        mode = zf.getinfo("Unilyric").external_attr >> 16
    assert mode & 0o111


def test_reproducible_across_runs(tmp_path: Path) -> None:
    binary = _binary(tmp_path)
    first = create_archive(binary=binary, out_path=tmp_path / "a" / "Unilyric.zip")
    os.utime(binary, (1_700_000_000, 1_700_000_000))
    second = create_archive(binary=binary, out_path=tmp_path / "b" / "Unilyric.zip")

    assert isinstance(first, Ok) and isinstance(second, Ok)
    assert first.value.sha256 == second.value.sha256


def test_overwrites_stale_archive(tmp_path: Path) -> None:
    out = tmp_path / "Unilyric.zip"
    out.write_bytes(b"stale")
    result = create_archive(binary=_binary(tmp_path), out_path=out)
    assert isinstance(result, Ok)
    assert isinstance(list_entries(out), Ok)


def test_missing_binary(tmp_path: Path) -> None:
    out = tmp_path / "Unilyric.zip"
    result = create_archive(binary=tmp_path / "nope.exe", out_path=out)
    assert isinstance(result, Err)
    assert result.error.kind == "archive_failed"
    assert not out.exists()


def test_list_entries_of_garbage(tmp_path: Path) -> None:
    path = tmp_path / "bad.zip"
    path.write_bytes(b"garbage")
    assert isinstance(list_entries(path), Err)
