from __future__ import annotations

from pathlib import Path

import pytest

from shipline.core.result import Err, Ok, Result
from shipline.platform.process import ProcessError
from shipline.services.pipeline import gh
from shipline.services.pipeline.model import Release


class Scripted:
    """Returns queued results in order and records every command."""

    def __init__(self, *results: Result[str, ProcessError]) -> None:
        self.results = list(results)
        self.calls: list[list[str]] = []

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        self.calls.append(cmd)
        return self.results.pop(0)


def _fail(stderr: str, returncode: int = 1) -> Err[ProcessError]:
    return Err(ProcessError(command=("gh",), returncode=returncode, stdout="", stderr=stderr))


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    slept: list[float] = []
    monkeypatch.setattr(gh, "sleep", slept.append)
    return slept


def _release(tmp_path: Path) -> Release:
    return Release(
        tag="release-abc123",
        title="Release abc123",
        body="Built from abc123\n\nfix bug\n",
        target_sha="abc123",
        files=(tmp_path / "Unilyric.zip",),
    )


class TestTagExists:
    def test_present(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = Scripted(Ok("refs/tags/release-abc123\n"))
        monkeypatch.setattr(gh, "run_process", fake)

        result = gh.tag_exists(cwd=tmp_path, repo="owner/Unilyric", tag="release-abc123")
        assert result == Ok(True)
        assert fake.calls[0][:3] == ["gh", "api", "repos/owner/Unilyric/git/ref/tags/release-abc123"]

    def test_404_means_absent(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(gh, "run_process", Scripted(_fail("gh: Not Found (HTTP 404)")))
        assert gh.tag_exists(cwd=tmp_path, repo="o/r", tag="t") == Ok(False)

    def test_transient_errors_are_retried(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, no_sleep: list[float]
    ) -> None:
        fake = Scripted(
            _fail("HTTP 503: Service Unavailable"),
            _fail("connection reset by peer"),
            _fail("gh: Not Found (HTTP 404)"),
        )
        monkeypatch.setattr(gh, "run_process", fake)

        assert gh.tag_exists(cwd=tmp_path, repo="o/r", tag="t") == Ok(False)
        assert len(fake.calls) == 3
        assert no_sleep == [1.0, 2.0]

    def test_retries_are_bounded(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, no_sleep: list[float]
    ) -> None:
        fake = Scripted(*[_fail("HTTP 502: Bad Gateway")] * 3)
        monkeypatch.setattr(gh, "run_process", fake)

        result = gh.tag_exists(cwd=tmp_path, repo="o/r", tag="t")
        assert isinstance(result, Err)
        assert result.error.kind == "publish_failed"
        assert len(fake.calls) == 3

    def test_unauthorized(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(gh, "run_process", Scripted(_fail("HTTP 401: Bad credentials")))
        result = gh.tag_exists(cwd=tmp_path, repo="o/r", tag="t")
        assert isinstance(result, Err)
        assert result.error.kind == "gh_auth_required"


class TestCreateRelease:
    def test_command_shape(self, tmp_path: Path) -> None:
        cmd = gh.release_create_command(_release(tmp_path), repo="owner/Unilyric")
        assert cmd[:5] == [
            "gh",
            "release",
            "create",
            "release-abc123",
            str(tmp_path / "Unilyric.zip"),
        ]
        assert cmd[cmd.index("--target") + 1] == "abc123"
        assert cmd[cmd.index("--title") + 1] == "Release abc123"
        assert cmd[cmd.index("--notes") + 1] == "Built from abc123\n\nfix bug\n"

    def test_returns_url(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        url = "https://github.com/owner/Unilyric/releases/tag/release-abc123"
        monkeypatch.setattr(gh, "run_process", Scripted(Ok(f"{url}\n")))
        assert gh.create_release(cwd=tmp_path, repo="o/r", release=_release(tmp_path)) == Ok(url)

    def test_collision_is_tag_exists(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            gh, "run_process", Scripted(_fail("a release with the same tag name already exists"))
        )
        result = gh.create_release(cwd=tmp_path, repo="o/r", release=_release(tmp_path))
        assert isinstance(result, Err)
        assert result.error.kind == "tag_exists"

    def test_not_retried(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = Scripted(_fail("HTTP 502: Bad Gateway"))
        monkeypatch.setattr(gh, "run_process", fake)

        result = gh.create_release(cwd=tmp_path, repo="o/r", release=_release(tmp_path))
        assert isinstance(result, Err)
        assert result.error.kind == "publish_failed"
        assert len(fake.calls) == 1

    def test_forbidden_hint(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(gh, "run_process", Scripted(_fail("HTTP 403: Resource not accessible")))
        result = gh.create_release(cwd=tmp_path, repo="o/r", release=_release(tmp_path))
        assert isinstance(result, Err)
        assert "write access" in (result.error.hint or "")


def test_gh_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(gh.shutil, "which", lambda name: None)
    result = gh.ensure_gh_available()
    assert isinstance(result, Err)
    assert result.error.kind == "gh_missing"


def test_gh_auth(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(gh, "run_process", Scripted(_fail("not logged in")))
    result = gh.ensure_gh_auth(cwd=tmp_path)
    assert isinstance(result, Err)
    assert result.error.kind == "gh_auth_required"
