from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from shipline.core.result import Err, Ok, Result
from shipline.platform.process import ProcessError
from shipline.services.pipeline import gh as gh_mod
from shipline.services.pipeline import steps as steps_mod


def _err(cmd: list[str], stderr: str, returncode: int = 1) -> Err[ProcessError]:
    return Err(ProcessError(command=tuple(cmd), returncode=returncode, stdout="", stderr=stderr))


@dataclass
class FakeHost:
    """Stands in for git, rustup, cargo and gh.

    `git clone` lays out a tiny cargo project, `cargo build` drops a binary
    where cargo would, and `gh release create` records the release so a
    second create of the same tag collides.
    """

    full_sha: str = "abc123" + "0" * 34
    binary: str = "Unilyric"
    dangling_lock: bool = False
    fail: set[str] = field(default_factory=set)
    tags: set[str] = field(default_factory=set)
    calls: list[list[str]] = field(default_factory=list)
    created: list[list[str]] = field(default_factory=list)

    def run(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        del env, timeout
        self.calls.append(cmd)
        tool = cmd[0]
        sub = cmd[1] if len(cmd) > 1 else ""

        if tool == "git":
            if "clone" in self.fail and sub == "clone":
                return _err(cmd, "fatal: repository not found", 128)
            if sub == "clone":
                src = Path(cmd[-1])
                src.mkdir(parents=True)
                (src / "Cargo.toml").write_text('[package]\nname = "unilyric"\n')
                (src / "Cargo.lock").write_text("version = 3\n")
                if self.dangling_lock:
                    (src / "vendor").mkdir()
                    (src / "vendor" / "Cargo.lock").symlink_to(src / "nowhere")
                return Ok("")
            if sub == "rev-parse":
                return Ok(self.full_sha + "\n")
            return Ok("")

        if tool == "rustup":
            if "toolchain" in self.fail:
                return _err(cmd, "error: toolchain 'nightly' is not installable")
            return Ok("")

        if tool == "rustc":
            return Ok("rustc 1.90.0-nightly (abcdef 2026-10-18)\n")

        if tool == "cargo":
            if "build" in self.fail:
                return _err(cmd, "error[E0425]: cannot find value `x` in this scope", 101)
            target = cwd / "target" / "release"
            target.mkdir(parents=True, exist_ok=True)
            (target / self.binary).write_bytes(b"\x7fELF fake")
            return Ok("")

        if tool == "gh":
            return self._gh(cmd)

        return _err(cmd, f"{tool}: not found", -1)

    def _gh(self, cmd: list[str]) -> Result[str, ProcessError]:
        if cmd[1:3] == ["auth", "status"]:
            if "auth" in self.fail:
                return _err(cmd, "You are not logged into any GitHub hosts. Run gh auth login")
            return Ok("")
        if cmd[1] == "api":
            tag = cmd[2].rsplit("/", 1)[-1]
            if tag in self.tags:
                return Ok(f"refs/tags/{tag}\n")
            return _err(cmd, "gh: Not Found (HTTP 404)")
        if cmd[1:3] == ["release", "create"]:
            if "publish" in self.fail:
                return _err(cmd, "HTTP 502: Bad Gateway")
            tag = cmd[3]
            if tag in self.tags:
                return _err(cmd, "a release with the same tag name already exists")
            self.tags.add(tag)
            self.created.append(cmd)
            return Ok(f"https://github.com/owner/Unilyric/releases/tag/{tag}\n")
        return _err(cmd, "unknown gh command")

    def commands(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == tool]


@pytest.fixture
def fake_host(monkeypatch: pytest.MonkeyPatch) -> FakeHost:
    host = FakeHost()
    monkeypatch.setattr(steps_mod, "run_process", host.run)
    monkeypatch.setattr(gh_mod, "run_process", host.run)
    monkeypatch.setattr(gh_mod.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(gh_mod, "sleep", lambda seconds: None)
    monkeypatch.delenv("GITHUB_REPOSITORY", raising=False)
    return host
