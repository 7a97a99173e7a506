"""Host platform detection.

The platform feeds two things: the executable suffix of the built binary and
the prefix of the dependency cache key, so entries built on Linux are never
restored on Windows.
"""

from __future__ import annotations

import sys as _sys
from enum import Enum, auto
from functools import lru_cache

__all__ = ["Platform", "detect_platform"]


class Platform(Enum):
    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self == Platform.WINDOWS else ""

    def exe_name(self, name: str) -> str:
        """exe_name("Unilyric") -> "Unilyric.exe" on Windows, "Unilyric" elsewhere."""
        return f"{name}{self.exe_suffix}"

    @property
    def runner_os(self) -> str:
        """Name used in cache keys, spelled the way CI runners report it."""
        return {
            Platform.LINUX: "Linux",
            Platform.MACOS: "macOS",
            Platform.WINDOWS: "Windows",
        }.get(self, "Unknown")


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the host platform (cached)."""
    # sys.platform rather than platform.system(): the latter may query WMI on Windows.
    system = _sys.platform.lower()
    if system.startswith("linux"):
        return Platform.LINUX
    if system.startswith("darwin"):
        return Platform.MACOS
    if system.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    return Platform.UNKNOWN
