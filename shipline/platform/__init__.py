"""Platform abstraction layer."""

from .detection import (
    Platform,
    detect_platform,
)
from .process import (
    ProcessError,
    run,
)

__all__ = [
    # detection
    "Platform",
    "detect_platform",
    # process
    "ProcessError",
    "run",
]
