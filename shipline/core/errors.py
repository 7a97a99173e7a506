"""Process exit codes.

A Run's success or failure is the only status the runner exposes, so every
CLI command ends with one of these codes.
"""

from enum import IntEnum

__all__ = ["ExitCode"]


class ExitCode(IntEnum):
    """Exit codes for shipline commands.

    - 0: Success, or the event did not match the trigger (not a failure)
    - 1: User error (bad event payload, invalid config, tag collision)
    - 2: Environment error (gh missing or not authenticated, no git/rustup)
    - 3: Build error (a pipeline step failed)
    - 4: Network error (publishing failed)
    - 5: I/O error (workspace or report could not be written)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ExitCode.OK
