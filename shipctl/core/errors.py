"""Process exit codes.

Used when a failure has no external tool exit code to propagate (config
problems, missing tools, refused confirmation).
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for shipctl commands.

    - 0: Success
    - 1: User error (bad input, confirmation mismatch)
    - 2: Environment error (missing tool, no kube context, bad config)
    - 3: Build error (docker build, lint or tests failed)
    - 4: Network error (registry login, push, policy download)
    - 5: I/O error (marker or backup file unreadable)
    - 6: Deploy error (namespace, secrets or helm release failed)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    DEPLOY_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
