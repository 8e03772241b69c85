"""Process exit codes for the appcast CLI.

Each release failure maps onto one of these codes so that a CI job can tell
a bad invocation apart from a missing bundle or a failed upload.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for the CLI.

    - 0: Success
    - 1: User error (bad arguments, unreadable config)
    - 2: Environment error (missing bundle, metadata or feed template)
    - 3: Build error (archive could not be produced)
    - 4: Network error (gh missing, upload failed)
    - 5: I/O error (stale archive removal, signing key, feed write)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
