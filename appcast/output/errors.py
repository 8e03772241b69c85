"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

from appcast.core.errors import ErrorCode
from appcast.output.console import Style
from appcast.services.errors import ReleaseError

if TYPE_CHECKING:
    from appcast.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def release_error_exit_code(error: ReleaseError) -> int:
    match error.kind:
        case "bundle_missing" | "metadata_missing" | "metadata_invalid":
            return int(ErrorCode.ENV_ERROR)
        case "template_missing" | "template_malformed":
            return int(ErrorCode.ENV_ERROR)
        case "archive_failed":
            return int(ErrorCode.BUILD_ERROR)
        case "gh_missing" | "upload_failed":
            return int(ErrorCode.NETWORK_ERROR)
        case "key_missing" | "key_invalid" | "io_error":
            return int(ErrorCode.IO_ERROR)
        case _:
            assert_never(error.kind)
