from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "bundle_missing",
    "metadata_missing",
    "metadata_invalid",
    "key_missing",
    "key_invalid",
    "archive_failed",
    "io_error",
    "gh_missing",
    "upload_failed",
    "template_missing",
    "template_malformed",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
