from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ReleaseDescriptor:
    """Everything one run knows about the release it is producing.

    ``version`` is empty until the version policy has run; the orchestrator
    then swaps in a copy carrying it.
    """

    bundle: Path
    owner: str
    repo: str
    feed_url: str
    signing_key: Path
    version: str = ""

    @property
    def app_name(self) -> str:
        return self.bundle.name.removesuffix(".app")


@dataclass(frozen=True, slots=True)
class Signature:
    """Archive signature and the enclosure attribute it belongs in."""

    attribute: str  # local name in the sparkle namespace
    value: str


@dataclass(frozen=True, slots=True)
class ReleaseOutcome:
    descriptor: ReleaseDescriptor
    archive: Path
    signature: Signature
    size: int
    download_url: str
    feed: Path
