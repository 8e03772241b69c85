"""Release orchestration: version, archive, sign, upload, appcast.

Steps run strictly in order and the first failure ends the run. Nothing is
rolled back: stale archives that were removed stay removed and a nightly
bundle keeps its stamped version.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Literal

from appcast.core.config import (
    NIGHTLY_FEED_NAME,
    STABLE_FEED_NAME,
    ChannelConfig,
    Config,
    default_feed_url,
)
from appcast.core.result import Err, Ok, Result
from appcast.output.console import ConsoleProtocol, Style
from appcast.services.archive import (
    Archiver,
    archive_bundle,
    find_stale_archives,
    nightly_archive_name,
    stable_archive_name,
)
from appcast.services.errors import ReleaseError
from appcast.services.feed import build_feed, write_feed
from appcast.services.model import ReleaseDescriptor, ReleaseOutcome
from appcast.services.signing import sign_archive
from appcast.services.upload import Uploader
from appcast.services.version import read_bundle_version, stamp_nightly_version

__all__ = [
    "NIGHTLY",
    "STABLE",
    "ReleaseMode",
    "ReleasePaths",
    "UploaderFactory",
    "generate",
    "prepare_release",
]

VersionPolicy = Callable[[Path, str, datetime], Result[str, ReleaseError]]
ArchiveNamePolicy = Callable[[str, str], str]
UploaderFactory = Callable[[ReleaseDescriptor], Uploader]


def _read_version(bundle: Path, feed_url: str, now: datetime) -> Result[str, ReleaseError]:
    del feed_url, now
    return read_bundle_version(bundle)


@dataclass(frozen=True, slots=True)
class ReleaseMode:
    """Policies that differ between stable and nightly releases."""

    name: Literal["stable", "nightly"]
    extract_version: VersionPolicy
    archive_name: ArchiveNamePolicy
    feed_name: str
    prerelease: bool

    def release_tag(self, version: str) -> str:
        # Nightlies overwrite a single rolling release.
        if self.name == "nightly":
            return "nightly"
        return f"v{version}"

    def channel(self, config: Config) -> ChannelConfig:
        return config.nightly if self.name == "nightly" else config.stable


STABLE = ReleaseMode(
    name="stable",
    extract_version=_read_version,
    archive_name=stable_archive_name,
    feed_name=STABLE_FEED_NAME,
    prerelease=False,
)

NIGHTLY = ReleaseMode(
    name="nightly",
    extract_version=stamp_nightly_version,
    archive_name=nightly_archive_name,
    feed_name=NIGHTLY_FEED_NAME,
    prerelease=True,
)


@dataclass(frozen=True, slots=True)
class ReleasePaths:
    work_dir: Path
    template: Path
    output: Path


def prepare_release(
    config: Config,
    mode: ReleaseMode,
    *,
    work_dir: Path,
) -> Result[tuple[ReleaseDescriptor, ReleasePaths], ReleaseError]:
    """Resolve paths from config and check the bundle and signing key exist."""
    bundle = work_dir / config.app.bundle
    if not bundle.is_dir():
        return Err(
            ReleaseError(
                kind="bundle_missing",
                message=f"{config.app.bundle} does not exist!",
                hint=str(bundle),
            )
        )

    signing_key = work_dir / config.files.signing_key
    if not signing_key.is_file():
        return Err(
            ReleaseError(
                kind="key_missing",
                message=f"Unable to find {config.files.signing_key}!",
                hint=str(signing_key),
            )
        )

    channel = mode.channel(config)
    feed_url = channel.feed_url or default_feed_url(
        config.app.owner, config.app.repo, mode.feed_name
    )
    descriptor = ReleaseDescriptor(
        bundle=bundle,
        owner=config.app.owner,
        repo=config.app.repo,
        feed_url=feed_url,
        signing_key=signing_key,
    )
    paths = ReleasePaths(
        work_dir=work_dir,
        template=work_dir / config.files.template,
        output=work_dir / channel.output,
    )
    return Ok((descriptor, paths))


def generate(
    descriptor: ReleaseDescriptor,
    mode: ReleaseMode,
    paths: ReleasePaths,
    *,
    archiver: Archiver,
    uploader_for: UploaderFactory,
    console: ConsoleProtocol,
    now: datetime,
) -> Result[ReleaseOutcome, ReleaseError]:
    """Run every release step for descriptor and write the appcast."""
    version = mode.extract_version(descriptor.bundle, descriptor.feed_url, now)
    if isinstance(version, Err):
        return version
    descriptor = replace(descriptor, version=version.value)
    console.info(f"{descriptor.app_name} version {descriptor.version}")

    archive_path = paths.work_dir / mode.archive_name(descriptor.app_name, descriptor.version)
    stale = find_stale_archives(paths.work_dir, descriptor.app_name)
    for old in stale:
        console.print(f"removing {old.name}", Style.DIM)
    archived = archive_bundle(archiver, bundle=descriptor.bundle, output=archive_path, stale=stale)
    if isinstance(archived, Err):
        return archived
    console.success(f"archived {archive_path.name}")

    signature = sign_archive(archive_path, descriptor.signing_key)
    if isinstance(signature, Err):
        return signature
    console.success(f"signed ({signature.value.attribute})")

    size = archive_path.stat().st_size

    uploader = uploader_for(descriptor)
    url = uploader.upload(
        archive_path,
        archive_path.name,
        f"{descriptor.app_name} {descriptor.version} ({mode.name})",
    )
    if isinstance(url, Err):
        return url
    console.success(f"uploaded {url.value}")

    feed = build_feed(
        paths.template,
        app_name=descriptor.app_name,
        version=descriptor.version,
        feed_url=descriptor.feed_url,
        signature=signature.value,
        size=size,
        download_url=url.value,
        now=now,
    )
    if isinstance(feed, Err):
        return feed

    written = write_feed(feed.value, paths.output)
    if isinstance(written, Err):
        return written
    console.success(f"wrote {written.value}")

    return Ok(
        ReleaseOutcome(
            descriptor=descriptor,
            archive=archive_path,
            signature=signature.value,
            size=size,
            download_url=url.value,
            feed=written.value,
        )
    )
