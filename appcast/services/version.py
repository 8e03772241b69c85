"""Version policies for the release bundle.

Stable releases ship whatever ``CFBundleVersion`` the build produced.
Nightlies are stamped with a date-based version (``YYmm.dd.HH``) that is
written back into the bundle together with the nightly feed URL, so the
shipped app checks the nightly appcast for its own updates.
"""

from __future__ import annotations

import plistlib
from datetime import datetime
from pathlib import Path
from xml.parsers.expat import ExpatError

from appcast.core.result import Err, Ok, Result
from appcast.core.structured import StrDict, as_str_dict
from appcast.platform.files import atomic_write_bytes
from appcast.services.errors import ReleaseError

__all__ = [
    "FEED_URL_KEY",
    "VERSION_KEY",
    "info_plist_path",
    "nightly_version",
    "read_bundle_version",
    "stamp_nightly_version",
]

VERSION_KEY = "CFBundleVersion"
FEED_URL_KEY = "SUFeedURL"
NIGHTLY_VERSION_FORMAT = "%y%m.%d.%H"

_BINARY_PLIST_MAGIC = b"bplist00"


def info_plist_path(bundle: Path) -> Path:
    return bundle / "Contents" / "Info.plist"


def nightly_version(now: datetime) -> str:
    """Two-digit year and month, then day, then hour: 2403.15.14."""
    return now.strftime(NIGHTLY_VERSION_FORMAT)


def _load_info_plist(bundle: Path) -> Result[tuple[StrDict, plistlib.PlistFormat], ReleaseError]:
    if not bundle.is_dir():
        return Err(ReleaseError(kind="bundle_missing", message=f"{bundle} does not exist!"))

    path = info_plist_path(bundle)
    if not path.is_file():
        return Err(
            ReleaseError(
                kind="metadata_missing",
                message=f"missing metadata: {path}",
                hint="Is this a built .app bundle?",
            )
        )

    try:
        raw = path.read_bytes()
    except OSError as e:
        return Err(ReleaseError(kind="io_error", message=f"cannot read {path}: {e}"))

    fmt = plistlib.FMT_BINARY if raw.startswith(_BINARY_PLIST_MAGIC) else plistlib.FMT_XML
    try:
        obj: object = plistlib.loads(raw, fmt=fmt)
    except (plistlib.InvalidFileException, ExpatError, ValueError) as e:
        return Err(ReleaseError(kind="metadata_invalid", message=f"invalid plist {path}: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(ReleaseError(kind="metadata_invalid", message=f"{path}: root is not a dict"))
    return Ok((data, fmt))


def read_bundle_version(bundle: Path) -> Result[str, ReleaseError]:
    """Return the bundle's CFBundleVersion exactly as stored."""
    loaded = _load_info_plist(bundle)
    if isinstance(loaded, Err):
        return loaded

    data, _fmt = loaded.value
    version = data.get(VERSION_KEY)
    if not isinstance(version, str) or not version:
        return Err(
            ReleaseError(
                kind="metadata_invalid",
                message=f"{info_plist_path(bundle)}: {VERSION_KEY} missing",
            )
        )
    return Ok(version)


def stamp_nightly_version(bundle: Path, feed_url: str, now: datetime) -> Result[str, ReleaseError]:
    """Compute the nightly version and write it into the bundle.

    Overwrites CFBundleVersion and SUFeedURL in Contents/Info.plist, keeping
    the plist's original (XML or binary) format.
    """
    loaded = _load_info_plist(bundle)
    if isinstance(loaded, Err):
        return loaded

    data, fmt = loaded.value
    version = nightly_version(now)
    data[VERSION_KEY] = version
    data[FEED_URL_KEY] = feed_url

    path = info_plist_path(bundle)
    try:
        atomic_write_bytes(path, plistlib.dumps(data, fmt=fmt))
    except OSError as e:
        return Err(ReleaseError(kind="io_error", message=f"cannot write {path}: {e}"))
    return Ok(version)
