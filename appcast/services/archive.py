"""Bundle archiving.

The archive keeps the bundle directory itself as the top-level entry
(``iSoul.app/Contents/...``) so that unzipping reproduces the .app.
"""

from __future__ import annotations

import glob
import os
import shutil
import stat
import time
from pathlib import Path
from typing import Protocol
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from appcast.core.result import Err, Ok, Result
from appcast.platform.process import run as run_process
from appcast.services.errors import ReleaseError

__all__ = [
    "Archiver",
    "DittoArchiver",
    "ZipArchiver",
    "archive_bundle",
    "find_stale_archives",
    "nightly_archive_name",
    "remove_stale_archives",
    "stable_archive_name",
]


_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def stable_archive_name(app_name: str, version: str) -> str:
    return f"{app_name} {version}.zip"


def nightly_archive_name(app_name: str, version: str) -> str:
    del version
    return f"{app_name} Nightly.zip"


def find_stale_archives(directory: Path, app_name: str) -> list[Path]:
    """List previous archives for app_name (``"<app> *.zip"``) in directory."""
    pattern = f"{glob.escape(app_name)} *.zip"
    return sorted(p for p in directory.glob(pattern) if p.is_file())


def remove_stale_archives(paths: list[Path]) -> Result[list[Path], ReleaseError]:
    removed: list[Path] = []
    for path in paths:
        try:
            path.unlink()
        except OSError as e:
            return Err(ReleaseError(kind="io_error", message=f"cannot remove {path}: {e}"))
        removed.append(path)
    return Ok(removed)


class Archiver(Protocol):
    def archive(self, bundle: Path, output: Path) -> Result[Path, ReleaseError]:
        """Compress bundle into output, keeping the bundle directory as root entry."""
        ...


def _link_info(arcname: str, source: Path) -> ZipInfo:
    mtime = time.localtime(source.lstat().st_mtime)[:6]
    info = ZipInfo(arcname, date_time=max(mtime, _ZIP_EPOCH))
    info.compress_type = ZIP_DEFLATED
    info.external_attr = (stat.S_IFLNK | 0o755) << 16
    return info


class ZipArchiver:
    """Pure-Python zip writer, usable on any host.

    Symlinks (common in framework bundles) are stored as links rather than
    followed.
    """

    def archive(self, bundle: Path, output: Path) -> Result[Path, ReleaseError]:
        root = bundle.name
        output.parent.mkdir(parents=True, exist_ok=True)
        try:
            # ZIP cannot store timestamps before 1980; some build outputs have mtime=0.
            with ZipFile(output, "w", compression=ZIP_DEFLATED, strict_timestamps=False) as zf:
                zf.write(bundle, arcname=root)
                for dirpath, dirnames, filenames in os.walk(bundle):
                    dirnames.sort()
                    base = Path(dirpath)
                    rel_base = base.relative_to(bundle).as_posix()
                    prefix = root if rel_base == "." else f"{root}/{rel_base}"
                    for name in dirnames + sorted(filenames):
                        source = base / name
                        arcname = f"{prefix}/{name}"
                        if source.is_symlink():
                            zf.writestr(_link_info(arcname, source), os.readlink(source))
                        else:
                            zf.write(source, arcname=arcname)
        except OSError as e:
            return Err(
                ReleaseError(kind="archive_failed", message=f"cannot write {output.name}: {e}")
            )
        return Ok(output)


class DittoArchiver:
    """Delegates to macOS ``ditto``, which also keeps resource forks and ACLs."""

    def __init__(self, *, cwd: Path) -> None:
        self._cwd = cwd

    def archive(self, bundle: Path, output: Path) -> Result[Path, ReleaseError]:
        if shutil.which("ditto") is None:
            return Err(
                ReleaseError(
                    kind="archive_failed",
                    message="ditto: missing",
                    hint="ditto ships with macOS; run without --ditto elsewhere",
                )
            )

        cmd = ["ditto", "-c", "-k", "--sequesterRsrc", "--keepParent", str(bundle), str(output)]
        result = run_process(cmd, cwd=self._cwd)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="archive_failed",
                    message=str(result.error),
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(output)


def archive_bundle(
    archiver: Archiver,
    *,
    bundle: Path,
    output: Path,
    stale: list[Path],
) -> Result[Path, ReleaseError]:
    """Remove the stale archives, then archive bundle into output.

    Removed archives are not restored if archiving fails.
    """
    removed = remove_stale_archives(stale)
    if isinstance(removed, Err):
        return removed

    result = archiver.archive(bundle, output)
    if isinstance(result, Err):
        return result

    if not output.is_file():
        return Err(
            ReleaseError(kind="archive_failed", message=f"archive not created: {output}")
        )
    return Ok(output)
