"""Publish archives as GitHub release assets through the gh CLI.

A single attempt is made for every gh call; a failure ends the run.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Protocol

from appcast.core.result import Err, Ok, Result
from appcast.core.structured import as_str_dict, get_list, get_str
from appcast.platform.process import run as run_process
from appcast.services.errors import ReleaseError

__all__ = ["GitHubUploader", "Uploader", "find_asset_url"]

GH_TIMEOUT_SECONDS = 60.0
GH_UPLOAD_TIMEOUT_SECONDS = 30 * 60.0


class Uploader(Protocol):
    def upload(self, path: Path, display_name: str, description: str) -> Result[str, ReleaseError]:
        """Publish path and return the URL it can be downloaded from."""
        ...


def find_asset_url(release_json: str, *, filename: str, label: str) -> str | None:
    """Pick the download URL of an uploaded asset out of ``gh release view --json assets``.

    GitHub rewrites spaces in asset names to dots, so the label set at upload
    time is checked first.
    """
    try:
        obj: object = json.loads(release_json)
    except json.JSONDecodeError:
        return None

    data = as_str_dict(obj)
    if data is None:
        return None

    candidates = {filename, filename.replace(" ", ".")}
    by_name: str | None = None
    for item in get_list(data, "assets") or []:
        asset = as_str_dict(item)
        if asset is None:
            continue
        url = get_str(asset, "url")
        if url is None:
            continue
        if get_str(asset, "label") == label:
            return url
        if by_name is None and get_str(asset, "name") in candidates:
            by_name = url
    return by_name


class GitHubUploader:
    """Uploads to the release ``tag`` of ``owner/repo``, creating it when absent."""

    def __init__(
        self,
        *,
        owner: str,
        repo: str,
        tag: str,
        prerelease: bool = False,
        cwd: Path,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.tag = tag
        self.prerelease = prerelease
        self._cwd = cwd

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _gh(
        self,
        args: list[str],
        *,
        message: str,
        timeout: float = GH_TIMEOUT_SECONDS,
    ) -> Result[str, ReleaseError]:
        result = run_process(["gh", *args, "--repo", self.slug], cwd=self._cwd, timeout=timeout)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="upload_failed",
                    message=message,
                    hint=result.error.stderr.strip() or None,
                )
            )
        return result

    def _ensure_release(self, display_name: str, description: str) -> Result[None, ReleaseError]:
        view = run_process(
            ["gh", "release", "view", self.tag, "--repo", self.slug, "--json", "tagName"],
            cwd=self._cwd,
            timeout=GH_TIMEOUT_SECONDS,
        )
        if isinstance(view, Ok):
            return Ok(None)

        args = [
            "release",
            "create",
            self.tag,
            "--title",
            display_name,
            "--notes",
            description,
        ]
        if self.prerelease:
            args.append("--prerelease")
        created = self._gh(args, message=f"gh release create failed: {self.slug}@{self.tag}")
        if isinstance(created, Err):
            return created
        return Ok(None)

    def upload(self, path: Path, display_name: str, description: str) -> Result[str, ReleaseError]:
        if shutil.which("gh") is None:
            return Err(
                ReleaseError(
                    kind="gh_missing",
                    message="gh: missing",
                    hint="Install GitHub CLI: https://cli.github.com/",
                )
            )

        ensured = self._ensure_release(display_name, description)
        if isinstance(ensured, Err):
            return ensured

        uploaded = self._gh(
            ["release", "upload", self.tag, f"{path}#{display_name}", "--clobber"],
            message=f"upload of {path.name} to {self.slug}@{self.tag} failed",
            timeout=GH_UPLOAD_TIMEOUT_SECONDS,
        )
        if isinstance(uploaded, Err):
            return uploaded

        view = self._gh(
            ["release", "view", self.tag, "--json", "assets"],
            message=f"gh release view failed: {self.slug}@{self.tag}",
        )
        if isinstance(view, Err):
            return view

        url = find_asset_url(view.value, filename=path.name, label=display_name)
        if url is None:
            return Err(
                ReleaseError(
                    kind="upload_failed",
                    message=f"uploaded asset not listed on {self.slug}@{self.tag}",
                    hint=path.name,
                )
            )
        return Ok(url)
