from __future__ import annotations

import plistlib
import zipfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519
from lxml import etree

from appcast.core.config import ChannelConfig, Config
from appcast.core.result import Err, Ok, Result
from appcast.output.console import MockConsole
from appcast.services.archive import ZipArchiver
from appcast.services.errors import ReleaseError
from appcast.services.feed import SPARKLE_NS
from appcast.services.model import ReleaseDescriptor
from appcast.services.release import NIGHTLY, STABLE, generate, prepare_release
from appcast.services.upload import Uploader

TEMPLATE = """\
<?xml version="1.0" encoding="utf-8"?>
<rss xmlns:sparkle="http://www.andymatuschak.org/xml-namespaces/sparkle" version="2.0">
  <channel>
    <title>Changelog</title>
    <link>http://example.invalid/</link>
    <item>
      <title>Version</title>
      <pubDate>never</pubDate>
      <enclosure url="" sparkle:version="" length="" type="application/octet-stream"/>
    </item>
  </channel>
</rss>
"""

NOW = datetime(2024, 3, 15, 14, 0, tzinfo=timezone(timedelta(hours=1)))


class FakeUploader:
    def __init__(self, descriptor: ReleaseDescriptor, *, fail: bool = False) -> None:
        self.descriptor = descriptor
        self.fail = fail
        self.uploads: list[tuple[Path, str, str]] = []

    def upload(self, path: Path, display_name: str, description: str) -> Result[str, ReleaseError]:
        self.uploads.append((path, display_name, description))
        if self.fail:
            return Err(ReleaseError(kind="upload_failed", message="boom"))
        return Ok(f"https://downloads.example.invalid/{path.name.replace(' ', '.')}")


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    root = tmp_path / "release"
    bundle = root / "iSoul.app" / "Contents"
    (bundle / "MacOS").mkdir(parents=True)
    (bundle / "MacOS" / "iSoul").write_bytes(b"binary")
    (bundle / "Info.plist").write_bytes(
        plistlib.dumps({"CFBundleName": "iSoul", "CFBundleVersion": "1.2.3"})
    )
    key = ed25519.Ed25519PrivateKey.generate()
    (root / "dsa_priv.pem").write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    (root / "appcast.xml").write_text(TEMPLATE, encoding="utf-8")
    return root


def _run(work_dir: Path, mode=STABLE, *, config: Config | None = None, fail_upload: bool = False):
    uploaders: list[FakeUploader] = []

    def uploader_for(descriptor: ReleaseDescriptor) -> Uploader:
        uploader = FakeUploader(descriptor, fail=fail_upload)
        uploaders.append(uploader)
        return uploader

    prepared = prepare_release(config or Config(), mode, work_dir=work_dir)
    assert isinstance(prepared, Ok)
    descriptor, paths = prepared.value
    console = MockConsole()
    result = generate(
        descriptor,
        mode,
        paths,
        archiver=ZipArchiver(),
        uploader_for=uploader_for,
        console=console,
        now=NOW,
    )
    return result, uploaders, console


class TestPrepareRelease:
    def test_descriptor_defaults(self, work_dir: Path) -> None:
        result = prepare_release(Config(), STABLE, work_dir=work_dir)

        assert isinstance(result, Ok)
        descriptor, paths = result.value
        assert descriptor.app_name == "iSoul"
        assert (descriptor.owner, descriptor.repo) == ("arranger1044", "iSoul")
        assert descriptor.feed_url == "http://arranger1044.github.com/iSoul/appcast.xml"
        assert descriptor.version == ""
        assert paths.output == work_dir / "../appcast.xml"

    def test_nightly_feed_url(self, work_dir: Path) -> None:
        result = prepare_release(Config(), NIGHTLY, work_dir=work_dir)

        assert isinstance(result, Ok)
        descriptor, paths = result.value
        assert descriptor.feed_url == "http://arranger1044.github.com/iSoul/appcast-nightly.xml"
        assert paths.output == work_dir / "../appcast-nightly.xml"

    def test_configured_feed_url_wins(self, work_dir: Path) -> None:
        config = Config(
            stable=ChannelConfig(output="out.xml", feed_url="https://isoul.example/feed")
        )

        result = prepare_release(config, STABLE, work_dir=work_dir)

        assert isinstance(result, Ok)
        assert result.value[0].feed_url == "https://isoul.example/feed"

    def test_missing_bundle(self, tmp_path: Path) -> None:
        result = prepare_release(Config(), STABLE, work_dir=tmp_path)

        assert isinstance(result, Err)
        assert result.error.kind == "bundle_missing"

    def test_missing_key(self, work_dir: Path) -> None:
        (work_dir / "dsa_priv.pem").unlink()

        result = prepare_release(Config(), STABLE, work_dir=work_dir)

        assert isinstance(result, Err)
        assert result.error.kind == "key_missing"
        assert result.error.message == "Unable to find dsa_priv.pem!"


class TestReleaseModes:
    def test_tags(self) -> None:
        assert STABLE.release_tag("1.2.3") == "v1.2.3"
        assert NIGHTLY.release_tag("2403.15.14") == "nightly"
        assert NIGHTLY.prerelease and not STABLE.prerelease


class TestGenerateStable:
    def test_end_to_end(self, work_dir: Path) -> None:
        (work_dir / "iSoul 1.0.0.zip").write_bytes(b"stale")

        result, uploaders, console = _run(work_dir)

        assert isinstance(result, Ok)
        outcome = result.value
        assert outcome.descriptor.version == "1.2.3"
        assert outcome.archive == work_dir / "iSoul 1.2.3.zip"
        assert outcome.size == outcome.archive.stat().st_size
        assert not (work_dir / "iSoul 1.0.0.zip").exists()
        assert outcome.feed.resolve() == (work_dir.parent / "appcast.xml").resolve()

        with zipfile.ZipFile(outcome.archive) as zf:
            assert "iSoul.app/Contents/MacOS/iSoul" in zf.namelist()

        [uploader] = uploaders
        assert uploader.descriptor.version == "1.2.3"
        assert uploader.uploads == [(outcome.archive, "iSoul 1.2.3.zip", "iSoul 1.2.3 (stable)")]

        root = etree.parse(str(outcome.feed)).getroot()
        assert root.findtext("channel/title") == "iSoul Changelog"
        assert root.findtext("channel/link") == "http://arranger1044.github.com/iSoul/appcast.xml"
        assert root.findtext("channel/item/title") == "Version 1.2.3"
        enclosure = root.find("channel/item/enclosure")
        assert enclosure is not None
        assert enclosure.get("url") == "https://downloads.example.invalid/iSoul.1.2.3.zip"
        assert enclosure.get("length") == str(outcome.size)
        assert enclosure.get(f"{{{SPARKLE_NS}}}version") == "1.2.3"
        assert enclosure.get(f"{{{SPARKLE_NS}}}edSignature") == outcome.signature.value

        assert console.find("removing iSoul 1.0.0.zip")
        assert not console.has_error()

    def test_bundle_metadata_untouched(self, work_dir: Path) -> None:
        plist = work_dir / "iSoul.app" / "Contents" / "Info.plist"
        before = plist.read_bytes()

        _run(work_dir)

        assert plist.read_bytes() == before

    def test_upload_failure_stops_before_feed(self, work_dir: Path) -> None:
        result, _, _ = _run(work_dir, fail_upload=True)

        assert isinstance(result, Err)
        assert result.error.kind == "upload_failed"
        assert not (work_dir.parent / "appcast.xml").exists()
        # no rollback
        assert (work_dir / "iSoul 1.2.3.zip").exists()

    def test_malformed_template(self, work_dir: Path) -> None:
        (work_dir / "appcast.xml").write_text("<rss><channel/></rss>", encoding="utf-8")

        result, _, _ = _run(work_dir)

        assert isinstance(result, Err)
        assert result.error.kind == "template_malformed"


class TestGenerateNightly:
    def test_end_to_end(self, work_dir: Path) -> None:
        result, uploaders, _ = _run(work_dir, NIGHTLY)

        assert isinstance(result, Ok)
        outcome = result.value
        assert outcome.descriptor.version == "2403.15.14"
        assert outcome.archive == work_dir / "iSoul Nightly.zip"
        assert outcome.feed.resolve() == (work_dir.parent / "appcast-nightly.xml").resolve()
        assert uploaders[0].descriptor.version == "2403.15.14"

        plist = work_dir / "iSoul.app" / "Contents" / "Info.plist"
        data = plistlib.loads(plist.read_bytes())
        assert data["CFBundleVersion"] == "2403.15.14"
        assert data["SUFeedURL"] == "http://arranger1044.github.com/iSoul/appcast-nightly.xml"

        root = etree.parse(str(outcome.feed)).getroot()
        assert root.findtext("channel/item/title") == "Version 2403.15.14"

    def test_stamped_version_is_archived(self, work_dir: Path) -> None:
        result, _, _ = _run(work_dir, NIGHTLY)

        assert isinstance(result, Ok)
        with zipfile.ZipFile(result.value.archive) as zf:
            data = plistlib.loads(zf.read("iSoul.app/Contents/Info.plist"))
        assert data["CFBundleVersion"] == "2403.15.14"

    def test_rerun_replaces_nightly_archive(self, work_dir: Path) -> None:
        _run(work_dir, NIGHTLY)
        _run(work_dir, NIGHTLY)

        assert sorted(p.name for p in work_dir.glob("*.zip")) == ["iSoul Nightly.zip"]
