"""Appcast (Sparkle RSS feed) generation.

The feed is produced by patching a hand-written template. Only these
nodes are touched, everything else in the template is kept as written:

    channel/title            "<app> Changelog"
    channel/link             feed URL
    channel/item/title       "Version <version>"
    channel/item/pubDate     RFC 2822 release date
    channel/item/enclosure   signature, length, url, sparkle:version

Only the first ``item`` is patched, so the template is expected to hold
exactly one, and it must declare ``xmlns:sparkle``.

The template's own XML declaration and trailing whitespace are written
back verbatim and CDATA sections are kept. Markup libxml2 normalizes
(empty-element form, attribute quoting, character references) is not.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from email.utils import format_datetime
from pathlib import Path

from lxml import etree

from appcast.core.result import Err, Ok, Result
from appcast.platform.files import atomic_write_bytes
from appcast.services.errors import ReleaseError
from appcast.services.model import Signature

__all__ = ["SPARKLE_NS", "FeedDocument", "build_feed", "write_feed"]

SPARKLE_NS = "http://www.andymatuschak.org/xml-namespaces/sparkle"

CHANNEL_TITLE = "channel/title"
CHANNEL_LINK = "channel/link"
ITEM_TITLE = "channel/item/title"
ITEM_PUB_DATE = "channel/item/pubDate"
ITEM_ENCLOSURE = "channel/item/enclosure"

_DECLARATION = re.compile(rb"^(?:\xef\xbb\xbf)?<\?xml[^>]*\?>\s*")


@dataclass(frozen=True, slots=True)
class FeedDocument:
    """Patched feed plus the template bytes lxml would not reproduce.

    ``prolog`` is the XML declaration with the whitespace after it,
    ``epilog`` the whitespace after the root element.
    """

    tree: etree._ElementTree
    prolog: bytes
    epilog: bytes


def _malformed(template: Path, reason: str) -> Err[ReleaseError]:
    return Err(
        ReleaseError(kind="template_malformed", message=f"malformed template {template}: {reason}")
    )


def _parse_template(template: Path) -> Result[FeedDocument, ReleaseError]:
    if not template.is_file():
        return Err(
            ReleaseError(kind="template_missing", message=f"feed template not found: {template}")
        )

    try:
        raw = template.read_bytes()
    except OSError as e:
        return Err(ReleaseError(kind="io_error", message=f"cannot read {template}: {e}"))

    parser = etree.XMLParser(resolve_entities=False, no_network=True, strip_cdata=False)
    try:
        root = etree.fromstring(raw, parser)
    except etree.XMLSyntaxError as e:
        return _malformed(template, str(e))

    declaration = _DECLARATION.match(raw)
    return Ok(
        FeedDocument(
            tree=root.getroottree(),
            prolog=declaration.group(0) if declaration else b"",
            epilog=raw[len(raw.rstrip()) :],
        )
    )


def build_feed(
    template: Path,
    *,
    app_name: str,
    version: str,
    feed_url: str,
    signature: Signature,
    size: int,
    download_url: str,
    now: datetime,
) -> Result[FeedDocument, ReleaseError]:
    """Load template and fill in the release fields.

    ``now`` should be timezone-aware; a naive value is rendered as ``-0000``.
    """
    parsed = _parse_template(template)
    if isinstance(parsed, Err):
        return parsed

    document = parsed.value
    root = document.tree.getroot()

    nodes: dict[str, etree._Element] = {}
    for path in (CHANNEL_TITLE, CHANNEL_LINK, ITEM_TITLE, ITEM_PUB_DATE, ITEM_ENCLOSURE):
        node = root.find(path)
        if node is None:
            return _malformed(template, f"<{path}> not found")
        nodes[path] = node

    enclosure = nodes[ITEM_ENCLOSURE]
    if SPARKLE_NS not in enclosure.nsmap.values():
        return _malformed(template, f'xmlns:sparkle="{SPARKLE_NS}" is not declared')

    nodes[CHANNEL_TITLE].text = f"{app_name} Changelog"
    nodes[CHANNEL_LINK].text = feed_url
    nodes[ITEM_TITLE].text = f"Version {version}"
    nodes[ITEM_PUB_DATE].text = format_datetime(now)

    enclosure.set(f"{{{SPARKLE_NS}}}{signature.attribute}", signature.value)
    enclosure.set("length", str(size))
    enclosure.set("url", download_url)
    enclosure.set(f"{{{SPARKLE_NS}}}version", version)

    return Ok(document)


def write_feed(document: FeedDocument, output: Path) -> Result[Path, ReleaseError]:
    encoding = document.tree.docinfo.encoding or "UTF-8"
    body = etree.tostring(document.tree, encoding=encoding, xml_declaration=False)

    try:
        atomic_write_bytes(output, document.prolog + body + document.epilog)
    except OSError as e:
        return Err(ReleaseError(kind="io_error", message=f"cannot write {output}: {e}"))
    return Ok(output)
