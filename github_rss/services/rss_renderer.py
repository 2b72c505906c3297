"""RSS 2.0 rendering of GitHub activity lists."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime
import re
from typing import Any, Optional, Sequence

from dateutil import parser as date_parser
from lxml import etree

from github_rss.models.repository import FeedType

MAX_ITEMS = 20
MAX_DESCRIPTION_CHARS = 500
GENERATOR = "GitHub RSS Generator v1.0"
LANGUAGE = "en-us"

_FENCED_CODE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`([^`]+)`")
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_MARKDOWN_MARKERS = re.compile(r"[#*_]")
# Characters outside the XML 1.0 Char production
_XML_INVALID = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


@dataclass(slots=True)
class FeedItem:
    """Normalized item shared by all feed types."""

    title: str
    link: str
    description: str
    date: Optional[str]


def extract_feed_item(item: dict[str, Any], feed_type: FeedType | str) -> FeedItem:
    """Map a raw GitHub payload onto the common item shape."""
    feed_type = FeedType(feed_type)
    number = item.get("number")
    link = str(item.get("html_url") or "")

    if feed_type == FeedType.ISSUES:
        return FeedItem(
            title=f"Issue #{number}: {item.get('title') or ''}",
            link=link,
            description=item.get("body") or "No description provided",
            date=item.get("created_at"),
        )
    if feed_type == FeedType.PULL_REQUESTS:
        return FeedItem(
            title=f"Pull Request #{number}: {item.get('title') or ''}",
            link=link,
            description=item.get("body") or "No description provided",
            date=item.get("created_at"),
        )
    if feed_type == FeedType.DISCUSSIONS:
        return FeedItem(
            title=item.get("title") or f"Discussion #{number}",
            link=link,
            description=item.get("body") or "No description provided",
            date=item.get("created_at"),
        )

    tag_name = item.get("tag_name")
    return FeedItem(
        title=f"Release {tag_name}: {item.get('name') or tag_name}",
        link=link,
        description=item.get("body") or "No release notes provided",
        date=item.get("published_at") or item.get("created_at"),
    )


def clean_description(description: str) -> str:
    """Strip markdown noise and cap the text length."""
    cleaned = _FENCED_CODE.sub("[code block]", description)
    cleaned = _INLINE_CODE.sub(r"\1", cleaned)
    cleaned = _MARKDOWN_LINK.sub(r"\1", cleaned)
    cleaned = _MARKDOWN_MARKERS.sub("", cleaned)
    if len(cleaned) > MAX_DESCRIPTION_CHARS:
        return cleaned[:MAX_DESCRIPTION_CHARS] + "..."
    return cleaned


def format_rfc2822(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return format_datetime(value.astimezone(UTC), usegmt=True)


def _parse_item_date(raw: Optional[str], fallback: datetime) -> datetime:
    if isinstance(raw, str) and raw.strip():
        try:
            return date_parser.isoparse(raw)
        except (TypeError, ValueError):
            pass
    return fallback


def _cdata(text: str) -> etree.CDATA:
    text = _XML_INVALID.sub("", text)
    # "]]>" cannot appear inside a CDATA section
    return etree.CDATA(text.replace("]]>", "]] >"))


def _text(parent: etree._Element, tag: str, value: str) -> etree._Element:
    element = etree.SubElement(parent, tag)
    element.text = _XML_INVALID.sub("", value)
    return element


def channel_title(owner: str, repo: str, feed_type: FeedType | str) -> str:
    name = FeedType(feed_type).value
    return f"{owner}/{repo} - {name[:1].upper()}{name[1:]}"


def render_feed(
    repository: Any,
    feed_type: FeedType | str,
    items: Sequence[dict[str, Any]],
    *,
    now: Optional[datetime] = None,
) -> str:
    """Render one RSS 2.0 document.

    `repository` needs `owner`, `repo` and `url`. Only the first `MAX_ITEMS`
    items are kept; GitHub returns them newest first.
    """
    feed_type = FeedType(feed_type)
    build_time = now or datetime.now(UTC)

    rss = etree.Element("rss", version="2.0")
    channel = etree.SubElement(rss, "channel")
    etree.SubElement(channel, "title").text = _cdata(channel_title(repository.owner, repository.repo, feed_type))
    _text(channel, "link", repository.url)
    etree.SubElement(channel, "description").text = _cdata(
        f"RSS feed for {feed_type.value} in {repository.owner}/{repository.repo}"
    )
    _text(channel, "lastBuildDate", format_rfc2822(build_time))
    _text(channel, "generator", GENERATOR)
    _text(channel, "language", LANGUAGE)

    for raw_item in list(items)[:MAX_ITEMS]:
        if not isinstance(raw_item, dict):
            continue
        feed_item = extract_feed_item(raw_item, feed_type)
        entry = etree.SubElement(channel, "item")
        etree.SubElement(entry, "title").text = _cdata(feed_item.title)
        _text(entry, "link", feed_item.link)
        etree.SubElement(entry, "description").text = _cdata(clean_description(feed_item.description))
        _text(entry, "pubDate", format_rfc2822(_parse_item_date(feed_item.date, build_time)))
        _text(entry, "guid", feed_item.link)

    return etree.tostring(rss, xml_declaration=True, encoding="UTF-8", pretty_print=True).decode("utf-8")
