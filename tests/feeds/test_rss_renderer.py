from __future__ import annotations

from datetime import UTC, datetime

from lxml import etree

from github_rss.models.repository import FeedType
from github_rss.services.rss_renderer import clean_description, extract_feed_item, render_feed
from github_rss.services.url_parser import ParsedGitHubUrl

REPO = ParsedGitHubUrl(owner="octocat", repo="hello-world")
BUILD_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _parse(xml: str) -> etree._Element:
    return etree.fromstring(xml.encode("utf-8"))


def test_clean_description_strips_markdown_and_keeps_link_text() -> None:
    raw = "See `code` and [link](http://x) and ```block```"

    assert clean_description(raw) == "See code and link and [code block]"


def test_clean_description_removes_heading_and_emphasis_markers() -> None:
    assert clean_description("# Title\n**bold** _it_") == " Title\nbold it"


def test_clean_description_truncates_long_text_with_ellipsis() -> None:
    cleaned = clean_description("a" * 600)

    assert cleaned == "a" * 500 + "..."
    assert clean_description("a" * 500) == "a" * 500


def test_item_mapping_per_feed_type() -> None:
    issue = extract_feed_item({"number": 1, "title": "Bug", "html_url": "u1", "created_at": "d1"}, FeedType.ISSUES)
    pull = extract_feed_item({"number": 2, "title": "Fix", "html_url": "u2", "body": "b"}, FeedType.PULL_REQUESTS)
    discussion = extract_feed_item({"number": 3, "html_url": "u3"}, FeedType.DISCUSSIONS)
    release = extract_feed_item(
        {"tag_name": "v2", "html_url": "u4", "created_at": "c", "published_at": None},
        FeedType.RELEASES,
    )

    assert issue.title == "Issue #1: Bug"
    assert issue.description == "No description provided"
    assert issue.date == "d1"
    assert pull.title == "Pull Request #2: Fix"
    assert pull.description == "b"
    assert discussion.title == "Discussion #3"
    assert release.title == "Release v2: v2"
    assert release.description == "No release notes provided"
    assert release.date == "c"


def test_channel_metadata_and_cdata_sections() -> None:
    xml = render_feed(REPO, FeedType.PULL_REQUESTS, [], now=BUILD_TIME)
    channel = _parse(xml).find("channel")

    assert xml.startswith("<?xml version='1.0' encoding='UTF-8'?>")
    assert "<title><![CDATA[octocat/hello-world - PullRequests]]></title>" in xml
    assert channel.findtext("link") == "https://github.com/octocat/hello-world"
    assert channel.findtext("description") == "RSS feed for pullRequests in octocat/hello-world"
    assert channel.findtext("lastBuildDate") == "Wed, 01 May 2024 12:00:00 GMT"
    assert channel.findall("item") == []


def test_items_use_permalink_guid_and_rfc2822_dates() -> None:
    items = [
        {
            "number": 42,
            "title": "Add <feature> & more",
            "html_url": "https://github.com/octocat/hello-world/issues/42",
            "body": "Uses [docs](https://docs) and `x`",
            "created_at": "2024-02-29T08:30:00Z",
        }
    ]

    xml = render_feed(REPO, FeedType.ISSUES, items, now=BUILD_TIME)
    item = _parse(xml).find("channel/item")

    assert "<![CDATA[Issue #42: Add <feature> & more]]>" in xml
    assert item.findtext("link") == "https://github.com/octocat/hello-world/issues/42"
    assert item.findtext("guid") == "https://github.com/octocat/hello-world/issues/42"
    assert item.find("guid").get("isPermaLink") is None
    assert item.findtext("description") == "Uses docs and x"
    assert item.findtext("pubDate") == "Thu, 29 Feb 2024 08:30:00 GMT"


def test_only_twenty_items_are_rendered() -> None:
    items = [{"number": n, "title": f"t{n}", "html_url": f"u{n}", "created_at": "2024-01-01T00:00:00Z"} for n in range(50)]

    rendered = _parse(render_feed(REPO, FeedType.ISSUES, items, now=BUILD_TIME)).findall("channel/item")

    assert len(rendered) == 20
    assert rendered[0].findtext("link") == "u0"


def test_rendering_is_stable_apart_from_build_date() -> None:
    items = [{"tag_name": "v1", "name": "One", "html_url": "u", "published_at": "2024-01-01T00:00:00Z"}]

    first = render_feed(REPO, FeedType.RELEASES, items, now=BUILD_TIME)
    second = render_feed(REPO, FeedType.RELEASES, items, now=datetime(2024, 6, 1, tzinfo=UTC))

    assert first != second
    assert first.replace("Wed, 01 May 2024 12:00:00 GMT", "") == second.replace("Sat, 01 Jun 2024 00:00:00 GMT", "")


def test_cdata_terminator_in_body_keeps_document_well_formed() -> None:
    items = [{"number": 1, "title": "x]]>y", "html_url": "u", "body": "a]]>b\x07", "created_at": None}]

    item = _parse(render_feed(REPO, FeedType.DISCUSSIONS, items, now=BUILD_TIME)).find("channel/item")

    assert item.findtext("title") == "x]] >y"
    assert item.findtext("description") == "a]] >b"
    assert item.findtext("pubDate") == "Wed, 01 May 2024 12:00:00 GMT"
