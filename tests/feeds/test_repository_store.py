from __future__ import annotations

from datetime import timedelta

import pytest

from github_rss.exceptions import AlreadyExists, RecordNotFound
from github_rss.models.repository import RepositoryStatus, utcnow
from github_rss.services.url_parser import parse_github_url

LEASE = timedelta(minutes=15)


def test_insert_creates_pending_record_with_empty_feeds(store) -> None:
    record = store.insert(parse_github_url("https://github.com/Octocat/Hello-World"))

    assert record.id
    assert record.status == RepositoryStatus.PENDING.value
    assert record.url == "https://github.com/octocat/hello-world"
    assert record.feeds == {"issues": None, "pullRequests": None, "discussions": None, "releases": None}
    assert record.error is None
    assert store.find_by_owner_repo("OCTOCAT", "hello-world").id == record.id


def test_duplicate_insert_raises_already_exists(store) -> None:
    store.insert(parse_github_url("https://github.com/octocat/hello-world"))

    with pytest.raises(AlreadyExists):
        store.insert(parse_github_url("https://github.com/octocat/hello-world.git"))


def test_get_unknown_id_raises_record_not_found(store) -> None:
    with pytest.raises(RecordNotFound):
        store.get("missing")
    with pytest.raises(RecordNotFound):
        store.update_status("missing", RepositoryStatus.READY)


def test_begin_generation_rejects_second_entry(store) -> None:
    record = store.insert(parse_github_url("https://github.com/o/r"))

    assert store.begin_generation(record.id, lease=LEASE) is True
    assert store.begin_generation(record.id, lease=LEASE) is False
    assert store.get(record.id).status == RepositoryStatus.GENERATING.value


def test_begin_generation_takes_over_expired_lease(store) -> None:
    record = store.insert(parse_github_url("https://github.com/o/r"))
    started = utcnow() - timedelta(hours=1)

    assert store.begin_generation(record.id, lease=LEASE, now=started) is True
    assert store.begin_generation(record.id, lease=LEASE) is True


def test_ready_transition_clears_error_and_merges_feed_keys(store) -> None:
    record = store.insert(parse_github_url("https://github.com/o/r"))
    store.mark_error(record.id, "S3 configuration not available")
    assert store.get(record.id).error == "S3 configuration not available"

    ready = store.mark_ready(record.id, {"issues": "https://feeds/issues.xml"})

    assert ready.status == RepositoryStatus.READY.value
    assert ready.error is None
    assert ready.feeds["issues"] == "https://feeds/issues.xml"
    assert ready.feeds["releases"] is None
    assert ready.last_update is not None


def test_listing_orders_by_creation(store) -> None:
    first = store.insert(parse_github_url("https://github.com/o/first"), now=utcnow() - timedelta(minutes=2))
    second = store.insert(parse_github_url("https://github.com/o/second"))
    store.mark_error(second.id, "boom")

    pending = store.list_by_status([RepositoryStatus.PENDING, RepositoryStatus.ERROR])

    assert [record.id for record in pending] == [first.id, second.id]
    assert [record.id for record in store.list_all()] == [second.id, first.id]


def test_status_update_ignores_unknown_feed_keys(store) -> None:
    record = store.insert(parse_github_url("https://github.com/o/r"))

    updated = store.update_status(
        record.id,
        RepositoryStatus.READY,
        feeds={"releases": "https://feeds/releases.xml", "wiki": "https://feeds/wiki.xml"},
    )

    assert set(updated.feeds) == {"issues", "pullRequests", "discussions", "releases"}
    assert updated.feeds["releases"] == "https://feeds/releases.xml"
