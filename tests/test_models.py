"""Tests for data models."""
from datetime import datetime, timedelta, timezone

import pytest

from newsfeeds.models import (
    CrawlReport,
    Feed,
    Headline,
    HeadlineUrl,
    InvalidUrlError,
    RankedResult,
)


def test_headline_url_strips_scheme():
    secure = HeadlineUrl.parse("HTTPS://www.example.com/a?b=1")
    plain = HeadlineUrl.parse("http://www.example.com/a?b=1")

    assert secure.address == plain.address == "www.example.com/a?b=1"
    assert secure.https is True
    assert plain.https is False
    assert secure.reify() == "https://www.example.com/a?b=1"
    assert str(plain) == "http://www.example.com/a?b=1"


def test_headline_url_without_scheme():
    assert HeadlineUrl.parse("example.com/a") == HeadlineUrl("example.com/a", False)
    assert HeadlineUrl.parse("//example.com/a") == HeadlineUrl("example.com/a", False)
    assert HeadlineUrl.parse("example.com:8080/a") == HeadlineUrl("example.com:8080/a", False)


@pytest.mark.parametrize("url", [
    "", "   ", "https://", "ftp://example.com/file", None,
    "javascript:alert(1)", "mailto:editor@example.com", "data:text/html,hi",
])
def test_headline_url_rejects_unusable_links(url):
    with pytest.raises(InvalidUrlError):
        HeadlineUrl.parse(url)


def test_display_source_falls_back_to_domain():
    headline = Headline(url=HeadlineUrl.parse("https://www.nytimes.com/2026/10/17/world.html"))
    assert headline.display_source == "nytimes.com"

    headline.source = "New York Times"
    assert headline.display_source == "New York Times"


def test_feed_interval_must_be_positive():
    with pytest.raises(ValueError):
        Feed(
            id=1,
            url="https://news.example.com/",
            entries="li",
            title_selector="a",
            link_selector="a",
            feedname="Example",
            updated=datetime(2026, 10, 17, tzinfo=timezone.utc),
            update_interval=timedelta(0),
        )


def test_crawl_report_from_dict():
    report = CrawlReport.from_dict({
        "feed_id": 3,
        "next_resume_cursor": "&page=3",
        "headlines": [{
            "url": "https://example.com/a",
            "title": "Energy prices",
            "description": "Up again",
            "type": "article",
            "locale": "en",
            "labels": ["energy"],
            "discussion": "https://news.example.com/item?id=9",
        }],
    })

    assert report.feed_id == 3
    assert report.next_resume_cursor == "&page=3"
    headline = report.headlines[0]
    assert headline.feed_id == 3
    assert headline.url == HeadlineUrl("example.com/a", True)
    assert headline.metadata == {
        "title": "Energy prices",
        "description": "Up again",
        "type": "article",
        "locale": "en",
    }
    assert headline.labels == ["energy"]


def test_ranked_result_to_dict_reattaches_scheme():
    headline = Headline(
        id=5,
        url=HeadlineUrl.parse("http://example.com/a"),
        metadata={"title": "T", "description": "D", "type": "video", "locale": "de"},
        added=datetime(2026, 10, 17, 23, 30, tzinfo=timezone.utc),
        labels=["x"],
    )

    data = RankedResult(id=5, rank=0.42, headline=headline).to_dict()

    assert data["url"] == "http://example.com/a"
    assert data["added"] == "2026-10-17"
    assert data["type"] == "video"
    assert data["locale"] == "de"
    assert data["tags"] == ["x"]
    assert data["rank"] == 0.42


def test_crawl_report_skips_entries_with_unusable_links():
    report = CrawlReport.from_dict({
        "feed_id": 3,
        "headlines": [
            {"url": "https://example.com/a", "title": "Kept"},
            {"url": "ftp://example.com/b", "title": "Wrong scheme"},
            {"url": "mailto:tips@example.com", "title": "Not a page"},
            {"title": "No link at all"},
        ],
    })

    assert [h.title for h in report.headlines] == ["Kept"]
    assert report.skipped == 3
