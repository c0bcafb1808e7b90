"""Data models for feeds, headlines and search results."""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from newsfeeds.indexer import SearchIndexEntry

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*)://")
# "mailto:", "javascript:" and the like; "host:8080" is a port, not a scheme
_BARE_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*):(?!\d)")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class InvalidUrlError(ValueError):
    """URL cannot be stored as a headline link."""


@dataclass(frozen=True)
class HeadlineUrl:
    """Headline link stored without its scheme.

    An http:// link and an https:// link to the same address are the same
    headline; `https` records whether the secure variant is available.
    """

    address: str
    https: bool = False

    @classmethod
    def parse(cls, url: str) -> "HeadlineUrl":
        """Canonicalize a raw link, stripping an http(s) scheme."""
        url = (url or "").strip()
        match = _SCHEME_RE.match(url)
        https = False
        if match:
            scheme = match.group(1).lower()
            if scheme not in ("http", "https"):
                raise InvalidUrlError(f"Unsupported URL scheme: {scheme}")
            https = scheme == "https"
            url = url[match.end():]
        elif url.startswith("//"):
            url = url[2:]
        elif _BARE_SCHEME_RE.match(url):
            scheme = _BARE_SCHEME_RE.match(url).group(1).lower()
            raise InvalidUrlError(f"Unsupported URL scheme: {scheme}")
        if not url:
            raise InvalidUrlError("URL has no address")
        return cls(address=url, https=https)

    @property
    def domain(self) -> str:
        host = self.address.split("/", 1)[0]
        if host.lower().startswith("www."):
            host = host[4:]
        return host

    def reify(self) -> str:
        """Full URL with the scheme re-attached."""
        scheme = "https" if self.https else "http"
        return f"{scheme}://{self.address}"

    def __str__(self) -> str:
        return self.reify()


@dataclass
class Feed:
    """News aggregator polled for headlines.

    Selectors are passed through to the crawler untouched.
    """

    id: int | None
    url: str
    entries: str
    title_selector: str
    link_selector: str
    feedname: str
    updated: datetime
    update_interval: timedelta = timedelta(minutes=30)
    added: datetime | None = None
    exclude_selector: str | None = None
    label_selector: str | None = None
    discussion_selector: str | None = None
    resume_cursor: str | None = None

    def __post_init__(self):
        if self.update_interval <= timedelta(0):
            raise ValueError(f"update_interval must be positive, got {self.update_interval}")

    @property
    def due_at(self) -> datetime:
        return self.updated + self.update_interval

    def is_due(self, now: datetime) -> bool:
        """A feed is due once its interval has fully elapsed."""
        return self.due_at < now

    @property
    def crawl_url(self) -> str:
        """Base URL with the resume cursor appended verbatim."""
        return self.url + (self.resume_cursor or "")


@dataclass
class Headline:
    """Article link ingested from a feed or added by hand."""

    url: HeadlineUrl
    metadata: dict = field(default_factory=dict)
    feed_id: int | None = None  # None: manually added
    source: str | None = None
    discussion: str | None = None
    labels: list[str] = field(default_factory=list)
    added: datetime | None = None
    archived: datetime | None = None
    teaser_image: str | None = None
    content: str | None = None
    summary: str | None = None
    favicon: str | None = None
    id: int | None = None
    search_index: "SearchIndexEntry | None" = None

    @property
    def title(self) -> str | None:
        return self.metadata.get("title")

    @property
    def description(self) -> str | None:
        return self.metadata.get("description")

    @property
    def display_source(self) -> str:
        """Explicit source label, falling back to the link's domain."""
        return self.source or self.url.domain


@dataclass
class FeedCrawlRequest:
    """What the crawler should fetch next for one feed."""

    feed_id: int
    crawl_url: str
    feed: Feed

    @classmethod
    def for_feed(cls, feed: Feed) -> "FeedCrawlRequest":
        return cls(feed_id=feed.id, crawl_url=feed.crawl_url, feed=feed)

    def to_dict(self) -> dict:
        """Feed row as handed to the crawler, url replaced by the crawl URL."""
        feed = self.feed
        return {
            "id": self.feed_id,
            "url": self.crawl_url,
            "entries": feed.entries,
            "exclude_selector": feed.exclude_selector,
            "label_selector": feed.label_selector,
            "title_selector": feed.title_selector,
            "link_selector": feed.link_selector,
            "discussion_selector": feed.discussion_selector,
            "feedname": feed.feedname,
            "updated": feed.updated.isoformat(),
            "update_interval": int(feed.update_interval.total_seconds()),
            "added": feed.added.isoformat() if feed.added else None,
            "last_id": feed.resume_cursor,
        }


@dataclass
class CrawlReport:
    """Result of one poll, reported back by the crawler."""

    feed_id: int
    headlines: list[Headline] = field(default_factory=list)
    next_resume_cursor: str | None = None
    skipped: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "CrawlReport":
        """Build a report from the crawler's JSON payload.

        Entries without a usable http(s) link are logged and skipped so one
        bad link does not discard the rest of the poll.
        """
        headlines = []
        skipped = 0
        for item in data.get("headlines", []):
            try:
                url = HeadlineUrl.parse(item["url"])
            except (InvalidUrlError, KeyError, TypeError) as e:
                logger.warning(f"Skipping entry from feed {data['feed_id']}: {e}")
                skipped += 1
                continue
            metadata = dict(item.get("metadata") or {})
            for key in ("title", "description", "type", "locale"):
                if item.get(key) is not None:
                    metadata[key] = item[key]
            headlines.append(
                Headline(
                    url=url,
                    metadata=metadata,
                    feed_id=data["feed_id"],
                    source=item.get("source"),
                    discussion=item.get("discussion"),
                    labels=list(item.get("labels") or []),
                    teaser_image=item.get("teaser_image"),
                    content=item.get("content"),
                    summary=item.get("summary"),
                    favicon=item.get("favicon"),
                )
            )
        return cls(
            feed_id=data["feed_id"],
            headlines=headlines,
            next_resume_cursor=data.get("next_resume_cursor"),
            skipped=skipped,
        )


@dataclass
class RankedResult:
    """Headline with the rank it was ordered by."""

    id: int
    rank: float
    headline: Headline

    def to_dict(self) -> dict:
        headline = self.headline
        metadata = headline.metadata
        return {
            "id": self.id,
            "rank": self.rank,
            "added": headline.added.date().isoformat() if headline.added else None,
            "type": metadata.get("type"),
            "source": headline.display_source,
            "title": headline.title,
            "url": headline.url.reify(),
            "description": headline.description,
            "discussion": headline.discussion,
            "locale": metadata.get("locale"),
            "teaserImage": headline.teaser_image,
            "favicon": headline.favicon,
            "tags": list(headline.labels),
        }
