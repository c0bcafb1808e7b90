"""SQLite storage for feeds and headlines."""
import json
import logging
import sqlite3
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

from newsfeeds.indexer import SearchIndexEntry, index
from newsfeeds.models import Feed, Headline, HeadlineUrl, utcnow

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class NotFoundError(LookupError):
    """Requested feed or headline does not exist."""


class FeedInUseError(Exception):
    """Feed cannot be deleted while headlines reference it."""


def to_db_time(value: datetime | None) -> str | None:
    """Store timestamps as fixed-width UTC text so they sort as strings."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class Database:
    """SQLite database wrapper for feeds and their headlines."""

    SCHEMA = """
    -- News aggregators and the selectors the crawler extracts links with
    CREATE TABLE IF NOT EXISTS feeds (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT UNIQUE NOT NULL,
        entries TEXT NOT NULL,
        exclude_selector TEXT,
        label_selector TEXT,
        title_selector TEXT NOT NULL,
        link_selector TEXT NOT NULL,
        discussion_selector TEXT,
        feedname TEXT NOT NULL,
        updated TIMESTAMP NOT NULL,
        update_interval INTEGER NOT NULL CHECK (update_interval > 0),
        added TIMESTAMP NOT NULL,
        last_id TEXT
    );

    -- Raw article information; url is stored without its scheme
    CREATE TABLE IF NOT EXISTS headlines (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        newsfeed INTEGER REFERENCES feeds(id) ON UPDATE CASCADE ON DELETE RESTRICT,
        source TEXT,
        https BOOLEAN NOT NULL DEFAULT 0,
        url TEXT UNIQUE NOT NULL,
        metadata TEXT NOT NULL,
        discussion TEXT,
        labels TEXT NOT NULL DEFAULT '[]',
        added TIMESTAMP NOT NULL,
        fts TEXT NOT NULL DEFAULT '',
        archived TIMESTAMP,
        teaser_image TEXT,
        content TEXT,
        summary TEXT,
        favicon TEXT
    );

    CREATE INDEX IF NOT EXISTS added_idx ON headlines(added DESC);
    CREATE INDEX IF NOT EXISTS headlines_newsfeed_idx ON headlines(newsfeed);
    """

    def __init__(self, db_path: Path):
        """Initialize database, creating tables if needed."""
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL and return cursor."""
        return self.conn.execute(sql, params)

    def commit(self) -> None:
        """Commit current transaction."""
        self.conn.commit()

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()

    # === Feeds ===

    def add_feed(
        self,
        url: str,
        feedname: str,
        entries: str,
        title_selector: str,
        link_selector: str,
        exclude_selector: str | None = None,
        label_selector: str | None = None,
        discussion_selector: str | None = None,
        update_interval: timedelta = timedelta(minutes=30),
        updated: datetime | None = None,
    ) -> Feed:
        """Register a feed.

        A new feed looks as if it was last polled a week ago, so it is due
        on the next scheduling pass.
        """
        now = utcnow()
        feed = Feed(
            id=None,
            url=url,
            entries=entries,
            title_selector=title_selector,
            link_selector=link_selector,
            feedname=feedname,
            updated=updated or now - timedelta(days=7),
            update_interval=update_interval,
            added=now,
            exclude_selector=exclude_selector,
            label_selector=label_selector,
            discussion_selector=discussion_selector,
        )
        cursor = self.execute(
            """INSERT INTO feeds
               (url, entries, exclude_selector, label_selector, title_selector,
                link_selector, discussion_selector, feedname, updated,
                update_interval, added)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                feed.url,
                feed.entries,
                feed.exclude_selector,
                feed.label_selector,
                feed.title_selector,
                feed.link_selector,
                feed.discussion_selector,
                feed.feedname,
                to_db_time(feed.updated),
                int(feed.update_interval.total_seconds()),
                to_db_time(feed.added),
            ),
        )
        self.commit()
        feed.id = cursor.lastrowid
        logger.info(f"Added feed {feed.id}: {feed.feedname} ({feed.url})")
        return feed

    def get_feed(self, feed_id: int) -> Feed:
        row = self.execute("SELECT * FROM feeds WHERE id = ?", (feed_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Feed {feed_id} not found")
        return self._row_to_feed(row)

    def list_feeds(self, on_error=None) -> list[Feed]:
        """All feeds, ordered by id.

        Args:
            on_error: Called as on_error(feed_id, exc) for a row that cannot
                be read back; that feed is left out. Without it the error
                propagates.
        """
        rows = self.execute("SELECT * FROM feeds ORDER BY id").fetchall()
        feeds = []
        for row in rows:
            try:
                feeds.append(self._row_to_feed(row))
            except (ValueError, TypeError) as e:
                if on_error is None:
                    raise
                on_error(row["id"], e)
        return feeds

    def update_feed(self, feed_id: int, updated: datetime, resume_cursor: str | None) -> None:
        """Record a finished poll and where the next one should resume."""
        cursor = self.execute(
            "UPDATE feeds SET updated = ?, last_id = ? WHERE id = ?",
            (to_db_time(updated), resume_cursor, feed_id),
        )
        if cursor.rowcount == 0:
            self.conn.rollback()
            raise NotFoundError(f"Feed {feed_id} not found")
        self.commit()

    def delete_feed(self, feed_id: int) -> None:
        try:
            cursor = self.execute("DELETE FROM feeds WHERE id = ?", (feed_id,))
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise FeedInUseError(f"Feed {feed_id} still has headlines") from e
        if cursor.rowcount == 0:
            raise NotFoundError(f"Feed {feed_id} not found")
        self.commit()

    def _row_to_feed(self, row: sqlite3.Row) -> Feed:
        return Feed(
            id=row["id"],
            url=row["url"],
            entries=row["entries"],
            title_selector=row["title_selector"],
            link_selector=row["link_selector"],
            feedname=row["feedname"],
            updated=from_db_time(row["updated"]),
            update_interval=timedelta(seconds=row["update_interval"]),
            added=from_db_time(row["added"]),
            exclude_selector=row["exclude_selector"],
            label_selector=row["label_selector"],
            discussion_selector=row["discussion_selector"],
            resume_cursor=row["last_id"],
        )

    # === Headlines ===

    def get_headline(self, headline_id: int) -> Headline:
        row = self.execute("SELECT * FROM headlines WHERE id = ?", (headline_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Headline {headline_id} not found")
        return self._row_to_headline(row)

    def upsert_headline(self, headline: Headline) -> Headline:
        """Insert a headline, or update the one with the same scheme-less URL.

        The search index is rebuilt in the same transaction. An existing row
        keeps its id and added time, and stays https if either variant was.
        Content fetched by enrichment survives a re-crawl that carries none
        and stays searchable.
        """
        added = headline.added or utcnow()
        with self.conn:
            existing = self.execute(
                "SELECT content FROM headlines WHERE url = ?", (headline.url.address,)
            ).fetchone()
            if headline.content is None and existing is not None and existing["content"] is not None:
                headline = replace(headline, content=existing["content"])
            entry = index(headline)
            self.execute(
                """INSERT INTO headlines
                   (newsfeed, source, https, url, metadata, discussion, labels,
                    added, fts, archived, teaser_image, content, summary, favicon)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(url) DO UPDATE SET
                       newsfeed = coalesce(excluded.newsfeed, newsfeed),
                       source = excluded.source,
                       https = (https OR excluded.https),
                       metadata = excluded.metadata,
                       discussion = excluded.discussion,
                       labels = excluded.labels,
                       fts = excluded.fts,
                       archived = coalesce(excluded.archived, archived),
                       teaser_image = coalesce(excluded.teaser_image, teaser_image),
                       content = excluded.content,
                       summary = coalesce(excluded.summary, summary),
                       favicon = coalesce(excluded.favicon, favicon)""",
                (
                    headline.feed_id,
                    headline.source,
                    headline.url.https,
                    headline.url.address,
                    json.dumps(headline.metadata, sort_keys=True),
                    headline.discussion,
                    json.dumps(list(headline.labels)),
                    to_db_time(added),
                    str(entry),
                    to_db_time(headline.archived),
                    headline.teaser_image,
                    headline.content,
                    headline.summary,
                    headline.favicon,
                ),
            )
            row = self.execute(
                "SELECT * FROM headlines WHERE url = ?", (headline.url.address,)
            ).fetchone()
        stored = self._row_to_headline(row)
        logger.debug(f"Stored headline {stored.id}: {stored.url}")
        return stored

    def enrich_headline(
        self,
        headline_id: int,
        content: str | None = None,
        summary: str | None = None,
        favicon: str | None = None,
    ) -> Headline:
        """Backfill page content, summary or favicon.

        Content feeds the search index, so it is rebuilt with the change.
        """
        with self.conn:
            row = self.execute("SELECT * FROM headlines WHERE id = ?", (headline_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"Headline {headline_id} not found")
            headline = self._row_to_headline(row)
            if content is not None:
                headline.content = content
            if summary is not None:
                headline.summary = summary
            if favicon is not None:
                headline.favicon = favicon
            headline.search_index = index(headline)
            self.execute(
                """UPDATE headlines
                   SET content = ?, summary = ?, favicon = ?, fts = ?
                   WHERE id = ?""",
                (
                    headline.content,
                    headline.summary,
                    headline.favicon,
                    str(headline.search_index),
                    headline_id,
                ),
            )
        return headline

    def archive_headline(self, headline_id: int, archived: datetime | None = None) -> None:
        """Mark a headline's link as dead, pointing at its last archive grab."""
        cursor = self.execute(
            "UPDATE headlines SET archived = ? WHERE id = ?",
            (to_db_time(archived or utcnow()), headline_id),
        )
        if cursor.rowcount == 0:
            self.conn.rollback()
            raise NotFoundError(f"Headline {headline_id} not found")
        self.commit()

    def list_headlines_since(self, cutoff: datetime) -> list[Headline]:
        """Headlines added strictly after cutoff, newest id first."""
        rows = self.execute(
            "SELECT * FROM headlines WHERE added > ? ORDER BY id DESC",
            (to_db_time(cutoff),),
        ).fetchall()
        return [self._row_to_headline(row) for row in rows]

    def _row_to_headline(self, row: sqlite3.Row) -> Headline:
        return Headline(
            id=row["id"],
            url=HeadlineUrl(address=row["url"], https=bool(row["https"])),
            metadata=json.loads(row["metadata"]),
            feed_id=row["newsfeed"],
            source=row["source"],
            discussion=row["discussion"],
            labels=json.loads(row["labels"]),
            added=from_db_time(row["added"]),
            archived=from_db_time(row["archived"]),
            teaser_image=row["teaser_image"],
            content=row["content"],
            summary=row["summary"],
            favicon=row["favicon"],
            search_index=SearchIndexEntry.parse(row["fts"]),
        )
