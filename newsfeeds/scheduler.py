"""Decide which feeds are due for a crawl and record crawl results."""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from newsfeeds.models import CrawlReport, FeedCrawlRequest, Headline, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SchedulePlan:
    """Outcome of one scheduling pass."""

    requests: list[FeedCrawlRequest] = field(default_factory=list)
    errors: dict[int, Exception] = field(default_factory=dict)


class FeedScheduler:
    """Compute crawl requests from persisted feed state.

    Never touches the network and never writes while planning. Two
    overlapping passes can both emit the same feed; de-duplicating in-flight
    polls is the crawler's job.
    """

    def __init__(self, store):
        self.store = store

    def plan(self, now: datetime | None = None) -> SchedulePlan:
        """Due feeds ordered by id, plus any feeds that could not be checked."""
        now = now or utcnow()
        plan = SchedulePlan()

        def unreadable(feed_id: int, e: Exception) -> None:
            logger.warning(f"Could not read feed {feed_id}: {e}")
            plan.errors[feed_id] = e

        for feed in sorted(self.store.list_feeds(on_error=unreadable), key=lambda f: f.id):
            try:
                if feed.is_due(now):
                    plan.requests.append(FeedCrawlRequest.for_feed(feed))
            except Exception as e:
                logger.warning(f"Could not schedule feed {feed.id} ({feed.feedname}): {e}")
                plan.errors[feed.id] = e
        logger.debug(f"{len(plan.requests)} feeds due, {len(plan.errors)} errors")
        return plan

    def pending_feeds(self, now: datetime | None = None) -> list[FeedCrawlRequest]:
        return self.plan(now).requests

    def record_crawl(self, report: CrawlReport, polled_at: datetime | None = None) -> list[Headline]:
        """Persist a finished poll: new headlines first, then the feed state.

        The feed's `updated` only moves once every headline is stored, so a
        failed ingest leaves the feed due for another try.
        """
        polled_at = polled_at or utcnow()
        self.store.get_feed(report.feed_id)
        stored = []
        for headline in report.headlines:
            if headline.feed_id is None:
                headline.feed_id = report.feed_id
            stored.append(self.store.upsert_headline(headline))
        self.store.update_feed(report.feed_id, polled_at, report.next_resume_cursor)
        logger.info(
            f"Feed {report.feed_id}: stored {len(stored)} headlines, "
            f"next cursor {report.next_resume_cursor!r}"
        )
        return stored
