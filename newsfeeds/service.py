"""Browse and search incoming news headlines."""
import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from newsfeeds.indexer import index
from newsfeeds.models import RankedResult, utcnow
from newsfeeds.query import sanitize
from newsfeeds.ranking import RankingEngine

logger = logging.getLogger(__name__)

DEFAULT_SINCE = timedelta(days=7)
DEFAULT_MIN_RANK = 0.1
DEFAULT_LIMIT = 2000

# Ranked scores never exceed 1.0, so browse results always sort above them
BROWSE_RANK = 10.0


class HeadlineQueryService:
    """Ranked search when there is query text, newest-first listing otherwise.

    `store` needs list_headlines_since(cutoff); the Database class provides it.
    """

    def __init__(self, store, engine: RankingEngine, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.engine = engine
        self.clock = clock

    def query(
        self,
        since: timedelta = DEFAULT_SINCE,
        raw_query: str = "",
        min_rank: float = DEFAULT_MIN_RANK,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[RankedResult]:
        """Headlines added within `since`, ordered and paginated.

        With search text, only headlines ranking at least `min_rank` are
        returned, best first with ties going to the newest. Without it every
        headline in the window is returned newest first and `min_rank` is
        ignored.
        """
        if limit < 0 or offset < 0:
            raise ValueError(f"limit and offset must not be negative (got {limit}, {offset})")

        cutoff = self.clock() - since
        sanitized = sanitize(raw_query)
        headlines = self.store.list_headlines_since(cutoff)

        if sanitized.is_empty:
            results = [RankedResult(id=h.id, rank=BROWSE_RANK, headline=h) for h in headlines]
            results.sort(key=lambda r: r.id, reverse=True)
        else:
            logger.debug(f"Ranking {len(headlines)} headlines for: {sanitized}")
            results = []
            for headline in headlines:
                entry = headline.search_index
                if entry is None:
                    entry = index(headline)
                rank = self.engine.rank(entry, sanitized, headline.added, min_rank)
                if rank is not None:
                    results.append(RankedResult(id=headline.id, rank=rank, headline=headline))
            results.sort(key=lambda r: (r.rank, r.id), reverse=True)

        return results[offset:offset + limit]

    search = query

    def search_as_json(
        self,
        since: timedelta = DEFAULT_SINCE,
        raw_query: str = "",
        min_rank: float = DEFAULT_MIN_RANK,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> str:
        """Same as query(), serialized as a JSON array."""
        results = self.query(since, raw_query, min_rank, limit, offset)
        return json.dumps([result.to_dict() for result in results])
