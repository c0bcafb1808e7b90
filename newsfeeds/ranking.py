"""Relevance scoring of index entries against sanitized queries."""
from collections.abc import Callable
from datetime import datetime, timedelta

from newsfeeds.indexer import FIELD_WEIGHTS, Field, SearchIndexEntry
from newsfeeds.models import utcnow
from newsfeeds.query import And, Group, Or, Phrase, SanitizedQuery, Scoped, Term

Decay = Callable[[datetime], float]


def half_life_decay(
    half_life: timedelta = timedelta(hours=48),
    clock: Callable[[], datetime] = utcnow,
) -> Decay:
    """Recency modifier that halves every `half_life`.

    Returns a function of a headline's added timestamp giving a weight in
    (0, 1]. Timestamps in the future count as brand new.
    """
    if half_life <= timedelta(0):
        raise ValueError(f"half_life must be positive, got {half_life}")

    def decay(added: datetime) -> float:
        age = max(clock() - added, timedelta(0))
        return 0.5 ** (age / half_life)

    return decay


class RankingEngine:
    """Field-weighted text relevance combined with a recency decay."""

    def __init__(self, decay: Decay, weights: dict[Field, float] | None = None):
        self.decay = decay
        self.weights = dict(FIELD_WEIGHTS if weights is None else weights)

    def relevance(self, entry: SearchIndexEntry, query: SanitizedQuery) -> float:
        """Raw text relevance; zero means the entry does not match."""
        if query.is_empty:
            raise ValueError("Empty query has no relevance; list headlines instead")
        return self._evaluate(query.root, entry, None)

    def score(self, entry: SearchIndexEntry, query: SanitizedQuery, added: datetime) -> float:
        """Combined score in [0, 1]: normalized relevance times decay."""
        relevance = self.relevance(entry, query)
        if relevance <= 0:
            return 0.0
        return self._combine(relevance, added)

    def rank(
        self,
        entry: SearchIndexEntry,
        query: SanitizedQuery,
        added: datetime,
        min_rank: float,
    ) -> float | None:
        """Combined score, or None if the entry is not eligible."""
        relevance = self.relevance(entry, query)
        if relevance <= 0:
            return None
        combined = self._combine(relevance, added)
        return combined if combined >= min_rank else None

    def _combine(self, relevance: float, added: datetime) -> float:
        modifier = min(self.decay(added), 1.0)
        return max(relevance / (relevance + 1.0) * modifier, 0.0)

    def _evaluate(self, node, entry: SearchIndexEntry, scope: Field | None) -> float:
        if isinstance(node, (Term, Phrase)):
            return self._match(node.words, entry, scope)
        if isinstance(node, Scoped):
            # Innermost scope wins
            return self._evaluate(node.node, entry, node.field)
        if isinstance(node, Group):
            return self._evaluate(node.node, entry, scope)
        if isinstance(node, And):
            total = 0.0
            for operand in node.operands:
                value = self._evaluate(operand, entry, scope)
                if value <= 0:
                    return 0.0
                total += value
            return total
        if isinstance(node, Or):
            return sum(self._evaluate(operand, entry, scope) for operand in node.operands)
        raise TypeError(f"Unknown query node: {node!r}")

    def _match(self, words: tuple[str, ...], entry: SearchIndexEntry, scope: Field | None) -> float:
        """Score consecutive occurrences of words within a single field.

        Each further occurrence counts less: w_i / (i + 1)**2, strongest first.
        """
        weights = []
        for pos, fld in entry.positions(words[0]):
            if scope is not None and fld is not scope:
                continue
            if all((pos + i, fld) in entry.positions(word) for i, word in enumerate(words[1:], 1)):
                weights.append(self.weights[fld])
        weights.sort(reverse=True)
        return sum(w / (i + 1) ** 2 for i, w in enumerate(weights))
