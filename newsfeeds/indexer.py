"""Weighted full-text index entries for headlines.

Each headline is reduced to a sorted map of words to the positions they occur
at, every position tagged with the field it came from. Fields carry fixed
weights (title > description > source > content) that the ranking engine
uses when scoring matches.
"""
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from newsfeeds.models import Headline, HeadlineUrl

_WORD_RE = re.compile(r"[a-z0-9]+")
_LEXEME_RE = re.compile(r"^'([a-z0-9]+)':(\d+[A-D](?:,\d+[A-D])*)$")


class IndexingError(ValueError):
    """Headline does not satisfy the fields indexing relies on."""


class Field(Enum):
    """Searchable headline fields, keyed by their weight letter."""

    TITLE = "A"
    DESCRIPTION = "B"
    SOURCE = "C"
    CONTENT = "D"

    @property
    def weight(self) -> float:
        return FIELD_WEIGHTS[self]


# Same defaults as PostgreSQL ts_rank: {D, C, B, A} = {0.1, 0.2, 0.4, 1.0}
FIELD_WEIGHTS = {
    Field.TITLE: 1.0,
    Field.DESCRIPTION: 0.4,
    Field.SOURCE: 0.2,
    Field.CONTENT: 0.1,
}


def tokenize(text: str | None) -> list[str]:
    """Split text into lowercase words."""
    if not text:
        return []
    return _WORD_RE.findall(text.lower())


@dataclass(frozen=True)
class SearchIndexEntry:
    """Words of a headline with their (position, field) occurrences."""

    lexemes: tuple[tuple[str, tuple[tuple[int, Field], ...]], ...] = ()
    _lookup: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_lookup", dict(self.lexemes))

    @classmethod
    def from_positions(cls, positions: dict[str, list[tuple[int, Field]]]) -> "SearchIndexEntry":
        return cls(
            lexemes=tuple(
                (word, tuple(sorted(occurrences, key=lambda o: o[0])))
                for word, occurrences in sorted(positions.items())
            )
        )

    @classmethod
    def parse(cls, text: str) -> "SearchIndexEntry":
        """Read back the form produced by str()."""
        positions = {}
        for chunk in (text or "").split():
            match = _LEXEME_RE.match(chunk)
            if not match:
                raise ValueError(f"Malformed index lexeme: {chunk!r}")
            word, occurrences = match.groups()
            positions[word] = [(int(p[:-1]), Field(p[-1])) for p in occurrences.split(",")]
        return cls.from_positions(positions)

    def positions(self, word: str) -> tuple[tuple[int, Field], ...]:
        return self._lookup.get(word, ())

    def __len__(self) -> int:
        return len(self.lexemes)

    def __str__(self) -> str:
        return " ".join(
            f"'{word}':" + ",".join(f"{pos}{fld.value}" for pos, fld in occurrences)
            for word, occurrences in self.lexemes
        )


def _as_text(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def index(headline: Headline) -> SearchIndexEntry:
    """Build the search index entry for a headline.

    Positions run on across fields in weight order, so a phrase can only
    match inside one field.
    """
    if headline is None or not isinstance(headline.url, HeadlineUrl):
        raise IndexingError("Headline must have a canonical URL")
    if not isinstance(headline.metadata, Mapping):
        raise IndexingError("Headline metadata must be a mapping")

    sources = (
        (Field.TITLE, _as_text(headline.metadata.get("title"))),
        (Field.DESCRIPTION, _as_text(headline.metadata.get("description"))),
        (Field.SOURCE, _as_text(headline.source)),
        (Field.CONTENT, _as_text(headline.content)),
    )

    positions: dict[str, list[tuple[int, Field]]] = {}
    pos = 0
    for fld, text in sources:
        for word in tokenize(text):
            pos += 1
            positions.setdefault(word, []).append((pos, fld))
    return SearchIndexEntry.from_positions(positions)
