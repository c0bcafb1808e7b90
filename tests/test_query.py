"""Tests for the search query sanitizer."""
import pytest

from newsfeeds.indexer import Field
from newsfeeds.query import And, Group, Or, Phrase, Scoped, Term, sanitize


@pytest.mark.parametrize("raw", ["", "   ", "\t\n", None])
def test_blank_input_is_empty_query(raw):
    """Blank input should give the match-all query."""
    query = sanitize(raw)
    assert query.is_empty
    assert str(query) == ""


@pytest.mark.parametrize("raw", ["&", "| & |", "&&||", ":title", ")))(((", "!@#$%^*"])
def test_input_without_terms_is_empty_query(raw):
    """Operators, markers and punctuation alone should leave nothing to search."""
    assert sanitize(raw).is_empty


def test_deeply_nested_unmatched_parentheses():
    """Thousands of open parentheses should not blow the stack."""
    query = sanitize("(" * 5000 + "foo")
    assert not query.is_empty
    assert "foo" in str(query)

    query = sanitize("foo " + ")" * 5000 + " bar")
    assert str(query) == "foo & bar"


def test_scoped_term_and_unscoped_term_joined_by_and():
    """hello:title world scopes hello to the title and ANDs in world."""
    query = sanitize("hello:title world")

    assert query.root == And((
        Scoped(Term("hello", ("hello",)), Field.TITLE),
        Term("world", ("world",)),
    ))
    assert str(query) == "hello:A & world"


def test_field_markers_map_to_weight_letters():
    assert str(sanitize("a:title b:description c:content")) == "a:A & b:B & c:D"


def test_or_binds_looser_than_and():
    query = sanitize("a | b c")

    assert isinstance(query.root, Or)
    assert query.root.operands[0] == Term("a", ("a",))
    assert isinstance(query.root.operands[1], And)
    assert str(query) == "a | b & c"


def test_explicit_and_is_same_as_implied():
    assert sanitize("solar & power") == sanitize("solar power")


def test_trailing_and_leading_operators_are_stripped():
    assert str(sanitize("foo &")) == "foo"
    assert str(sanitize("foo |")) == "foo"
    assert str(sanitize("& foo")) == "foo"
    assert str(sanitize("| foo || bar")) == "foo | bar"


def test_quoted_phrases_keep_their_quotes():
    """Spaces inside quotes should not split the phrase."""
    query = sanitize('"climate change":description')
    assert query.root == Scoped(Phrase('"climate change"', ("climate", "change")), Field.DESCRIPTION)
    assert str(query) == '"climate change":B'

    assert str(sanitize("'open source' news")) == "'open source' & news"


def test_unmatched_quote_is_dropped():
    assert str(sanitize('foo "bar')) == "foo & bar"


def test_apostrophes_and_hyphens_stay_in_terms():
    query = sanitize("Don't well-known")

    assert query.root.operands[0] == Term("don't", ("don", "t"))
    assert query.root.operands[1] == Term("well-known", ("well", "known"))


def test_terms_are_lowercased():
    assert str(sanitize("NASA Launch")) == "nasa & launch"


def test_unknown_marker_is_dropped():
    assert str(sanitize("foo:bogus bar")) == "foo & bar"


def test_first_marker_wins():
    assert str(sanitize("foo:title:content")) == "foo:A"


def test_scoped_group():
    """A marker after a group scopes the whole group."""
    query = sanitize("(a | b):title c")

    assert query.root.operands[0] == Scoped(
        Group(Or((Term("a", ("a",)), Term("b", ("b",))))),
        Field.TITLE,
    )
    assert str(query) == "(a | b):A & c"


def test_unterminated_group_closes_at_end():
    assert str(sanitize("(a b")) == "(a & b)"


def test_stray_close_keeps_or_grouped():
    """Text after a stray ')' should not change how the OR reads."""
    assert str(sanitize("a | b ) c")) == "(a | b) & c"


@pytest.mark.parametrize("raw", [
    "hello:title world",
    "(a | b):title c",
    '"climate change":description | energy',
    "a | b ) c",
    "x:content & (y | 'z w')",
])
def test_rendered_query_sanitizes_to_itself(raw):
    query = sanitize(raw)
    assert sanitize(str(query)) == query


def test_non_string_input():
    assert str(sanitize(2024)) == "2024"
