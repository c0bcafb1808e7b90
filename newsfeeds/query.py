"""Search query sanitizer.

Turns free-form search text into a small boolean query tree:

    hello:title world | "exact phrase":content

Field markers (:title, :description, :content) scope the operand right
before them, `&` and `|` are AND and OR, and AND is implied between adjacent
operands. Anything that does not fit is dropped, so sanitize() accepts every
input and never raises.
"""
import re
from dataclasses import dataclass
from typing import NamedTuple

from newsfeeds.indexer import Field, tokenize

_TERM_RE = re.compile(r"[-'a-zA-Z0-9]+")
_SCOPE_RE = re.compile(r":([a-zA-Z]+)")

SCOPE_MARKERS = {
    "title": Field.TITLE,
    "description": Field.DESCRIPTION,
    "content": Field.CONTENT,
    # Weight letters, as rendered by SanitizedQuery
    "a": Field.TITLE,
    "b": Field.DESCRIPTION,
    "c": Field.SOURCE,
    "d": Field.CONTENT,
}

# Parentheses nested deeper than this are ignored
MAX_DEPTH = 32

LPAREN, RPAREN, AND, OR, TERM, PHRASE, SCOPE = (
    "lparen", "rparen", "and", "or", "term", "phrase", "scope",
)
_PUNCTUATION = {"(": LPAREN, ")": RPAREN, "&": AND, "|": OR}


class Token(NamedTuple):
    kind: str
    value: object


@dataclass(frozen=True)
class Term:
    text: str
    words: tuple[str, ...]

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class Phrase:
    text: str  # with its quotes
    words: tuple[str, ...]

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class Group:
    node: object

    def render(self) -> str:
        return f"({self.node.render()})"


@dataclass(frozen=True)
class Scoped:
    node: object
    field: Field

    def render(self) -> str:
        return f"{self.node.render()}:{self.field.value}"


@dataclass(frozen=True)
class And:
    operands: tuple

    def render(self) -> str:
        return " & ".join(op.render() for op in self.operands)


@dataclass(frozen=True)
class Or:
    operands: tuple

    def render(self) -> str:
        return " | ".join(op.render() for op in self.operands)


@dataclass(frozen=True)
class SanitizedQuery:
    """Parsed query; a root of None matches everything."""

    root: object = None

    @property
    def is_empty(self) -> bool:
        return self.root is None

    def __str__(self) -> str:
        return "" if self.root is None else self.root.render()


EMPTY_QUERY = SanitizedQuery()


def _lex(raw: str) -> list[Token]:
    tokens = []
    i, n = 0, len(raw)
    while i < n:
        ch = raw[i]
        if ch.isspace():
            i += 1
            continue
        if ch in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[ch], ch))
            i += 1
            continue
        if ch in "'\"":
            end = raw.find(ch, i + 1)
            if end > i + 1:
                tokens.append(Token(PHRASE, raw[i:end + 1]))
                i = end + 1
                continue
            if ch == '"':
                i += 1
                continue
            # A lone apostrophe is a term character
        if ch == ":":
            match = _SCOPE_RE.match(raw, i)
            if match:
                fld = SCOPE_MARKERS.get(match.group(1).lower())
                if fld is not None:
                    tokens.append(Token(SCOPE, fld))
                i = match.end()
            else:
                i += 1
            continue
        match = _TERM_RE.match(raw, i)
        if match:
            tokens.append(Token(TERM, match.group().lower()))
            i = match.end()
            continue
        i += 1
    return tokens


def _join(cls, operands: list):
    if not operands:
        return None
    if len(operands) == 1:
        return operands[0]
    return cls(tuple(operands))


class _Parser:
    """Recursive descent over the token list; OR binds looser than AND."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def parse(self):
        operands = []
        while self.peek() is not None:
            node = self.parse_or()
            if node is not None:
                operands.append(node)
            # Stray closing parenthesis
            if self.peek() is not None and self.peek().kind == RPAREN:
                self.advance()
        if len(operands) > 1:
            operands = [Group(op) if isinstance(op, Or) else op for op in operands]
        return _join(And, operands)

    def parse_or(self):
        operands = []
        node = self.parse_and()
        if node is not None:
            operands.append(node)
        while self.peek() is not None and self.peek().kind == OR:
            self.advance()
            node = self.parse_and()
            if node is not None:
                operands.append(node)
        return _join(Or, operands)

    def parse_and(self):
        operands = []
        while True:
            token = self.peek()
            if token is None or token.kind in (OR, RPAREN):
                break
            if token.kind == AND:
                self.advance()
                continue
            node = self.parse_unary()
            if node is not None:
                operands.append(node)
        return _join(And, operands)

    def parse_unary(self):
        node = self.parse_primary()
        while self.peek() is not None and self.peek().kind == SCOPE:
            fld = self.advance().value
            if node is not None and not isinstance(node, Scoped):
                node = Scoped(node, fld)
        return node

    def parse_primary(self):
        token = self.advance()
        if token.kind == TERM:
            words = tuple(tokenize(token.value))
            return Term(token.value, words) if words else None
        if token.kind == PHRASE:
            words = tuple(tokenize(token.value[1:-1]))
            return Phrase(token.value, words) if words else None
        if token.kind == LPAREN:
            if self.depth >= MAX_DEPTH:
                return None
            self.depth += 1
            inner = self.parse_or()
            self.depth -= 1
            if self.peek() is not None and self.peek().kind == RPAREN:
                self.advance()
            return Group(inner) if inner is not None else None
        # Scope marker with nothing to scope
        return None


def sanitize(raw: str | None) -> SanitizedQuery:
    """Parse user search text into a SanitizedQuery.

    Empty or unusable input gives EMPTY_QUERY, which matches everything.
    """
    if raw is None:
        return EMPTY_QUERY
    if not isinstance(raw, str):
        raw = str(raw)
    root = _Parser(_lex(raw)).parse()
    return EMPTY_QUERY if root is None else SanitizedQuery(root)
