"""Translation of user search queries into SQL Server full-text predicates.

The query language is a small boolean one: bare words, ``"quoted phrases"``,
``and``/``or``/``not`` and parentheses. Words are expanded to their
inflectional forms, juxtaposed operands are joined with ``AND``::

    >>> translate_query('"big cat" not dog')
    '"big cat" AND NOT FORMSOF(INFLECTIONAL,dog)'

Malformed boolean structure (dangling or doubled operators, unbalanced or
empty groups) is dropped silently instead of being rejected.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence

QUOTE = '"'
OPEN_GROUP = "("
CLOSE_GROUP = ")"


class InvalidQueryError(ValueError):
    """Raised when a query is empty or whitespace only."""


class TokenKind(str, Enum):
    """Kinds of query tokens."""
    TERM = "term"
    PHRASE = "phrase"
    AND = "and"
    OR = "or"
    NOT = "not"
    OPEN = "open"
    CLOSE = "close"


BINARY_OPERATORS = (TokenKind.AND, TokenKind.OR)
UNARY_OPERATORS = (TokenKind.NOT,)
OPERANDS = (TokenKind.TERM, TokenKind.PHRASE)

_KEYWORDS = {
    "and": TokenKind.AND,
    "or": TokenKind.OR,
    "not": TokenKind.NOT,
    OPEN_GROUP: TokenKind.OPEN,
    CLOSE_GROUP: TokenKind.CLOSE,
}


@dataclass(frozen=True)
class Token:
    """A token of a search query."""

    kind: TokenKind
    text: str

    @classmethod
    def classify(cls, text: str) -> Token:
        """Create a token, deciding its kind from its text."""
        if text.startswith(QUOTE):
            return cls(TokenKind.PHRASE, text)
        return cls(_KEYWORDS.get(text, TokenKind.TERM), text)


def _check_query(query: Optional[str]) -> str:
    if query is None or not query.strip():
        raise InvalidQueryError("Query cannot be empty or whitespace only")
    return query


def tokenize_query(query: str) -> List[Token]:
    """Split a query into tokens.

    Whitespace separates tokens except inside quotes, where it is kept as a
    literal space. A closed quote yields one phrase token including its
    quotes. Parentheses outside quotes are tokens of their own.

    Raises:
        InvalidQueryError: If the query is empty or whitespace only.
    """
    return list(_iter_tokens(_check_query(query).lower()))


def _iter_tokens(s: str) -> Iterator[Token]:
    current = ""
    in_quote = False

    for c in s:
        if c.isspace():
            if in_quote:
                current += " "
            elif current.strip():
                yield Token.classify(current)
                current = ""
        elif c == QUOTE:
            if in_quote:
                if current.strip():
                    yield Token.classify(f"{QUOTE}{current}{QUOTE}")
                current = ""
                in_quote = False
            else:
                in_quote = True
        elif c in (OPEN_GROUP, CLOSE_GROUP):
            if in_quote:
                current += c
            else:
                if current.strip():
                    yield Token.classify(current)
                current = ""
                yield Token.classify(c)
        else:
            current += c

    if current.strip():
        if in_quote:
            current = f"{QUOTE}{current}{QUOTE}"
        yield Token.classify(current)


def _balance_groups(tokens: Sequence[Token]) -> List[Token]:
    """Drop unmatched and empty groups, close groups left open."""
    result: List[Token] = []
    open_at: List[int] = []

    def has_operand(start: int) -> bool:
        return any(t.kind in OPERANDS for t in result[start:])

    for token in tokens:
        if token.kind is TokenKind.OPEN:
            open_at.append(len(result))
            result.append(token)
        elif token.kind is TokenKind.CLOSE:
            if not open_at:
                continue
            start = open_at.pop()
            if has_operand(start + 1):
                result.append(token)
            else:
                del result[start:]
        else:
            result.append(token)

    for start in reversed(open_at):
        if has_operand(start + 1):
            result.append(Token(TokenKind.CLOSE, CLOSE_GROUP))
        else:
            del result[start:]

    return result


def _operand_follows(tokens: Sequence[Token], start: int) -> bool:
    """Whether an operand follows ``start`` within the current group."""
    depth = 0
    for token in tokens[start:]:
        if token.kind in OPERANDS:
            return True
        if token.kind is TokenKind.OPEN:
            depth += 1
        elif token.kind is TokenKind.CLOSE:
            if depth == 0:
                return False
            depth -= 1
    return False


def parse_query_tokens(tokens: Sequence[Token]) -> str:
    """Build a full-text predicate from query tokens.

    Juxtaposed terms, groups and negations are joined with ``AND``. Phrases
    are emitted verbatim and never get an implicit ``AND``, so a phrase
    following an operand yields adjacent operands (``cat "big dog"`` becomes
    ``FORMSOF(INFLECTIONAL,cat) "big dog"``).

    Returns:
        The predicate; empty if no token yields an operand.
    """
    tokens = _balance_groups(tokens)
    pieces: List[str] = []
    # The start of the query behaves like a preceding operator.
    last_is_operator = True

    for i, token in enumerate(tokens):
        if token.kind in BINARY_OPERATORS:
            # Ignore two consecutive operators and operators without right operand
            if last_is_operator or not _operand_follows(tokens, i + 1):
                continue
            pieces.append(token.text.upper())
            last_is_operator = True
        elif token.kind in UNARY_OPERATORS:
            if not _operand_follows(tokens, i + 1):
                continue
            if not last_is_operator:
                pieces.append("AND")
            pieces.append(token.text.upper())
            last_is_operator = True
        elif token.kind is TokenKind.OPEN:
            if not last_is_operator:
                pieces.append("AND")
            pieces.append(OPEN_GROUP)
            last_is_operator = True
        elif token.kind is TokenKind.CLOSE:
            pieces.append(CLOSE_GROUP)
            last_is_operator = False
        elif token.kind is TokenKind.PHRASE:
            pieces.append(token.text)
            last_is_operator = False
        else:
            if not last_is_operator:
                pieces.append("AND")
            pieces.append(f"FORMSOF(INFLECTIONAL,{token.text})")
            last_is_operator = False

    return " ".join(pieces)


def translate_query(query: str) -> str:
    """Translate a user query into a SQL Server full-text predicate.

    Args:
        query: Query as typed by the user.

    Returns:
        Predicate usable with ``CONTAINS``/``CONTAINSTABLE``. It is empty
        when the query holds operators only.

    Raises:
        InvalidQueryError: If the query is empty or whitespace only.
    """
    return parse_query_tokens(tokenize_query(query))
