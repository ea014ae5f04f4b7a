"""Evaluation of full-text predicates for stores without a search engine.

Understands the predicates built by :func:`sitesift.core.query.translate_query`:
``FORMSOF(INFLECTIONAL,word)`` terms, quoted phrases, ``AND``/``OR``/``NOT``
and parentheses. ``NOT`` binds tighter than ``AND``, which binds tighter than
``OR``. Adjacent operands without an operator are combined with ``AND``.

Terms match every word reduced to the same stem; phrases match their exact
word sequence. A page is ranked by its number of hits, a hit in the title
counting three times and a hit in the description twice.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..models.site import Page
from .base import StoreError

TITLE_WEIGHT = 3
DESCRIPTION_WEIGHT = 2
TEXT_WEIGHT = 1

_WORD_RE = re.compile(r"\w+")
_TOKEN_RE = re.compile(
    r'\s*(?:FORMSOF\(INFLECTIONAL,(?P<term>[^)]*)\)'
    r'|"(?P<phrase>[^"]*)"'
    r"|(?P<op>AND|OR|NOT)\b"
    r"|(?P<group>[()]))"
)

# Checked in order; the first matching suffix wins.
_SUFFIXES = (
    ("sses", "ss"),
    ("ies", "y"),
    ("xes", "x"),
    ("ches", "ch"),
    ("shes", "sh"),
    ("ss", "ss"),
    ("ing", ""),
    ("ed", ""),
    ("s", ""),
)
_MIN_STEM_LENGTH = 3

_OPERAND_STARTS = ("term", "phrase", "NOT", "(")


class InvalidPredicateError(StoreError):
    """Raised when a full-text predicate cannot be parsed."""


def inflectional_stem(word: str) -> str:
    """Reduce a lowercase word to a crude inflectional stem.

    ``cats``, ``boxes`` and ``parties`` become ``cat``, ``box`` and ``party``.
    Stems shorter than three letters are never produced.
    """
    for suffix, replacement in _SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) + len(replacement) >= _MIN_STEM_LENGTH:
            return word[: -len(suffix)] + replacement
    return word


def _words(text: str) -> List[str]:
    return _WORD_RE.findall(text.lower())


def _count(haystack: Sequence[str], needle: Tuple[str, ...]) -> int:
    if len(needle) == 1:
        return haystack.count(needle[0])
    n = len(needle)
    return sum(1 for i in range(len(haystack) - n + 1) if tuple(haystack[i : i + n]) == needle)


@dataclass(frozen=True)
class _Field:
    weight: int
    words: List[str]
    stems: List[str]

    @classmethod
    def from_text(cls, weight: int, text: str) -> _Field:
        words = _words(text)
        return cls(weight, words, [inflectional_stem(w) for w in words])


def _page_fields(page: Page) -> Tuple[_Field, ...]:
    return (
        _Field.from_text(TITLE_WEIGHT, page.title),
        _Field.from_text(DESCRIPTION_WEIGHT, page.description),
        _Field.from_text(TEXT_WEIGHT, page.text),
    )


@dataclass(frozen=True)
class WordSequence:
    """A term (matched by stems) or a phrase (matched word for word)."""

    words: Tuple[str, ...]
    stemmed: bool

    def score(self, fields: Sequence[_Field]) -> Optional[int]:
        if not self.words:
            return None
        hits = 0
        for field in fields:
            haystack = field.stems if self.stemmed else field.words
            hits += field.weight * _count(haystack, self.words)
        return hits or None


@dataclass(frozen=True)
class Not:
    """Matches, with no hits of its own, when its operand does not."""

    operand: Node

    def score(self, fields: Sequence[_Field]) -> Optional[int]:
        return None if self.operand.score(fields) is not None else 0


@dataclass(frozen=True)
class And:
    operands: Tuple[Node, ...]

    def score(self, fields: Sequence[_Field]) -> Optional[int]:
        total = 0
        for operand in self.operands:
            hits = operand.score(fields)
            if hits is None:
                return None
            total += hits
        return total


@dataclass(frozen=True)
class Or:
    operands: Tuple[Node, ...]

    def score(self, fields: Sequence[_Field]) -> Optional[int]:
        scores = [s for s in (operand.score(fields) for operand in self.operands) if s is not None]
        return sum(scores) if scores else None


Node = Union[WordSequence, Not, And, Or]


def _tokenize_predicate(predicate: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    pos = 0
    while predicate[pos:].strip():
        match = _TOKEN_RE.match(predicate, pos)
        if match is None:
            raise InvalidPredicateError(f"Cannot parse predicate at position {pos}: {predicate!r}")
        if match.group("term") is not None:
            tokens.append(("term", match.group("term")))
        elif match.group("phrase") is not None:
            tokens.append(("phrase", match.group("phrase")))
        elif match.group("op") is not None:
            tokens.append((match.group("op"), match.group("op")))
        else:
            tokens.append((match.group("group"), match.group("group")))
        pos = match.end()
    return tokens


class _PredicateParser:
    """Recursive descent over predicate tokens."""

    def __init__(self, tokens: List[Tuple[str, str]]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Optional[str]:
        return self.tokens[self.pos][0] if self.pos < len(self.tokens) else None

    def parse(self) -> Node:
        node = self._parse_or()
        if self.pos < len(self.tokens):
            raise InvalidPredicateError(f"Unexpected {self.tokens[self.pos][1]!r} in predicate")
        return node

    def _parse_or(self) -> Node:
        operands = [self._parse_and()]
        while self._peek() == "OR":
            self.pos += 1
            operands.append(self._parse_and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def _parse_and(self) -> Node:
        operands = [self._parse_not()]
        while True:
            kind = self._peek()
            if kind == "AND":
                self.pos += 1
            elif kind not in _OPERAND_STARTS:
                break
            operands.append(self._parse_not())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def _parse_not(self) -> Node:
        if self._peek() == "NOT":
            self.pos += 1
            return Not(self._parse_not())
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        if self.pos >= len(self.tokens):
            raise InvalidPredicateError("Predicate ends with an operator")
        kind, value = self.tokens[self.pos]
        self.pos += 1
        if kind == "term":
            return WordSequence(tuple(inflectional_stem(w) for w in _words(value)), stemmed=True)
        if kind == "phrase":
            return WordSequence(tuple(_words(value)), stemmed=False)
        if kind == "(":
            node = self._parse_or()
            if self._peek() != ")":
                raise InvalidPredicateError("Unclosed group in predicate")
            self.pos += 1
            return node
        raise InvalidPredicateError(f"Unexpected {value!r} in predicate")


def parse_predicate(predicate: str) -> Node:
    """Parse a full-text predicate into a matcher tree.

    Args:
        predicate: Predicate as built by ``translate_query``.

    Returns:
        Root node; its ``score()`` gives the hits of a page or None.

    Raises:
        InvalidPredicateError: If the predicate is empty or malformed.
    """
    tokens = _tokenize_predicate(predicate)
    if not tokens:
        raise InvalidPredicateError("Predicate is empty")
    return _PredicateParser(tokens).parse()


def rank_pages(predicate: str, pages: Iterable[Page]) -> List[Tuple[Page, int]]:
    """Match pages against a predicate.

    Args:
        predicate: Full-text predicate.
        pages: Pages to search.

    Returns:
        Matching pages with their rank, best first. Pages of equal rank keep
        their input order.

    Raises:
        InvalidPredicateError: If the predicate is empty or malformed.
    """
    node = parse_predicate(predicate)
    matches = []
    for page in pages:
        rank = node.score(_page_fields(page))
        if rank is not None:
            matches.append((page, rank))
    return sorted(matches, key=lambda match: -match[1])
