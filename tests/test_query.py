"""Tests for the full-text query translator."""
import pytest

from sitesift.core.query import (
    InvalidQueryError,
    Token,
    TokenKind,
    parse_query_tokens,
    tokenize_query,
    translate_query,
)


@pytest.mark.parametrize(
    "query,expected",
    [
        ("cat dog", "FORMSOF(INFLECTIONAL,cat) AND FORMSOF(INFLECTIONAL,dog)"),
        ("cat or dog", "FORMSOF(INFLECTIONAL,cat) OR FORMSOF(INFLECTIONAL,dog)"),
        ('"big cat" not dog', '"big cat" AND NOT FORMSOF(INFLECTIONAL,dog)'),
        ("cat and", "FORMSOF(INFLECTIONAL,cat)"),
        ("Cat AND Dog", "FORMSOF(INFLECTIONAL,cat) AND FORMSOF(INFLECTIONAL,dog)"),
        ("cat and or dog", "FORMSOF(INFLECTIONAL,cat) AND FORMSOF(INFLECTIONAL,dog)"),
        ("cat not", "FORMSOF(INFLECTIONAL,cat)"),
        ("not cat", "NOT FORMSOF(INFLECTIONAL,cat)"),
        ("cat or not dog", "FORMSOF(INFLECTIONAL,cat) OR NOT FORMSOF(INFLECTIONAL,dog)"),
        ("and cat", "FORMSOF(INFLECTIONAL,cat)"),
        ("cat and not", "FORMSOF(INFLECTIONAL,cat)"),
        ('"big cat"', '"big cat"'),
        ('"big   cat', '"big   cat"'),
        ('cat "big dog"', 'FORMSOF(INFLECTIONAL,cat) "big dog"'),
        ("not cat dog", "NOT FORMSOF(INFLECTIONAL,cat) AND FORMSOF(INFLECTIONAL,dog)"),
    ],
)
def test_translate_query(query, expected):
    """Test translation of user queries to predicates."""
    assert translate_query(query) == expected


@pytest.mark.parametrize(
    "query,expected",
    [
        (
            "(cat or dog) fish",
            "( FORMSOF(INFLECTIONAL,cat) OR FORMSOF(INFLECTIONAL,dog) ) AND FORMSOF(INFLECTIONAL,fish)",
        ),
        (
            "fish (cat or dog",
            "FORMSOF(INFLECTIONAL,fish) AND ( FORMSOF(INFLECTIONAL,cat) OR FORMSOF(INFLECTIONAL,dog) )",
        ),
        ("cat) dog", "FORMSOF(INFLECTIONAL,cat) AND FORMSOF(INFLECTIONAL,dog)"),
        ("cat () dog", "FORMSOF(INFLECTIONAL,cat) AND FORMSOF(INFLECTIONAL,dog)"),
        ("cat (and) or dog", "FORMSOF(INFLECTIONAL,cat) OR FORMSOF(INFLECTIONAL,dog)"),
        ('"a (b)"', '"a (b)"'),
    ],
)
def test_translate_query_groups(query, expected):
    """Test that parentheses are balanced and empty groups dropped."""
    assert translate_query(query) == expected


@pytest.mark.parametrize("query", [None, "", "   ", "\t\n"])
def test_translate_query_rejects_empty(query):
    """Test that empty queries are rejected."""
    with pytest.raises(InvalidQueryError):
        translate_query(query)


def test_invalid_query_is_value_error():
    """Test that callers can catch ValueError."""
    with pytest.raises(ValueError):
        translate_query(" ")


@pytest.mark.parametrize("query", ["and", "or not", "not", "( )", "and or and"])
def test_operators_only_yield_empty_predicate(query):
    """Test that queries without operands never raise."""
    assert translate_query(query) == ""


def test_tokenize_query():
    """Test tokenization of words, phrases, operators and groups."""
    tokens = tokenize_query('Big "Red  Cat" AND (dog)')
    assert tokens == [
        Token(TokenKind.TERM, "big"),
        Token(TokenKind.PHRASE, '"red  cat"'),
        Token(TokenKind.AND, "and"),
        Token(TokenKind.OPEN, "("),
        Token(TokenKind.TERM, "dog"),
        Token(TokenKind.CLOSE, ")"),
    ]


def test_tokenize_keywords_inside_quotes_are_phrases():
    """Test that quoted keywords are not operators."""
    assert tokenize_query('"and"') == [Token(TokenKind.PHRASE, '"and"')]


def test_tokenize_skips_blank_phrase():
    """Test that an empty pair of quotes yields no token."""
    assert tokenize_query('cat "  " dog') == [
        Token(TokenKind.TERM, "cat"),
        Token(TokenKind.TERM, "dog"),
    ]


def test_parse_query_tokens_accepts_plain_tokens():
    """Test parsing tokens built by hand."""
    tokens = [Token.classify("cat"), Token.classify("or"), Token.classify('"big dog"')]
    assert parse_query_tokens(tokens) == 'FORMSOF(INFLECTIONAL,cat) OR "big dog"'
