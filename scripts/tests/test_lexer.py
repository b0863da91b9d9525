"""
Tests for spec_bindgen/lexer.py
"""

import pytest

from spec_bindgen.errors import LexError
from spec_bindgen.lexer import CONST, IDENT, NOEXCEPT, PUNCT, tokenize


def kinds(text):
    return [(t.kind, t.text) for t in tokenize(text)]


def test_identifiers_and_keywords():
    assert kinds('foo const noexcept _bar9') == [
        (IDENT, 'foo'), (CONST, 'const'), (NOEXCEPT, 'noexcept'), (IDENT, '_bar9'),
    ]


def test_off_thread_is_a_plain_identifier():
    assert kinds('off_thread') == [(IDENT, 'off_thread')]


def test_longest_punctuation_wins():
    assert kinds('a::b&&->c:d&e-f') == [
        (IDENT, 'a'), (PUNCT, '::'), (IDENT, 'b'), (PUNCT, '&&'), (PUNCT, '->'),
        (IDENT, 'c'), (PUNCT, ':'), (IDENT, 'd'), (PUNCT, '&'), (IDENT, 'e'),
        (PUNCT, '-'), (IDENT, 'f'),
    ]


def test_closing_angle_brackets_are_separate_tokens():
    assert [t.text for t in tokenize('a<b<c>>')] == ['a', '<', 'b', '<', 'c', '>', '>']


def test_whitespace_produces_no_tokens():
    assert tokenize('   \t\n ') == []


def test_spans_point_into_source():
    tokens = tokenize('  foo *')
    assert [(t.start, t.end) for t in tokens] == [(2, 5), (6, 7)]


def test_unexpected_character():
    with pytest.raises(LexError) as exc:
        tokenize('foo$bar')
    assert exc.value.span == (3, 4)
    assert "'$'" in exc.value.message
    assert str(exc.value).splitlines()[-1] == '    ' + ' ' * 3 + '^'
