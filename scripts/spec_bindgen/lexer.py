"""
Type expression lexer

Splits a type expression or function signature into tokens.
"""

import re
from dataclasses import dataclass

from .errors import LexError

IDENT = 'ident'
CONST = 'const'
NOEXCEPT = 'noexcept'
PUNCT = 'punct'
KEYWORDS = {'const': CONST, 'noexcept': NOEXCEPT}

# Longest punctuation first so '::' wins over ':' and '&&' over '&'
PUNCTUATION = ['::', '->', '&&', ':', '-', '&', '*', '(', ')', '<', '>', ',']

_TOKEN_RE = re.compile(
    r'(?P<ws>\s+)'
    r'|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)'
    r'|(?P<punct>' + '|'.join(re.escape(p) for p in PUNCTUATION) + r')'
)


@dataclass(frozen=True)
class Token:
    """Lexed token with its source span"""
    kind: str
    text: str
    start: int
    end: int

    def is_punct(self, text: str) -> bool:
        return self.kind == PUNCT and self.text == text


def tokenize(text: str) -> list[Token]:
    """Tokenize text, raising LexError on the first unrecognized character

    Examples:
        'foo const*' -> [ident 'foo', const 'const', punct '*']
    """
    tokens = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise LexError(f'Unexpected character {text[pos]!r}', text, (pos, pos + 1))
        if m.lastgroup == 'ident':
            word = m.group()
            tokens.append(Token(KEYWORDS.get(word, IDENT), word, m.start(), m.end()))
        elif m.lastgroup == 'punct':
            tokens.append(Token(PUNCT, m.group(), m.start(), m.end()))
        pos = m.end()
    return tokens
