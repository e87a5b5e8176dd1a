"""Lenient tokenizer for JSON-like text.

Splits model output into tokens without ever failing: strings may be
single-quoted, typographic-quoted or unterminated, keys and values may be
bare words, comments may appear between tokens. Whitespace is kept as
tokens so that render(tokenize(text)) == text for every input, which lets
each normalizer pass change only what it targets.

String literals are scanned as a unit, so nothing a pass does can touch
characters inside a string by accident.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    COLON = ":"
    COMMA = ","
    STRING = "string"
    NUMBER = "number"
    LITERAL = "literal"
    BAREWORD = "bareword"
    WHITESPACE = "whitespace"
    COMMENT = "comment"


_PUNCTUATION = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ":": TokenKind.COLON,
    ",": TokenKind.COMMA,
}

# Opening quote -> characters that may close it.
_STRING_CLOSERS = {
    '"': '"',
    "'": "'",
    "\u201c": "\u201c\u201d\"",
    "\u201d": "\u201c\u201d\"",
    "\u2018": "\u2018\u2019",
}

_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")

# Accepted by json.loads as-is.
JSON_LITERALS = frozenset({"true", "false", "null", "NaN", "Infinity", "-Infinity"})
# Python/JavaScript spellings models emit instead of JSON literals.
FOREIGN_LITERALS = {
    "True": "true",
    "False": "false",
    "None": "null",
    "undefined": "null",
}

WORD_KINDS = frozenset({TokenKind.NUMBER, TokenKind.LITERAL, TokenKind.BAREWORD})
OPENERS = frozenset({TokenKind.LBRACE, TokenKind.LBRACKET})
CLOSERS = frozenset({TokenKind.RBRACE, TokenKind.RBRACKET})
_VALUE_END = WORD_KINDS | CLOSERS | {TokenKind.STRING}
_VALUE_START = WORD_KINDS | OPENERS | {TokenKind.STRING}


@dataclass
class Token:
    kind: TokenKind
    text: str
    quote: str = ""           # opening delimiter, strings only
    terminated: bool = True   # False for a string cut off by end of text

    @property
    def is_significant(self) -> bool:
        return self.kind not in (TokenKind.WHITESPACE, TokenKind.COMMENT)

    @property
    def is_value_end(self) -> bool:
        """Token can be the last token of a JSON value."""
        return self.kind in _VALUE_END

    @property
    def is_value_start(self) -> bool:
        """Token can be the first token of a JSON value."""
        return self.kind in _VALUE_START

    @property
    def has_newline(self) -> bool:
        return "\n" in self.text


def tokenize(text: str) -> list[Token]:
    """Split text into tokens. Never raises; every character lands in a token."""
    tokens: list[Token] = []
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if ch.isspace():
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            tokens.append(Token(TokenKind.WHITESPACE, text[i:j]))
            i = j
            continue

        if ch in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[ch], ch))
            i += 1
            continue

        if ch in _STRING_CLOSERS:
            j, terminated = _scan_string(text, i)
            tokens.append(Token(TokenKind.STRING, text[i:j], quote=ch, terminated=terminated))
            i = j
            continue

        if text.startswith("//", i):
            j = text.find("\n", i)
            j = n if j == -1 else j
            tokens.append(Token(TokenKind.COMMENT, text[i:j]))
            i = j
            continue

        if text.startswith("/*", i):
            j = text.find("*/", i + 2)
            j = n if j == -1 else j + 2
            tokens.append(Token(TokenKind.COMMENT, text[i:j]))
            i = j
            continue

        j = _scan_word(text, i)
        word = text[i:j]
        tokens.append(Token(classify_word(word), word))
        i = j

    return tokens


def render(tokens: list[Token]) -> str:
    return "".join(tok.text for tok in tokens)


def classify_word(word: str) -> TokenKind:
    if word in JSON_LITERALS or word in FOREIGN_LITERALS:
        return TokenKind.LITERAL
    if _NUMBER_RE.fullmatch(word):
        return TokenKind.NUMBER
    return TokenKind.BAREWORD


def string_body(tok: Token) -> str:
    """Text between the delimiters of a string token."""
    if tok.terminated and len(tok.text) >= 2:
        return tok.text[1:-1]
    return tok.text[1:]


def _scan_string(text: str, start: int) -> tuple[int, bool]:
    """Return (end index, terminated) for the string opening at start."""
    closers = _STRING_CLOSERS[text[start]]
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch in closers:
            return i + 1, True
        i += 1
    return n, False


def _scan_word(text: str, start: int) -> int:
    """Return the end index of the bare word starting at start.

    A word runs until whitespace, punctuation or a quote. "://" is kept
    inside the word so URLs stay whole, and an apostrophe between letters
    ("don't") does not start a string.
    """
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            break
        if ch in _PUNCTUATION:
            if ch == ":" and i > start and text.startswith("://", i):
                i += 3
                continue
            break
        if ch in _STRING_CLOSERS:
            if (
                ch == "'"
                and i > start
                and text[i - 1].isalnum()
                and i + 1 < n
                and text[i + 1].isalpha()
            ):
                i += 1
                continue
            break
        i += 1
    return i


def iter_with_context(tokens: list[Token]) -> Iterator[tuple[int, Token, TokenKind | None]]:
    """Yield (index, token, container) for each token.

    container is the kind of the innermost open bracket (LBRACE or
    LBRACKET) enclosing the token, or None at top level. For a closing
    bracket it is the container being closed.
    """
    stack: list[TokenKind] = []
    for i, tok in enumerate(tokens):
        yield i, tok, (stack[-1] if stack else None)
        if tok.kind in OPENERS:
            stack.append(tok.kind)
        elif tok.kind in CLOSERS and stack:
            stack.pop()


def next_significant(tokens: list[Token], i: int) -> int | None:
    """Index of the first significant token after i, or None."""
    for j in range(i + 1, len(tokens)):
        if tokens[j].is_significant:
            return j
    return None


def prev_significant(tokens: list[Token], i: int) -> int | None:
    """Index of the last significant token before i, or None."""
    for j in range(i - 1, -1, -1):
        if tokens[j].is_significant:
            return j
    return None
