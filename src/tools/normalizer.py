"""Syntax normalization passes for near-JSON model output.

Each pass fixes one class of defect and leaves everything else
byte-for-byte intact:

- strip_comments:          // and /* */ comments
- unify_quotes:            'single' and “typographic” string delimiters
- quote_keys:              {name: ...} -> {"name": ...}
- insert_missing_colons:   {"name" "Alice"} -> {"name": "Alice"}
- insert_object_commas:    {"a": 1 "b": 2} -> {"a": 1, "b": 2}
- insert_array_commas:     ["js" "ts"] -> ["js", "ts"]
- remove_extra_commas:     [1, 2,] / {,"a": 1} / [1,, 2]
- quote_bare_values:       {"level": Senior Engineer} -> {"level": "Senior Engineer"}
- balance_brackets:        unterminated strings, missing or mismatched closers

Passes work on the token stream from src.tools.scanner, so string
contents are never rewritten, and every pass is idempotent. normalize()
runs them all in the order above. None of them raise.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable

from src.tools.scanner import (
    CLOSERS,
    FOREIGN_LITERALS,
    OPENERS,
    WORD_KINDS,
    Token,
    TokenKind,
    iter_with_context,
    next_significant,
    prev_significant,
    render,
    string_body,
    tokenize,
)

logger = logging.getLogger(__name__)

_CLOSER_FOR = {
    TokenKind.LBRACE: TokenKind.RBRACE,
    TokenKind.LBRACKET: TokenKind.RBRACKET,
}
_OPENER_FOR = {closer: opener for opener, closer in _CLOSER_FOR.items()}

# Quote that terminates a string opened with the given delimiter.
_STRING_TERMINATOR = {"'": "'", "\u2018": "\u2019"}


# ── Token helpers ───────────────────────────────────────────────


def _string_token(value: str) -> Token:
    return Token(TokenKind.STRING, json.dumps(value, ensure_ascii=False), quote='"')


def _punct(kind: TokenKind) -> Token:
    return Token(kind, kind.value)


def _last_significant(out: list[Token]) -> int | None:
    for k in range(len(out) - 1, -1, -1):
        if out[k].is_significant:
            return k
    return None


def _insert_after_significant(out: list[Token], *new: Token) -> None:
    """Insert tokens right after the last significant token of out."""
    k = _last_significant(out)
    at = 0 if k is None else k + 1
    out[at:at] = list(new)


def _apply(text: str, fix: Callable[[list[Token]], list[Token]]) -> str:
    if not text:
        return text
    return render(fix(tokenize(text)))


# ── Passes ──────────────────────────────────────────────────────


def strip_comments(text: str) -> str:
    """Remove JavaScript-style comments outside string literals."""
    return _apply(text, lambda tokens: [t for t in tokens if t.kind != TokenKind.COMMENT])


def unify_quotes(text: str) -> str:
    """Re-delimit single-quoted and typographic-quoted strings with double quotes.

    Double-quoted strings, including any apostrophes inside them, are left
    untouched.
    """
    return _apply(text, _unify_quotes)


def _unify_quotes(tokens: list[Token]) -> list[Token]:
    out = []
    for tok in tokens:
        if tok.kind == TokenKind.STRING and tok.quote != '"':
            tok = _requote(tok)
        out.append(tok)
    return out


def _requote(tok: Token) -> Token:
    body = string_body(tok)
    chars: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            # \' is not a JSON escape
            chars.append(nxt if nxt == "'" else ch + nxt)
            i += 2
            continue
        chars.append('\\"' if ch == '"' else ch)
        i += 1
    text = '"' + "".join(chars)
    if tok.terminated:
        text += '"'
    return Token(TokenKind.STRING, text, quote='"', terminated=tok.terminated)


def quote_keys(text: str) -> str:
    """Quote bare object keys: a word in object context followed by ':'."""
    return _apply(text, _quote_keys)


def _quote_keys(tokens: list[Token]) -> list[Token]:
    out = list(tokens)
    for i, tok, container in iter_with_context(tokens):
        if tok.kind not in WORD_KINDS or container != TokenKind.LBRACE:
            continue
        nxt = next_significant(tokens, i)
        if nxt is None or tokens[nxt].kind != TokenKind.COLON:
            continue
        prev = prev_significant(tokens, i)
        if prev is not None and tokens[prev].kind == TokenKind.COLON:
            continue  # value position, e.g. "time": 10:30
        out[i] = _string_token(tok.text)
    return out


def insert_missing_colons(text: str) -> str:
    """Insert ':' between a key and its value when the model left it out."""
    return _apply(text, _insert_missing_colons)


def _insert_missing_colons(tokens: list[Token]) -> list[Token]:
    out = []
    for i, tok, container in iter_with_context(tokens):
        out.append(tok)
        if tok.kind != TokenKind.STRING or container != TokenKind.LBRACE:
            continue
        prev = prev_significant(tokens, i)
        if prev is None or tokens[prev].kind not in (TokenKind.LBRACE, TokenKind.COMMA):
            continue
        nxt = next_significant(tokens, i)
        if nxt is None or not tokens[nxt].is_value_start:
            continue
        after = next_significant(tokens, nxt)
        if after is not None and tokens[after].kind == TokenKind.COLON:
            continue  # the next token is a key; this one is missing its value
        out.append(_punct(TokenKind.COLON))
    return out


def insert_object_commas(text: str) -> str:
    """Insert ',' between a value and the next "key": in an object."""
    return _apply(text, _insert_object_commas)


def _insert_object_commas(tokens: list[Token]) -> list[Token]:
    out: list[Token] = []
    for i, tok, container in iter_with_context(tokens):
        if tok.kind == TokenKind.STRING and container == TokenKind.LBRACE:
            nxt = next_significant(tokens, i)
            prev = prev_significant(tokens, i)
            if (
                nxt is not None
                and tokens[nxt].kind == TokenKind.COLON
                and prev is not None
                and tokens[prev].is_value_end
            ):
                _insert_after_significant(out, _punct(TokenKind.COMMA))
        out.append(tok)
    return out


def insert_array_commas(text: str) -> str:
    """Insert ',' between adjacent array elements.

    Bare words on the same line ("Machine Learning") are one multi-word
    value, not two elements; quote_bare_values turns them into one string.
    """
    return _apply(text, _insert_array_commas)


def _insert_array_commas(tokens: list[Token]) -> list[Token]:
    out: list[Token] = []
    for i, tok, container in iter_with_context(tokens):
        if container == TokenKind.LBRACKET and tok.is_value_start:
            prev = prev_significant(tokens, i)
            if (
                prev is not None
                and tokens[prev].is_value_end
                and not _same_bare_run(tokens, prev, i)
            ):
                _insert_after_significant(out, _punct(TokenKind.COMMA))
        out.append(tok)
    return out


def _same_bare_run(tokens: list[Token], prev: int, i: int) -> bool:
    left, right = tokens[prev], tokens[i]
    if left.kind not in WORD_KINDS or right.kind not in WORD_KINDS:
        return False
    if TokenKind.BAREWORD not in (left.kind, right.kind):
        return False
    return all(
        t.kind == TokenKind.WHITESPACE and not t.has_newline
        for t in tokens[prev + 1:i]
    )


def remove_extra_commas(text: str) -> str:
    """Drop trailing commas before '}'/']', leading commas and doubled commas."""
    return _apply(text, _remove_extra_commas)


def _remove_extra_commas(tokens: list[Token]) -> list[Token]:
    out: list[Token] = []
    for i, tok in enumerate(tokens):
        if tok.kind == TokenKind.COMMA:
            k = _last_significant(out)
            if k is None or out[k].kind in (TokenKind.COMMA, TokenKind.LBRACE, TokenKind.LBRACKET):
                continue
            nxt = _next_significant_non_comma(tokens, i)
            if nxt is not None and tokens[nxt].kind in CLOSERS:
                continue
        out.append(tok)
    return out


def _next_significant_non_comma(tokens: list[Token], i: int) -> int | None:
    j = next_significant(tokens, i)
    while j is not None and tokens[j].kind == TokenKind.COMMA:
        j = next_significant(tokens, j)
    return j


def quote_bare_values(text: str) -> str:
    """Quote unquoted values; keep numbers and JSON literals.

    A run of bare words on one line in value position becomes a single
    string. True/False/None/undefined become their JSON spelling. This
    stringifies anything that is not clearly a number or literal, which
    is the intended best-effort behavior for model output.
    """
    return _apply(text, _quote_bare_values)


def _quote_bare_values(tokens: list[Token]) -> list[Token]:
    out: list[Token] = []
    stack: list[TokenKind] = []
    last: TokenKind | None = None
    i = 0
    n = len(tokens)

    while i < n:
        tok = tokens[i]
        container = stack[-1] if stack else None
        if tok.kind in WORD_KINDS and _in_value_position(container, last):
            end = _bare_run_end(tokens, i)
            value = _bare_value(tokens[i:end])
            out.append(value)
            last = value.kind
            i = end
            continue

        if tok.kind in OPENERS:
            stack.append(tok.kind)
        elif tok.kind in CLOSERS and stack:
            stack.pop()
        if tok.is_significant:
            last = tok.kind
        out.append(tok)
        i += 1

    return out


def _in_value_position(container: TokenKind | None, last: TokenKind | None) -> bool:
    if container == TokenKind.LBRACE:
        return last == TokenKind.COLON
    if container == TokenKind.LBRACKET:
        return last in (TokenKind.LBRACKET, TokenKind.COMMA)
    return False


def _bare_run_end(tokens: list[Token], i: int) -> int:
    """End index (exclusive) of the run of words starting at i on one line."""
    end = i + 1
    j = i + 1
    while j < len(tokens):
        t = tokens[j]
        if t.kind in WORD_KINDS:
            end = j + 1
        elif not (t.kind == TokenKind.WHITESPACE and not t.has_newline):
            break
        j += 1
    return end


def _bare_value(run: list[Token]) -> Token:
    if len(run) == 1:
        tok = run[0]
        if tok.kind == TokenKind.NUMBER:
            return tok
        if tok.kind == TokenKind.LITERAL:
            if tok.text in FOREIGN_LITERALS:
                return Token(TokenKind.LITERAL, FOREIGN_LITERALS[tok.text])
            return tok
    return _string_token(render(run))


def balance_brackets(text: str) -> str:
    """Close whatever the model left open.

    - unterminated strings get their closing quote
    - an array still open when a new object key appears is closed there
    - a mismatched closer first closes the containers nested inside it
    - closers with nothing to close are dropped
    - containers still open at the end are closed, innermost first
    Before any closer, a dangling comma or object key is dropped and a
    dangling colon gets a null value.
    """
    return _apply(text, _balance_brackets)


def _balance_brackets(tokens: list[Token]) -> list[Token]:
    out: list[Token] = []
    stack: list[TokenKind] = []

    for i, tok in enumerate(tokens):
        if tok.kind == TokenKind.STRING and not tok.terminated:
            tok = _close_string(tok)

        if tok.kind in OPENERS:
            stack.append(tok.kind)
            out.append(tok)
            continue

        if tok.kind in CLOSERS:
            opener = _OPENER_FOR[tok.kind]
            if opener not in stack:
                continue
            while stack[-1] != opener:
                _close(out, stack.pop())
            _close(out, stack.pop(), tok)
            continue

        if (
            tok.kind == TokenKind.STRING
            and len(stack) >= 2
            and stack[-1] == TokenKind.LBRACKET
            and stack[-2] == TokenKind.LBRACE
        ):
            nxt = next_significant(tokens, i)
            if nxt is not None and tokens[nxt].kind == TokenKind.COLON:
                _close_array_before_key(out)
                stack.pop()

        out.append(tok)

    while stack:
        _close(out, stack.pop())
    return out


def _close_string(tok: Token) -> Token:
    text = tok.text
    trailing = len(text) - len(text.rstrip("\\"))
    if trailing % 2 and len(text) > 1:
        text = text[:-1]
    text += _STRING_TERMINATOR.get(tok.quote, '"')
    return Token(TokenKind.STRING, text, quote=tok.quote, terminated=True)


def _close(out: list[Token], opener: TokenKind, closer: Token | None = None) -> None:
    """Append the closer for opener, tidying what precedes it."""
    while True:
        k = _last_significant(out)
        if k is None:
            break
        last = out[k]
        if last.kind == TokenKind.COMMA:
            del out[k]
            continue
        if last.kind == TokenKind.COLON:
            out.insert(k + 1, Token(TokenKind.LITERAL, "null"))
            break
        if opener == TokenKind.LBRACE and _is_dangling_key(out, k):
            del out[k:]
            continue
        break
    out.append(closer or _punct(_CLOSER_FOR[opener]))


def _is_dangling_key(out: list[Token], k: int) -> bool:
    if out[k].kind != TokenKind.STRING and out[k].kind not in WORD_KINDS:
        return False
    p = _last_significant(out[:k])
    return p is not None and out[p].kind in (TokenKind.LBRACE, TokenKind.COMMA)


def _close_array_before_key(out: list[Token]) -> None:
    k = _last_significant(out)
    if k is not None and out[k].kind == TokenKind.COMMA:
        out.insert(k, _punct(TokenKind.RBRACKET))
    else:
        _insert_after_significant(out, _punct(TokenKind.RBRACKET), _punct(TokenKind.COMMA))


# ── Pipeline ────────────────────────────────────────────────────

PASSES: list[tuple[str, Callable[[str], str]]] = [
    ("strip_comments", strip_comments),
    ("unify_quotes", unify_quotes),
    ("quote_keys", quote_keys),
    ("insert_missing_colons", insert_missing_colons),
    ("insert_object_commas", insert_object_commas),
    ("insert_array_commas", insert_array_commas),
    ("remove_extra_commas", remove_extra_commas),
    ("quote_bare_values", quote_bare_values),
    ("balance_brackets", balance_brackets),
]


def normalize(text: str) -> str:
    """Run every normalization pass in order."""
    for name, fix in PASSES:
        fixed = fix(text)
        if fixed != text:
            logger.debug("Normalizer pass %s changed %d -> %d chars", name, len(text), len(fixed))
        text = fixed
    return text
