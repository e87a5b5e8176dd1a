"""Targeted repairs driven by the parser's own error position.

When normalization is not enough, the strict parser still tells us exactly
where it gave up (json.JSONDecodeError.pos) and why (.msg). Each iteration
applies one small edit at that position and re-parses, so a document with
a handful of unrelated defects is fixed one defect at a time.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from src.tools.normalizer import balance_brackets
from src.tools.sanitizer import is_control, sanitize_control_characters

logger = logging.getLogger(__name__)

MAX_PATCH_ITERATIONS = int(os.environ.get("JSON_REPAIR_MAX_PATCHES", "5"))

# Characters that can end a JSON value: closing quote, closers, digits, and
# the last letter of true/false/null.
_VALUE_TERMINATORS = set('"}]0123456789el')
_WORD_STOP = set(",}]\n")


@dataclass
class PatchResult:
    """Result of repair_by_position()."""
    success: bool
    text: str
    value: Any = None
    changes: list[str] = field(default_factory=list)
    error: str = ""


def _prev_non_space(text: str, pos: int) -> int | None:
    i = pos - 1
    while i >= 0 and text[i].isspace():
        i -= 1
    return i if i >= 0 else None


def _find_opener(text: str) -> int | None:
    found = [p for p in (text.find("{"), text.find("[")) if p != -1]
    return min(found) if found else None


def _at_or_before(text: str, pos: int, check) -> int | None:
    """pos if text[pos] satisfies check, else pos - 1 if that does.

    The C and pure-Python scanners report some errors one character apart.
    """
    for p in (pos, pos - 1):
        if 0 <= p < len(text) and check(text[p]):
            return p
    return None


def _quote_word(text: str, pos: int, stops: set[str]) -> tuple[str, str] | None:
    end = pos
    while end < len(text) and text[end] not in stops:
        end += 1
    word = text[pos:end].rstrip()
    if not word:
        return None
    end = pos + len(word)
    quoted = json.dumps(word, ensure_ascii=False)
    return text[:pos] + quoted + text[end:], f"quoted {word!r} at {pos}"


def patch_at_error(text: str, error: json.JSONDecodeError) -> tuple[str, str] | None:
    """Apply one edit at the error position.

    Returns (patched_text, description), or None when no rule applies.
    """
    msg, pos = error.msg, error.pos
    stripped = text.lstrip()

    # Leading prose before the document
    if msg == "Expecting value" and pos <= 1 and stripped and stripped[0] not in "{[":
        start = _find_opener(text)
        if start is None:
            return None
        return text[start:], f"dropped {start} leading chars"

    if msg.startswith("Invalid control character"):
        p = _at_or_before(text, pos, is_control)
        if p is None:
            return sanitize_control_characters(text), "sanitized control characters"
        return text[:p] + " " + text[p + 1:], f"replaced control character at {p}"

    if msg.startswith("Invalid") and "escape" in msg:
        p = _at_or_before(text, pos, lambda ch: ch == "\\")
        if p is not None:
            return text[:p] + "\\" + text[p:], f"escaped backslash at {p}"

    if msg.startswith("Unterminated string"):
        body = text.rstrip()
        trailing = len(body) - len(body.rstrip("\\"))
        if trailing % 2:
            body = body[:-1]
        return body + '"', "closed unterminated string"

    ch = text[pos] if pos < len(text) else ""
    prev = _prev_non_space(text, pos)

    if msg.startswith("Illegal trailing comma"):
        return text[:pos] + text[pos + 1:], f"removed trailing comma at {pos}"
    if ch in ("}", "]") and prev is not None and text[prev] == ",":
        return text[:prev] + text[prev + 1:], f"removed trailing comma at {prev}"

    if pos >= len(text.rstrip()):
        closed = balance_brackets(text)
        if closed != text:
            return closed, "closed open structures"
        return None

    if msg.startswith("Expecting ':'"):
        return text[:pos] + ":" + text[pos:], f"inserted ':' at {pos}"
    if msg.startswith("Expecting ','"):
        return text[:pos] + "," + text[pos:], f"inserted ',' at {pos}"

    if msg == "Expecting value" and ch in (",", "}", "]") and prev is not None:
        if text[prev] == ":":
            return text[:pos] + "null" + text[pos:], f"inserted null at {pos}"
        if text[prev] == ",":
            return text[:prev] + text[prev + 1:], f"removed extra comma at {prev}"
        if text[prev] == "[" and ch == ",":
            return text[:pos] + text[pos + 1:], f"removed leading comma at {pos}"

    if ch == '"':
        last_quote = text.rfind('"', 0, pos)
        if last_quote != -1 and pos - last_quote <= 10 and ":" not in text[last_quote:pos]:
            return text[:pos] + ":" + text[pos:], f"inserted ':' at {pos}"
        if prev is not None and text[prev] in _VALUE_TERMINATORS:
            return text[:pos] + "," + text[pos:], f"inserted ',' at {pos}"

    if ch and (ch.isalnum() or ch == "_"):
        if msg.startswith("Expecting property name"):
            return _quote_word(text, pos, _WORD_STOP | {":"})
        if msg == "Expecting value":
            return _quote_word(text, pos, _WORD_STOP)

    if msg.startswith("Extra data"):
        return text[:pos].rstrip(), f"dropped trailing data at {pos}"

    return None


def repair_by_position(text: str, max_iterations: int | None = None) -> PatchResult:
    """Parse, patch at the reported error, and re-parse until success.

    Stops after max_iterations patches (JSON_REPAIR_MAX_PATCHES by
    default), when the same error repeats, or when no rule applies.
    """
    limit = MAX_PATCH_ITERATIONS if max_iterations is None else max_iterations
    changes: list[str] = []
    seen: set[tuple[int, str]] = set()
    error = ""

    while True:
        try:
            value = json.loads(text)
            return PatchResult(success=True, text=text, value=value, changes=changes)
        except RecursionError:
            return PatchResult(success=False, text=text, changes=changes, error="nesting too deep")
        except json.JSONDecodeError as exc:
            error = f"{exc.msg} at position {exc.pos}"
            key = (exc.pos, exc.msg)
            if len(changes) >= limit or key in seen:
                break
            seen.add(key)
            patched = patch_at_error(text, exc)
        except ValueError as exc:
            return PatchResult(success=False, text=text, changes=changes, error=str(exc))

        if patched is None or patched[0] == text:
            break
        text, change = patched
        changes.append(change)
        logger.debug("Patched: %s", change)

    return PatchResult(success=False, text=text, changes=changes, error=error)
