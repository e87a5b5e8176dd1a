"""Field-by-field salvage for responses that cannot be parsed as a whole.

Each top-level key of the caller's default becomes a FieldExtractionRule.
For each rule we look for `"key":` in the raw text, cut out just that
key's value, and run the sanitize/normalize/patch stages on the fragment
alone. A defect elsewhere in the document then no longer costs us the
fields that were emitted correctly.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.tools.normalizer import normalize, unify_quotes
from src.tools.patcher import repair_by_position
from src.tools.sanitizer import sanitize_control_characters
from src.tools.scanner import (
    CLOSERS,
    OPENERS,
    WORD_KINDS,
    Token,
    TokenKind,
    next_significant,
    string_body,
    tokenize,
)

logger = logging.getLogger(__name__)

_MISSING = object()
_BARE_VALUE_RE = re.compile(r"[^,}\]\n]*")


class FieldKind(str, Enum):
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    SCALAR = "scalar"  # numbers, booleans, null


def kind_of(value: Any) -> FieldKind:
    if isinstance(value, dict):
        return FieldKind.OBJECT
    if isinstance(value, list):
        return FieldKind.ARRAY
    if isinstance(value, str):
        return FieldKind.STRING
    return FieldKind.SCALAR


def same_kind(value: Any, template: Any) -> bool:
    """True if value has the JSON type of template.

    Booleans and numbers are kept apart even though bool is an int
    subclass. A None template accepts anything.
    """
    if template is None:
        return True
    if isinstance(template, bool):
        return isinstance(value, bool)
    if isinstance(template, (int, float)):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if isinstance(template, str):
        return isinstance(value, str)
    if isinstance(template, list):
        return isinstance(value, list)
    if isinstance(template, dict):
        return isinstance(value, dict)
    return isinstance(value, type(template))


@dataclass(frozen=True)
class FieldExtractionRule:
    """How to find and validate one top-level field of a default shape."""
    name: str
    kind: FieldKind
    default: Any = None

    @property
    def pattern(self) -> re.Pattern[str]:
        return re.compile(r"[\"']" + re.escape(self.name) + r"[\"']\s*:\s*")


@dataclass
class PartialResult:
    value: Any
    recovered: list[str] = field(default_factory=list)


def conform_to_default(value: dict[str, Any], default: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Reshape value so it has exactly the keys of default.

    Missing keys, and keys whose value has the wrong JSON type, get a deep
    copy of their default. Keys that default lacks are dropped. Nested
    dict defaults are conformed the same way. An empty default places no
    constraint on the value.

    Returns the conformed value and the names of the keys that were filled
    from the default, dotted for nested keys ("skills.soft").
    """
    if not default:
        return value, []

    conformed: dict[str, Any] = {}
    filled: list[str] = []
    for key, template in default.items():
        found = value.get(key, _MISSING)
        if found is _MISSING or not same_kind(found, template):
            conformed[key] = copy.deepcopy(template)
            filled.append(key)
        elif isinstance(template, dict):
            conformed[key], nested = conform_to_default(found, template)
            filled.extend(f"{key}.{name}" for name in nested)
        else:
            conformed[key] = found
    return conformed, filled


def rules_for(default: dict[str, Any]) -> list[FieldExtractionRule]:
    return [
        FieldExtractionRule(name=key, kind=kind_of(value), default=value)
        for key, value in default.items()
    ]


def extract_partial(text: str, default: Any) -> PartialResult:
    """Recover whichever fields of default can be found in text.

    The result has exactly the keys of default. Keys that could not be
    recovered, or whose recovered value has the wrong JSON type, hold a
    deep copy of their default. A non-dict default has no fields to
    recover and comes back as a copy.
    """
    if not isinstance(default, dict):
        return PartialResult(copy.deepcopy(default))

    key_depths = _key_depths(text) if text else {}
    value: dict[str, Any] = {}
    recovered: list[str] = []

    for rule in rules_for(default):
        found = _extract_field(text, rule, key_depths) if text else _MISSING
        if found is _MISSING:
            value[rule.name] = copy.deepcopy(rule.default)
            continue
        value[rule.name] = found
        recovered.append(rule.name)
        logger.debug("Recovered field %r (%s)", rule.name, rule.kind.value)

    return PartialResult(value, recovered)


def _key_depths(text: str) -> dict[int, int]:
    """Offset -> nesting depth for every string token used as a key.

    A closer pops back to its own opener, so "[ }" still closes the
    object. A key met directly inside an array means the array was never
    closed, and the array is popped before the key's depth is taken.
    """
    tokens = tokenize(text)
    depths: dict[int, int] = {}
    stack: list[TokenKind] = []
    offset = 0
    for i, tok in enumerate(tokens):
        if tok.kind in OPENERS:
            stack.append(tok.kind)
        elif tok.kind in CLOSERS:
            opener = TokenKind.LBRACE if tok.kind == TokenKind.RBRACE else TokenKind.LBRACKET
            if opener in stack:
                while stack.pop() != opener:
                    pass
        elif tok.kind == TokenKind.STRING:
            nxt = next_significant(tokens, i)
            if nxt is not None and tokens[nxt].kind == TokenKind.COLON:
                while stack and stack[-1] == TokenKind.LBRACKET:
                    stack.pop()
                depths[offset] = len(stack)
        offset += len(tok.text)
    return depths


def _extract_field(text: str, rule: FieldExtractionRule, key_depths: dict[int, int]) -> Any:
    """Find rule's key at the document's top level and parse its value.

    Only keys at the least-nested key depth present (depth 1 for a normal
    object) are considered, so a nested key with the same name is never
    taken for a missing top-level one. Matches the tokenizer did not see
    as keys are tried last.
    """
    top = max(min(key_depths.values(), default=1), 1)
    matches = list(rule.pattern.finditer(text))
    aligned = [m for m in matches if key_depths.get(m.start(), top + 1) <= top]
    others = [m for m in matches if m.start() not in key_depths]

    for match in aligned + others:
        fragment = _value_fragment(text, match.end())
        if not fragment:
            continue
        found = _parse_fragment(fragment)
        if found is _MISSING:
            found = _fallback(fragment, rule)
        if found is _MISSING or not same_kind(found, rule.default):
            continue
        if isinstance(found, dict) and isinstance(rule.default, dict):
            found, _ = conform_to_default(found, rule.default)
        return found
    return _MISSING


def _value_fragment(text: str, start: int) -> str:
    """Cut out the value beginning at start (after "key":)."""
    rest = text[start:].lstrip()
    if not rest:
        return ""

    if rest[0] in "{[":
        depth = 0
        offset = 0
        for tok in tokenize(rest):
            offset += len(tok.text)
            if tok.kind in OPENERS:
                depth += 1
            elif tok.kind in CLOSERS:
                depth -= 1
                if depth == 0:
                    return rest[:offset]
        return rest

    first = tokenize(rest)[0]
    if first.kind == TokenKind.STRING:
        return first.text
    return _BARE_VALUE_RE.match(rest).group(0).rstrip()


def _parse_fragment(fragment: str) -> Any:
    sanitized = sanitize_control_characters(fragment)
    normalized = normalize(sanitized)
    for candidate in (fragment, sanitized, normalized):
        try:
            return json.loads(candidate)
        except (ValueError, RecursionError):
            continue
    result = repair_by_position(normalized)
    return result.value if result.success else _MISSING


def _fallback(fragment: str, rule: FieldExtractionRule) -> Any:
    if rule.kind == FieldKind.ARRAY:
        items = _salvage_array(fragment)
        return items if items else _MISSING
    if rule.kind == FieldKind.OBJECT and rule.default:
        nested = extract_partial(fragment, rule.default)
        return nested.value if nested.recovered else _MISSING
    if rule.kind == FieldKind.STRING:
        first = tokenize(fragment)[0]
        if first.kind == TokenKind.STRING:
            return _string_value(first)
        if first.kind not in OPENERS:
            return fragment.strip()
    return _MISSING


def _string_value(tok: Token) -> str:
    requoted = unify_quotes(tok.text)
    if not tok.terminated:
        requoted += '"'
    try:
        value = json.loads(sanitize_control_characters(requoted))
    except json.JSONDecodeError:
        return string_body(tok)
    return value if isinstance(value, str) else string_body(tok)


def _salvage_array(fragment: str) -> list[Any]:
    """Pull the string and bare-word elements out of a broken array.

    Stops at what looks like the next key of the enclosing object, which
    happens when the array was never closed.
    """
    tokens = tokenize(sanitize_control_characters(fragment))
    items: list[Any] = []
    depth = 0
    words: list[str] = []

    def flush():
        if words:
            items.append(" ".join(words))
            words.clear()

    for i, tok in enumerate(tokens):
        if tok.kind in OPENERS:
            depth += 1
            flush()
            continue
        if tok.kind in CLOSERS:
            depth -= 1
            flush()
            if depth <= 0:
                break
            continue
        if depth != 1:
            continue
        if tok.kind == TokenKind.STRING:
            flush()
            nxt = next_significant(tokens, i)
            if nxt is not None and tokens[nxt].kind == TokenKind.COLON:
                break
            items.append(_string_value(tok))
        elif tok.kind in WORD_KINDS:
            words.append(tok.text)
        elif tok.kind == TokenKind.COMMA or tok.has_newline:
            flush()

    flush()
    return items
