"""Locate the JSON-looking part of a model response.

Models wrap their JSON in prose ("Here is the JSON:", "Hope this helps!")
or markdown fences. This takes the span from the first opening bracket to
the last matching closing bracket. It does not balance brackets; that is
the normalizer's job.
"""

from __future__ import annotations

_CLOSERS = {"{": "}", "[": "]"}


def extract_json_block(text: str, prefer: str | None = None) -> str | None:
    """Return the substring spanning the outermost JSON-looking structure.

    Args:
        text: Raw (ideally sanitized) model output.
        prefer: "{" or "[" to favor one container kind, e.g. the kind of
            the caller's default value. Ignored when that opener is absent.

    Returns:
        The span from the first opener to the last matching closer, or to
        the end of the text when no closer follows (truncated output).
        None if the text contains no "{" or "[" at all.
    """
    if not text:
        return None

    positions = {opener: text.find(opener) for opener in _CLOSERS}
    found = {opener: pos for opener, pos in positions.items() if pos != -1}
    if not found:
        return None

    if prefer in found:
        opener = prefer
    else:
        opener = min(found, key=found.get)

    start = found[opener]
    end = text.rfind(_CLOSERS[opener])
    if end < start:
        return text[start:].rstrip()
    return text[start:end + 1]
