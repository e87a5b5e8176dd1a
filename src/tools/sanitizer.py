"""Control-character sanitizing for model output that should be JSON.

Models regularly emit raw newlines and tabs inside string literals, which
strict JSON rejects. This pass replaces control characters with spaces and
collapses whitespace between tokens, while leaving already-escaped
sequences (\\n, \\t, \\\\, \\") alone.

Pure function, no parsing. Never raises.
"""

from __future__ import annotations

_BOM = "\ufeff"


def is_control(ch: str) -> bool:
    """True for C0 and C1 control characters (U+0000-001F, U+007F-009F)."""
    code = ord(ch)
    return code < 0x20 or 0x7F <= code <= 0x9F


def sanitize_control_characters(text: str) -> str:
    """Replace control characters with spaces, string-literal aware.

    Outside string literals every run of whitespace or control characters
    becomes a single space, or a single newline when the run contains a
    line break, and byte-order marks are dropped. Inside a double- or
    single-quoted literal each run of control characters becomes a single
    space; ordinary spaces and escape sequences are preserved. An
    apostrophe between letters ("don't") does not open a literal, and a
    single-quoted literal ends at a line break.
    """
    if not text:
        return text

    out: list[str] = []
    quote = ""
    escaped = False
    pending_space = ""
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if quote:
            if escaped:
                escaped = False
                if is_control(ch):
                    # Backslash followed by a raw control char: drop both
                    out[-1] = " "
                    i = _skip_controls(text, i)
                    continue
                out.append(ch)
            elif ch == "\\":
                escaped = True
                out.append(ch)
            elif ch == quote:
                quote = ""
                out.append(ch)
            elif quote == "'" and ch in "\r\n":
                # A stray apostrophe in prose must not swallow the document
                quote = ""
                continue
            elif is_control(ch):
                out.append(" ")
                i = _skip_controls(text, i, stop="\r\n" if quote == "'" else "")
                continue
            else:
                out.append(ch)
            i += 1
            continue

        if ch.isspace() or is_control(ch):
            if ch in "\r\n":
                pending_space = "\n"
            elif not pending_space:
                pending_space = " "
            i += 1
            continue
        if ch == _BOM:
            i += 1
            continue

        if pending_space:
            out.append(pending_space)
            pending_space = ""
        if ch == '"' or (ch == "'" and _opens_literal(text, i)):
            quote = ch
        out.append(ch)
        i += 1

    if pending_space:
        out.append(pending_space)
    return "".join(out)


def _skip_controls(text: str, i: int, stop: str = "") -> int:
    """Return the index just past the run of control characters at i.

    The run also ends before any character in stop.
    """
    n = len(text)
    while i < n and is_control(text[i]) and text[i] not in stop:
        i += 1
    return i


def _opens_literal(text: str, i: int) -> bool:
    """False for an apostrophe inside a word, as the tokenizer reads it."""
    return not (
        i > 0
        and text[i - 1].isalnum()
        and i + 1 < len(text)
        and text[i + 1].isalpha()
    )
