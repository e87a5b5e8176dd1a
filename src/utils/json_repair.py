"""Safe JSON parsing for LLM output.

Models asked to "return only JSON" still wrap it in prose and markdown
fences, leave raw newlines in strings, drop commas, use single quotes,
and get cut off mid-document. safe_parse() runs progressively more
destructive repairs and stops at the first that parses:

    1. direct     strict json.loads
    2. sanitize   control characters replaced (src.tools.sanitizer)
    3. extract    outermost {...} / [...] span (src.tools.extractor)
    4. normalize  syntax passes on the span (src.tools.normalizer)
    5. patch      edits at the parser's error position (src.tools.patcher)
    6. partial    field-by-field salvage against the default (src.tools.partial_extract)
    7. default    a copy of the caller's default

It never raises on malformed input. Valid JSON comes back exactly as
parsed. A value recovered by any later stage is conformed to a dict
default: missing or mistyped keys are filled from the default and keys
the default lacks are dropped, so callers can index it safely.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from collections.abc import Callable
from typing import Any

from src.models.repair import ParseOutcome, RepairAttempt, RepairStage
from src.tools.extractor import extract_json_block
from src.tools.normalizer import normalize
from src.tools.partial_extract import PartialResult, conform_to_default, extract_partial, same_kind
from src.tools.patcher import repair_by_position
from src.tools.sanitizer import sanitize_control_characters

logger = logging.getLogger(__name__)

LOG_PREVIEW_CHARS = int(os.environ.get("JSON_REPAIR_LOG_PREVIEW", "80"))


def _preview(text: str) -> str:
    if len(text) <= LOG_PREVIEW_CHARS:
        return repr(text)
    return repr(text[:LOG_PREVIEW_CHARS]) + "..."


def _try_parse(text: str) -> tuple[bool, Any, str]:
    try:
        return True, json.loads(text), ""
    except json.JSONDecodeError as exc:
        return False, None, f"{exc.msg} at position {exc.pos}"
    except RecursionError:
        return False, None, "nesting too deep"
    except ValueError as exc:
        return False, None, str(exc)


def _run_repair_stages(
    text: str,
    accepts: Callable[[Any], bool],
    prefer: str | None,
    max_patches: int | None,
    attempts: list[RepairAttempt],
) -> tuple[RepairStage, Any] | None:
    """Run stages 1-5, recording each in attempts.

    Returns (stage, value) for the first accepted parse, or None.
    """

    def attempt(stage: RepairStage, candidate: str) -> tuple[bool, Any]:
        ok, value, error = _try_parse(candidate)
        if ok and not accepts(value):
            ok, error = False, f"parsed a {type(value).__name__} of the wrong type"
        attempts.append(RepairAttempt(stage=stage, candidate=candidate, succeeded=ok, error=error))
        logger.debug("Stage %s: %s", stage.value, "ok" if ok else error)
        return ok, value

    ok, value = attempt(RepairStage.DIRECT, text)
    if ok:
        return RepairStage.DIRECT, value

    sanitized = sanitize_control_characters(text)
    ok, value = attempt(RepairStage.SANITIZE, sanitized)
    if ok:
        return RepairStage.SANITIZE, value

    block = extract_json_block(sanitized, prefer=prefer)
    if block is None:
        attempts.append(RepairAttempt(stage=RepairStage.EXTRACT, error="no JSON structure found"))
        logger.debug("Stage extract: no JSON structure found")
        return None
    ok, value = attempt(RepairStage.EXTRACT, block)
    if ok:
        return RepairStage.EXTRACT, value

    normalized = normalize(block)
    ok, value = attempt(RepairStage.NORMALIZE, normalized)
    if ok:
        return RepairStage.NORMALIZE, value

    result = repair_by_position(normalized, max_iterations=max_patches)
    ok = result.success and accepts(result.value)
    error = result.error
    if result.success and not ok:
        error = f"parsed a {type(result.value).__name__} of the wrong type"
    attempts.append(RepairAttempt(
        stage=RepairStage.PATCH,
        candidate=result.text,
        succeeded=ok,
        error=error,
        changes=result.changes,
    ))
    logger.debug("Stage patch: %s (%d changes)", "ok" if ok else error, len(result.changes))
    if ok:
        return RepairStage.PATCH, result.value
    return None


def safe_parse_outcome(
    raw_text: str | None,
    default_value: Any,
    *,
    max_patches: int | None = None,
) -> ParseOutcome:
    """Parse raw model output, recording how it was recovered.

    Args:
        raw_text: The model's response. None or blank yields the default.
        default_value: Value to fall back to, and the shape partial
            extraction recovers fields against. Must not be None.
        max_patches: Cap on positional patches (JSON_REPAIR_MAX_PATCHES
            by default).

    Raises:
        TypeError: default_value is None, or raw_text is not a string.
    """
    if default_value is None:
        raise TypeError("safe_parse requires a default_value")
    if raw_text is not None and not isinstance(raw_text, str):
        raise TypeError(f"raw_text must be a string, got {type(raw_text).__name__}")

    if not raw_text or not raw_text.strip():
        logger.warning("Empty model response; using default")
        return ParseOutcome(value=copy.deepcopy(default_value), stage=RepairStage.DEFAULT)

    if isinstance(default_value, dict):
        prefer = "{"
    elif isinstance(default_value, list):
        prefer = "["
    else:
        prefer = None

    attempts: list[RepairAttempt] = []
    found = _run_repair_stages(
        raw_text,
        lambda value: same_kind(value, default_value),
        prefer,
        max_patches,
        attempts,
    )
    if found is not None:
        stage, value = found
        completed: list[str] = []
        if stage != RepairStage.DIRECT:
            logger.info("Recovered JSON at %s stage", stage.value)
            if isinstance(default_value, dict):
                value, completed = conform_to_default(value, default_value)
            if completed:
                logger.info(
                    "Filled %d field(s) from the default: %s",
                    len(completed), ", ".join(completed),
                )
        return ParseOutcome(value=value, stage=stage, attempts=attempts, completed_fields=completed)

    logger.warning(
        "JSON repair failed (%s), trying partial extraction: %s",
        attempts[-1].error, _preview(raw_text),
    )
    try:
        partial = extract_partial(raw_text, default_value)
    except Exception:
        logger.exception("Partial extraction failed")
        partial = PartialResult(copy.deepcopy(default_value))

    if partial.recovered:
        logger.warning(
            "Recovered %d field(s) by partial extraction: %s",
            len(partial.recovered), ", ".join(partial.recovered),
        )
        attempts.append(RepairAttempt(
            stage=RepairStage.PARTIAL,
            succeeded=True,
            changes=[f"recovered {name}" for name in partial.recovered],
        ))
        return ParseOutcome(
            value=partial.value,
            stage=RepairStage.PARTIAL,
            attempts=attempts,
            recovered_fields=partial.recovered,
        )

    attempts.append(RepairAttempt(stage=RepairStage.PARTIAL, error="no fields recovered"))
    logger.warning("No JSON recovered; using default: %s", _preview(raw_text))
    return ParseOutcome(
        value=copy.deepcopy(default_value),
        stage=RepairStage.DEFAULT,
        attempts=attempts,
    )


def safe_parse(raw_text: str | None, default_value: Any, *, max_patches: int | None = None) -> Any:
    """Parse raw model output, never raising on malformed input.

    Returns valid JSON as parsed, a repaired or partially recovered
    value conformed to a dict default_value, or a copy of default_value.
    """
    return safe_parse_outcome(raw_text, default_value, max_patches=max_patches).value


def _lenient(text: str, accepts: Callable[[Any], bool]) -> tuple[bool, Any]:
    attempts: list[RepairAttempt] = []
    found = _run_repair_stages(text, accepts, None, None, attempts)
    if found is None:
        return False, None
    return True, found[1]


def parse_json_lenient(text: str) -> Any:
    """Parse JSON with the repair stages but no default to fall back to.

    Raises json.JSONDecodeError if all repair attempts fail.
    """
    ok, value = _lenient(text, lambda value: True)
    if not ok:
        raise json.JSONDecodeError(
            "Could not parse response as JSON after repair attempts",
            text, 0,
        )
    return value


def extract_json_from_text(text: str) -> Any:
    """Return the object or array found in text, or None."""
    if not text:
        return None
    ok, value = _lenient(text, lambda value: isinstance(value, (dict, list)))
    return value if ok else None


def repair_json(text: str) -> str:
    """Return text repaired into valid JSON, or "{}" if nothing parses."""
    value = extract_json_from_text(text)
    if value is None:
        return "{}"
    return json.dumps(value, ensure_ascii=False)
