"""Models describing a single pass of the JSON repair pipeline.

The pipeline turns a raw model response into a parsed value by trying
progressively more destructive stages:

    direct → sanitize → extract → normalize → patch → partial → default

RepairAttempt records one stage's candidate text and whether it parsed.
ParseOutcome wraps the final value together with the stage that produced
it, so callers can see which failure modes the upstream model hits.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class RepairStage(str, Enum):
    """Stages of the repair pipeline, least destructive first."""
    DIRECT = "direct"
    SANITIZE = "sanitize"
    EXTRACT = "extract"
    NORMALIZE = "normalize"
    PATCH = "patch"
    PARTIAL = "partial"
    DEFAULT = "default"


class RepairAttempt(BaseModel, frozen=True):
    """One staged transformation of the raw response and its parse result."""
    stage: RepairStage
    candidate: str = ""          # text handed to the parser at this stage
    succeeded: bool = False
    error: str = ""              # parser message when the attempt failed
    changes: list[str] = Field(default_factory=list)  # patches applied, if any


class ParseOutcome(BaseModel, frozen=True):
    """Result of safe_parse_outcome().

    value is either valid JSON exactly as parsed or a value shaped
    like the caller's default. It is never None unless the caller's
    default was itself a JSON null.
    """
    value: Any = None
    stage: RepairStage
    attempts: list[RepairAttempt] = Field(default_factory=list)
    recovered_fields: list[str] = Field(default_factory=list)  # partial stage only
    completed_fields: list[str] = Field(default_factory=list)  # filled from the default after a repair

    @property
    def used_default(self) -> bool:
        return self.stage == RepairStage.DEFAULT

    @property
    def stages_tried(self) -> list[RepairStage]:
        return [a.stage for a in self.attempts]
