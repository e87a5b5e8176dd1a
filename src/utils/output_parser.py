"""Schema-validated parsing of model output into pydantic models."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from src.utils.json_repair import safe_parse_outcome

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class OutputParser(Generic[ModelT]):
    """Repair a model response and validate it against a pydantic model.

    Every field of the model must have a default: the model's default
    instance is the shape that partial extraction recovers fields against.

    On validation failure, fields that validate on their own are kept and
    the rest fall back to their defaults. If nothing usable remains, the
    optional fallback(text) builds the result; without one the
    ValidationError propagates.
    """

    def __init__(
        self,
        model: type[ModelT],
        name: str = "unnamed-parser",
        fallback: Callable[[str], ModelT] | None = None,
    ):
        self.model = model
        self.name = name
        self.fallback = fallback

    def default_shape(self) -> dict[str, Any]:
        return self.model().model_dump(mode="json", by_alias=True)

    def parse(self, text: str | None) -> ModelT:
        outcome = safe_parse_outcome(text, self.default_shape())
        if outcome.used_default and self.fallback is not None:
            logger.warning("%s: no JSON recovered, using fallback", self.name)
            return self.fallback(text or "")

        try:
            return self.model.model_validate(outcome.value)
        except ValidationError as exc:
            logger.warning(
                "%s: %d validation error(s), keeping fields that validate",
                self.name, exc.error_count(),
            )

        kept = self._valid_fields(outcome.value)
        if not kept and self.fallback is not None:
            logger.warning("%s: no valid fields, using fallback", self.name)
            return self.fallback(text or "")
        try:
            return self.model.model_validate(kept)
        except ValidationError:
            if self.fallback is None:
                raise
            logger.warning("%s: validation failed, using fallback", self.name)
            return self.fallback(text or "")

    def _valid_fields(self, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            return {}
        kept = {}
        for name, info in self.model.model_fields.items():
            key = info.alias or name
            if key not in data:
                continue
            try:
                self.model.model_validate({key: data[key]})
            except ValidationError:
                logger.debug("%s: dropping invalid field %r", self.name, key)
                continue
            kept[key] = data[key]
        return kept
