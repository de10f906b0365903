"""Pydantic model for per-call generation parameters."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel
from pydantic_ai.settings import ModelSettings

# Sampling knobs only some vendors accept; backends opt in to sending them.
VENDOR_SPECIFIC_FIELDS = {"top_k"}


class GenerationSettings(BaseModel):
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None

    def merged(self, overrides: "GenerationSettings | None") -> "GenerationSettings":
        """
        Returns a copy with every non-None field of `overrides` layered on top.
        """
        if overrides is None:
            return self.model_copy()
        return self.model_copy(update=overrides.model_dump(exclude_none=True))

    def as_kwargs(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude=VENDOR_SPECIFIC_FIELDS)

    def to_model_settings(self) -> ModelSettings:
        settings: ModelSettings = {}
        if self.temperature is not None:
            settings["temperature"] = self.temperature
        if self.max_tokens is not None:
            settings["max_tokens"] = self.max_tokens
        if self.top_p is not None:
            settings["top_p"] = self.top_p
        return settings
