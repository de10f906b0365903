"""Pydantic model for a runnable chain step."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from multi_llm.models.generation_settings import GenerationSettings


class StepMode(str, Enum):
    CHAT = "chat"
    COMPLETION = "completion"


class ChainStep(BaseModel):
    id: str
    provider_id: str
    mode: StepMode = StepMode.CHAT
    template: str
    overrides: Optional[GenerationSettings] = None
