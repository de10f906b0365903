"""Pydantic models for raw text completion."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from multi_llm.models.generation_settings import GenerationSettings


class CompletionRequest(BaseModel):
    prompt: str
    settings: Optional[GenerationSettings] = None


class CompletionResponse(BaseModel):
    text: str
