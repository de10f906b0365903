"""Pydantic model for one evaluator result."""

from __future__ import annotations

from pydantic import BaseModel


class EvalResult(BaseModel):
    provider_index: int
    text: str
    score: float = 0.0
