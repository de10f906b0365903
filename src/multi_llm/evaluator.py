"""Run one conversation across several providers and score each answer."""

from __future__ import annotations

import logging
from typing import Sequence

from multi_llm.errors import MultiLLMError
from multi_llm.models.chat_message import ChatMessage
from multi_llm.models.eval_result import EvalResult
from multi_llm.provider import LLMProvider, ScoringFn

logger = logging.getLogger(__name__)


class Evaluator:
    def __init__(self, providers: Sequence[LLMProvider], scoring_fn: ScoringFn | None = None) -> None:
        self.providers: list[LLMProvider] = list(providers)
        self.scoring_fn: ScoringFn | None = scoring_fn

    def scoring(self, scoring_fn: ScoringFn) -> "Evaluator":
        return Evaluator(self.providers, scoring_fn)

    async def evaluate(self, messages: Sequence[ChatMessage]) -> list[EvalResult]:
        """
        Results come back in provider order, unsorted. A failing provider
        aborts the evaluation instead of being scored.
        """
        results: list[EvalResult] = []
        for index, provider in enumerate(self.providers):
            try:
                text = await provider.chat(list(messages))
            except MultiLLMError as exc:
                exc.provider_index = index
                logger.warning("Evaluation aborted at provider #%d: %s", index, exc.message)
                raise
            score = float(self.scoring_fn(text)) if self.scoring_fn is not None else 0.0
            logger.info("Provider #%d scored %.2f", index, score)
            results.append(EvalResult(provider_index=index, text=text, score=score))
        return results
