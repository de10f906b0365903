"""Sequential multi-step prompt chains."""

from __future__ import annotations

import logging
from typing import Iterable

from multi_llm.errors import ConfigurationError, MultiLLMError
from multi_llm.models.chain_step import ChainStep, StepMode
from multi_llm.models.chat_message import ChatMessage
from multi_llm.models.completion import CompletionRequest
from multi_llm.provider import LLMProvider
from multi_llm.registry import ProviderRegistry
from multi_llm.templating import render_template

logger = logging.getLogger(__name__)


class PromptChain:
    def __init__(self, steps: Iterable[ChainStep]) -> None:
        self.steps: list[ChainStep] = list(steps)
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ConfigurationError(f"duplicate step id in chain: {step.id!r}")
            seen.add(step.id)

    def step(self, step: ChainStep) -> "PromptChain":
        return PromptChain([*self.steps, step])

    async def run(self, registry: ProviderRegistry) -> dict[str, str]:
        """
        Runs every step in order and returns step id -> output text.
        The first failure aborts the run; no partial results are returned.
        """
        results: dict[str, str] = {}
        for index, step in enumerate(self.steps):
            try:
                prompt = render_template(step.template, results)
                provider = registry.get(step.provider_id)
                logger.info(
                    "Running step %s (%d/%d) on %s in %s mode",
                    step.id,
                    index + 1,
                    len(self.steps),
                    step.provider_id,
                    step.mode.value,
                )
                output = await self._run_step(provider, step, prompt)
            except MultiLLMError as exc:
                exc.step_id = step.id
                logger.warning("Chain aborted at step %s: %s", step.id, exc.message)
                raise
            results[step.id] = output
        return results

    async def _run_step(self, provider: LLMProvider, step: ChainStep, prompt: str) -> str:
        if step.mode == StepMode.CHAT:
            return await provider.chat([ChatMessage.user(prompt)], settings=step.overrides)

        if step.mode == StepMode.COMPLETION:
            response = await provider.complete(CompletionRequest(prompt=prompt, settings=step.overrides))
            return response.text

        raise NotImplementedError(f"Unknown step mode: {step.mode}")
