"""Vendor backends implementing the provider contract."""

from multi_llm.backends.anthropic import AnthropicProvider
from multi_llm.backends.openai_compatible import OpenAICompatibleProvider
from multi_llm.backends.phind import PhindProvider

__all__ = ["AnthropicProvider", "OpenAICompatibleProvider", "PhindProvider"]
