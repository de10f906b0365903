"""Model types for provider configuration, chains and runtime values."""

from multi_llm.models.chain_file_spec import ChainFileSpec
from multi_llm.models.chain_step import ChainStep
from multi_llm.models.chain_step import StepMode
from multi_llm.models.chain_step_spec import ChainStepSpec
from multi_llm.models.chat_message import ChatMessage
from multi_llm.models.chat_message import ChatRole
from multi_llm.models.completion import CompletionRequest
from multi_llm.models.completion import CompletionResponse
from multi_llm.models.eval_result import EvalResult
from multi_llm.models.generation_settings import GenerationSettings
from multi_llm.models.provider_spec import ProviderSpec

__all__ = [
    "ChainFileSpec",
    "ChainStep",
    "ChainStepSpec",
    "ChatMessage",
    "ChatRole",
    "CompletionRequest",
    "CompletionResponse",
    "EvalResult",
    "GenerationSettings",
    "ProviderSpec",
    "StepMode",
]
