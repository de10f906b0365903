"""Public package exports."""

from multi_llm.chain import PromptChain
from multi_llm.chain_files import ChainLibrary
from multi_llm.chain_files import load_chain_file
from multi_llm.errors import AuthError
from multi_llm.errors import ConfigurationError
from multi_llm.errors import InvalidRequestError
from multi_llm.errors import MultiLLMError
from multi_llm.errors import ProviderError
from multi_llm.errors import TemplateError
from multi_llm.errors import TransportError
from multi_llm.errors import ValidationError
from multi_llm.evaluator import Evaluator
from multi_llm.factory import build_provider
from multi_llm.factory import build_registry
from multi_llm.models import ChainStep
from multi_llm.models import ChatMessage
from multi_llm.models import ChatRole
from multi_llm.models import CompletionRequest
from multi_llm.models import CompletionResponse
from multi_llm.models import EvalResult
from multi_llm.models import GenerationSettings
from multi_llm.models import ProviderSpec
from multi_llm.models import StepMode
from multi_llm.provider import LLMProvider
from multi_llm.registry import ProviderRegistry
from multi_llm.registry import RegistryBuilder
from multi_llm.templating import render_template
from multi_llm.validated import ValidatedProvider
from multi_llm.validated import wrap

__all__ = [
    "AuthError",
    "ChainLibrary",
    "ChainStep",
    "ChatMessage",
    "ChatRole",
    "CompletionRequest",
    "CompletionResponse",
    "ConfigurationError",
    "EvalResult",
    "Evaluator",
    "GenerationSettings",
    "InvalidRequestError",
    "LLMProvider",
    "MultiLLMError",
    "PromptChain",
    "ProviderError",
    "ProviderRegistry",
    "ProviderSpec",
    "RegistryBuilder",
    "StepMode",
    "TemplateError",
    "TransportError",
    "ValidatedProvider",
    "ValidationError",
    "build_provider",
    "build_registry",
    "load_chain_file",
    "render_template",
    "wrap",
]
