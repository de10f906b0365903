"""Error taxonomy shared by providers, chains and evaluators."""

from __future__ import annotations


class MultiLLMError(Exception):
    """Base class for every failure raised by this package.

    The chain runner and evaluator annotate errors with the step id or the
    provider index that failed before re-raising them.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.step_id: str | None = None
        self.provider_index: int | None = None

    def __str__(self) -> str:
        if self.step_id is not None:
            return f"step {self.step_id!r}: {self.message}"
        if self.provider_index is not None:
            return f"provider #{self.provider_index}: {self.message}"
        return self.message


class ConfigurationError(MultiLLMError):
    pass


class AuthError(MultiLLMError):
    pass


class ProviderError(MultiLLMError):
    pass


class TransportError(MultiLLMError):
    pass


class InvalidRequestError(MultiLLMError):
    pass


class TemplateError(MultiLLMError):
    def __init__(self, message: str, placeholder: str) -> None:
        super().__init__(message)
        self.placeholder = placeholder


class ValidationError(MultiLLMError):
    def __init__(self, reason: str, attempts: int) -> None:
        super().__init__(f"Validation error after {attempts} attempt(s): {reason}")
        self.reason = reason
        self.attempts = attempts
