"""
Error taxonomy for the orchestration core.

Callers get typed exceptions rather than raw exceptions from the provider SDK
wherever the core itself decides an operation cannot succeed. Provider errors
(network, timeouts, 5xx) propagate unchanged once retries are exhausted.
"""

from typing import Optional


class OrchestrationError(Exception):
    """Base class for every error raised by the core itself."""


class InputValidationError(OrchestrationError, ValueError):
    """The caller supplied input that can never succeed (empty audio, missing prompt)."""


class ConfigurationMissingError(OrchestrationError):
    """A provider client is absent, usually because no API key is configured."""

    def __init__(self, section: str, key: str) -> None:
        self.section = section
        self.key = key
        super().__init__(f"Missing configuration '{section}:{key}'; the provider client is not available")


class ContentFilterError(OrchestrationError):
    """The provider refused the request under its content policy."""


class ProtocolViolationError(OrchestrationError):
    """The provider behaved differently from what the orchestrator expects."""


class TranscriptionFailedError(OrchestrationError):
    """Raised by the prompt facade when an audio prompt could not be transcribed."""

    def __init__(self, message: str, file_name: Optional[str] = None) -> None:
        self.file_name = file_name
        super().__init__(message)


# Kinds that a retry can never fix.
NON_RETRYABLE_ERRORS = (InputValidationError, ConfigurationMissingError, ContentFilterError)


def is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, NON_RETRYABLE_ERRORS)
