"""Custom exception classes for CardFlow."""


class CardFlowError(Exception):
    """Base exception for CardFlow."""
    pass


class ConfigError(CardFlowError):
    """Configuration-related errors."""
    pass


class ParseError(CardFlowError):
    """Input file decoding errors."""
    pass


class UnsupportedFormat(ParseError):
    """Declared type/extension matches none of the supported formats."""
    pass


class FileReadError(ParseError):
    """File has a supported format but its content could not be read."""
    pass


class LLMError(CardFlowError):
    """Understanding service errors."""
    pass


class PersistenceError(CardFlowError):
    """Statement store errors."""
    pass


# Retryable errors
class RetryableError(CardFlowError):
    """Base class for errors that should trigger retry."""
    pass


class RetryableLLMError(RetryableError, LLMError):
    """Transient service errors (rate limits, timeouts) that can be retried."""
    pass
