"""Utility modules."""
from .logger import get_logger, set_import_context
from .exceptions import (
    CardFlowError,
    ConfigError,
    ParseError,
    UnsupportedFormat,
    FileReadError,
    LLMError,
    PersistenceError,
    RetryableError,
    RetryableLLMError
)
from .retry import retry_with_backoff

__all__ = [
    "get_logger",
    "set_import_context",
    "CardFlowError",
    "ConfigError",
    "ParseError",
    "UnsupportedFormat",
    "FileReadError",
    "LLMError",
    "PersistenceError",
    "RetryableError",
    "RetryableLLMError",
    "retry_with_backoff"
]
