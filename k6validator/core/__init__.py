"""Core utilities for logging, rate limiting, and the exception hierarchy."""

from .exceptions import (
    AnalysisError,
    BodyParseError,
    ConfigurationError,
    FieldTooLargeError,
    InvalidConfigError,
    InvalidInputError,
    K6ValidatorError,
    MalformedRequestError,
    PatternCompileError,
    RateLimitExceededError,
    RequestError,
    RequestTooLargeError,
    ScriptParseError,
)
from .logging_config import (
    ValidationEventFormatter,
    configure_validation_logging,
    get_validation_logger,
)
from .rate_limiter import RateLimiter

__all__ = [
    # Logging
    "configure_validation_logging",
    "get_validation_logger",
    "ValidationEventFormatter",
    # Rate limiting
    "RateLimiter",
    # Exceptions
    "K6ValidatorError",
    "AnalysisError",
    "ScriptParseError",
    "PatternCompileError",
    "ConfigurationError",
    "InvalidConfigError",
    "RequestError",
    "InvalidInputError",
    "MalformedRequestError",
    "BodyParseError",
    "FieldTooLargeError",
    "RequestTooLargeError",
    "RateLimitExceededError",
]
