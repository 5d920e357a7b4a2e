"""Custom exception hierarchy for k6validator.

Analyzers never let these escape their own boundary; they are raised
internally and converted into failed verdicts. The service layer uses the
request errors to pick an HTTP status code.
"""


class K6ValidatorError(Exception):
    """Base exception for all k6validator errors.

    All custom exceptions should inherit from this class so callers can
    catch every k6validator-specific error with a single except clause.
    """
    pass


# =============================================================================
# Analysis Errors
# =============================================================================

class AnalysisError(K6ValidatorError):
    """Base exception for errors raised while analyzing a script."""
    pass


class ScriptParseError(AnalysisError):
    """Script text could not be parsed into a clean syntax tree."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        super().__init__(message)
        self.line = line
        self.column = column


class PatternCompileError(AnalysisError):
    """A security pattern failed to compile with the linear-time engine."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(K6ValidatorError):
    """Base exception for configuration errors."""
    pass


class InvalidConfigError(ConfigurationError):
    """A configuration value is missing, malformed or out of range."""
    pass


# =============================================================================
# Request Errors
# =============================================================================

class RequestError(K6ValidatorError):
    """Base exception for problems with an inbound validation request."""

    status_code = 400


class InvalidInputError(RequestError):
    """Request fields failed validation.

    Carries every collected field error so the caller can surface all of
    them at once.
    """

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class MalformedRequestError(RequestError):
    """Request body is not a JSON object or a form."""
    pass


class BodyParseError(RequestError):
    """Form body was sent but could not be parsed."""

    code = "entity.parse.failed"


class FieldTooLargeError(RequestError):
    """A single form field exceeds the script size limit."""

    code = "LIMIT_FIELD_VALUE"


class RequestTooLargeError(RequestError):
    """Request body exceeds the transport-level size limit."""

    code = "entity.too.large"


class RateLimitExceededError(RequestError):
    """Client exceeded the request rate limit."""

    status_code = 429

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after
