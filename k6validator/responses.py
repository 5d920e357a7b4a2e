"""Response builders and error mappings for the validation API.

Every response the service returns is built here, so the five outcome
shapes stay consistent between the MCP tool and the HTTP routes.
"""

import json
from typing import Any

from .analysis.models import ValidateResponse


class ValidationResponseBuilder:
    """Factory for immutable ValidateResponse snapshots."""

    @staticmethod
    def success(message: str = "Script validation passed") -> ValidateResponse:
        return ValidateResponse(valid=True, errors=(), warnings=(), message=message)

    @staticmethod
    def error(
        errors: list[str],
        message: str = "Script validation failed",
        warnings: list[str] | None = None,
    ) -> ValidateResponse:
        return ValidateResponse(
            valid=False,
            errors=tuple(errors),
            warnings=tuple(warnings or ()),
            message=message,
        )

    @staticmethod
    def invalid_request(message: str = "Invalid request format") -> ValidateResponse:
        return ValidateResponse(
            valid=False,
            errors=("Request must include a script field with valid JavaScript code",),
            message=message,
        )

    @staticmethod
    def server_error(message: str = "Server error") -> ValidateResponse:
        return ValidateResponse(
            valid=False,
            errors=("Internal server error during validation",),
            message=message,
        )

    @staticmethod
    def malformed_json() -> ValidateResponse:
        return ValidateResponse(
            valid=False,
            errors=("Invalid JSON format in request body",),
            message="Request body contains malformed JSON",
        )


# Error code -> (status, response factory), for codes raised while reading
# request bodies
ERROR_MAPPINGS: dict[str, tuple[int, Any]] = {
    "LIMIT_FIELD_VALUE": (
        400,
        lambda: ValidationResponseBuilder.error(
            ["Form field exceeds 50KB limit"], "Field too large"
        ),
    ),
    "entity.parse.failed": (
        400,
        lambda: ValidationResponseBuilder.error(
            ["Request body parsing failed"], "Invalid request format"
        ),
    ),
    "entity.too.large": (
        400,
        lambda: ValidationResponseBuilder.error(
            ["Request body too large"], "Invalid request format"
        ),
    ),
}


def is_json_parsing_error(err: object) -> bool:
    return isinstance(err, json.JSONDecodeError)


def get_error_code(err: object) -> str | None:
    """Extract an error code from an exception's ``code`` or ``type`` attribute."""
    code = getattr(err, "code", None)
    if isinstance(code, str):
        return code
    error_type = getattr(err, "type", None)
    if isinstance(error_type, str):
        return error_type
    return None


def handle_mapped_error(err: object) -> tuple[int, ValidateResponse] | None:
    """Map a known request-parsing error to a status code and response.

    Returns None for errors without a mapping.
    """
    code = get_error_code(err)
    if code is not None and code in ERROR_MAPPINGS:
        status_code, factory = ERROR_MAPPINGS[code]
        return status_code, factory()

    if is_json_parsing_error(err):
        return 400, ValidationResponseBuilder.malformed_json()

    return None
