"""Configuration models for k6validator.

Ceilings are fixed for the lifetime of a process: they are loaded once at
startup and handed to the analyzers as plain values.
"""

import math

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import constants
from .core.exceptions import InvalidConfigError


class ValidationConfig(BaseModel):
    """Hard limits enforced on every submitted script."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_script_size: int = Field(
        default=constants.MAX_SCRIPT_SIZE,
        gt=0,
        description="Maximum script length in UTF-16 code units",
    )
    max_vus: int = Field(
        default=constants.MAX_VUS, gt=0, description="Maximum declared virtual users"
    )
    valid_extensions: tuple[str, ...] = constants.VALID_SCRIPT_EXTENSIONS


class ServerConfig(BaseModel):
    """HTTP service configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = constants.DEFAULT_HOST
    port: int = Field(default=constants.DEFAULT_PORT, gt=0, lt=65536)
    cors_origins: list[str] = Field(default_factory=lambda: list(constants.CORS_ORIGINS))
    rate_limit_window_seconds: float = Field(
        default=constants.RATE_LIMIT_WINDOW_SECONDS, gt=0
    )
    rate_limit_max_requests: int = Field(default=constants.RATE_LIMIT_MAX_REQUESTS, gt=0)
    max_form_fields: int = Field(default=constants.MAX_FORM_FIELDS, gt=0)

    def body_limit(self, validation: ValidationConfig) -> int:
        """Transport-level body size limit derived from the script ceiling."""
        return math.ceil(validation.max_script_size * constants.BODY_SIZE_HEADROOM)


def load_validation_config(**overrides: object) -> ValidationConfig:
    """Build the validation limits, raising InvalidConfigError on bad values."""
    try:
        return ValidationConfig(**overrides)
    except ValidationError as e:
        raise InvalidConfigError(f"Invalid validation config: {e}") from e


def load_server_config(**overrides: object) -> ServerConfig:
    """Build the server configuration, raising InvalidConfigError on bad values."""
    try:
        return ServerConfig(**overrides)
    except ValidationError as e:
        raise InvalidConfigError(f"Invalid server config: {e}") from e


DEFAULT_VALIDATION_CONFIG = load_validation_config()
