"""Validation pipeline for submitted k6 scripts.

Runs the analyzers in a fixed order: size check, structural analysis, and
only when the structure is sound, the pattern and resource analyzers.
"""

import logging
import time

from .analysis.ast_engine import ASTEngine
from .analysis.models import ValidateResponse
from .analysis.pattern_analyzer import PatternAnalyzer
from .analysis.patterns import DEFAULT_REGISTRY, PatternRegistry
from .analysis.resource import ResourceAnalyzer, script_length
from .analysis.structural import StructuralAnalyzer
from .config import DEFAULT_VALIDATION_CONFIG, ValidationConfig
from .responses import ValidationResponseBuilder

logger = logging.getLogger(__name__)

MISSING_K6_IMPORT = "Script must contain at least one K6 import (e.g., import http from 'k6/http')"
MISSING_PROTOCOL_IMPORT = (
    "Script must import at least one protocol module (k6/http, k6/ws, or k6/net/grpc)"
)
MISSING_EXPORTED_FUNCTION = "Script must contain an exported test function"


class ScriptValidator:
    """Validates k6 scripts without executing them.

    Holds no per-call state: the registry and config are read-only and every
    analyzer builds and releases its own syntax tree. One instance can serve
    any number of concurrent calls.
    """

    def __init__(
        self,
        config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
        registry: PatternRegistry = DEFAULT_REGISTRY,
    ) -> None:
        self.config = config
        engine = ASTEngine()
        self.structural = StructuralAnalyzer(engine=engine)
        self.patterns = PatternAnalyzer(registry=registry)
        self.resources = ResourceAnalyzer(config=config, engine=engine)

    def validate(self, script: str, language: str = "javascript") -> ValidateResponse:
        """Validate *script* and return the aggregated response.

        Never raises; unexpected failures become an error response.
        """
        started = time.perf_counter()
        try:
            response = self._run(script, language)
        except Exception as e:
            logger.exception(
                "Unexpected validation failure",
                extra={"event": "validation_error", "script_size": len(script)},
            )
            response = ValidationResponseBuilder.error(
                [str(e) or "An unknown error occurred during validation"],
                "Validation error",
            )

        logger.info(
            "Validation passed" if response.valid else "Validation failed",
            extra={
                "event": "validation_complete",
                "status": "valid" if response.valid else "invalid",
                "error_count": len(response.errors),
                "script_size": len(script),
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response

    def _run(self, script: str, language: str) -> ValidateResponse:
        errors: list[str] = []

        size = script_length(script)
        if size > self.config.max_script_size:
            errors.append(
                f"Script size ({size} bytes) exceeds maximum allowed size "
                f"({self.config.max_script_size} bytes)"
            )

        analysis = self.structural.analyze_script(script, language)
        if not analysis.valid:
            errors.extend(analysis.errors)

        if not analysis.has_k6_imports:
            errors.append(MISSING_K6_IMPORT)
        if not analysis.has_protocol_imports:
            errors.append(MISSING_PROTOCOL_IMPORT)
        if not analysis.has_exported_function:
            errors.append(MISSING_EXPORTED_FUNCTION)

        # Structural problems are cheaper to find and more fundamental than
        # pattern hits; stop before the regex scan.
        if errors:
            return ValidationResponseBuilder.error(errors, "Script validation failed")

        errors.extend(self.patterns.analyze_script(script).errors)
        errors.extend(self.resources.analyze_script(script, language).errors)

        if errors:
            return ValidationResponseBuilder.error(errors, "Script validation failed")

        return ValidationResponseBuilder.success()


_default_validator: ScriptValidator | None = None


def get_validator() -> ScriptValidator:
    """Return the process-wide validator, built on first use."""
    global _default_validator
    if _default_validator is None:
        _default_validator = ScriptValidator()
    return _default_validator


def validate_script(script: str, language: str = "javascript") -> ValidateResponse:
    """Validate *script* with the default limits and pattern registry."""
    return get_validator().validate(script, language)
