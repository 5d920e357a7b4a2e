"""Hard resource limits that no script content can bypass.

Checks the absolute script size first, then the first ``vus`` property
declared anywhere in the script.
"""

from __future__ import annotations

import logging

import re2

from ..config import DEFAULT_VALIDATION_CONFIG, ValidationConfig
from .ast_engine import ASTEngine
from .models import AnalysisVerdict

logger = logging.getLogger(__name__)

VUS_PROPERTY = "vus"

# JavaScript parseInt(text, 10): leading whitespace, optional sign, digits
_INT_PREFIX = re2.compile(r"^\s*([+-]?[0-9]+)")


def script_length(script: str) -> int:
    """Length of *script* in UTF-16 code units, as a JavaScript string counts it.

    Characters outside the Basic Multilingual Plane count as two.
    """
    return len(script.encode("utf-16-le", errors="surrogatepass")) // 2


def parse_int_prefix(text: str) -> int | None:
    """Parse *text* the way JavaScript ``parseInt(text, 10)`` does.

    Returns None where parseInt would return NaN.
    """
    match = _INT_PREFIX.search(text)
    if match is None:
        return None
    return int(match.group(1))


class ResourceAnalyzer:
    """Enforces the script size ceiling and the virtual user ceiling."""

    def __init__(
        self,
        config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
        engine: ASTEngine | None = None,
    ) -> None:
        self.config = config
        self.engine = engine or ASTEngine()

    def analyze_script(self, script: str, language: str = "javascript") -> AnalysisVerdict:
        result = AnalysisVerdict()

        # Cheapest check first; oversized scripts are never parsed
        size = script_length(script)
        if size > self.config.max_script_size:
            result.add_error(
                f"Script size exceeds maximum allowed length: "
                f"{size} > {self.config.max_script_size} bytes"
            )
            return result

        try:
            self._check_vus_limit(script, language, result)
        except Exception as e:
            logger.exception("Resource analysis failed", extra={"analyzer": "resource"})
            result.add_error(str(e) or "Resource analysis failed")

        return result

    def _check_vus_limit(self, script: str, language: str, result: AnalysisVerdict) -> None:
        with self.engine.parsed(script, language) as ast:
            prop = self.engine.find_first_property(ast, VUS_PROPERTY)

        if prop is None or not prop.value_text:
            return

        value_text = prop.value_text
        vus = parse_int_prefix(value_text)

        if vus is None:
            result.add_error(
                f"Invalid VUs value: '{value_text}' is not a number "
                f"(found: vus: {value_text})"
            )
            logger.warning(
                f"Invalid VUs value detected: '{value_text}' is not a number",
                extra={"event": "invalid_vus"},
            )
        elif vus > self.config.max_vus:
            result.add_error(
                f"VUs limit exceeded: {vus} > {self.config.max_vus} (found: vus: {vus})"
            )
            logger.warning(
                f"Hard limit violation: VUs {vus} exceeds maximum {self.config.max_vus}",
                extra={"event": "vus_limit_exceeded"},
            )
