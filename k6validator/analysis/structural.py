"""Structural analysis of k6 scripts: imports and exported entry points.

A single parse answers three questions: are all imports allowed, does the
script import a k6 protocol module, and does it export a test function.
"""

from __future__ import annotations

import logging

from ..core.exceptions import ScriptParseError
from . import patterns
from .ast_engine import ASTEngine
from .models import ScriptAnalysis

logger = logging.getLogger(__name__)


class StructuralAnalyzer:
    """Classifies imports and detects an exported entry point in one pass."""

    def __init__(self, engine: ASTEngine | None = None) -> None:
        self.engine = engine or ASTEngine()

    def analyze_script(self, script: str, language: str = "javascript") -> ScriptAnalysis:
        """Analyze imports and exports of *script*.

        Never raises: parse failures and unexpected errors come back as a
        single error on an invalid result.
        """
        result = ScriptAnalysis()

        try:
            with self.engine.parsed(script, language) as ast:
                self.engine.check_syntax(ast)

                for statement in self.engine.find_imports(ast):
                    fact = patterns.classify_import(statement.module, statement.line)
                    result.imports.append(fact)

                    if fact.is_allowed:
                        result.has_k6_imports = True
                        if fact.is_protocol_module:
                            result.has_protocol_imports = True
                    elif fact.is_forbidden:
                        message = f"Forbidden Node.js module: {fact.module}"
                        result.add_error(message)
                        logger.warning(
                            f"Security violation: {message}",
                            extra={"event": "forbidden_import", "import_module": fact.module},
                        )
                    else:
                        result.add_error(f"Unknown/disallowed import: {fact.module}")
                        logger.warning(
                            f"Disallowed import detected: {fact.module}",
                            extra={"event": "unknown_import", "import_module": fact.module},
                        )

                result.has_exported_function = self.engine.has_exported_function(ast)
        except ScriptParseError as e:
            result.add_error(str(e))
            logger.info(str(e), extra={"event": "parse_failed", "analyzer": "structural"})
        except Exception as e:
            logger.exception("Structural analysis failed", extra={"analyzer": "structural"})
            result.add_error(str(e) or "Script parsing failed")

        return result
