"""Static analysis of k6 load-test scripts.

The analyzers in this package never execute the script. They parse it with
tree-sitter and scan its raw text with RE2 patterns.

Quick start::

    from k6validator.analysis import StructuralAnalyzer

    analysis = StructuralAnalyzer().analyze_script(
        "import http from 'k6/http'; export default function () {}"
    )
    print(analysis.has_protocol_imports)
"""

from .ast_engine import ASTEngine, ImportStatement, ObjectProperty, ParsedScript
from .models import (
    AnalysisVerdict,
    ImportFact,
    PatternViolation,
    ScriptAnalysis,
    ValidateResponse,
)
from .pattern_analyzer import PatternAnalyzer
from .patterns import (
    DEFAULT_REGISTRY,
    FORBIDDEN_MODULES,
    PROTOCOL_MODULES,
    PatternCategory,
    PatternRegistry,
    SecurityPattern,
    build_registry,
    classify_import,
    is_allowed_import,
    is_forbidden_module,
    is_k6_module,
    is_protocol_module,
    is_relative_import,
)
from .resource import ResourceAnalyzer
from .structural import StructuralAnalyzer

__all__ = [
    "ASTEngine",
    "AnalysisVerdict",
    "DEFAULT_REGISTRY",
    "FORBIDDEN_MODULES",
    "ImportFact",
    "ImportStatement",
    "ObjectProperty",
    "PROTOCOL_MODULES",
    "ParsedScript",
    "PatternAnalyzer",
    "PatternCategory",
    "PatternRegistry",
    "PatternViolation",
    "ResourceAnalyzer",
    "ScriptAnalysis",
    "SecurityPattern",
    "StructuralAnalyzer",
    "ValidateResponse",
    "build_registry",
    "classify_import",
    "is_allowed_import",
    "is_forbidden_module",
    "is_k6_module",
    "is_protocol_module",
    "is_relative_import",
]
