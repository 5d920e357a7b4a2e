"""
Pattern registry for static analysis of k6 load-test scripts.

This module holds the immutable tables the analyzers consult:

- Security patterns grouped by violation category, compiled once at import
  time with RE2. RE2 guarantees matching time linear in the input, which is
  required because every byte scanned is attacker-supplied.
- The Node.js module denylist.
- Name predicates classifying import specifiers as k6 modules, protocol
  modules, or relative imports.

Nothing in here holds per-call state. ``DEFAULT_REGISTRY`` is shared by all
analyzers and is safe for concurrent reads.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

import re2

from ..core.exceptions import PatternCompileError
from .models import ImportFact


class PatternCategory(str, Enum):
    """Categories of security patterns, in the order they are checked."""

    DANGEROUS_FUNCTIONS = "dangerous_functions"
    XSS_PATTERNS = "xss_patterns"
    SQL_INJECTION = "sql_injection"
    CODE_OBFUSCATION = "code_obfuscation"

    @property
    def description(self) -> str:
        return CATEGORY_DESCRIPTIONS[self]


CATEGORY_DESCRIPTIONS: Mapping[PatternCategory, str] = MappingProxyType({
    PatternCategory.DANGEROUS_FUNCTIONS: (
        "Script contains dangerous functions that could execute arbitrary code"
    ),
    PatternCategory.XSS_PATTERNS: (
        "Script contains XSS patterns that could inject malicious content"
    ),
    PatternCategory.SQL_INJECTION: "Script contains SQL injection patterns",
    PatternCategory.CODE_OBFUSCATION: (
        "Script contains code obfuscation patterns that may hide malicious intent"
    ),
})


@dataclass(frozen=True)
class SecurityPattern:
    """A security pattern definition.

    Attributes:
        rule_id: Unique identifier (e.g., "DF-001").
        category: The violation category.
        name: Short human-readable name.
        expression: RE2 source, flags given inline.
    """

    rule_id: str
    category: PatternCategory
    name: str
    expression: str
    _compiled: Any = field(default=None, repr=False, compare=False)

    def compiled(self) -> Any:
        if self._compiled is None:
            raise PatternCompileError(f"Pattern {self.rule_id} was not compiled")
        return self._compiled

    def search(self, text: str) -> Any:
        """Return the leftmost match in *text*, or None."""
        return self.compiled().search(text)


# ---------------------------------------------------------------------------
# Pattern definitions
# ---------------------------------------------------------------------------

# SQL patterns use bounded quantifiers so they stay cheap even if someone
# ever swaps the engine for a backtracking one.
_PATTERN_DEFINITIONS: tuple[tuple[str, PatternCategory, str, str], ...] = (
    # Dangerous function detection, including constructor bypasses
    ("DF-001", PatternCategory.DANGEROUS_FUNCTIONS, "eval() call",
     r"(?i)\beval\s*\("),
    ("DF-002", PatternCategory.DANGEROUS_FUNCTIONS, "Function constructor",
     r"(?i)\bnew\s+Function\s*\("),
    ("DF-003", PatternCategory.DANGEROUS_FUNCTIONS, "Global Function() call",
     r"(?i)\b(?:window\.|globalThis\.)Function\s*\("),
    ("DF-004", PatternCategory.DANGEROUS_FUNCTIONS, "Bracket constructor access",
     r"""(?i)\b(?:this|self)\[['"`]Function['"`]\]"""),
    # Cross-site scripting
    ("XSS-001", PatternCategory.XSS_PATTERNS, "Inline script tag",
     r"(?is)<script[^>]*>.*?</script>"),
    ("XSS-002", PatternCategory.XSS_PATTERNS, "javascript: URI",
     r"(?i)javascript\s*:"),
    ("XSS-003", PatternCategory.XSS_PATTERNS, "Inline event handler",
     r"(?i)\bon(click|load|error|focus|blur)\s*="),
    # SQL injection
    ("SQL-001", PatternCategory.SQL_INJECTION, "UNION SELECT",
     r"(?i)\bUNION\s+SELECT\b"),
    ("SQL-002", PatternCategory.SQL_INJECTION, "SELECT ... FROM",
     r"(?i)\bSELECT\s+[\w*,\s]{1,30}\s+FROM\b"),
    ("SQL-003", PatternCategory.SQL_INJECTION, "Destructive statement",
     r"(?i)\b(DROP|DELETE|INSERT|UPDATE)\s+(TABLE|FROM|INTO|SET)\b"),
    # Code obfuscation
    ("OBF-001", PatternCategory.CODE_OBFUSCATION, "Hex escape",
     r"(?i)\\x[0-9a-f]{2}"),
    ("OBF-002", PatternCategory.CODE_OBFUSCATION, "Unicode escape",
     r"(?i)\\u[0-9a-f]{4}"),
    ("OBF-003", PatternCategory.CODE_OBFUSCATION, "Character code conversion",
     r"(?i)String\.fromCharCode"),
)


def compile_pattern(
    rule_id: str, category: PatternCategory, name: str, expression: str
) -> SecurityPattern:
    """Compile *expression* with RE2 into a SecurityPattern.

    Raises:
        PatternCompileError: If RE2 rejects the expression (for example
            because it needs backreferences or lookaround).
    """
    try:
        compiled = re2.compile(expression)
    except re2.error as e:
        raise PatternCompileError(f"Pattern {rule_id} failed to compile: {e}") from e
    return SecurityPattern(
        rule_id=rule_id,
        category=category,
        name=name,
        expression=expression,
        _compiled=compiled,
    )


@dataclass(frozen=True)
class PatternRegistry:
    """Immutable mapping of category to its ordered, compiled patterns."""

    patterns: Mapping[PatternCategory, tuple[SecurityPattern, ...]]

    def __iter__(self) -> Iterator[tuple[PatternCategory, tuple[SecurityPattern, ...]]]:
        for category in PatternCategory:
            yield category, self.patterns.get(category, ())

    def for_category(self, category: PatternCategory) -> tuple[SecurityPattern, ...]:
        return self.patterns.get(category, ())

    def __len__(self) -> int:
        return sum(len(p) for p in self.patterns.values())


def build_registry(
    definitions: tuple[tuple[str, PatternCategory, str, str], ...] = _PATTERN_DEFINITIONS,
) -> PatternRegistry:
    """Compile *definitions* into a frozen PatternRegistry."""
    grouped: dict[PatternCategory, list[SecurityPattern]] = {c: [] for c in PatternCategory}
    for rule_id, category, name, expression in definitions:
        grouped[category].append(compile_pattern(rule_id, category, name, expression))
    return PatternRegistry(
        patterns=MappingProxyType({c: tuple(p) for c, p in grouped.items()})
    )


DEFAULT_REGISTRY = build_registry()


# ---------------------------------------------------------------------------
# Module classification
# ---------------------------------------------------------------------------

K6_ROOT_MODULE = "k6"

PROTOCOL_MODULES: frozenset[str] = frozenset({
    "k6/http",
    "k6/ws",
    "k6/net/grpc",
})

FORBIDDEN_MODULES: frozenset[str] = frozenset({
    # File system and process control
    "child_process", "fs", "os", "path", "vm", "cluster",
    # Network and crypto operations
    "net", "dgram", "tls", "dns", "crypto",
    # Utility modules that can be misused
    "zlib", "util", "events", "stream", "buffer",
})


def is_forbidden_module(name: str) -> bool:
    return name in FORBIDDEN_MODULES


def is_k6_module(name: str) -> bool:
    """All ``k6`` and ``k6/*`` modules are maintained upstream and allowed."""
    return name == K6_ROOT_MODULE or name.startswith(K6_ROOT_MODULE + "/")


def is_protocol_module(name: str) -> bool:
    return name in PROTOCOL_MODULES


def is_relative_import(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../")


def is_allowed_import(specifier: str) -> bool:
    return is_k6_module(specifier) or is_relative_import(specifier)


def classify_import(specifier: str, line: int = 0) -> ImportFact:
    """Build an ImportFact for *specifier*."""
    return ImportFact(
        module=specifier,
        line=line,
        is_k6_module=is_k6_module(specifier),
        is_protocol_module=is_protocol_module(specifier),
        is_relative_import=is_relative_import(specifier),
        is_forbidden=is_forbidden_module(specifier),
    )
