"""Pydantic models for k6 script analysis results.

This module defines the verdicts returned by each analyzer and the
aggregated response returned by the validator.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ImportFact(BaseModel):
    """Classification of a single ``import`` statement.

    Attributes:
        module: The module specifier string (e.g., ``"k6/http"``).
        line: 1-based line number of the import statement.
        is_k6_module: Specifier is ``k6`` or rooted at ``k6/``.
        is_protocol_module: Specifier is one of the k6 network protocol
            modules.
        is_relative_import: Specifier starts with ``./`` or ``../``.
        is_forbidden: Specifier is on the Node.js module denylist.
    """

    model_config = ConfigDict(frozen=True)

    module: str
    line: int = 0
    is_k6_module: bool = False
    is_protocol_module: bool = False
    is_relative_import: bool = False
    is_forbidden: bool = False

    @property
    def is_allowed(self) -> bool:
        return self.is_k6_module or self.is_relative_import

    @property
    def is_unknown(self) -> bool:
        return not self.is_allowed and not self.is_forbidden


class PatternViolation(BaseModel):
    """A security pattern match found in raw script text."""

    model_config = ConfigDict(frozen=True)

    category: str
    pattern_index: int
    matched_text: str
    offset: int = 0


class AnalysisVerdict(BaseModel):
    """Pass/fail verdict produced by a single analyzer.

    ``valid`` is only ever flipped through :meth:`add_error`, which keeps it
    coupled to ``errors`` being non-empty.
    """

    valid: bool = True
    errors: list[str] = Field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.valid = False


class ScriptAnalysis(AnalysisVerdict):
    """Structural facts about a script, from a single parse.

    Attributes:
        has_k6_imports: At least one allowed (k6 or relative) import.
        has_protocol_imports: At least one protocol module import.
        has_exported_function: An exported entry-point function exists.
        imports: Classification of every import statement, in source order.
    """

    has_k6_imports: bool = False
    has_protocol_imports: bool = False
    has_exported_function: bool = False
    imports: list[ImportFact] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    """Aggregated validation result. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    message: str

    def to_dict(self) -> dict[str, object]:
        """Convert to the JSON-ready dictionary shape."""
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "message": self.message,
        }
