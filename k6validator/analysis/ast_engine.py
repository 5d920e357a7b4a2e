"""Syntax tree engine for k6 scripts.

This module wraps tree-sitter for parsing JavaScript/TypeScript k6 scripts
and extracting the handful of structural facts the analyzers need: import
statements, exported entry points, and object literal properties.

Every parse builds a fresh ``tree_sitter.Parser`` and a fresh tree. Only the
immutable ``Language`` objects are cached. Trees are scoped to one analysis
call through :meth:`ASTEngine.parsed`, which releases the tree on every exit
path::

    engine = ASTEngine()
    with engine.parsed(source) as ast:
        for imp in engine.find_imports(ast):
            print(imp.module)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock

import tree_sitter as ts
import tree_sitter_javascript as ts_js
import tree_sitter_typescript as ts_ts

from ..core.exceptions import ScriptParseError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes for structured results
# ---------------------------------------------------------------------------


@dataclass
class ImportStatement:
    """Represents a static ``import`` declaration.

    Attributes:
        module: The decoded module specifier (e.g., ``"k6/http"``).
        line: 1-based line number.
    """

    module: str
    line: int = 0


@dataclass
class ObjectProperty:
    """An object literal ``key: value`` pair.

    Attributes:
        key: Source text of the key (quotes kept for string keys).
        value_text: Source text of the value expression.
        line: 1-based line number.
    """

    key: str
    value_text: str
    line: int = 0


# ---------------------------------------------------------------------------
# ParsedScript wrapper
# ---------------------------------------------------------------------------


class ParsedScript:
    """Wrapper around a tree-sitter parse tree scoped to one analysis.

    Attributes:
        tree: The underlying ``tree_sitter.Tree``; ``None`` once released.
        source_code: Original source string that was parsed.
        language: Language identifier (``"javascript"`` or ``"typescript"``).
    """

    __slots__ = ("tree", "source_code", "language", "_source_bytes")

    def __init__(self, tree: ts.Tree, source_code: str, language: str) -> None:
        self.tree: ts.Tree | None = tree
        self.source_code = source_code
        self.language = language
        self._source_bytes: bytes = source_code.encode("utf-8")

    @property
    def released(self) -> bool:
        return self.tree is None

    @property
    def root_node(self) -> ts.Node:
        """Return the root node of the parse tree."""
        if self.tree is None:
            raise RuntimeError("Syntax tree has already been released")
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        """Return ``True`` if the tree contains any parse errors."""
        return self.root_node.has_error

    def release(self) -> None:
        """Drop the tree and source buffer so nothing outlives the call."""
        self.tree = None
        self._source_bytes = b""

    def get_text(self, node: ts.Node) -> str:
        """Extract the source text spanned by *node*."""
        return self._source_bytes[node.start_byte:node.end_byte].decode(
            "utf-8", errors="replace"
        )

    def iter_nodes(self) -> Iterator[ts.Node]:
        """Yield every node in document (pre-order) order.

        Iterative so adversarially deep nesting cannot exhaust the Python
        stack.
        """
        stack = [self.root_node]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def first_error(self) -> ts.Node | None:
        """Return the first ERROR or missing node, in document order."""
        if not self.has_errors:
            return None
        for node in self.iter_nodes():
            if node.type == "ERROR" or node.is_missing:
                return node
        return None


# ---------------------------------------------------------------------------
# Supported languages
# ---------------------------------------------------------------------------

_SUPPORTED_LANGUAGES = frozenset({"javascript", "typescript"})

_EXTENSION_LANGUAGES = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
}

_EXPORTED_FUNCTION_DECLARATIONS = frozenset({
    "function_declaration",
    "generator_function_declaration",
})

# "function" is the anonymous function expression node in older grammars
_FUNCTION_EXPRESSIONS = frozenset({
    "function_expression",
    "function",
    "generator_function",
})

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


def language_for_filename(filename: str | None) -> str:
    """Map a script filename to a parser language (default JavaScript)."""
    if filename:
        for ext, language in _EXTENSION_LANGUAGES.items():
            if filename.lower().endswith(ext):
                return language
    return "javascript"


def _decode_escape(sequence: str) -> str:
    """Decode one JavaScript string escape sequence such as ``\\x41``."""
    body = sequence[1:]
    if not body:
        return ""
    try:
        if body[0] == "x" and len(body) == 3:
            return chr(int(body[1:], 16))
        if body.startswith("u{") and body.endswith("}"):
            return chr(int(body[2:-1], 16))
        if body[0] == "u" and len(body) == 5:
            return chr(int(body[1:], 16))
    except ValueError:
        return body
    if body[0] in "\r\n\u2028\u2029":
        # Line continuation
        return ""
    return _SIMPLE_ESCAPES.get(body, body)


# ---------------------------------------------------------------------------
# ASTEngine
# ---------------------------------------------------------------------------


class ASTEngine:
    """Parsing engine for k6 scripts.

    ``Language`` objects are created lazily and shared (they are immutable).
    Parsers and trees are never shared: each :meth:`parse` builds its own.

    Example::

        engine = ASTEngine()
        with engine.parsed(source) as ast:
            print(engine.has_exported_function(ast))
    """

    _languages: dict[str, ts.Language] = {}
    _languages_lock = Lock()

    # ------------------------------------------------------------------
    # Language initialisation
    # ------------------------------------------------------------------

    @classmethod
    def _get_language(cls, language: str) -> ts.Language:
        """Return (and cache) the tree-sitter ``Language`` for *language*.

        Raises:
            ValueError: If *language* is not supported.
        """
        if language not in _SUPPORTED_LANGUAGES:
            raise ValueError(
                f"Unsupported language: {language!r}. "
                f"Supported: {', '.join(sorted(_SUPPORTED_LANGUAGES))}"
            )

        with cls._languages_lock:
            if language not in cls._languages:
                if language == "javascript":
                    cls._languages[language] = ts.Language(ts_js.language())
                else:
                    cls._languages[language] = ts.Language(
                        ts_ts.language_typescript()
                    )
            return cls._languages[language]

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, source_code: str, language: str = "javascript") -> ParsedScript:
        """Parse *source_code* with a fresh parser.

        Prefer :meth:`parsed`, which guarantees the tree is released.

        Raises:
            ValueError: If *language* is not supported.
        """
        parser = ts.Parser(language=self._get_language(language))
        tree = parser.parse(source_code.encode("utf-8"))
        return ParsedScript(tree=tree, source_code=source_code, language=language)

    @contextmanager
    def parsed(
        self, source_code: str, language: str = "javascript"
    ) -> Iterator[ParsedScript]:
        """Parse *source_code* and release the tree when the block exits."""
        ast = self.parse(source_code, language)
        try:
            yield ast
        finally:
            ast.release()

    def check_syntax(self, ast: ParsedScript) -> None:
        """Raise ScriptParseError if *ast* contains syntax errors."""
        error_node = ast.first_error()
        if error_node is None:
            return
        line = error_node.start_point.row + 1
        column = error_node.start_point.column + 1
        logger.debug(f"Syntax error node {error_node.type!r} at {line}:{column}")
        raise ScriptParseError(
            f"Script parsing failed: syntax error at line {line}, column {column}",
            line=line,
            column=column,
        )

    # ------------------------------------------------------------------
    # Structured finders
    # ------------------------------------------------------------------

    def find_imports(self, ast: ParsedScript) -> list[ImportStatement]:
        """Find top-level ES module ``import`` declarations, in source order.

        TypeScript ``import x = require('y')`` forms have no source string
        and are not import declarations; they are skipped.
        """
        imports: list[ImportStatement] = []
        for node in ast.root_node.children:
            if node.type != "import_statement":
                continue
            source_node = node.child_by_field_name("source")
            if source_node is None or source_node.type != "string":
                continue

            imports.append(
                ImportStatement(
                    module=self.string_value(ast, source_node),
                    line=node.start_point.row + 1,
                )
            )
        return imports

    def has_exported_function(self, ast: ParsedScript) -> bool:
        """Return True if the script exports an entry-point function.

        Matches ``export default function () {}`` (a function expression as
        the default export) and any exported top-level function declaration
        (``export function f() {}``, ``export default function f() {}``).
        Arrow functions and exported variables holding functions do not
        count.
        """
        for node in ast.root_node.children:
            if node.type != "export_statement":
                continue
            declaration = node.child_by_field_name("declaration")
            if declaration is not None and declaration.type in _EXPORTED_FUNCTION_DECLARATIONS:
                return True
            value = node.child_by_field_name("value")
            if value is not None and value.type in _FUNCTION_EXPRESSIONS:
                return True
        return False

    def find_first_property(self, ast: ParsedScript, key: str) -> ObjectProperty | None:
        """Return the first object literal pair whose key text is *key*.

        The search covers the whole tree in document order, regardless of
        which object the pair belongs to, and stops at the first hit.
        """
        for node in ast.iter_nodes():
            if node.type != "pair":
                continue
            key_node = node.child_by_field_name("key")
            if key_node is None or ast.get_text(key_node) != key:
                continue
            value_node = node.child_by_field_name("value")
            return ObjectProperty(
                key=key,
                value_text=ast.get_text(value_node) if value_node is not None else "",
                line=key_node.start_point.row + 1,
            )
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def string_value(ast: ParsedScript, node: ts.Node) -> str:
        """Return the decoded value of a ``string`` node, without quotes."""
        parts: list[str] = []
        for child in node.children:
            if child.type == "string_fragment":
                parts.append(ast.get_text(child))
            elif child.type == "escape_sequence":
                parts.append(_decode_escape(ast.get_text(child)))
        return "".join(parts)
