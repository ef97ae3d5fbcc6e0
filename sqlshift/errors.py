"""
sqlshift/errors.py

Centralized exception types for the sqlshift translator.

This module defines:
- A common base exception for all translator errors
- A lightweight Position structure for reporting errors with line/column context
- Specialized error types used across lexer/parser/emitter/config layers
- The non-fatal AmbiguousConstructWarning
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


class SqlShiftError(Exception):
    """
    Base class for all sqlshift errors.

    Catching this exception allows callers (CLI/REPL/batch runner) to handle all
    translation errors without accidentally swallowing unrelated system exceptions.
    """


@dataclass(frozen=True)
class Position:
    """
    Represents a location in an input SQL string.

    Attributes:
        line: 1-based line number
        col:  1-based column number
    """
    line: int
    col: int

    def __str__(self) -> str:
        return f"line {self.line}, col {self.col}"


class SqlSyntaxError(SqlShiftError):
    """
    Raised when tokenization/parsing fails due to invalid SQL syntax.

    Args:
        message: Human readable explanation.
        position: Optional Position indicating where the error occurred.
    """

    def __init__(self, message: str, position: Position | None = None):
        self.message = message
        self.position = position
        super().__init__(self.__str__())

    def __str__(self) -> str:
        name = type(self).__name__
        if self.position is None:
            return f"{name}: {self.message}"
        return f"{name} at line {self.position.line}, col {self.position.col}: {self.message}"


class LexError(SqlSyntaxError):
    """
    Raised by the tokenizer for malformed tokens.

    Examples:
      - Unterminated string literal, quoted identifier or block comment
      - Unterminated $$-delimited body
      - Character that starts no token
    """

    @property
    def reason(self) -> str:
        return self.message


class ParseError(SqlSyntaxError):
    """
    Raised when the token stream violates the grammar.

    Args:
        message: Human readable explanation.
        position: Where the offending token starts.
        expected: What the parser was looking for (optional).
        found: Source text of the token actually present (optional).
    """

    def __init__(
        self,
        message: str,
        position: Position | None = None,
        expected: str | None = None,
        found: str | None = None,
    ):
        self.expected = expected
        self.found = found
        super().__init__(message, position)


class EmitError(SqlShiftError):
    """
    Raised when an AST cannot be rendered for the target dialect.

    Attributes:
        node: The AST node (statement root or construct) that failed.
        missing_features: FeatureTags the target dialect lacks.
        dialect: Target dialect name.
    """

    def __init__(self, node: Any, missing_features: Iterable[Any], dialect: str):
        self.node = node
        self.missing_features = tuple(sorted(missing_features, key=lambda t: t.name))
        self.dialect = dialect
        super().__init__(self.__str__())

    @property
    def missing_feature(self):
        """First missing feature (the one reported in short diagnostics)."""
        return self.missing_features[0] if self.missing_features else None

    def __str__(self) -> str:
        tags = ", ".join(t.name for t in self.missing_features)
        return f"{type(self).__name__}: {self.dialect} does not support {tags}"


class UnsupportedFeatureError(EmitError):
    """
    Raised when a valid AST needs a feature the target dialect lacks and the
    approximation policy does not allow a substitute.
    """


class ConfigError(SqlShiftError):
    """
    Raised for invalid configuration: unknown dialect or policy names,
    malformed config files, bad derived-dialect definitions.
    """


class AmbiguousConstructWarning(UserWarning):
    """
    Non-fatal diagnostic for input whose intent is unclear.

    Example: WITH RECURSIVE where no CTE references itself.
    """

    def __init__(self, message: str, position: Position | None = None):
        self.message = message
        self.position = position
        super().__init__(message)

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (line {self.position.line}, col {self.position.col})"
