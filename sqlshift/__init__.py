"""
sqlshift: translate SQL between PostgreSQL, MySQL, Oracle and T-SQL.

    >>> from sqlshift import translate
    >>> translate("SELECT TOP 5 name FROM t", "tsql", "postgres")
    'SELECT name FROM t LIMIT 5;'
"""

from __future__ import annotations

from .dialects import BUILTIN_DIALECTS, Dialect, derive_dialect, get_dialect
from .emitter import ApproximationPolicy, EmitResult, Emitter, emit
from .errors import (
    AmbiguousConstructWarning,
    ConfigError,
    EmitError,
    LexError,
    ParseError,
    Position,
    SqlShiftError,
    SqlSyntaxError,
    UnsupportedFeatureError,
)
from .features import FeatureTag
from .parser import parse_script, parse_sql
from .results import BatchResult, StatementResult
from .translator import Translator, translate

__version__ = "0.1.0"

__all__ = [
    "AmbiguousConstructWarning",
    "ApproximationPolicy",
    "BUILTIN_DIALECTS",
    "BatchResult",
    "ConfigError",
    "Dialect",
    "EmitError",
    "EmitResult",
    "Emitter",
    "FeatureTag",
    "LexError",
    "ParseError",
    "Position",
    "SqlShiftError",
    "SqlSyntaxError",
    "StatementResult",
    "Translator",
    "UnsupportedFeatureError",
    "derive_dialect",
    "emit",
    "get_dialect",
    "parse_script",
    "parse_sql",
    "translate",
]
