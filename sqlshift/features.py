"""
sqlshift/features.py

Feature tags: capabilities that not every dialect has.

Dialects declare the tags they support; AST nodes require tags. The checker
compares the two before anything is rendered.
"""

from __future__ import annotations

from enum import Enum, auto


class FeatureTag(Enum):
    """Dialect-divergent capabilities used to gate translation."""
    CTE = auto()
    RECURSIVE_CTE = auto()
    MERGE_STATEMENT = auto()
    LATERAL_JOIN = auto()
    FULL_OUTER_JOIN = auto()
    WINDOW_FUNCTIONS = auto()
    WINDOW_FRAME_RANGE = auto()      # RANGE frames with value offsets
    STRING_AGGREGATE = auto()        # exact (untruncated) aggregate string concatenation
    ARRAY_TYPE = auto()
    ILIKE = auto()
    BOOLEAN_LITERALS = auto()
    BOOLEAN_EXPRESSIONS = auto()     # conditions as values, bare values as conditions
    ROW_LIMIT_PERCENT = auto()
    ROW_LIMIT_WITH_TIES = auto()
    ROW_LOCKING = auto()             # SELECT ... FOR UPDATE
    ROW_LOCKING_SHARE = auto()       # SELECT ... FOR SHARE
    NULLS_ORDERING = auto()          # ORDER BY x NULLS FIRST/LAST
    PIVOT = auto()
    MATERIALIZED_VIEW = auto()
    MATERIALIZED_VIEW_REFRESH = auto()  # REFRESH FAST / ON COMMIT and other non-manual refresh modes
    EXPLAIN = auto()
    EXPLAIN_ANALYZE = auto()
    JSON_EXTRACT = auto()


def parse_feature(name: str) -> FeatureTag:
    """Look up a tag by name, case-insensitively ("merge_statement" works)."""
    key = name.strip().upper().replace("-", "_")
    try:
        return FeatureTag[key]
    except KeyError:
        raise ValueError(f"Unknown feature tag: {name!r}") from None
