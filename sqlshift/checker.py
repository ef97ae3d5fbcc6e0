"""
sqlshift/checker.py

Feature compatibility checker.

Given a canonical AST and a target Dialect, report which FeatureTags the tree
needs but the dialect lacks. Everything here is a pure function of its
arguments: it can be called any number of times (diagnostics, REPL .features)
without affecting emission.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Iterator

from .ast import (
    AggregateCall,
    ArrayConstructor,
    Between,
    BinaryOp,
    CaseExpression,
    ColumnRef,
    CreateView,
    CteDefinition,
    DeleteStatement,
    DerivedTable,
    Exists,
    ExplainStatement,
    Identifier,
    InList,
    InSubquery,
    IsNull,
    JoinClause,
    JoinKind,
    JsonExtract,
    Like,
    Literal,
    LiteralKind,
    LockClause,
    LockMode,
    MergeClause,
    MergeStatement,
    Not,
    OrderItem,
    PivotTable,
    QUERY_TYPES,
    RowLimit,
    RowLimitMode,
    SelectStatement,
    SetOperation,
    StringAggregate,
    TypeSpec,
    UnpivotTable,
    UpdateStatement,
    WhenClause,
    WindowCall,
)
from .dialects import Dialect
from .features import FeatureTag


# ---------------- traversal ----------------

def iter_children(node: Any) -> Iterator[Any]:
    """Yield the direct child nodes of an AST node, in field order."""
    for f in dataclasses.fields(node):
        yield from _nodes_in(getattr(node, f.name))


def _nodes_in(value: Any) -> Iterator[Any]:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        yield value
    elif isinstance(value, tuple):
        for v in value:
            yield from _nodes_in(v)


def walk(node: Any, *, into_queries: bool = True) -> Iterator[Any]:
    """
    Depth-first, pre-order traversal of an AST.

    Args:
        node: Root node.
        into_queries: When False, nested queries (subqueries, EXISTS, IN (SELECT))
            are not entered; the walk stays inside the current query scope.
    """
    yield node
    for child in iter_children(node):
        if not into_queries and isinstance(child, QUERY_TYPES):
            continue
        yield from walk(child, into_queries=into_queries)


# ---------------- boolean positions ----------------

_COMPARISONS = frozenset({"=", "<>", "<", ">", "<=", ">="})

# Fields that hold a search condition rather than a value.
_CONDITION_FIELDS: dict[type, tuple[str, ...]] = {
    SelectStatement: ("where", "having"),
    UpdateStatement: ("where",),
    DeleteStatement: ("where",),
    JoinClause: ("condition",),
    MergeStatement: ("condition",),
    MergeClause: ("condition",),
    Not: ("operand",),
}


def is_condition(e: Any) -> bool:
    """True for expressions that produce a truth value (comparisons, AND/OR, IS NULL, ...)."""
    if isinstance(e, BinaryOp):
        return e.op in ("AND", "OR") or e.op in _COMPARISONS
    return isinstance(e, (Not, IsNull, InList, InSubquery, Between, Like, Exists))


def is_plain_value(e: Any) -> bool:
    """An expression that is not a condition. Boolean and NULL literals count as neither."""
    if isinstance(e, Literal) and e.kind in (LiteralKind.BOOLEAN, LiteralKind.NULL):
        return False
    return not is_condition(e)


def _condition_fields(node: Any) -> tuple[str, ...]:
    if isinstance(node, BinaryOp) and node.op in ("AND", "OR"):
        return ("left", "right")
    return _CONDITION_FIELDS.get(type(node), ())


def misplaced_booleans(node: Any) -> bool:
    """
    True if a direct child of `node` mixes values and conditions: a condition
    in a value slot (SELECT a = 1) or a bare value in a condition slot
    (WHERE flag). Dialects without BOOLEAN_EXPRESSIONS reject both.
    """
    cond_fields = _condition_fields(node)
    for f in dataclasses.fields(node):
        if isinstance(node, (WhenClause, CaseExpression)) and f.name in ("condition", "whens"):
            continue
        for child in _nodes_in(getattr(node, f.name)):
            if f.name in cond_fields:
                if is_plain_value(child):
                    return True
            elif is_condition(child):
                return True
    if isinstance(node, CaseExpression):
        # searched CASE takes conditions, simple CASE compares values
        test = is_condition if node.operand is not None else is_plain_value
        return any(test(w.condition) for w in node.whens)
    return False


# ---------------- feature requirements ----------------

# Materialized view refresh that every dialect with MATERIALIZED_VIEW can do.
MANUAL_REFRESH = frozenset({"COMPLETE", "ON DEMAND", "COMPLETE ON DEMAND"})


def node_features(node: Any) -> frozenset[FeatureTag]:
    """Tags required by a single node (children not included)."""
    tags: set[FeatureTag] = set()
    if misplaced_booleans(node):
        tags.add(FeatureTag.BOOLEAN_EXPRESSIONS)

    if isinstance(node, CteDefinition):
        tags.add(FeatureTag.CTE)
        if node.is_recursive:
            tags.add(FeatureTag.RECURSIVE_CTE)
    elif isinstance(node, MergeStatement):
        tags.add(FeatureTag.MERGE_STATEMENT)
    elif isinstance(node, DerivedTable):
        if node.lateral:
            tags.add(FeatureTag.LATERAL_JOIN)
    elif isinstance(node, JoinClause):
        if node.kind == JoinKind.FULL:
            tags.add(FeatureTag.FULL_OUTER_JOIN)
    elif isinstance(node, WindowCall):
        tags.add(FeatureTag.WINDOW_FUNCTIONS)
        frame = node.window.frame
        if frame is not None and frame.unit == "RANGE":
            bounds = [frame.start] + ([frame.end] if frame.end is not None else [])
            if any(b.offset is not None for b in bounds):
                tags.add(FeatureTag.WINDOW_FRAME_RANGE)
    elif isinstance(node, StringAggregate):
        tags.add(FeatureTag.STRING_AGGREGATE)
    elif isinstance(node, ArrayConstructor):
        tags.add(FeatureTag.ARRAY_TYPE)
    elif isinstance(node, AggregateCall):
        if node.name == "ARRAY_AGG":
            tags.add(FeatureTag.ARRAY_TYPE)
    elif isinstance(node, TypeSpec):
        if node.name.endswith("[]"):
            tags.add(FeatureTag.ARRAY_TYPE)
    elif isinstance(node, Like):
        if node.case_insensitive:
            tags.add(FeatureTag.ILIKE)
    elif isinstance(node, Literal):
        if node.kind == LiteralKind.BOOLEAN:
            tags.add(FeatureTag.BOOLEAN_LITERALS)
    elif isinstance(node, RowLimit):
        if node.mode == RowLimitMode.PERCENT:
            tags.add(FeatureTag.ROW_LIMIT_PERCENT)
        elif node.mode == RowLimitMode.WITH_TIES:
            tags.add(FeatureTag.ROW_LIMIT_WITH_TIES)
    elif isinstance(node, LockClause):
        tags.add(FeatureTag.ROW_LOCKING)
        if node.mode == LockMode.SHARE:
            tags.add(FeatureTag.ROW_LOCKING_SHARE)
    elif isinstance(node, OrderItem):
        if node.nulls is not None:
            tags.add(FeatureTag.NULLS_ORDERING)
    elif isinstance(node, (PivotTable, UnpivotTable)):
        tags.add(FeatureTag.PIVOT)
    elif isinstance(node, CreateView):
        if node.materialized:
            tags.add(FeatureTag.MATERIALIZED_VIEW)
        if node.refresh is not None and node.refresh not in MANUAL_REFRESH:
            tags.add(FeatureTag.MATERIALIZED_VIEW_REFRESH)
    elif isinstance(node, ExplainStatement):
        tags.add(FeatureTag.EXPLAIN)
        if node.analyze:
            tags.add(FeatureTag.EXPLAIN_ANALYZE)
    elif isinstance(node, JsonExtract):
        tags.add(FeatureTag.JSON_EXTRACT)

    return frozenset(tags)


def output_names(q: Any) -> tuple[Identifier, ...]:
    """Column names of a query's first (anchor) member, or () if any is unnamed."""
    while isinstance(q, SetOperation):
        q = q.left
    names: list[Identifier] = []
    for item in q.items:
        if item.alias is not None:
            names.append(item.alias)
        elif isinstance(item.expr, ColumnRef):
            names.append(item.expr.name)
        else:
            return ()
    return tuple(names)


def required_features(root: Any) -> frozenset[FeatureTag]:
    """Every tag needed anywhere in the tree."""
    tags: set[FeatureTag] = set()
    for node in walk(root):
        tags |= node_features(node)
    return frozenset(tags)


def node_gaps(node: Any, dialect: Dialect) -> frozenset[FeatureTag]:
    """
    Tags a single node needs that `dialect` cannot express.

    Besides missing tags this reports syntax gaps: constructs built from tags
    the dialect has but cannot combine.
    - TOP-style dialects cannot put PERCENT or WITH TIES together with an offset.
    - APPLY-style dialects cannot attach an ON condition to a lateral join.
    - Dialects that need a recursive CTE's column list cannot get one from an
      anchor member with unnamed columns (SELECT *, unaliased expressions).
    """
    gaps = {t for t in node_features(node) if not dialect.supports(t)}

    if isinstance(node, CteDefinition) and node.is_recursive and dialect.recursive_cte_columns:
        if not node.columns and not output_names(node.query):
            gaps.add(FeatureTag.RECURSIVE_CTE)

    if isinstance(node, RowLimit) and node.offset is not None and node.mode != RowLimitMode.LIMIT:
        if "TOP" in dialect.clause_order:
            gaps.add(
                FeatureTag.ROW_LIMIT_PERCENT
                if node.mode == RowLimitMode.PERCENT
                else FeatureTag.ROW_LIMIT_WITH_TIES
            )
    elif isinstance(node, JoinClause) and dialect.apply_joins:
        lateral = isinstance(node.right, DerivedTable) and node.right.lateral
        if lateral and (node.condition is not None or node.using):
            gaps.add(FeatureTag.LATERAL_JOIN)
        if lateral and node.kind not in (JoinKind.CROSS, JoinKind.INNER, JoinKind.LEFT):
            gaps.add(FeatureTag.LATERAL_JOIN)

    return frozenset(gaps)


def find_unsupported(root: Any, dialect: Dialect) -> frozenset[FeatureTag]:
    """
    Return the set of FeatureTags present in the tree that `dialect` cannot express.

    An empty set means the tree can be emitted for `dialect` as-is.
    """
    missing: set[FeatureTag] = set()
    for node in walk(root):
        missing |= node_gaps(node, dialect)
    return frozenset(missing)


def unsupported_nodes(root: Any, dialect: Dialect) -> list[tuple[Any, frozenset[FeatureTag]]]:
    """(node, gaps) pairs in walk order, for diagnostics that point at constructs."""
    out = []
    for node in walk(root):
        gaps = node_gaps(node, dialect)
        if gaps:
            out.append((node, gaps))
    return out
