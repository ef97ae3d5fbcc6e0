"""
sqlshift/ast.py

Canonical, dialect-neutral AST for the sqlshift translator.

The parser converts token streams into instances of these dataclasses.
The emitter walks them to render a target dialect.

Design notes:
- Every node is a frozen dataclass and every sequence is a tuple, so trees
  compare structurally and can be hashed.
- The node set is closed: the Expr / FromItem / Query / Statement unions at
  the bottom list every variant, and parser and emitter match on them.
- Nodes own their children. Recursive CTEs are a flag plus a name; there are
  no back references, so every traversal is a finite tree walk.
- Parentheses are not stored; precedence lives in the tree shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class LiteralKind(Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"


class JoinKind(Enum):
    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"
    CROSS = "CROSS"


class RowLimitMode(Enum):
    LIMIT = "LIMIT"
    PERCENT = "PERCENT"
    WITH_TIES = "WITH_TIES"


class LockMode(Enum):
    UPDATE = "UPDATE"
    SHARE = "SHARE"


class TransactionAction(Enum):
    BEGIN = "BEGIN"
    COMMIT = "COMMIT"
    ROLLBACK = "ROLLBACK"
    SET_ISOLATION = "SET_ISOLATION"


# ---------- Names ----------

@dataclass(frozen=True)
class Identifier:
    """
    A name as written in the source.

    Attributes:
        name: Identifier text without quotes.
        quoted: Whether the source delimited it; quoted names keep their case.
    """
    name: str
    quoted: bool = False


# ---------- Expressions ----------

@dataclass(frozen=True)
class Literal:
    """
    Literal value.

    Attributes:
        kind: LiteralKind.
        value: NUMBER -> source digits, STRING -> unescaped text,
               BOOLEAN -> "TRUE"/"FALSE", NULL -> "NULL".
    """
    kind: LiteralKind
    value: str


@dataclass(frozen=True)
class ColumnRef:
    """Column reference: column, table.column or schema.table.column."""
    name: Identifier
    table: Identifier | None = None
    schema: Identifier | None = None


@dataclass(frozen=True)
class Star:
    """'*' or 'table.*' in a select list."""
    table: Identifier | None = None


@dataclass(frozen=True)
class UnaryOp:
    """Arithmetic sign: op is '-' or '+'."""
    op: str
    operand: Expr


@dataclass(frozen=True)
class BinaryOp:
    """
    Binary operator: AND, OR, comparison (=, <>, <, >, <=, >=) or
    arithmetic (+, -, *, /, %).
    """
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Not:
    operand: Expr


@dataclass(frozen=True)
class IsNull:
    operand: Expr
    negated: bool = False


@dataclass(frozen=True)
class InList:
    operand: Expr
    items: tuple[Expr, ...]
    negated: bool = False


@dataclass(frozen=True)
class InSubquery:
    operand: Expr
    query: Query
    negated: bool = False


@dataclass(frozen=True)
class Between:
    operand: Expr
    low: Expr
    high: Expr
    negated: bool = False


@dataclass(frozen=True)
class Like:
    """LIKE / ILIKE (case_insensitive) with optional ESCAPE."""
    operand: Expr
    pattern: Expr
    negated: bool = False
    case_insensitive: bool = False
    escape: Expr | None = None


@dataclass(frozen=True)
class Exists:
    """EXISTS (query). NOT EXISTS is Not(Exists(...))."""
    query: Query


@dataclass(frozen=True)
class Concat:
    """String concatenation of two or more parts (a || b || c)."""
    parts: tuple[Expr, ...]


@dataclass(frozen=True)
class FunctionCall:
    """
    Scalar function call.

    Attributes:
        name: Canonical upper-case name for known functions, source spelling otherwise.
        args: Arguments.
        distinct: DISTINCT inside the argument list.
        niladic: Written without parentheses (CURRENT_TIMESTAMP).
    """
    name: str
    args: tuple[Expr, ...] = ()
    distinct: bool = False
    niladic: bool = False


@dataclass(frozen=True)
class AggregateCall:
    """
    Aggregate function (COUNT, SUM, ARRAY_AGG, ...).

    star marks COUNT(*); order_by holds an in-call ORDER BY (ARRAY_AGG(x ORDER BY y)).
    """
    name: str
    args: tuple[Expr, ...] = ()
    distinct: bool = False
    star: bool = False
    order_by: tuple[OrderItem, ...] = ()


@dataclass(frozen=True)
class OrderItem:
    """
    ORDER BY element.

    Attributes:
        expr: Sort key.
        direction: "ASC", "DESC" or None when not written.
        nulls: "FIRST", "LAST" or None.
    """
    expr: Expr
    direction: str | None = None
    nulls: str | None = None


@dataclass(frozen=True)
class StringAggregate:
    """
    Aggregate string concatenation: LISTAGG, STRING_AGG, GROUP_CONCAT.

    The separator is always explicit; GROUP_CONCAT's implicit ',' and
    LISTAGG's implicit '' are filled in by the parser.
    """
    expr: Expr
    separator: Expr
    order_by: tuple[OrderItem, ...] = ()
    distinct: bool = False


@dataclass(frozen=True)
class FrameBound:
    """
    Window frame bound.

    kind: UNBOUNDED_PRECEDING | PRECEDING | CURRENT_ROW | FOLLOWING | UNBOUNDED_FOLLOWING
    offset: Value for PRECEDING/FOLLOWING.
    """
    kind: str
    offset: Expr | None = None


@dataclass(frozen=True)
class WindowFrame:
    """ROWS/RANGE frame. end is None for the single-bound form."""
    unit: str
    start: FrameBound
    end: FrameBound | None = None


@dataclass(frozen=True)
class WindowSpec:
    partition_by: tuple[Expr, ...] = ()
    order_by: tuple[OrderItem, ...] = ()
    frame: WindowFrame | None = None


@dataclass(frozen=True)
class WindowCall:
    """function(...) OVER (window)."""
    function: Union[FunctionCall, AggregateCall]
    window: WindowSpec


@dataclass(frozen=True)
class WhenClause:
    condition: Expr
    result: Expr


@dataclass(frozen=True)
class CaseExpression:
    """CASE [operand] WHEN ... THEN ... [ELSE default] END."""
    operand: Expr | None
    whens: tuple[WhenClause, ...]
    default: Expr | None = None


@dataclass(frozen=True)
class TypeSpec:
    """
    Type specification.

    Attributes:
        name: Canonical upper-case type name, e.g. "INTEGER", "VARCHAR", "DOUBLE".
        params: Type parameters as written, e.g. VARCHAR(255) => ("255",).
    """
    name: str
    params: tuple[str, ...] = ()


@dataclass(frozen=True)
class Cast:
    """CAST(expr AS type); PostgreSQL expr::type parses to the same node."""
    expr: Expr
    type: TypeSpec


@dataclass(frozen=True)
class Subquery:
    """Scalar subquery used as an expression."""
    query: Query


@dataclass(frozen=True)
class ArrayConstructor:
    """ARRAY[a, b, ...]."""
    items: tuple[Expr, ...]


@dataclass(frozen=True)
class JsonExtract:
    """
    JSON path extraction.

    Attributes:
        document: JSON value.
        path: Path steps; str for object keys, int for array indexes.
        as_text: Return unquoted text (->>, JSON_VALUE) instead of JSON.
    """
    document: Expr
    path: tuple[Union[str, int], ...]
    as_text: bool = False


# ---------- FROM tree ----------

@dataclass(frozen=True)
class TableRef:
    """Base table: [schema.]name [alias]."""
    name: Identifier
    schema: Identifier | None = None
    alias: Identifier | None = None


@dataclass(frozen=True)
class DerivedTable:
    """(query) alias, optionally LATERAL."""
    query: Query
    alias: Identifier | None = None
    lateral: bool = False


@dataclass(frozen=True)
class JoinClause:
    """
    Binary join node; joins nest left-deep.

    Attributes:
        kind: JoinKind.
        left/right: Joined items.
        condition: ON predicate (None for CROSS joins and condition-free laterals).
        using: USING column list.
    """
    kind: JoinKind
    left: FromItem
    right: FromItem
    condition: Expr | None = None
    using: tuple[Identifier, ...] = ()


@dataclass(frozen=True)
class PivotValue:
    """One IN-list entry of a PIVOT: the pivoted value and its column alias."""
    value: Literal
    alias: Identifier | None = None


@dataclass(frozen=True)
class PivotTable:
    """source PIVOT (aggregate FOR pivot_column IN (values)) alias."""
    source: FromItem
    aggregate: Expr
    pivot_column: ColumnRef
    values: tuple[PivotValue, ...]
    alias: Identifier | None = None


@dataclass(frozen=True)
class UnpivotTable:
    """
    source UNPIVOT (value_column FOR name_column IN (columns)) alias.

    Rows with a NULL value are dropped (the default in every dialect that has UNPIVOT).
    """
    source: FromItem
    value_column: Identifier
    name_column: Identifier
    columns: tuple[Identifier, ...]
    alias: Identifier | None = None


# ---------- Queries ----------

@dataclass(frozen=True)
class SelectItem:
    expr: Expr
    alias: Identifier | None = None


@dataclass(frozen=True)
class RowLimit:
    """
    Canonical row limit, whatever the source spelling (LIMIT, TOP, FETCH FIRST).

    Attributes:
        count: Row count (or percentage for PERCENT); None for OFFSET only.
        offset: Rows to skip; None when absent.
        mode: RowLimitMode.
    """
    count: int | None
    offset: int | None = None
    mode: RowLimitMode = RowLimitMode.LIMIT


@dataclass(frozen=True)
class LockClause:
    mode: LockMode = LockMode.UPDATE


@dataclass(frozen=True)
class CteDefinition:
    """
    Named subquery in a WITH clause.

    is_recursive is true exactly when the body references `name` as a table.
    """
    name: Identifier
    query: Query
    columns: tuple[Identifier, ...] = ()
    is_recursive: bool = False


@dataclass(frozen=True)
class WithClause:
    ctes: tuple[CteDefinition, ...]


@dataclass(frozen=True)
class SelectStatement:
    """
    SELECT statement.

    Attributes:
        items: Select list.
        from_: Comma-separated FROM items (each may be a join tree).
        where: WHERE predicate.
        group_by: GROUP BY expressions.
        having: HAVING predicate.
        order_by: ORDER BY items.
        limit: Canonical RowLimit.
        distinct: SELECT DISTINCT.
        with_: Leading WITH clause.
        lock: FOR UPDATE / FOR SHARE.
        hint: Optimizer hint body from a /*+ ... */ comment right after SELECT.
    """
    items: tuple[SelectItem, ...]
    from_: tuple[FromItem, ...] = ()
    where: Expr | None = None
    group_by: tuple[Expr, ...] = ()
    having: Expr | None = None
    order_by: tuple[OrderItem, ...] = ()
    limit: RowLimit | None = None
    distinct: bool = False
    with_: WithClause | None = None
    lock: LockClause | None = None
    hint: str | None = None


@dataclass(frozen=True)
class SetOperation:
    """
    UNION / INTERSECT / EXCEPT; ORDER BY and row limit apply to the whole result.
    """
    op: str
    left: Query
    right: Query
    all: bool = False
    order_by: tuple[OrderItem, ...] = ()
    limit: RowLimit | None = None
    with_: WithClause | None = None


# ---------- DML ----------

@dataclass(frozen=True)
class InsertStatement:
    """INSERT INTO table [(columns)] VALUES (...), (...) | query."""
    table: TableRef
    columns: tuple[Identifier, ...] = ()
    rows: tuple[tuple[Expr, ...], ...] = ()
    query: Query | None = None


@dataclass(frozen=True)
class Assignment:
    """A single SET assignment in UPDATE / MERGE."""
    column: ColumnRef
    value: Expr


@dataclass(frozen=True)
class UpdateStatement:
    table: TableRef
    assignments: tuple[Assignment, ...]
    where: Expr | None = None


@dataclass(frozen=True)
class DeleteStatement:
    table: TableRef
    where: Expr | None = None


@dataclass(frozen=True)
class MergeClause:
    """
    WHEN [NOT] MATCHED [AND condition] THEN action.

    action: "UPDATE" (assignments), "DELETE", or "INSERT" (columns + values).
    """
    matched: bool
    action: str
    condition: Expr | None = None
    assignments: tuple[Assignment, ...] = ()
    columns: tuple[Identifier, ...] = ()
    values: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class MergeStatement:
    target: TableRef
    source: FromItem
    condition: Expr
    clauses: tuple[MergeClause, ...]


# ---------- DDL ----------

@dataclass(frozen=True)
class ColumnDef:
    """
    Column definition in CREATE TABLE.

    Attributes:
        name: Column name.
        type: TypeSpec.
        not_null: NOT NULL.
        unique: UNIQUE.
        primary_key: Column-level PRIMARY KEY.
        identity: Auto-generated (SERIAL, AUTO_INCREMENT, IDENTITY, GENERATED ... AS IDENTITY).
        default: DEFAULT expression.
    """
    name: Identifier
    type: TypeSpec
    not_null: bool = False
    unique: bool = False
    primary_key: bool = False
    identity: bool = False
    default: Expr | None = None


@dataclass(frozen=True)
class CreateTable:
    """CREATE TABLE statement with optional table-level keys."""
    table: TableRef
    columns: tuple[ColumnDef, ...]
    primary_key: tuple[Identifier, ...] = ()
    unique_keys: tuple[tuple[Identifier, ...], ...] = ()


@dataclass(frozen=True)
class CreateIndex:
    """CREATE [UNIQUE] INDEX name ON table (columns)."""
    name: Identifier
    table: TableRef
    columns: tuple[Identifier, ...]
    unique: bool = False


@dataclass(frozen=True)
class CreateView:
    """
    CREATE [OR REPLACE] [MATERIALIZED] VIEW name [(columns)] AS query.

    Attributes:
        or_replace: OR REPLACE (T-SQL: OR ALTER).
        populate: False when a materialized view is created empty
                  (WITH NO DATA, BUILD DEFERRED).
        refresh: Oracle refresh options, upper-cased ("FAST ON COMMIT"), or None.
    """
    view: TableRef
    query: Query
    columns: tuple[Identifier, ...] = ()
    or_replace: bool = False
    materialized: bool = False
    populate: bool = True
    refresh: str | None = None


# ---------- Other statements ----------

@dataclass(frozen=True)
class TransactionStatement:
    """BEGIN / COMMIT / ROLLBACK / SET TRANSACTION ISOLATION LEVEL ..."""
    action: TransactionAction
    isolation_level: str | None = None


@dataclass(frozen=True)
class ExplainStatement:
    statement: Statement
    analyze: bool = False


@dataclass(frozen=True)
class OpaqueStatement:
    """
    Procedural CREATE (PROCEDURE / FUNCTION / TRIGGER) passed through untranslated.
    """
    kind: str
    text: str


Expr = Union[
    Literal, ColumnRef, Star, UnaryOp, BinaryOp, Not, IsNull, InList, InSubquery,
    Between, Like, Exists, Concat, FunctionCall, AggregateCall, StringAggregate,
    WindowCall, CaseExpression, Cast, Subquery, ArrayConstructor, JsonExtract,
]
FromItem = Union[TableRef, DerivedTable, JoinClause, PivotTable, UnpivotTable]
Query = Union[SelectStatement, SetOperation]
Statement = Union[
    SelectStatement, SetOperation, InsertStatement, UpdateStatement, DeleteStatement,
    MergeStatement, CreateTable, CreateIndex, CreateView, TransactionStatement,
    ExplainStatement, OpaqueStatement,
]

QUERY_TYPES = (SelectStatement, SetOperation)
