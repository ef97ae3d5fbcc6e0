"""
sqlshift/emitter.py

Render a canonical AST as SQL text for a target dialect.

Responsibilities:
- Run the feature checker first and apply the approximation policy:
    STRICT       any gap raises UnsupportedFeatureError, nothing is rendered
    BEST_EFFORT  gaps with a known substitute are approximated, others raise
    ANNOTATE     everything renders; unsupported constructs get an inline
                 /* sqlshift: ... */ comment
- Lay SELECT clauses out in the dialect's clause order (TOP / LIMIT /
  OFFSET ... FETCH)
- Add parentheses only where the target grammar would otherwise re-parse to
  a different tree
- Spell keywords, functions and types through the dialect tables

Output is a single line without a statement terminator.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .ast import (
    AggregateCall,
    ArrayConstructor,
    Between,
    BinaryOp,
    CaseExpression,
    Cast,
    ColumnDef,
    ColumnRef,
    Concat,
    CreateIndex,
    CreateTable,
    CreateView,
    CteDefinition,
    DeleteStatement,
    DerivedTable,
    Exists,
    ExplainStatement,
    FrameBound,
    FunctionCall,
    Identifier,
    InList,
    InsertStatement,
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
    OpaqueStatement,
    OrderItem,
    PivotTable,
    RowLimit,
    RowLimitMode,
    SelectItem,
    SelectStatement,
    SetOperation,
    Star,
    StringAggregate,
    Subquery,
    TableRef,
    TransactionAction,
    TransactionStatement,
    TypeSpec,
    UnaryOp,
    UnpivotTable,
    UpdateStatement,
    WindowCall,
    WindowFrame,
    WindowSpec,
    WithClause,
)
from .checker import is_condition, is_plain_value, node_gaps, output_names, unsupported_nodes
from .dialects import Dialect, resolve_dialect
from .errors import ConfigError, EmitError, UnsupportedFeatureError
from .features import FeatureTag
from .lexer import KEYWORDS
from .parser import format_json_path

logger = logging.getLogger(__name__)


class ApproximationPolicy(Enum):
    """What to do when the tree needs a feature the target dialect lacks."""
    STRICT = "strict"
    BEST_EFFORT = "best-effort"
    ANNOTATE = "annotate"

    @classmethod
    def parse(cls, name: str | ApproximationPolicy) -> ApproximationPolicy:
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace("_", "-")
        for p in cls:
            if p.value == key:
                return p
        choices = ", ".join(p.value for p in cls)
        raise ConfigError(f"Unknown policy '{name}'. Available: {choices}")


# Gaps that have a lossy substitute, with the note recorded when it is used.
APPROXIMATIONS: dict[FeatureTag, str] = {
    FeatureTag.STRING_AGGREGATE: "string aggregate rendered as GROUP_CONCAT (result may be truncated)",
    FeatureTag.BOOLEAN_LITERALS: "boolean literal rendered as 1/0",
    FeatureTag.BOOLEAN_EXPRESSIONS: "boolean value rendered as CASE WHEN ... THEN 1 ELSE 0 END or compared with 1",
    FeatureTag.ILIKE: "ILIKE rendered as LOWER(...) LIKE LOWER(...)",
    FeatureTag.NULLS_ORDERING: "NULLS FIRST/LAST rendered as a leading CASE sort key",
}

_PLAIN_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*\Z")

_BINARY_PRECEDENCE = {
    "OR": 1,
    "AND": 2,
    "=": 4, "<>": 4, "<": 4, ">": 4, "<=": 4, ">=": 4,
    "+": 6, "-": 6,
    "*": 7, "/": 7, "%": 7,
}
_PRIMARY = 9
_SET_PRECEDENCE = {"UNION": 1, "EXCEPT": 1, "INTERSECT": 2}

_FRAME_BOUNDS = {
    "UNBOUNDED_PRECEDING": "UNBOUNDED PRECEDING",
    "UNBOUNDED_FOLLOWING": "UNBOUNDED FOLLOWING",
    "CURRENT_ROW": "CURRENT ROW",
}


@dataclass(frozen=True)
class EmitResult:
    """
    Rendered SQL plus the notes produced on the way.

    Attributes:
        sql: Statement text, single line, no terminator.
        annotations: Human-readable notes for approximated or unsupported constructs.
    """
    sql: str
    annotations: tuple[str, ...] = ()


class Emitter:
    """
    Renders AST roots for one target dialect under one policy.

    The emitter itself holds no per-statement state, so one instance can be
    shared by parallel translations.
    """

    def __init__(self, dialect: Dialect | str, policy: ApproximationPolicy | str = ApproximationPolicy.STRICT):
        self.dialect = resolve_dialect(dialect)
        self.policy = ApproximationPolicy.parse(policy)

    def emit(self, node: Any) -> EmitResult:
        """
        Render `node` for the target dialect.

        Raises:
            UnsupportedFeatureError: the tree needs features the dialect lacks
                and the policy does not allow rendering them.
        """
        gaps = unsupported_nodes(node, self.dialect)
        missing = frozenset().union(*(g for _n, g in gaps)) if gaps else frozenset()

        if missing and self.policy == ApproximationPolicy.STRICT:
            raise UnsupportedFeatureError(node, missing, self.dialect.name)
        if missing and self.policy == ApproximationPolicy.BEST_EFFORT:
            hard = frozenset(t for t in missing if t not in APPROXIMATIONS)
            if hard:
                raise UnsupportedFeatureError(node, hard, self.dialect.name)

        writer = _Writer(self.dialect, self.policy)
        sql = writer.statement(node)
        if writer.notes:
            logger.debug("emitted for %s with %d note(s)", self.dialect.name, len(writer.notes))
        return EmitResult(sql=sql, annotations=tuple(writer.notes))


def emit(node: Any, dialect: Dialect | str, policy: ApproximationPolicy | str = ApproximationPolicy.STRICT) -> str:
    """Convenience: render one AST root and return only the SQL text."""
    return Emitter(dialect, policy).emit(node).sql


class _Writer:
    """Per-call renderer; collects notes while it walks the tree."""

    def __init__(self, dialect: Dialect, policy: ApproximationPolicy):
        self.d = dialect
        self.policy = policy
        self.notes: list[str] = []

    # ---------------- gaps / notes ----------------

    def approximating(self, tag: FeatureTag) -> bool:
        """True if `tag` is missing and will be rendered through its substitute."""
        return (
            not self.d.supports(tag)
            and tag in APPROXIMATIONS
            and self.policy != ApproximationPolicy.STRICT
        )

    def note(self, node: Any, text: str) -> str:
        """Record notes for the gaps of `node` and, when annotating, append comments."""
        gaps = node_gaps(node, self.d) - {FeatureTag.BOOLEAN_EXPRESSIONS}
        if not gaps:
            return text
        comments = []
        for tag in sorted(gaps, key=lambda t: t.name):
            if tag in APPROXIMATIONS and not self.d.supports(tag):
                msg = f"{tag.name}: {APPROXIMATIONS[tag]}"
            else:
                msg = f"{self.d.name} does not support {tag.name}"
            self.notes.append(msg)
            comments.append(f"/* sqlshift: {msg} */")
        if self.policy == ApproximationPolicy.ANNOTATE:
            return text + " " + " ".join(comments)
        return text

    def flag(self, tag: FeatureTag, text: str) -> str:
        """Record the note for an approximation made at a single slot."""
        msg = f"{tag.name}: {APPROXIMATIONS[tag]}"
        self.notes.append(msg)
        if self.policy == ApproximationPolicy.ANNOTATE:
            return f"{text} /* sqlshift: {msg} */"
        return text

    def misplaced_condition(self, e: Any) -> bool:
        return is_condition(e) and self.approximating(FeatureTag.BOOLEAN_EXPRESSIONS)

    def misplaced_value(self, e: Any) -> bool:
        return is_plain_value(e) and self.approximating(FeatureTag.BOOLEAN_EXPRESSIONS)

    # ---------------- lexical ----------------

    def ident(self, i: Identifier) -> str:
        name = i.name
        if i.quoted or not _PLAIN_IDENT.match(name) or name.upper() in KEYWORDS:
            open_, close = self.d.identifier_quote
            return f"{open_}{name.replace(close, close + close)}{close}"
        return name

    def string(self, value: str) -> str:
        s = value.replace("'", "''")
        if self.d.backslash_escapes:
            s = s.replace("\\", "\\\\")
        return f"'{s}'"

    def qualified(self, *parts: Identifier | None) -> str:
        return ".".join(self.ident(p) for p in parts if p is not None)

    # ---------------- statements ----------------

    def statement(self, node: Any) -> str:
        if isinstance(node, (SelectStatement, SetOperation)):
            return self.query(node)
        if isinstance(node, InsertStatement):
            return self.insert(node)
        if isinstance(node, UpdateStatement):
            return self.update(node)
        if isinstance(node, DeleteStatement):
            return self.delete(node)
        if isinstance(node, MergeStatement):
            return self.note(node, self.merge(node))
        if isinstance(node, CreateTable):
            return self.create_table(node)
        if isinstance(node, CreateIndex):
            return self.create_index(node)
        if isinstance(node, CreateView):
            return self.create_view(node)
        if isinstance(node, TransactionStatement):
            return self.transaction(node)
        if isinstance(node, ExplainStatement):
            return self.explain(node)
        if isinstance(node, OpaqueStatement):
            return node.text
        raise EmitError(node, (), self.d.name)

    def insert(self, s: InsertStatement) -> str:
        out = f"INSERT INTO {self.table_name(s.table)}"
        if s.columns:
            out += " (" + ", ".join(self.ident(c) for c in s.columns) + ")"
        if s.query is not None:
            return f"{out} {self.query(s.query)}"
        rows = ", ".join("(" + ", ".join(self.expr(v) for v in row) + ")" for row in s.rows)
        return f"{out} VALUES {rows}"

    def assignment_target(self, col: ColumnRef) -> str:
        if self.d.qualified_set_columns:
            return self.column(col)
        return self.ident(col.name)

    def assignments(self, items) -> str:
        return ", ".join(f"{self.assignment_target(a.column)} = {self.expr(a.value)}" for a in items)

    def update(self, s: UpdateStatement) -> str:
        out = f"UPDATE {self.dml_table(s.table)} SET {self.assignments(s.assignments)}"
        if s.where is not None:
            out += f" WHERE {self.predicate(s.where)}"
        return out

    def delete(self, s: DeleteStatement) -> str:
        out = f"DELETE FROM {self.dml_table(s.table)}"
        if s.where is not None:
            out += f" WHERE {self.predicate(s.where)}"
        return out

    def dml_table(self, t: TableRef) -> str:
        # UPDATE / DELETE targets never take AS (T-SQL rejects it)
        out = self.table_name(t)
        if t.alias is not None:
            out += f" {self.ident(t.alias)}"
        return out

    def merge(self, s: MergeStatement) -> str:
        cond = self.predicate(s.condition)
        on = f"({cond})" if self.d.merge_on_parens else cond
        parts = [f"MERGE INTO {self.table_ref(s.target)} USING {self.from_item(s.source)} ON {on}"]
        for c in s.clauses:
            parts.append(self.merge_clause(c))
        return " ".join(parts)

    def merge_clause(self, c: MergeClause) -> str:
        head = "WHEN MATCHED" if c.matched else "WHEN NOT MATCHED"
        trailing = ""
        if c.condition is not None:
            if self.d.merge_where_conditions:
                trailing = f" WHERE {self.predicate(c.condition)}"
            else:
                head += f" AND {self.predicate(c.condition)}"
        if c.action == "UPDATE":
            body = f"UPDATE SET {self.assignments(c.assignments)}"
        elif c.action == "DELETE":
            body = "DELETE"
        else:
            cols = ""
            if c.columns:
                cols = " (" + ", ".join(self.ident(x) for x in c.columns) + ")"
            body = f"INSERT{cols} VALUES (" + ", ".join(self.expr(v) for v in c.values) + ")"
        return f"{head} THEN {body}{trailing}"

    def create_table(self, s: CreateTable) -> str:
        items = [self.column_def(c) for c in s.columns]
        if s.primary_key:
            items.append("PRIMARY KEY (" + ", ".join(self.ident(c) for c in s.primary_key) + ")")
        for key in s.unique_keys:
            items.append("UNIQUE (" + ", ".join(self.ident(c) for c in key) + ")")
        return f"CREATE TABLE {self.table_name(s.table)} (" + ", ".join(items) + ")"

    def column_def(self, c: ColumnDef) -> str:
        parts = [self.ident(c.name), self.type_spec(c.type)]
        if c.default is not None:
            parts.append(f"DEFAULT {self.expr(c.default, 5)}")
        if c.identity:
            parts.append({
                "generated": "GENERATED BY DEFAULT AS IDENTITY",
                "auto_increment": "AUTO_INCREMENT",
                "identity": "IDENTITY(1,1)",
            }[self.d.identity_style])
        if c.not_null:
            parts.append("NOT NULL")
        if c.unique:
            parts.append("UNIQUE")
        if c.primary_key:
            parts.append("PRIMARY KEY")
        return " ".join(parts)

    def create_index(self, s: CreateIndex) -> str:
        unique = "UNIQUE " if s.unique else ""
        cols = ", ".join(self.ident(c) for c in s.columns)
        return f"CREATE {unique}INDEX {self.ident(s.name)} ON {self.table_name(s.table)} ({cols})"

    def create_view(self, s: CreateView) -> str:
        head = "CREATE"
        if s.or_replace:
            head += f" {self.d.view_replace}"
        if s.materialized:
            head += " MATERIALIZED"
        head += f" VIEW {self.table_name(s.view)}"
        if s.columns:
            head += " (" + ", ".join(self.ident(c) for c in s.columns) + ")"
        tail = ""
        if s.materialized and self.d.materialized_view_style == "oracle":
            if not s.populate:
                head += " BUILD DEFERRED"
            if s.refresh is not None:
                head += f" REFRESH {s.refresh}"
        elif s.materialized and not s.populate:
            tail = " WITH NO DATA"
        return self.note(s, f"{head} AS {self.query(s.query)}{tail}")

    def transaction(self, s: TransactionStatement) -> str:
        if s.action == TransactionAction.BEGIN:
            return self.d.keyword_synonyms.get("BEGIN_TRANSACTION", "BEGIN")
        if s.action == TransactionAction.SET_ISOLATION:
            return f"SET TRANSACTION ISOLATION LEVEL {s.isolation_level}"
        return s.action.value

    def explain(self, s: ExplainStatement) -> str:
        prefix = "EXPLAIN ANALYZE" if s.analyze else self.d.explain_prefix
        return self.note(s, f"{prefix} {self.statement(s.statement)}")

    # ---------------- queries ----------------

    def query(self, q: Any) -> str:
        with_ = self.with_clause(q.with_) + " " if q.with_ is not None else ""
        if isinstance(q, SelectStatement):
            return with_ + self.select(q)
        return with_ + self.set_operation(q)

    def with_clause(self, w: WithClause) -> str:
        recursive = self.d.recursive_keyword and any(c.is_recursive for c in w.ctes)
        head = "WITH RECURSIVE " if recursive else "WITH "
        return head + ", ".join(self.cte(c) for c in w.ctes)

    def cte(self, c: CteDefinition) -> str:
        columns = c.columns
        if not columns and c.is_recursive and self.d.recursive_cte_columns:
            columns = output_names(c.query)
        cols = ""
        if columns:
            cols = " (" + ", ".join(self.ident(x) for x in columns) + ")"
        return self.note(c, f"{self.ident(c.name)}{cols} AS ({self.query(c.query)})")

    def set_operation(self, s: SetOperation) -> str:
        op = self.d.spell(s.op) if s.op == "EXCEPT" else s.op
        if s.all:
            op += " ALL"
        left = self.set_operand(s.left, s, right=False)
        right = self.set_operand(s.right, s, right=True)
        out = f"{left} {op} {right}"
        # set operations have no TOP slot; T-SQL falls back to OFFSET / FETCH
        _top, tail, order_fill = self.row_limit(s.limit, bool(s.order_by), allow_top=False)
        if s.order_by:
            out += f" ORDER BY {self.order_list(s.order_by)}"
        elif order_fill:
            out += " ORDER BY (SELECT NULL)"
        if tail:
            out += f" {tail}"
        return out

    def set_operand(self, q: Any, parent: SetOperation, right: bool) -> str:
        text = self.query(q)
        if q.with_ is not None or q.order_by or q.limit is not None:
            return f"({text})"
        if isinstance(q, SelectStatement) and q.lock is not None:
            return f"({text})"
        if isinstance(q, SetOperation):
            p, pp = _SET_PRECEDENCE[q.op], _SET_PRECEDENCE[parent.op]
            if p < pp or (right and p == pp):
                return f"({text})"
        return text

    def hint(self, body: str | None) -> str:
        if body is None:
            return ""
        if self.d.optimizer_hints:
            return f" /*+ {body} */"
        msg = f"optimizer hint dropped: {body}"
        self.notes.append(msg)
        if self.policy == ApproximationPolicy.ANNOTATE:
            return f" /* sqlshift: {msg} */"
        return ""

    def select(self, s: SelectStatement) -> str:
        top, tail, order_fill = self.row_limit(s.limit, bool(s.order_by))
        parts: list[str] = []
        for key in self.d.clause_order:
            if key == "SELECT":
                head = "SELECT" + self.hint(s.hint)
                parts.append(f"{head} DISTINCT" if s.distinct else head)
            elif key == "TOP":
                if top:
                    parts.append(top)
            elif key == "SELECT_LIST":
                parts.append(", ".join(self.select_item(i) for i in s.items))
            elif key == "FROM":
                if s.from_:
                    parts.append("FROM " + ", ".join(self.from_item(f) for f in s.from_))
                elif self.d.requires_from:
                    parts.append("FROM DUAL")
            elif key == "WHERE":
                if s.where is not None:
                    parts.append(f"WHERE {self.predicate(s.where)}")
            elif key == "GROUP_BY":
                if s.group_by:
                    parts.append("GROUP BY " + ", ".join(self.expr(e) for e in s.group_by))
            elif key == "HAVING":
                if s.having is not None:
                    parts.append(f"HAVING {self.predicate(s.having)}")
            elif key == "ORDER_BY":
                if s.order_by:
                    parts.append(f"ORDER BY {self.order_list(s.order_by)}")
                elif order_fill:
                    parts.append("ORDER BY (SELECT NULL)")
            elif key in ("LIMIT", "OFFSET_FETCH"):
                if tail:
                    parts.append(tail)
            elif key == "LOCK":
                if s.lock is not None:
                    parts.append(self.lock(s.lock))
        return " ".join(parts)

    def select_item(self, item: SelectItem) -> str:
        text = self.expr(item.expr)
        if item.alias is not None:
            text += f" AS {self.ident(item.alias)}"
        return text

    def lock(self, lock: LockClause) -> str:
        text = "FOR UPDATE" if lock.mode == LockMode.UPDATE else "FOR SHARE"
        return self.note(lock, text)

    def row_limit(self, limit: RowLimit | None, ordered: bool, allow_top: bool = True) -> tuple[str, str, bool]:
        """
        Returns (top_text, trailing_text, needs_order_by) for the target dialect.

        TOP is used when the dialect lays out a TOP slot and there is no offset;
        OFFSET / FETCH when the dialect has no LIMIT, or the mode needs it;
        LIMIT / OFFSET otherwise.
        """
        if limit is None or (limit.count is None and limit.offset is None):
            return "", "", False
        order = self.d.clause_order

        if "TOP" in order and allow_top and limit.offset is None:
            text = f"TOP {limit.count}"
            if limit.mode == RowLimitMode.PERCENT:
                text += " PERCENT"
            elif limit.mode == RowLimitMode.WITH_TIES:
                text += " WITH TIES"
            return self.note(limit, text), "", False

        if "LIMIT" in order and limit.mode == RowLimitMode.LIMIT:
            if limit.count is not None:
                text = f"LIMIT {limit.count}"
                if limit.offset is not None:
                    text += f" OFFSET {limit.offset}"
            elif "OFFSET_FETCH" in self.d.row_limit_syntaxes:
                text = f"OFFSET {limit.offset}"
            else:
                text = f"LIMIT 18446744073709551615 OFFSET {limit.offset}"
            return "", self.note(limit, text), False

        parts = []
        if limit.offset is not None:
            parts.append(f"OFFSET {limit.offset} ROWS")
        elif "TOP" in order:
            # T-SQL has no FETCH without OFFSET
            parts.append("OFFSET 0 ROWS")
        if limit.count is not None:
            fetch = f"FETCH FIRST {limit.count}"
            if limit.mode == RowLimitMode.PERCENT:
                fetch += " PERCENT"
            fetch += " ROWS WITH TIES" if limit.mode == RowLimitMode.WITH_TIES else " ROWS ONLY"
            parts.append(fetch)
        needs_order = "TOP" in order and not ordered
        return "", self.note(limit, " ".join(parts)), needs_order

    # ---------------- FROM ----------------

    def table_name(self, t: TableRef) -> str:
        return self.qualified(t.schema, t.name)

    def alias(self, alias: Identifier | None) -> str:
        if alias is None:
            return ""
        return f" AS {self.ident(alias)}" if self.d.table_alias_as else f" {self.ident(alias)}"

    def table_ref(self, t: TableRef) -> str:
        return self.table_name(t) + self.alias(t.alias)

    def from_item(self, item: Any) -> str:
        if isinstance(item, TableRef):
            return self.table_ref(item)
        if isinstance(item, DerivedTable):
            return self.derived(item, lateral_keyword=item.lateral)
        if isinstance(item, JoinClause):
            return self.join(item)
        if isinstance(item, PivotTable):
            return self.pivot(item)
        if isinstance(item, UnpivotTable):
            return self.unpivot(item)
        raise EmitError(item, (), self.d.name)

    def derived(self, t: DerivedTable, lateral_keyword: bool) -> str:
        text = f"({self.query(t.query)}){self.alias(t.alias)}"
        if lateral_keyword:
            text = "LATERAL " + text
        return self.note(t, text)

    def join(self, j: JoinClause) -> str:
        left = self.from_item(j.left)
        right_node = j.right
        lateral = isinstance(right_node, DerivedTable) and right_node.lateral

        if lateral and self.d.apply_joins:
            kw = "OUTER APPLY" if j.kind == JoinKind.LEFT else "CROSS APPLY"
            text = f"{left} {kw} {self.derived(right_node, lateral_keyword=False)}"
            if j.condition is not None:
                text += f" ON {self.predicate(j.condition)}"
            return self.note(j, text)

        right = self.from_item(right_node)
        if isinstance(right_node, JoinClause):
            right = f"({right})"
        kw = {
            JoinKind.INNER: "JOIN",
            JoinKind.LEFT: "LEFT JOIN",
            JoinKind.RIGHT: "RIGHT JOIN",
            JoinKind.FULL: "FULL OUTER JOIN",
            JoinKind.CROSS: "CROSS JOIN",
        }[j.kind]
        text = f"{left} {kw} {right}"
        if j.condition is not None:
            text += f" ON {self.predicate(j.condition)}"
        elif j.using:
            text += " USING (" + ", ".join(self.ident(u) for u in j.using) + ")"
        elif lateral and j.kind != JoinKind.CROSS:
            text += " ON TRUE" if self.d.supports(FeatureTag.BOOLEAN_LITERALS) else " ON 1 = 1"
        return self.note(j, text)

    def pivot(self, p: PivotTable) -> str:
        source = self.from_item(p.source)
        values = []
        for v in p.values:
            if self.d.identifier_quote == ("[", "]"):
                values.append(self.ident(Identifier(v.value.value, quoted=True)))
            else:
                text = self.expr(v.value)
                if v.alias is not None:
                    text += f" AS {self.ident(v.alias)}"
                values.append(text)
        text = (
            f"{source} PIVOT ({self.expr(p.aggregate)} FOR {self.column(p.pivot_column)}"
            f" IN ({', '.join(values)})){self.alias(p.alias)}"
        )
        return self.note(p, text)

    def unpivot(self, u: UnpivotTable) -> str:
        cols = ", ".join(self.ident(c) for c in u.columns)
        text = (
            f"{self.from_item(u.source)} UNPIVOT ({self.ident(u.value_column)} FOR {self.ident(u.name_column)}"
            f" IN ({cols})){self.alias(u.alias)}"
        )
        return self.note(u, text)

    # ---------------- expressions ----------------

    def precedence(self, e: Any) -> int:
        if isinstance(e, BinaryOp):
            if e.op == "%" and self.d.modulo_function:
                return _PRIMARY
            return _BINARY_PRECEDENCE[e.op]
        if isinstance(e, Not):
            return 3
        if isinstance(e, (IsNull, InList, InSubquery, Between, Like)):
            return 4
        if isinstance(e, Concat):
            if self.d.concat_style == "pipes":
                return self.d.concat_precedence
            if self.d.concat_style == "plus":
                return 6
            return _PRIMARY
        if isinstance(e, UnaryOp):
            return 8
        if isinstance(e, JsonExtract) and self.d.json_style == "arrow":
            return 5
        return _PRIMARY

    def operand(
        self, e: Any, parent: int, right: bool = False, nonassoc: bool = False, condition: bool = False
    ) -> str:
        """
        Render a child expression, parenthesized if the parent would capture it.

        condition marks a boolean slot (AND/OR/NOT operands); value slots are the default.
        """
        p = self.precedence(e)
        if condition:
            if self.misplaced_value(e):
                p = 4
            text = self.predicate(e)
        else:
            if self.misplaced_condition(e):
                p = _PRIMARY
            text = self.expr(e)
        if p < parent or (p == parent and (right or nonassoc)):
            return f"({text})"
        return text

    def predicate(self, e: Any) -> str:
        """Render an expression in a boolean position (WHERE, ON, WHEN, AND/OR operands)."""
        if (
            isinstance(e, Literal)
            and e.kind == LiteralKind.BOOLEAN
            and self.approximating(FeatureTag.BOOLEAN_LITERALS)
        ):
            text = "1 = 1" if e.value == "TRUE" else "1 = 0"
            return self.note(e, text)
        if self.misplaced_value(e):
            return self.flag(FeatureTag.BOOLEAN_EXPRESSIONS, f"{self.operand(e, 4, nonassoc=True)} = 1")
        return self._render(e)

    def expr(self, e: Any, min_prec: int = 0) -> str:
        """Render an expression in a value slot."""
        if min_prec:
            return self.operand(e, min_prec)
        if self.misplaced_condition(e):
            text = f"CASE WHEN {self._render(e)} THEN 1 ELSE 0 END"
            return self.flag(FeatureTag.BOOLEAN_EXPRESSIONS, text)
        return self._render(e)

    def _render(self, e: Any) -> str:
        if isinstance(e, Literal):
            return self.literal(e)
        if isinstance(e, ColumnRef):
            return self.column(e)
        if isinstance(e, Star):
            return f"{self.ident(e.table)}.*" if e.table is not None else "*"
        if isinstance(e, BinaryOp):
            return self.binary(e)
        if isinstance(e, UnaryOp):
            inner = self.operand(e.operand, 8)
            if isinstance(e.operand, UnaryOp) and not inner.startswith("("):
                inner = f"({inner})"
            return f"{e.op}{inner}"
        if isinstance(e, Not):
            return f"NOT {self._bool_operand(e.operand, 3)}"
        if isinstance(e, IsNull):
            neg = " NOT" if e.negated else ""
            return f"{self.operand(e.operand, 4, nonassoc=True)} IS{neg} NULL"
        if isinstance(e, InList):
            neg = "NOT " if e.negated else ""
            items = ", ".join(self.expr(i) for i in e.items)
            return f"{self.operand(e.operand, 4, nonassoc=True)} {neg}IN ({items})"
        if isinstance(e, InSubquery):
            neg = "NOT " if e.negated else ""
            return f"{self.operand(e.operand, 4, nonassoc=True)} {neg}IN ({self.query(e.query)})"
        if isinstance(e, Between):
            neg = "NOT " if e.negated else ""
            return (
                f"{self.operand(e.operand, 4, nonassoc=True)} {neg}BETWEEN "
                f"{self.operand(e.low, 5)} AND {self.operand(e.high, 5)}"
            )
        if isinstance(e, Like):
            return self.like(e)
        if isinstance(e, Exists):
            return f"EXISTS ({self.query(e.query)})"
        if isinstance(e, Concat):
            return self.concat(e)
        if isinstance(e, FunctionCall):
            return self.function(e)
        if isinstance(e, AggregateCall):
            return self.aggregate(e)
        if isinstance(e, StringAggregate):
            return self.string_aggregate(e)
        if isinstance(e, WindowCall):
            return self.note(e, f"{self.expr(e.function)} OVER ({self.window(e.window)})")
        if isinstance(e, CaseExpression):
            return self.case(e)
        if isinstance(e, Cast):
            return f"CAST({self.expr(e.expr)} AS {self.type_spec(e.type)})"
        if isinstance(e, Subquery):
            return f"({self.query(e.query)})"
        if isinstance(e, ArrayConstructor):
            return self.note(e, "ARRAY[" + ", ".join(self.expr(i) for i in e.items) + "]")
        if isinstance(e, JsonExtract):
            return self.note(e, self.json_extract(e))
        raise EmitError(e, (), self.d.name)

    def _bool_operand(self, e: Any, parent: int, right: bool = False) -> str:
        if isinstance(e, Literal) and e.kind == LiteralKind.BOOLEAN:
            text = self.predicate(e)
            return f"({text})" if " " in text else text
        return self.operand(e, parent, right=right, condition=True)

    def literal(self, e: Literal) -> str:
        if e.kind == LiteralKind.STRING:
            return self.string(e.value)
        if e.kind == LiteralKind.BOOLEAN:
            if self.approximating(FeatureTag.BOOLEAN_LITERALS):
                return self.note(e, "1" if e.value == "TRUE" else "0")
            return self.note(e, e.value)
        return e.value

    def column(self, c: ColumnRef) -> str:
        return self.qualified(c.schema, c.table, c.name)

    def binary(self, e: BinaryOp) -> str:
        if e.op in ("AND", "OR"):
            p = _BINARY_PRECEDENCE[e.op]
            return f"{self._bool_operand(e.left, p)} {e.op} {self._bool_operand(e.right, p, right=True)}"
        if e.op == "%" and self.d.modulo_function:
            return f"MOD({self.expr(e.left)}, {self.expr(e.right)})"
        p = _BINARY_PRECEDENCE[e.op]
        nonassoc = p == 4
        left = self.operand(e.left, p, nonassoc=nonassoc)
        right = self.operand(e.right, p, right=True, nonassoc=nonassoc)
        return f"{left} {e.op} {right}"

    def like(self, e: Like) -> str:
        neg = "NOT " if e.negated else ""
        if e.case_insensitive and self.approximating(FeatureTag.ILIKE):
            text = f"LOWER({self.expr(e.operand)}) {neg}LIKE LOWER({self.expr(e.pattern)})"
        else:
            kw = "ILIKE" if e.case_insensitive else "LIKE"
            text = f"{self.operand(e.operand, 4, nonassoc=True)} {neg}{kw} {self.operand(e.pattern, 5)}"
        if e.escape is not None:
            text += f" ESCAPE {self.operand(e.escape, 5)}"
        return self.note(e, text)

    def concat(self, e: Concat) -> str:
        if self.d.concat_style == "function":
            return "CONCAT(" + ", ".join(self.expr(p) for p in e.parts) + ")"
        op = " + " if self.d.concat_style == "plus" else " || "
        p = self.precedence(e)
        rendered = [self.operand(e.parts[0], p)]
        rendered += [self.operand(part, p, right=True) for part in e.parts[1:]]
        return op.join(rendered)

    def function(self, f: FunctionCall) -> str:
        name = self.d.spell(f.name)
        if f.niladic:
            return name
        distinct = "DISTINCT " if f.distinct else ""
        return f"{name}({distinct}" + ", ".join(self.expr(a) for a in f.args) + ")"

    def aggregate(self, a: AggregateCall) -> str:
        name = self.d.spell(a.name)
        if a.star:
            inner = "*"
        else:
            inner = ("DISTINCT " if a.distinct else "") + ", ".join(self.expr(x) for x in a.args)
        if a.order_by:
            inner += f" ORDER BY {self.order_list(a.order_by)}"
        return self.note(a, f"{name}({inner})")

    def string_aggregate(self, s: StringAggregate) -> str:
        distinct = "DISTINCT " if s.distinct else ""
        value = self.expr(s.expr)
        sep = self.expr(s.separator)
        order = f"ORDER BY {self.order_list(s.order_by)}" if s.order_by else ""

        style = self.d.string_agg_style
        if self.approximating(FeatureTag.STRING_AGGREGATE):
            style = "group_concat"

        if style == "group_concat":
            text = f"GROUP_CONCAT({distinct}{value}" + (f" {order}" if order else "") + f" SEPARATOR {sep})"
        elif style == "within_group":
            text = f"{self.d.spell('STRING_AGG')}({distinct}{value}, {sep})"
            if order:
                text += f" WITHIN GROUP ({order})"
        else:
            text = f"{self.d.spell('STRING_AGG')}({distinct}{value}, {sep}" + (f" {order}" if order else "") + ")"
        return self.note(s, text)

    def window(self, w: WindowSpec) -> str:
        parts = []
        if w.partition_by:
            parts.append("PARTITION BY " + ", ".join(self.expr(e) for e in w.partition_by))
        if w.order_by:
            parts.append(f"ORDER BY {self.order_list(w.order_by)}")
        if w.frame is not None:
            parts.append(self.frame(w.frame))
        return " ".join(parts)

    def frame(self, f: WindowFrame) -> str:
        if f.end is None:
            return f"{f.unit} {self.frame_bound(f.start)}"
        return f"{f.unit} BETWEEN {self.frame_bound(f.start)} AND {self.frame_bound(f.end)}"

    def frame_bound(self, b: FrameBound) -> str:
        if b.kind in _FRAME_BOUNDS:
            return _FRAME_BOUNDS[b.kind]
        return f"{self.operand(b.offset, 6)} {b.kind}"

    def order_list(self, items) -> str:
        return ", ".join(self.order_item(i) for i in items)

    def order_item(self, o: OrderItem) -> str:
        text = self.expr(o.expr)
        if o.direction:
            text += f" {o.direction}"
        if o.nulls is None:
            return text
        if self.approximating(FeatureTag.NULLS_ORDERING):
            first, rest = ("0", "1") if o.nulls == "FIRST" else ("1", "0")
            key = f"CASE WHEN {self.operand(o.expr, 4, nonassoc=True)} IS NULL THEN {first} ELSE {rest} END"
            return self.note(o, f"{key}, {text}")
        return self.note(o, f"{text} NULLS {o.nulls}")

    def case(self, c: CaseExpression) -> str:
        parts = ["CASE"]
        if c.operand is not None:
            parts.append(self.expr(c.operand))
        for w in c.whens:
            cond = self.expr(w.condition) if c.operand is not None else self.predicate(w.condition)
            parts.append(f"WHEN {cond} THEN {self.expr(w.result)}")
        if c.default is not None:
            parts.append(f"ELSE {self.expr(c.default)}")
        parts.append("END")
        return " ".join(parts)

    def type_spec(self, t: TypeSpec) -> str:
        array = t.name.endswith("[]")
        base = t.name[:-2] if array else t.name
        spelled = self.d.spell_type(base)
        if t.params and "(" not in spelled:
            spelled += "(" + ", ".join(t.params) + ")"
        if array:
            spelled += "[]"
        return self.note(t, spelled)

    def json_extract(self, j: JsonExtract) -> str:
        style = self.d.json_style
        if style == "arrow":
            if not j.path:
                return self.operand(j.document, _PRIMARY)
            doc = self.operand(j.document, _PRIMARY)
            steps = [self.string(s) if isinstance(s, str) else str(s) for s in j.path]
            out = doc
            for i, step in enumerate(steps):
                last = i == len(steps) - 1
                out += f" {'->>' if last and j.as_text else '->'} {step}"
            return out
        path = self.string(format_json_path(j.path))
        doc = self.expr(j.document)
        if style == "function":
            text = f"JSON_EXTRACT({doc}, {path})"
            return f"JSON_UNQUOTE({text})" if j.as_text else text
        fn = "JSON_VALUE" if j.as_text else "JSON_QUERY"
        return f"{fn}({doc}, {path})"


__all__ = [
    "APPROXIMATIONS",
    "ApproximationPolicy",
    "EmitResult",
    "Emitter",
    "emit",
]
