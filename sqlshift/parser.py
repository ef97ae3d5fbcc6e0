"""
sqlshift/parser.py

Recursive-descent parser producing the canonical AST (see sqlshift/ast.py).

Responsibilities:
- Convert one statement's tokens into a single dialect-neutral AST root
- Resolve dialect spellings into canonical nodes (TOP / LIMIT / FETCH FIRST
  -> RowLimit, LISTAGG / GROUP_CONCAT -> StringAggregate, CROSS APPLY ->
  lateral join, NVL / IFNULL / ISNULL -> COALESCE, ...)
- Provide syntax errors with line/column positions plus expected/found text
- Collect AmbiguousConstructWarning diagnostics without failing the statement

Supported statements:
    - SELECT, set operations (UNION / INTERSECT / EXCEPT / MINUS), WITH [RECURSIVE]
    - INSERT (VALUES rows or a query), UPDATE, DELETE, MERGE
    - CREATE TABLE, CREATE [UNIQUE] INDEX, CREATE [MATERIALIZED] VIEW
    - BEGIN / START TRANSACTION / COMMIT / ROLLBACK / SET TRANSACTION ...
    - EXPLAIN [ANALYZE] and Oracle's EXPLAIN PLAN FOR
    - CREATE PROCEDURE / FUNCTION / TRIGGER, kept as opaque text

Expression precedence, loosest first:
    OR, AND, NOT, comparison / IS / IN / BETWEEN / LIKE, '||', '+ -', '* / %',
    unary sign, postfix ('::' cast, '->' / '->>'), primary.
'||' sits one level looser than '+ -' except in Oracle where they are equal;
in MySQL '||' is OR.

Notes:
- The parser tracks the clause it is in (ParserState / Clause). Aggregates
  are rejected in WHERE and GROUP BY, window functions in WHERE, GROUP BY and
  HAVING. Subqueries open a fresh scope.
- Function names are upper-cased and mapped to canonical names through the
  dialect's synonym tables; quoted function names are kept as written.
"""

from __future__ import annotations

import logging
import re
import warnings
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Union

from .ast import (
    AggregateCall,
    ArrayConstructor,
    Assignment,
    Between,
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
    Expr,
    FrameBound,
    FromItem,
    FunctionCall,
    Identifier,
    InList,
    InSubquery,
    InsertStatement,
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
    PivotValue,
    Query,
    RowLimit,
    RowLimitMode,
    SelectItem,
    SelectStatement,
    SetOperation,
    Star,
    Statement,
    StringAggregate,
    Subquery,
    TableRef,
    TransactionAction,
    TransactionStatement,
    TypeSpec,
    UnaryOp,
    UnpivotTable,
    BinaryOp,
    UpdateStatement,
    WhenClause,
    WindowCall,
    WindowFrame,
    WindowSpec,
    WithClause,
)
from .checker import walk
from .dialects import Dialect, resolve_dialect
from .errors import AmbiguousConstructWarning, ParseError, Position
from .lexer import ANSI, Token, TokenKind, optimizer_hints, procedural_kind, split_statements, tokenize

logger = logging.getLogger(__name__)


class ParserState(Enum):
    START = auto()
    PARSING_CLAUSES = auto()
    DONE = auto()
    FAILED = auto()


class Clause(Enum):
    SELECT_LIST = "SELECT list"
    FROM = "FROM"
    WHERE = "WHERE"
    GROUP_BY = "GROUP BY"
    HAVING = "HAVING"
    ORDER_BY = "ORDER BY"
    LIMIT = "row limit"


AGGREGATE_FUNCTIONS = frozenset({
    "COUNT", "SUM", "AVG", "MIN", "MAX", "ARRAY_AGG", "STDDEV", "STDDEV_POP",
    "STDDEV_SAMP", "VARIANCE", "VAR_POP", "VAR_SAMP", "BIT_AND", "BIT_OR",
    "BOOL_AND", "BOOL_OR", "EVERY", "JSON_AGG", "JSON_ARRAYAGG",
})

STRING_AGG_FUNCTIONS = frozenset({"STRING_AGG", "LISTAGG", "GROUP_CONCAT"})

NILADIC_FUNCTIONS = frozenset({
    "CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "CURRENT_USER",
    "SESSION_USER", "LOCALTIMESTAMP",
})

# MySQL has no OFFSET without LIMIT; this is the documented "all rows" count.
MYSQL_MAX_ROWS = 18446744073709551615

SERIAL_TYPES = {"SMALLSERIAL": "SMALLINT", "SERIAL": "INTEGER", "BIGSERIAL": "BIGINT"}

# Bare words that follow an expression or table without being its alias.
NON_ALIAS_WORDS = frozenset({
    "PIVOT", "UNPIVOT", "APPLY", "MINUS", "WINDOW", "SEPARATOR", "LOCK",
    "RETURNING", "QUALIFY",
})

_COMPARISON_OPS = ("=", "<>", "!=", "<", ">", "<=", ">=")
_JSON_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_JSON_STEP = re.compile(r'\.(?:([A-Za-z_][A-Za-z0-9_]*)|"((?:[^"\\]|\\.)*)")|\[(\d+)\]')


def parse_json_path(text: str) -> tuple[Union[str, int], ...] | None:
    """
    Parse a '$.a.b[0]' style path into its steps.

    Returns:
        A tuple of keys (str) and array indexes (int), or None for paths this
        translator does not model (wildcards, filters, lax/strict modes).
    """
    s = text.strip()
    if not s.startswith("$"):
        return None
    steps: list[Union[str, int]] = []
    i = 1
    while i < len(s):
        m = _JSON_STEP.match(s, i)
        if not m:
            return None
        if m.group(1) is not None:
            steps.append(m.group(1))
        elif m.group(2) is not None:
            steps.append(m.group(2).replace('\\"', '"'))
        else:
            steps.append(int(m.group(3)))
        i = m.end()
    return tuple(steps)


def format_json_path(path: tuple[Union[str, int], ...]) -> str:
    """Inverse of parse_json_path."""
    out = ["$"]
    for step in path:
        if isinstance(step, int):
            out.append(f"[{step}]")
        elif _JSON_KEY.fullmatch(step):
            out.append(f".{step}")
        else:
            escaped = step.replace('"', '\\"')
            out.append(f'."{escaped}"')
    return "".join(out)


def _same_name(a: Identifier, b: Identifier) -> bool:
    if a.quoted or b.quoted:
        return a.name == b.name
    return a.name.upper() == b.name.upper()


def _references_table(node, name: Identifier) -> bool:
    """True if an unqualified table reference to `name` occurs anywhere in node."""
    return any(
        isinstance(n, TableRef) and n.schema is None and _same_name(n.name, name)
        for n in walk(node)
    )


def _is_dual(items: tuple[FromItem, ...]) -> bool:
    if len(items) != 1 or not isinstance(items[0], TableRef):
        return False
    t = items[0]
    return t.schema is None and t.alias is None and not t.name.quoted and t.name.name.upper() == "DUAL"


def _concat(left: Expr, right: Expr) -> Concat:
    parts = (left.parts if isinstance(left, Concat) else (left,)) + (
        right.parts if isinstance(right, Concat) else (right,)
    )
    return Concat(parts)


@dataclass
class Parser:
    """
    Stateful parser over a token list.

    Attributes:
        tokens: Significant tokens (no comments), EOF-terminated.
        dialect: Source dialect; drives spellings and accepted row-limit forms.
        source: The statement text the tokens were scanned from (opaque bodies
            are sliced out of it).
        i: Current token index.
        state: Lifecycle of the current parse.
        clause: Clause being parsed, for correctness checks and messages.
        warnings: AmbiguousConstructWarning instances collected so far.
        hints: Optimizer hint bodies keyed by the offset of their SELECT token.
    """
    tokens: list[Token]
    dialect: Dialect = ANSI
    source: str = ""
    i: int = 0
    state: ParserState = ParserState.START
    clause: Clause | None = None
    warnings: list[AmbiguousConstructWarning] = field(default_factory=list)
    hints: dict[int, str] = field(default_factory=dict)

    def peek(self, offset: int = 0) -> Token:
        """Return the token at current index + offset without consuming."""
        j = self.i + offset
        if j >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[j]

    def consume(self) -> Token:
        """Consume and return the current token."""
        t = self.peek()
        if t.kind != TokenKind.EOF:
            self.i += 1
        return t

    def at_kw(self, *words: str) -> bool:
        return self.peek().is_keyword(*words)

    def at_word(self, *words: str) -> bool:
        return self.peek().is_word(*words)

    def at_op(self, *ops: str) -> bool:
        return self.peek().is_op(*ops)

    def match_kw(self, *words: str) -> bool:
        if self.at_kw(*words):
            self.consume()
            return True
        return False

    def match_word(self, *words: str) -> bool:
        if self.at_word(*words):
            self.consume()
            return True
        return False

    def match_op(self, *ops: str) -> bool:
        if self.at_op(*ops):
            self.consume()
            return True
        return False

    def error(self, expected: str, tok: Token | None = None) -> ParseError:
        """Build a ParseError for the current (or given) token."""
        t = tok or self.peek()
        found = "end of input" if t.kind == TokenKind.EOF else t.text
        return ParseError(f"Expected {expected}, found {found!r}", t.pos, expected=expected, found=found)

    def expect_kw(self, word: str, expected: str | None = None) -> Token:
        """Consume a reserved keyword, otherwise raise ParseError."""
        if not self.at_kw(word):
            raise self.error(expected or word)
        return self.consume()

    def expect_word(self, *words: str) -> Token:
        """Consume a keyword or bare word spelled as one of `words`."""
        if not self.at_word(*words):
            raise self.error(" or ".join(words))
        return self.consume()

    def expect_op(self, op: str, expected: str | None = None) -> Token:
        if not self.at_op(op):
            raise self.error(expected or repr(op))
        return self.consume()

    def warn(self, message: str, pos: Position) -> None:
        w = AmbiguousConstructWarning(message, pos)
        logger.warning("%s", w)
        self.warnings.append(w)

    # ---------------- entry points ----------------

    def parse_one(self) -> Statement:
        """
        Parse exactly one statement (an optional trailing ';' is allowed).

        Raises:
            ParseError if input is empty, malformed, or holds more than one statement.
        """
        self.state = ParserState.START
        try:
            if self.peek().kind == TokenKind.EOF or self.at_op(";"):
                raise ParseError("Empty input", self.peek().pos, expected="statement", found="end of input")
            self.state = ParserState.PARSING_CLAUSES
            stmt = self.parse_statement()
            self.match_op(";")
            if self.peek().kind != TokenKind.EOF:
                t = self.peek()
                raise ParseError(
                    f"Unexpected token {t.text!r} after end of statement",
                    t.pos,
                    expected="end of statement",
                    found=t.text,
                )
        except ParseError:
            self.state = ParserState.FAILED
            raise
        self.state = ParserState.DONE
        return stmt

    # ---------------- statement dispatch ----------------

    def parse_statement(self) -> Statement:
        """Dispatch based on the first keyword token."""
        t = self.peek()
        if t.is_keyword("SELECT", "WITH") or t.is_op("("):
            return self.parse_query()
        if t.is_keyword("INSERT"):
            return self.parse_insert()
        if t.is_keyword("UPDATE"):
            return self.parse_update()
        if t.is_keyword("DELETE"):
            return self.parse_delete()
        if t.is_keyword("MERGE"):
            return self.parse_merge()
        if t.is_keyword("CREATE"):
            return self.parse_create()
        if t.is_keyword("BEGIN", "COMMIT", "ROLLBACK", "SET") or t.is_word("START"):
            return self.parse_transaction()
        if t.is_keyword("EXPLAIN"):
            return self.parse_explain()
        raise self.error("statement")

    # ---------------- queries ----------------

    def parse_query(self) -> Query:
        """
        Parse:
          [WITH ...] <set expression> [ORDER BY ...] [row limit] [lock]
        """
        saved = self.clause
        try:
            with_ = self.parse_with() if self.at_kw("WITH") else None
            body = self.parse_set_expression()

            order_by: tuple[OrderItem, ...] = ()
            if self.at_kw("ORDER"):
                self.clause = Clause.ORDER_BY
                self.consume()
                self.expect_kw("BY", "BY after ORDER")
                order_by = self.parse_order_list()

            limit_tok = self.peek()
            limit = self.parse_trailing_row_limit()
            lock_tok = self.peek()
            lock = self.parse_lock()
            return self._attach(body, with_, order_by, limit, limit_tok, lock, lock_tok)
        finally:
            self.clause = saved

    def _attach(self, body, with_, order_by, limit, limit_tok, lock, lock_tok) -> Query:
        if order_by and body.order_by:
            raise ParseError("Query already has an ORDER BY", limit_tok.pos)
        if limit is not None and body.limit is not None:
            raise ParseError("Row limit given twice (TOP combined with OFFSET/FETCH?)", limit_tok.pos)
        if with_ is not None and body.with_ is not None:
            raise ParseError("Nested WITH clauses are not supported", limit_tok.pos)
        changes = {}
        if order_by:
            changes["order_by"] = order_by
        if limit is not None:
            changes["limit"] = limit
        if with_ is not None:
            changes["with_"] = with_
        if lock is not None:
            if isinstance(body, SetOperation):
                raise ParseError("Row locking is not allowed on a set operation", lock_tok.pos)
            changes["lock"] = lock
        return replace(body, **changes) if changes else body

    def parse_set_expression(self) -> Query:
        """UNION / EXCEPT / MINUS, left-associative; INTERSECT binds tighter."""
        left = self.parse_intersect_term()
        while True:
            if self.at_kw("UNION", "EXCEPT"):
                op = self.consume().value
            elif self.dialect.spell("EXCEPT") == "MINUS" and self.at_word("MINUS"):
                self.consume()
                op = "EXCEPT"
            else:
                return left
            all_ = self._set_quantifier()
            right = self.parse_intersect_term()
            left = SetOperation(op=op, left=left, right=right, all=all_)

    def parse_intersect_term(self) -> Query:
        left = self.parse_query_term()
        while self.match_kw("INTERSECT"):
            all_ = self._set_quantifier()
            right = self.parse_query_term()
            left = SetOperation(op="INTERSECT", left=left, right=right, all=all_)
        return left

    def _set_quantifier(self) -> bool:
        if self.match_kw("ALL"):
            return True
        self.match_kw("DISTINCT")
        return False

    def parse_query_term(self) -> Query:
        if self.match_op("("):
            q = self.parse_query()
            self.expect_op(")", "')' after subquery")
            return q
        return self.parse_select_core()

    def parse_select_core(self) -> SelectStatement:
        """
        Parse:
          SELECT [DISTINCT] [TOP n] <items> [FROM ...] [WHERE ...] [GROUP BY ...] [HAVING ...]
        """
        select_tok = self.expect_kw("SELECT")
        distinct = False
        if self.match_kw("DISTINCT"):
            distinct = True
        else:
            self.match_kw("ALL")

        top = None
        if self.at_word("TOP") and (
            self.peek(1).kind == TokenKind.NUMBER_LITERAL or self.peek(1).is_op("(")
        ):
            if "TOP" not in self.dialect.row_limit_syntaxes:
                raise ParseError(f"TOP is not valid in {self.dialect.name}", self.peek().pos,
                                 expected="select list", found=self.peek().text)
            top = self.parse_top()

        self.clause = Clause.SELECT_LIST
        items = [self.parse_select_item()]
        while self.match_op(","):
            items.append(self.parse_select_item())

        from_: tuple[FromItem, ...] = ()
        if self.match_kw("FROM"):
            self.clause = Clause.FROM
            from_ = self.parse_from_list()
            if _is_dual(from_):
                from_ = ()

        where = None
        if self.at_kw("WHERE"):
            self.clause = Clause.WHERE
            pos = self.consume().pos
            where = self.parse_expr()
            self._check_scope(where, Clause.WHERE, pos)

        group_by: tuple[Expr, ...] = ()
        if self.at_kw("GROUP"):
            self.clause = Clause.GROUP_BY
            pos = self.consume().pos
            self.expect_kw("BY", "BY after GROUP")
            exprs = [self.parse_expr()]
            while self.match_op(","):
                exprs.append(self.parse_expr())
            group_by = tuple(exprs)
            for e in group_by:
                self._check_scope(e, Clause.GROUP_BY, pos)

        having = None
        if self.at_kw("HAVING"):
            self.clause = Clause.HAVING
            pos = self.consume().pos
            having = self.parse_expr()
            self._check_scope(having, Clause.HAVING, pos)

        return SelectStatement(
            items=tuple(items),
            from_=from_,
            where=where,
            group_by=group_by,
            having=having,
            limit=top,
            distinct=distinct,
            hint=self.hints.get(select_tok.offset),
        )

    def _check_scope(self, expr: Expr, clause: Clause, pos: Position) -> None:
        """Reject aggregates / window functions the clause may not contain."""
        for node in walk(expr, into_queries=False):
            if isinstance(node, WindowCall):
                raise ParseError(f"Window functions are not allowed in {clause.value}", pos,
                                 expected="expression without OVER", found="window function")
            if isinstance(node, (AggregateCall, StringAggregate)) and clause in (Clause.WHERE, Clause.GROUP_BY):
                name = node.name if isinstance(node, AggregateCall) else "string aggregate"
                raise ParseError(f"Aggregate {name} is not allowed in {clause.value}", pos,
                                 expected="expression without aggregates", found=name)

    def parse_select_item(self) -> SelectItem:
        if self.match_op("*"):
            return SelectItem(expr=Star())
        t0, t1, t2 = self.peek(), self.peek(1), self.peek(2)
        if t0.kind == TokenKind.IDENTIFIER and t1.is_op(".") and t2.is_op("*"):
            self.i += 3
            return SelectItem(expr=Star(Identifier(t0.value, t0.quoted)))
        expr = self.parse_expr()
        return SelectItem(expr=expr, alias=self.parse_alias())

    def parse_alias(self) -> Identifier | None:
        """[AS] alias; a bare alias must be an identifier that is not a clause word."""
        if self.match_kw("AS"):
            t = self.peek()
            if t.kind == TokenKind.STRING_LITERAL:
                self.consume()
                return Identifier(t.value, quoted=True)
            return self.parse_identifier("alias after AS")
        t = self.peek()
        if t.kind == TokenKind.IDENTIFIER and (t.quoted or t.value.upper() not in NON_ALIAS_WORDS):
            self.consume()
            return Identifier(t.value, t.quoted)
        return None

    # ---------------- row limits ----------------

    def parse_int(self, what: str) -> int:
        t = self.peek()
        if t.kind != TokenKind.NUMBER_LITERAL or not t.text.isdigit():
            raise self.error(what)
        self.consume()
        return int(t.text)

    def parse_top(self) -> RowLimit:
        """
        Parse:
          TOP n | TOP (n) [PERCENT] [WITH TIES]
        """
        self.consume()
        self.clause = Clause.LIMIT
        if self.match_op("("):
            count = self.parse_int("row count")
            self.expect_op(")", "')' after TOP count")
        else:
            count = self.parse_int("row count after TOP")
        mode = RowLimitMode.PERCENT if self.match_word("PERCENT") else RowLimitMode.LIMIT
        if self.at_kw("WITH") and self.peek(1).is_word("TIES"):
            if mode == RowLimitMode.PERCENT:
                raise ParseError("PERCENT cannot be combined with WITH TIES", self.peek().pos)
            self.i += 2
            mode = RowLimitMode.WITH_TIES
        return RowLimit(count=count, offset=None, mode=mode)

    def parse_trailing_row_limit(self) -> RowLimit | None:
        """
        Parse any mix of the row-limit forms the dialect accepts:
          LIMIT n [OFFSET m] | LIMIT m, n | LIMIT ALL
          OFFSET m [ROW|ROWS] [FETCH FIRST|NEXT [n] [PERCENT] ROW|ROWS ONLY|WITH TIES]
        """
        syntaxes = self.dialect.row_limit_syntaxes
        count: int | None = None
        offset: int | None = None
        mode = RowLimitMode.LIMIT
        seen_limit = seen_fetch = seen = False

        while True:
            t = self.peek()
            if t.is_keyword("LIMIT"):
                if "LIMIT" not in syntaxes:
                    raise ParseError(f"LIMIT is not valid in {self.dialect.name}", t.pos,
                                     expected="FETCH FIRST", found=t.text)
                if seen_limit or seen_fetch:
                    raise ParseError("Duplicate row limit", t.pos, expected="end of statement", found=t.text)
                self.clause = Clause.LIMIT
                self.consume()
                seen = seen_limit = True
                if self.match_kw("ALL"):
                    continue
                first = self.parse_int("row count after LIMIT")
                if self.match_op(","):
                    if offset is not None:
                        raise ParseError("OFFSET given twice", t.pos)
                    offset = first
                    count = self.parse_int("row count after LIMIT offset,")
                else:
                    count = first
                if count == MYSQL_MAX_ROWS:
                    count = None
                continue
            if t.is_keyword("OFFSET"):
                if offset is not None:
                    raise ParseError("OFFSET given twice", t.pos, expected="end of statement", found=t.text)
                self.clause = Clause.LIMIT
                self.consume()
                seen = True
                offset = self.parse_int("row offset")
                if not self.match_word("ROW", "ROWS") and "LIMIT" not in syntaxes:
                    raise self.error("ROWS after OFFSET")
                continue
            if t.is_keyword("FETCH"):
                if "OFFSET_FETCH" not in syntaxes:
                    raise ParseError(f"FETCH is not valid in {self.dialect.name}", t.pos,
                                     expected="LIMIT", found=t.text)
                if seen_limit or seen_fetch:
                    raise ParseError("Duplicate row limit", t.pos, expected="end of statement", found=t.text)
                self.clause = Clause.LIMIT
                self.consume()
                seen = seen_fetch = True
                self.expect_word("FIRST", "NEXT")
                count = self.parse_int("row count") if self.peek().kind == TokenKind.NUMBER_LITERAL else 1
                if self.match_word("PERCENT"):
                    mode = RowLimitMode.PERCENT
                self.expect_word("ROW", "ROWS")
                if self.match_word("ONLY"):
                    continue
                if self.at_kw("WITH") and self.peek(1).is_word("TIES"):
                    if mode == RowLimitMode.PERCENT:
                        raise ParseError("PERCENT cannot be combined with WITH TIES", self.peek().pos)
                    self.i += 2
                    mode = RowLimitMode.WITH_TIES
                    continue
                raise self.error("ONLY or WITH TIES")
            break

        if not seen or (count is None and offset is None):
            return None
        return RowLimit(count=count, offset=offset, mode=mode)

    def parse_lock(self) -> LockClause | None:
        """FOR UPDATE | FOR SHARE | LOCK IN SHARE MODE"""
        if self.at_kw("FOR") and self.peek(1).is_keyword("UPDATE"):
            self.i += 2
            return LockClause(LockMode.UPDATE)
        if self.at_kw("FOR") and self.peek(1).is_word("SHARE"):
            self.i += 2
            return LockClause(LockMode.SHARE)
        if self.at_word("LOCK") and self.peek(1).is_keyword("IN"):
            self.i += 2
            self.expect_word("SHARE")
            self.expect_word("MODE")
            return LockClause(LockMode.SHARE)
        return None

    # ---------------- WITH ----------------

    def parse_with(self) -> WithClause:
        """
        Parse:
          WITH [RECURSIVE] name [(cols)] AS (query) [, ...]
        """
        with_tok = self.expect_kw("WITH")
        recursive_kw = self.match_kw("RECURSIVE")
        ctes: list[CteDefinition] = []
        while True:
            name_tok = self.peek()
            name = self.parse_identifier("CTE name")
            columns: tuple[Identifier, ...] = ()
            if self.at_op("("):
                columns = self.parse_identifier_list()
            self.expect_kw("AS", "AS after CTE name")
            if self.match_kw("NOT"):
                self.expect_word("MATERIALIZED")
            else:
                self.match_word("MATERIALIZED")
            self.expect_op("(", "'(' before CTE body")
            query = self.parse_query()
            self.expect_op(")", "')' after CTE body")

            recursive = _references_table(query, name)
            if recursive:
                self._check_recursive_member(name, query, name_tok.pos, recursive_kw)
            ctes.append(CteDefinition(name=name, query=query, columns=columns, is_recursive=recursive))
            if not self.match_op(","):
                break

        if recursive_kw and not any(c.is_recursive for c in ctes):
            self.warn("WITH RECURSIVE but no CTE references itself", with_tok.pos)
        return WithClause(tuple(ctes))

    def _check_recursive_member(self, name: Identifier, query: Query, pos: Position, recursive_kw: bool) -> None:
        if not (
            isinstance(query, SetOperation)
            and query.op == "UNION"
            and isinstance(query.right, SelectStatement)
            and any(_references_table(item, name) for item in query.right.from_)
        ):
            self.warn(f"CTE {name.name} references itself outside a UNION recursive member", pos)
        if not recursive_kw and self.dialect.recursive_keyword:
            self.warn(f"CTE {name.name} references itself without RECURSIVE", pos)

    # ---------------- FROM ----------------

    def parse_from_list(self) -> tuple[FromItem, ...]:
        items = [self.parse_join_tree()]
        while self.match_op(","):
            items.append(self.parse_join_tree())
        return tuple(items)

    def parse_join_tree(self) -> FromItem:
        left = self.parse_table_factor()
        while True:
            t = self.peek()
            kind, apply = self._join_operator()
            if kind is None:
                return left

            if apply:
                if not self.dialect.apply_joins:
                    raise ParseError(f"APPLY is not valid in {self.dialect.name}", t.pos,
                                     expected="JOIN", found=t.text)
                right = self.parse_table_factor()
                if not isinstance(right, DerivedTable):
                    raise ParseError("APPLY requires a derived table", t.pos, expected="subquery")
                left = JoinClause(kind=kind, left=left, right=replace(right, lateral=True))
                continue

            right = self.parse_table_factor()
            condition = None
            using: tuple[Identifier, ...] = ()
            if kind != JoinKind.CROSS:
                if self.match_kw("ON"):
                    condition = self.parse_expr()
                elif self.match_kw("USING"):
                    using = self.parse_identifier_list()
                else:
                    raise self.error("ON or USING in JOIN")
            if isinstance(right, DerivedTable) and right.lateral and _is_true(condition):
                condition = None
                if kind == JoinKind.INNER:
                    kind = JoinKind.CROSS
            left = JoinClause(kind=kind, left=left, right=right, condition=condition, using=using)

    def _join_operator(self) -> tuple[JoinKind | None, bool]:
        """Consume a join operator; returns (kind, is_apply)."""
        t, nxt = self.peek(), self.peek(1)
        if t.is_keyword("JOIN"):
            self.consume()
            return JoinKind.INNER, False
        if t.is_keyword("INNER"):
            self.consume()
            self.expect_kw("JOIN", "JOIN after INNER")
            return JoinKind.INNER, False
        if t.is_keyword("CROSS") and nxt.is_word("APPLY"):
            self.i += 2
            return JoinKind.CROSS, True
        if t.is_keyword("OUTER") and nxt.is_word("APPLY"):
            self.i += 2
            return JoinKind.LEFT, True
        if t.is_keyword("CROSS"):
            self.consume()
            self.expect_kw("JOIN", "JOIN after CROSS")
            return JoinKind.CROSS, False
        if t.is_keyword("LEFT", "RIGHT", "FULL"):
            self.consume()
            self.match_kw("OUTER")
            self.expect_kw("JOIN", f"JOIN after {t.value}")
            return JoinKind(t.value), False
        if t.is_keyword("NATURAL"):
            raise ParseError("NATURAL joins are not supported", t.pos, expected="JOIN", found=t.text)
        return None, False

    def parse_table_factor(self) -> FromItem:
        lateral_tok = self.peek()
        lateral = self.match_kw("LATERAL")
        if self.at_op("("):
            if self.peek(1).is_keyword("SELECT", "WITH") or self.peek(1).is_op("("):
                self.consume()
                q = self.parse_query()
                self.expect_op(")", "')' after derived table")
                item: FromItem = DerivedTable(query=q, alias=self.parse_alias(), lateral=lateral)
            else:
                if lateral:
                    raise self.error("subquery after LATERAL")
                self.consume()
                item = self.parse_join_tree()
                self.expect_op(")", "')' after join")
        else:
            if lateral:
                raise self.error("subquery after LATERAL", lateral_tok)
            schema, name = self.parse_qualified_name("table name")
            item = TableRef(name=name, schema=schema, alias=self.parse_alias())

        while self.at_word("PIVOT", "UNPIVOT") and (
            self.peek(1).is_op("(") or self.peek(1).is_word("EXCLUDE", "INCLUDE")
        ):
            if self.at_word("PIVOT"):
                item = self.parse_pivot(item)
            else:
                item = self.parse_unpivot(item)
        return item

    def parse_pivot(self, source: FromItem) -> PivotTable:
        """
        Parse:
          PIVOT ( <aggregate> FOR <column> IN ( value [AS alias], ... ) ) [alias]
        """
        self.consume()
        self.expect_op("(")
        aggregate = self.parse_expr()
        if not isinstance(aggregate, (AggregateCall, StringAggregate)):
            raise ParseError("PIVOT requires an aggregate function", self.peek().pos)
        self.expect_kw("FOR", "FOR in PIVOT")
        column = self.parse_column_ref()
        self.expect_kw("IN", "IN in PIVOT")
        self.expect_op("(")
        values = [self.parse_pivot_value()]
        while self.match_op(","):
            values.append(self.parse_pivot_value())
        self.expect_op(")", "')' after PIVOT values")
        self.expect_op(")", "')' after PIVOT")
        return PivotTable(
            source=source,
            aggregate=aggregate,
            pivot_column=column,
            values=tuple(values),
            alias=self.parse_alias(),
        )

    def parse_unpivot(self, source: FromItem) -> UnpivotTable:
        """
        Parse:
          UNPIVOT [EXCLUDE NULLS] ( <value column> FOR <name column> IN ( column, ... ) ) [alias]
        """
        self.consume()
        if self.at_word("INCLUDE"):
            t = self.peek()
            raise ParseError("UNPIVOT INCLUDE NULLS is not supported", t.pos, expected="(", found=t.text)
        if self.match_word("EXCLUDE"):
            self.expect_word("NULLS")
        self.expect_op("(")
        value_column = self.parse_identifier("value column")
        self.expect_kw("FOR", "FOR in UNPIVOT")
        name_column = self.parse_identifier("name column")
        self.expect_kw("IN", "IN in UNPIVOT")
        columns = self.parse_identifier_list()
        self.expect_op(")", "')' after UNPIVOT")
        return UnpivotTable(
            source=source,
            value_column=value_column,
            name_column=name_column,
            columns=columns,
            alias=self.parse_alias(),
        )

    def parse_pivot_value(self) -> PivotValue:
        t = self.peek()
        if t.kind == TokenKind.IDENTIFIER:
            # T-SQL spells the pivoted values as column names: IN ([North], [South])
            self.consume()
            return PivotValue(Literal(LiteralKind.STRING, t.value))
        if t.kind == TokenKind.STRING_LITERAL:
            self.consume()
            value = Literal(LiteralKind.STRING, t.value)
        elif t.kind == TokenKind.NUMBER_LITERAL:
            self.consume()
            value = Literal(LiteralKind.NUMBER, t.text)
        else:
            raise self.error("PIVOT value")
        return PivotValue(value, self.parse_alias())

    # ---------------- names ----------------

    def parse_identifier(self, expected: str = "identifier") -> Identifier:
        t = self.peek()
        if t.kind != TokenKind.IDENTIFIER:
            raise self.error(expected)
        self.consume()
        return Identifier(t.value, t.quoted)

    def parse_identifier_list(self) -> tuple[Identifier, ...]:
        """( ident, ident, ... )"""
        self.expect_op("(")
        names = [self.parse_identifier("column name")]
        while self.match_op(","):
            names.append(self.parse_identifier("column name"))
        self.expect_op(")", "')' after column list")
        return tuple(names)

    def parse_qualified_name(self, expected: str) -> tuple[Identifier | None, Identifier]:
        """name | schema.name"""
        first = self.parse_identifier(expected)
        if self.at_op(".") and self.peek(1).kind == TokenKind.IDENTIFIER:
            self.consume()
            return first, self.parse_identifier(expected)
        return None, first

    def parse_table_name(self) -> TableRef:
        schema, name = self.parse_qualified_name("table name")
        return TableRef(name=name, schema=schema)

    def parse_column_ref(self) -> ColumnRef:
        """IDENT | IDENT '.' IDENT | IDENT '.' IDENT '.' IDENT"""
        parts = [self.parse_identifier("column name")]
        while self.at_op(".") and self.peek(1).kind == TokenKind.IDENTIFIER:
            self.consume()
            parts.append(self.parse_identifier("column name"))
        return _column_from_parts(parts, self.peek().pos)

    # ---------------- expressions ----------------

    def parse_expr(self) -> Expr:
        return self.parse_or()

    def parse_or(self) -> Expr:
        left = self.parse_and()
        while self.match_kw("OR") or (self.dialect.pipes_as_or and self.match_op("||")):
            left = BinaryOp("OR", left, self.parse_and())
        return left

    def parse_and(self) -> Expr:
        left = self.parse_not()
        while self.match_kw("AND"):
            left = BinaryOp("AND", left, self.parse_not())
        return left

    def parse_not(self) -> Expr:
        if self.match_kw("NOT"):
            return Not(self.parse_not())
        return self.parse_comparison()

    def parse_comparison(self) -> Expr:
        left = self.parse_binary(5)
        while True:
            t = self.peek()
            if t.kind == TokenKind.OPERATOR and t.text in _COMPARISON_OPS:
                self.consume()
                op = "<>" if t.text == "!=" else t.text
                left = BinaryOp(op, left, self.parse_binary(5))
                continue
            if t.is_keyword("IS"):
                self.consume()
                negated = self.match_kw("NOT")
                self.expect_kw("NULL", "NULL after IS")
                left = IsNull(left, negated)
                continue

            negated = False
            if t.is_keyword("NOT") and self.peek(1).is_keyword("IN", "BETWEEN", "LIKE", "ILIKE"):
                self.consume()
                negated = True
                t = self.peek()

            if t.is_keyword("IN"):
                self.consume()
                self.expect_op("(", "'(' after IN")
                if self.at_kw("SELECT", "WITH"):
                    q = self.parse_query()
                    self.expect_op(")", "')' after subquery")
                    left = InSubquery(left, q, negated)
                else:
                    items = [self.parse_expr()]
                    while self.match_op(","):
                        items.append(self.parse_expr())
                    self.expect_op(")", "')' after IN list")
                    left = InList(left, tuple(items), negated)
                continue
            if t.is_keyword("BETWEEN"):
                self.consume()
                low = self.parse_binary(5)
                self.expect_kw("AND", "AND in BETWEEN")
                high = self.parse_binary(5)
                left = Between(left, low, high, negated)
                continue
            if t.is_keyword("LIKE", "ILIKE"):
                self.consume()
                pattern = self.parse_binary(5)
                escape = self.parse_binary(5) if self.match_kw("ESCAPE") else None
                left = Like(left, pattern, negated, t.value == "ILIKE", escape)
                continue
            return left

    def _binary_precedence(self, t: Token) -> int | None:
        if t.kind != TokenKind.OPERATOR:
            return None
        if t.text == "||":
            if self.dialect.concat_style == "pipes":
                return self.dialect.concat_precedence
            return None
        if t.text in ("+", "-"):
            return 6
        if t.text in ("*", "/", "%"):
            return 7
        return None

    def parse_binary(self, min_prec: int) -> Expr:
        """Precedence climbing over '||', '+ -' and '* / %' (all left-associative)."""
        left = self.parse_unary()
        while True:
            t = self.peek()
            prec = self._binary_precedence(t)
            if prec is None or prec < min_prec:
                return left
            self.consume()
            right = self.parse_binary(prec + 1)
            if t.text == "||" or (
                t.text == "+" and self.dialect.concat_style == "plus" and (_is_text(left) or _is_text(right))
            ):
                left = _concat(left, right)
            else:
                left = BinaryOp(t.text, left, right)

    def parse_unary(self) -> Expr:
        if self.at_op("-", "+"):
            op = self.consume().text
            return UnaryOp(op, self.parse_unary())
        return self.parse_postfix(self.parse_primary())

    def parse_postfix(self, expr: Expr) -> Expr:
        while True:
            if self.match_op("::"):
                expr = _normalize_cast(Cast(expr, self.parse_type()))
                continue
            if self.at_op("->", "->>"):
                expr = self.parse_json_arrows(expr)
                continue
            return expr

    def parse_json_arrows(self, document: Expr) -> JsonExtract:
        """
        PostgreSQL: doc -> 'key' -> 0 ->> 'leaf'   (one step per arrow)
        MySQL:      doc -> '$.path' | doc ->> '$.path'
        """
        path: list[Union[str, int]] = []
        as_text = False
        while self.at_op("->", "->>"):
            op_tok = self.consume()
            if as_text:
                raise ParseError("'->>' must be the last JSON step", op_tok.pos)
            t = self.peek()
            if self.dialect.json_style == "arrow":
                if t.kind == TokenKind.STRING_LITERAL:
                    path.append(t.value)
                elif t.kind == TokenKind.NUMBER_LITERAL and t.text.isdigit():
                    path.append(int(t.text))
                else:
                    raise self.error("JSON key or index")
            else:
                if t.kind != TokenKind.STRING_LITERAL:
                    raise self.error("JSON path string")
                steps = parse_json_path(t.value)
                if steps is None:
                    raise ParseError(f"Unsupported JSON path {t.value!r}", t.pos)
                path.extend(steps)
            self.consume()
            as_text = op_tok.text == "->>"
        return JsonExtract(document, tuple(path), as_text)

    def parse_primary(self) -> Expr:
        t = self.peek()

        if t.kind == TokenKind.NUMBER_LITERAL:
            self.consume()
            return Literal(LiteralKind.NUMBER, t.text)
        if t.kind == TokenKind.STRING_LITERAL:
            self.consume()
            return Literal(LiteralKind.STRING, t.value)
        if t.is_keyword("TRUE", "FALSE"):
            self.consume()
            return Literal(LiteralKind.BOOLEAN, t.value)
        if t.is_keyword("NULL"):
            self.consume()
            return Literal(LiteralKind.NULL, "NULL")

        if t.is_op("("):
            self.consume()
            if self.at_kw("SELECT", "WITH"):
                q = self.parse_query()
                self.expect_op(")", "')' after subquery")
                return Subquery(q)
            e = self.parse_expr()
            self.expect_op(")", "')'")
            return e

        if t.is_keyword("EXISTS"):
            self.consume()
            self.expect_op("(", "'(' after EXISTS")
            q = self.parse_query()
            self.expect_op(")", "')' after subquery")
            return Exists(q)
        if t.is_keyword("CASE"):
            return self.parse_case()
        if t.is_keyword("CAST"):
            self.consume()
            self.expect_op("(", "'(' after CAST")
            e = self.parse_expr()
            self.expect_kw("AS", "AS in CAST")
            ty = self.parse_type()
            self.expect_op(")", "')' after CAST")
            return _normalize_cast(Cast(e, ty))
        if t.is_keyword("ARRAY") and self.peek(1).is_op("["):
            self.i += 2
            items: list[Expr] = []
            if not self.at_op("]"):
                items.append(self.parse_expr())
                while self.match_op(","):
                    items.append(self.parse_expr())
            self.expect_op("]", "']' after ARRAY items")
            return ArrayConstructor(tuple(items))
        if t.is_keyword("LEFT", "RIGHT") and self.peek(1).is_op("("):
            self.consume()
            return self.parse_function_call([Identifier(t.value)], t)

        if t.kind == TokenKind.IDENTIFIER:
            parts = [self.parse_identifier()]
            while self.at_op(".") and self.peek(1).kind == TokenKind.IDENTIFIER:
                self.consume()
                parts.append(self.parse_identifier())
            if self.at_op("("):
                return self.parse_function_call(parts, t)
            if len(parts) == 1 and not parts[0].quoted:
                name = self.dialect.canonical(parts[0].name)
                if name in NILADIC_FUNCTIONS:
                    return FunctionCall(name, niladic=True)
            return _column_from_parts(parts, t.pos)

        raise self.error("expression")

    def parse_case(self) -> CaseExpression:
        """CASE [operand] WHEN ... THEN ... [ELSE ...] END"""
        self.expect_kw("CASE")
        operand = None if self.at_kw("WHEN") else self.parse_expr()
        whens: list[WhenClause] = []
        while self.match_kw("WHEN"):
            cond = self.parse_expr()
            self.expect_kw("THEN", "THEN in CASE")
            whens.append(WhenClause(cond, self.parse_expr()))
        if not whens:
            raise self.error("WHEN in CASE")
        default = self.parse_expr() if self.match_kw("ELSE") else None
        self.expect_kw("END", "END to close CASE")
        return CaseExpression(operand, tuple(whens), default)

    def parse_function_call(self, parts: list[Identifier], first: Token) -> Expr:
        raw = ".".join(p.name for p in parts)
        quoted = any(p.quoted for p in parts)
        name = raw if quoted else self.dialect.canonical(raw)
        self.expect_op("(")

        if not quoted and raw.upper() in STRING_AGG_FUNCTIONS:
            return self.parse_string_aggregate(raw.upper())

        distinct = star = False
        args: list[Expr] = []
        order_by: tuple[OrderItem, ...] = ()
        if self.match_op("*"):
            star = True
        else:
            if self.match_kw("DISTINCT"):
                distinct = True
            else:
                self.match_kw("ALL")
            if not self.at_op(")"):
                args.append(self.parse_expr())
                while self.match_op(","):
                    args.append(self.parse_expr())
            if self.at_kw("ORDER"):
                self.consume()
                self.expect_kw("BY", "BY after ORDER")
                order_by = self.parse_order_list()
        self.expect_op(")", f"')' to close {raw}(")

        node: Expr
        if not quoted and (name in AGGREGATE_FUNCTIONS or star):
            node = AggregateCall(name, tuple(args), distinct, star, order_by)
        elif order_by:
            raise ParseError(f"ORDER BY is not allowed inside {raw}()", first.pos)
        elif not quoted and name in NILADIC_FUNCTIONS and not args:
            node = FunctionCall(name, niladic=True)
        else:
            node = self._canonical_function(name, tuple(args), distinct, quoted)

        if self.at_kw("OVER"):
            if not isinstance(node, (FunctionCall, AggregateCall)) or (
                isinstance(node, FunctionCall) and node.niladic
            ):
                raise ParseError(f"{raw} cannot be used as a window function", self.peek().pos)
            node = WindowCall(node, self.parse_window_spec())
        return node

    def _canonical_function(self, name: str, args: tuple[Expr, ...], distinct: bool, quoted: bool) -> Expr:
        """Map JSON accessor spellings onto JsonExtract; everything else is a FunctionCall."""
        if not quoted and name in ("JSON_EXTRACT", "JSON_VALUE", "JSON_QUERY") and len(args) == 2:
            path_arg = args[1]
            if isinstance(path_arg, Literal) and path_arg.kind == LiteralKind.STRING:
                steps = parse_json_path(path_arg.value)
                if steps is not None:
                    return JsonExtract(args[0], steps, as_text=name == "JSON_VALUE")
        if not quoted and name == "JSON_UNQUOTE" and len(args) == 1:
            inner = args[0]
            if isinstance(inner, JsonExtract) and not inner.as_text:
                return replace(inner, as_text=True)
        if not quoted and name == "CONCAT" and self.dialect.concat_style == "function" and len(args) >= 2:
            node = args[0]
            for arg in args[1:]:
                node = _concat(node, arg)
            return node
        return FunctionCall(name, args, distinct)

    def parse_string_aggregate(self, spelling: str) -> StringAggregate:
        """
        After '(' of STRING_AGG / LISTAGG / GROUP_CONCAT:
          [DISTINCT] expr [, sep] [ORDER BY ...] [SEPARATOR sep] ) [WITHIN GROUP (ORDER BY ...)]
        """
        distinct = self.match_kw("DISTINCT")
        expr = self.parse_expr()
        separator: Expr | None = None
        order_by: tuple[OrderItem, ...] = ()
        if self.match_op(","):
            separator = self.parse_expr()
        if self.at_kw("ORDER"):
            self.consume()
            self.expect_kw("BY", "BY after ORDER")
            order_by = self.parse_order_list()
        if self.match_word("SEPARATOR"):
            separator = self.parse_expr()
        self.expect_op(")", f"')' to close {spelling}(")
        if self.at_word("WITHIN"):
            self.consume()
            self.expect_kw("GROUP", "GROUP after WITHIN")
            self.expect_op("(")
            tok = self.expect_kw("ORDER", "ORDER BY in WITHIN GROUP")
            self.expect_kw("BY", "BY after ORDER")
            if order_by:
                raise ParseError("ORDER BY given twice for string aggregate", tok.pos)
            order_by = self.parse_order_list()
            self.expect_op(")", "')' after WITHIN GROUP")
        if separator is None:
            separator = Literal(LiteralKind.STRING, "," if spelling == "GROUP_CONCAT" else "")
        return StringAggregate(expr, separator, order_by, distinct)

    def parse_window_spec(self) -> WindowSpec:
        """OVER ( [PARTITION BY ...] [ORDER BY ...] [ROWS|RANGE frame] )"""
        self.expect_kw("OVER")
        self.expect_op("(", "'(' after OVER")
        partition_by: list[Expr] = []
        if self.match_kw("PARTITION"):
            self.expect_kw("BY", "BY after PARTITION")
            partition_by.append(self.parse_expr())
            while self.match_op(","):
                partition_by.append(self.parse_expr())
        order_by: tuple[OrderItem, ...] = ()
        if self.match_kw("ORDER"):
            self.expect_kw("BY", "BY after ORDER")
            order_by = self.parse_order_list()
        frame = None
        if self.at_word("ROWS", "RANGE"):
            frame = self.parse_frame()
        self.expect_op(")", "')' after window specification")
        return WindowSpec(tuple(partition_by), order_by, frame)

    def parse_frame(self) -> WindowFrame:
        unit = self.consume().value.upper()
        if self.match_kw("BETWEEN"):
            start = self.parse_frame_bound()
            self.expect_kw("AND", "AND in frame")
            return WindowFrame(unit, start, self.parse_frame_bound())
        return WindowFrame(unit, self.parse_frame_bound())

    def parse_frame_bound(self) -> FrameBound:
        if self.match_word("UNBOUNDED"):
            side = self.expect_word("PRECEDING", "FOLLOWING").value.upper()
            return FrameBound(f"UNBOUNDED_{side}")
        if self.match_word("CURRENT"):
            self.expect_word("ROW")
            return FrameBound("CURRENT_ROW")
        offset = self.parse_binary(6)
        side = self.expect_word("PRECEDING", "FOLLOWING").value.upper()
        return FrameBound(side, offset)

    def parse_order_list(self) -> tuple[OrderItem, ...]:
        items = [self.parse_order_item()]
        while self.match_op(","):
            items.append(self.parse_order_item())
        return tuple(items)

    def parse_order_item(self) -> OrderItem:
        expr = self.parse_expr()
        direction = None
        if self.at_kw("ASC", "DESC"):
            direction = self.consume().value
        nulls = None
        if self.at_word("NULLS") and self.peek(1).is_word("FIRST", "LAST"):
            self.consume()
            nulls = self.consume().value.upper()
        return OrderItem(expr, direction, nulls)

    def parse_type(self) -> TypeSpec:
        """
        Parse:
          name [PRECISION] [ '(' param (',' param)* ')' ] ['[' ']']

        Spellings map through the dialect's type tables; a full-key match such
        as NUMBER(1) or VARCHAR(MAX) wins over the bare name.
        """
        t = self.peek()
        if t.kind != TokenKind.IDENTIFIER or t.quoted:
            raise self.error("type name")
        self.consume()
        name = t.value.upper()
        if name == "DOUBLE" and self.match_word("PRECISION"):
            name = "DOUBLE PRECISION"
        params: list[str] = []
        if self.match_op("("):
            params.append(self._type_param())
            while self.match_op(","):
                params.append(self._type_param())
            self.expect_op(")", "')' after type parameters")

        canonical = None
        if params:
            canonical = self.dialect.canonical_type(f"{name}({','.join(params)})")
        if canonical is not None:
            spec = TypeSpec(canonical)
        else:
            spec = TypeSpec(self.dialect.canonical_type(name) or name, tuple(params))

        if self.at_op("[") and self.peek(1).is_op("]"):
            self.i += 2
            spec = TypeSpec(spec.name + "[]", spec.params)
        return spec

    def _type_param(self) -> str:
        t = self.peek()
        if t.kind == TokenKind.NUMBER_LITERAL or (t.kind == TokenKind.IDENTIFIER and not t.quoted):
            self.consume()
            return t.text.upper()
        raise self.error("type parameter")

    # ---------------- INSERT / UPDATE / DELETE ----------------

    def parse_insert(self) -> InsertStatement:
        """
        Parse:
          INSERT INTO table [(c1, c2, ...)] VALUES (v1, ...)[, (...)] | <query>
        """
        self.expect_kw("INSERT")
        self.expect_kw("INTO", "INTO after INSERT")
        table = self.parse_table_name()

        columns: tuple[Identifier, ...] = ()
        if self.at_op("(") and not self.peek(1).is_keyword("SELECT", "WITH"):
            columns = self.parse_identifier_list()

        if self.match_kw("VALUES"):
            rows = [self.parse_value_row(len(columns))]
            while self.match_op(","):
                rows.append(self.parse_value_row(len(columns)))
            return InsertStatement(table=table, columns=columns, rows=tuple(rows))
        if self.at_kw("SELECT", "WITH") or self.at_op("("):
            return InsertStatement(table=table, columns=columns, query=self.parse_query())
        raise self.error("VALUES or query")

    def parse_value_row(self, width: int) -> tuple[Expr, ...]:
        start = self.expect_op("(", "'(' before values")
        vals = [self.parse_expr()]
        while self.match_op(","):
            vals.append(self.parse_expr())
        self.expect_op(")", "')' after values")
        if width and len(vals) != width:
            raise ParseError("Number of columns does not match number of values", start.pos)
        return tuple(vals)

    def parse_table_with_alias(self) -> TableRef:
        schema, name = self.parse_qualified_name("table name")
        return TableRef(name=name, schema=schema, alias=self.parse_alias())

    def parse_assignments(self) -> tuple[Assignment, ...]:
        """c = v [, c = v]*"""
        out = [self.parse_assignment()]
        while self.match_op(","):
            out.append(self.parse_assignment())
        return tuple(out)

    def parse_assignment(self) -> Assignment:
        col = self.parse_column_ref()
        self.expect_op("=", "'=' in assignment")
        return Assignment(column=col, value=self.parse_expr())

    def _parse_dml_where(self) -> Expr | None:
        if not self.at_kw("WHERE"):
            return None
        self.clause = Clause.WHERE
        pos = self.consume().pos
        where = self.parse_expr()
        self._check_scope(where, Clause.WHERE, pos)
        return where

    def parse_update(self) -> UpdateStatement:
        """
        Parse:
          UPDATE <table> [alias] SET c=v [,c=v]* [WHERE ...]
        """
        self.expect_kw("UPDATE")
        table = self.parse_table_with_alias()
        self.expect_kw("SET", "SET after table name")
        assignments = self.parse_assignments()
        return UpdateStatement(table=table, assignments=assignments, where=self._parse_dml_where())

    def parse_delete(self) -> DeleteStatement:
        """
        Parse:
          DELETE [FROM] <table> [alias] [WHERE ...]
        """
        self.expect_kw("DELETE")
        self.match_kw("FROM")
        table = self.parse_table_with_alias()
        return DeleteStatement(table=table, where=self._parse_dml_where())

    # ---------------- MERGE ----------------

    def parse_merge(self) -> MergeStatement:
        """
        Parse:
          MERGE [INTO] target [alias] USING source ON cond
            WHEN [NOT] MATCHED [AND cond] THEN UPDATE SET ... | DELETE | INSERT [(cols)] VALUES (...)
            ...
        """
        self.expect_kw("MERGE")
        self.match_kw("INTO")
        target = self.parse_table_with_alias()
        self.expect_kw("USING", "USING in MERGE")
        self.clause = Clause.FROM
        source = self.parse_table_factor()
        self.expect_kw("ON", "ON in MERGE")
        condition = self.parse_expr()

        clauses: list[MergeClause] = []
        while self.match_kw("WHEN"):
            matched = not self.match_kw("NOT")
            self.expect_word("MATCHED")
            if self.at_kw("BY"):
                raise ParseError("WHEN NOT MATCHED BY SOURCE/TARGET is not supported", self.peek().pos)
            cond = self.parse_expr() if self.match_kw("AND") else None
            self.expect_kw("THEN", "THEN in MERGE")
            clauses.append(self.parse_merge_action(matched, cond))
        if not clauses:
            raise self.error("WHEN in MERGE")
        return MergeStatement(target=target, source=source, condition=condition, clauses=tuple(clauses))

    def parse_merge_action(self, matched: bool, cond: Expr | None) -> MergeClause:
        t = self.peek()
        if matched and self.match_kw("UPDATE"):
            self.expect_kw("SET", "SET after UPDATE")
            assignments = self.parse_assignments()
            return MergeClause(matched, "UPDATE", self._merge_where(cond), assignments=assignments)
        if matched and self.match_kw("DELETE"):
            return MergeClause(matched, "DELETE", self._merge_where(cond))
        if not matched and self.match_kw("INSERT"):
            columns: tuple[Identifier, ...] = ()
            if self.at_op("("):
                columns = self.parse_identifier_list()
            self.expect_kw("VALUES", "VALUES in MERGE INSERT")
            values = self.parse_value_row(len(columns))
            return MergeClause(matched, "INSERT", self._merge_where(cond), columns=columns, values=values)
        expected = "UPDATE or DELETE" if matched else "INSERT"
        raise self.error(expected, t)

    def _merge_where(self, cond: Expr | None) -> Expr | None:
        """Oracle writes a branch condition as a trailing WHERE instead of WHEN ... AND."""
        if not (self.dialect.merge_where_conditions and self.at_kw("WHERE")):
            return cond
        t = self.consume()
        if cond is not None:
            raise ParseError("MERGE branch has two conditions", t.pos, expected="WHEN", found=t.text)
        return self.parse_expr()

    # ---------------- CREATE ----------------

    def parse_create(self) -> Statement:
        """
        CREATE statement dispatcher:
          - CREATE [OR REPLACE] PROCEDURE | FUNCTION | TRIGGER ...  (opaque)
          - CREATE TABLE ...
          - CREATE [UNIQUE] INDEX ...
          - CREATE [OR REPLACE | OR ALTER] [MATERIALIZED] VIEW ...
        """
        kind = procedural_kind(self.tokens[self.i:self.i + 4])
        if kind is not None:
            return self.parse_opaque(kind)

        self.expect_kw("CREATE")
        or_replace = False
        if self.match_kw("OR"):
            self.expect_word("REPLACE", "ALTER")
            or_replace = True
        materialized = self.match_word("MATERIALIZED")
        if self.match_word("VIEW"):
            return self.parse_create_view_after_keyword(or_replace, materialized)
        if or_replace or materialized:
            raise self.error("VIEW")
        if self.match_kw("TABLE"):
            return self.parse_create_table_after_keyword()
        unique = self.match_kw("UNIQUE")
        if self.match_kw("INDEX"):
            return self.parse_create_index_after_keyword(unique)
        raise self.error("TABLE, INDEX or VIEW after CREATE")

    def parse_opaque(self, kind: str) -> OpaqueStatement:
        """Keep a procedural CREATE verbatim: everything up to end of input."""
        start = self.peek().offset
        text = self.source[start:].strip()
        if text.endswith(";"):
            text = text[:-1].rstrip()
        self.i = len(self.tokens) - 1
        logger.debug("opaque %s statement (%d chars)", kind, len(text))
        return OpaqueStatement(kind=kind, text=text)

    def parse_create_table_after_keyword(self) -> CreateTable:
        """
        Parse:
          CREATE TABLE <name> ( <coldef> | PRIMARY KEY (...) | UNIQUE (...), ... )
        """
        table = self.parse_table_name()
        self.expect_op("(", "'(' after table name")

        cols: list[ColumnDef] = []
        primary_key: tuple[Identifier, ...] = ()
        unique_keys: list[tuple[Identifier, ...]] = []
        while True:
            if self.match_word("CONSTRAINT"):
                self.parse_identifier("constraint name")
            if self.match_kw("PRIMARY"):
                self.expect_kw("KEY", "KEY after PRIMARY")
                primary_key = self.parse_identifier_list()
            elif self.match_kw("UNIQUE"):
                self.match_kw("KEY")
                unique_keys.append(self.parse_identifier_list())
            else:
                cols.append(self.parse_column_def())
            if not self.match_op(","):
                break

        self.expect_op(")", "')' after column definitions")
        return CreateTable(table=table, columns=tuple(cols), primary_key=primary_key, unique_keys=tuple(unique_keys))

    def parse_column_def(self) -> ColumnDef:
        """
        Parse:
          <colname> <type> [NOT NULL | NULL | UNIQUE | PRIMARY KEY | DEFAULT expr |
                            AUTO_INCREMENT | IDENTITY[(s, i)] |
                            GENERATED {ALWAYS | BY DEFAULT} AS IDENTITY]...
        Constraints may appear in any order.
        """
        name = self.parse_identifier("column name")
        typ = self.parse_type()

        identity = False
        if typ.name in SERIAL_TYPES and not typ.params:
            typ = TypeSpec(SERIAL_TYPES[typ.name])
            identity = True

        not_null = unique = primary_key = False
        default = None
        while True:
            if self.match_kw("NOT"):
                self.expect_kw("NULL", "NULL after NOT")
                not_null = True
                continue
            if self.match_kw("NULL"):
                continue
            if self.match_kw("UNIQUE"):
                unique = True
                continue
            if self.match_kw("PRIMARY"):
                self.expect_kw("KEY", "KEY after PRIMARY")
                primary_key = True
                continue
            if self.match_kw("DEFAULT"):
                default = self.parse_binary(5)
                continue
            if self.match_word("AUTO_INCREMENT"):
                identity = True
                continue
            if self.match_word("IDENTITY"):
                if self.match_op("("):
                    self.parse_int("identity seed")
                    self.expect_op(",")
                    self.parse_int("identity increment")
                    self.expect_op(")")
                identity = True
                continue
            if self.match_word("GENERATED"):
                if not self.match_word("ALWAYS"):
                    self.expect_kw("BY", "ALWAYS or BY DEFAULT")
                    self.expect_kw("DEFAULT")
                self.expect_kw("AS")
                self.expect_word("IDENTITY")
                identity = True
                continue
            break

        return ColumnDef(
            name=name,
            type=typ,
            not_null=not_null,
            unique=unique,
            primary_key=primary_key,
            identity=identity,
            default=default,
        )

    def parse_create_index_after_keyword(self, unique: bool) -> CreateIndex:
        """
        Parse:
          CREATE [UNIQUE] INDEX <idx_name> ON <table> (<column>, ...)
        """
        name = self.parse_identifier("index name")
        self.expect_kw("ON", "ON after index name")
        table = self.parse_table_name()
        columns = self.parse_identifier_list()
        return CreateIndex(name=name, table=table, columns=columns, unique=unique)

    def parse_create_view_after_keyword(self, or_replace: bool, materialized: bool) -> CreateView:
        """
        Parse:
          CREATE [OR REPLACE] [MATERIALIZED] VIEW <name> [(<column>, ...)]
            [BUILD IMMEDIATE | BUILD DEFERRED] [REFRESH <options>]
            AS <query> [WITH [NO] DATA]

        BUILD and REFRESH are Oracle's; WITH [NO] DATA is PostgreSQL's.
        """
        if or_replace and materialized:
            raise ParseError("OR REPLACE is not allowed for a materialized view", self.peek().pos)
        view = self.parse_table_name()
        columns = self.parse_identifier_list() if self.at_op("(") else ()
        populate = True
        refresh = None
        if materialized:
            if self.match_word("BUILD"):
                populate = self.expect_word("IMMEDIATE", "DEFERRED").value.upper() == "IMMEDIATE"
            if self.match_word("REFRESH"):
                words = []
                if self.at_word("COMPLETE", "FAST", "FORCE"):
                    words.append(self.consume().value.upper())
                if self.match_kw("ON"):
                    words.append("ON " + self.expect_word("DEMAND", "COMMIT").value.upper())
                if not words:
                    raise self.error("refresh method or ON DEMAND / ON COMMIT")
                refresh = " ".join(words)
        self.expect_kw("AS", "AS before view query")
        query = self.parse_query()
        if materialized and self.at_kw("WITH"):
            self.consume()
            populate = not self.match_word("NO")
            self.expect_word("DATA")
        return CreateView(
            view=view,
            query=query,
            columns=columns,
            or_replace=or_replace,
            materialized=materialized,
            populate=populate,
            refresh=refresh,
        )

    # ---------------- transactions / EXPLAIN ----------------

    def parse_transaction(self) -> TransactionStatement:
        """
        BEGIN [TRANSACTION | TRAN | WORK] | START TRANSACTION |
        COMMIT [TRANSACTION | WORK] | ROLLBACK [TRANSACTION | WORK] |
        SET TRANSACTION ISOLATION LEVEL <level> | SET TRANSACTION READ WRITE
        """
        t = self.consume()
        if t.is_keyword("BEGIN"):
            self.match_word("TRANSACTION", "TRAN", "WORK")
            return TransactionStatement(TransactionAction.BEGIN)
        if t.is_word("START"):
            self.expect_word("TRANSACTION")
            return TransactionStatement(TransactionAction.BEGIN)
        if t.is_keyword("COMMIT"):
            self.match_word("TRANSACTION", "TRAN", "WORK")
            return TransactionStatement(TransactionAction.COMMIT)
        if t.is_keyword("ROLLBACK"):
            self.match_word("TRANSACTION", "TRAN", "WORK")
            return TransactionStatement(TransactionAction.ROLLBACK)

        self.expect_word("TRANSACTION")
        if self.match_word("READ"):
            self.expect_word("WRITE")
            return TransactionStatement(TransactionAction.BEGIN)
        self.expect_word("ISOLATION")
        self.expect_word("LEVEL")
        level_tok = self.peek()
        if self.match_word("READ"):
            level = "READ " + self.expect_word("COMMITTED", "UNCOMMITTED").value.upper()
        elif self.match_word("REPEATABLE"):
            self.expect_word("READ")
            level = "REPEATABLE READ"
        elif self.match_word("SERIALIZABLE"):
            level = "SERIALIZABLE"
        else:
            raise self.error("isolation level", level_tok)
        return TransactionStatement(TransactionAction.SET_ISOLATION, level)

    def parse_explain(self) -> ExplainStatement:
        """EXPLAIN [ANALYZE] <statement> | EXPLAIN PLAN FOR <statement>"""
        self.expect_kw("EXPLAIN")
        analyze = self.match_word("ANALYZE")
        if not analyze and self.match_word("PLAN"):
            self.expect_kw("FOR", "FOR after EXPLAIN PLAN")
        t = self.peek()
        stmt = self.parse_statement()
        if isinstance(
            stmt,
            (ExplainStatement, TransactionStatement, OpaqueStatement, CreateTable, CreateIndex, CreateView),
        ):
            raise ParseError("EXPLAIN needs a query or DML statement", t.pos, expected="query", found=t.text)
        return ExplainStatement(stmt, analyze)


# ---------------- helpers ----------------


def _is_text(expr: Expr) -> bool:
    """String literal or concatenation: what makes T-SQL '+' a concatenation."""
    return isinstance(expr, Concat) or (isinstance(expr, Literal) and expr.kind == LiteralKind.STRING)


def _is_true(expr: Expr | None) -> bool:
    return isinstance(expr, Literal) and expr.kind == LiteralKind.BOOLEAN and expr.value == "TRUE"


def _column_from_parts(parts: list[Identifier], pos: Position) -> ColumnRef:
    if len(parts) == 1:
        return ColumnRef(parts[0])
    if len(parts) == 2:
        return ColumnRef(parts[1], table=parts[0])
    if len(parts) == 3:
        return ColumnRef(parts[2], table=parts[1], schema=parts[0])
    raise ParseError("Too many name qualifiers", pos, expected="column reference")


def _normalize_cast(node: Cast) -> Expr:
    """CAST(CURRENT_TIMESTAMP AS DATE) is how T-SQL spells CURRENT_DATE."""
    e = node.expr
    if (
        node.type == TypeSpec("DATE")
        and isinstance(e, FunctionCall)
        and e.niladic
        and e.name == "CURRENT_TIMESTAMP"
    ):
        return FunctionCall("CURRENT_DATE", niladic=True)
    return node


# ---------------- public API ----------------

def parse_statement_text(
    sql: str,
    dialect: Dialect | str | None = None,
    origin: Position | None = None,
) -> tuple[Statement, list[AmbiguousConstructWarning]]:
    """
    Parse one statement and return it with the warnings collected on the way.

    Args:
        sql: Statement text (a trailing ';' is allowed).
        dialect: Source dialect (object or registry name); ANSI rules when omitted.
        origin: Position of sql[0] in a larger input, for error positions.

    Raises:
        LexError, ParseError
    """
    d = ANSI if dialect is None else resolve_dialect(dialect)
    stream = list(tokenize(sql, d, origin))
    tokens = [t for t in stream if t.kind != TokenKind.COMMENT]
    parser = Parser(tokens, d, sql, hints=optimizer_hints(stream) if d.optimizer_hints else {})
    root = parser.parse_one()
    return root, list(parser.warnings)


def parse_sql(sql: str, dialect: Dialect | str | None = None) -> Statement:
    """
    Convenience: parse exactly one statement.

    Collected AmbiguousConstructWarnings are re-issued through warnings.warn.
    """
    root, collected = parse_statement_text(sql, dialect)
    for w in collected:
        warnings.warn(w, stacklevel=2)
    return root


def parse_script(sql: str, dialect: Dialect | str | None = None) -> list[Statement]:
    """
    Convenience: split a batch and parse every statement.

    Unlike Translator.translate_script this fails on the first bad statement.
    """
    d = ANSI if dialect is None else resolve_dialect(dialect)
    out: list[Statement] = []
    for piece in split_statements(sql, d):
        root, collected = parse_statement_text(piece.text, d, piece.position)
        for w in collected:
            warnings.warn(w, stacklevel=2)
        out.append(root)
    return out


__all__ = [
    "Clause",
    "Parser",
    "ParserState",
    "format_json_path",
    "parse_json_path",
    "parse_script",
    "parse_sql",
    "parse_statement_text",
]
