"""
sqlshift/dialects.py

Declarative per-dialect grammar tables.

Each Dialect describes:
- keyword/function spellings (canonical -> dialect) and extra input aliases
- the order in which SELECT clauses are laid out when emitting
- the set of FeatureTags the dialect supports
- lexical rules the tokenizer needs (identifier quotes, string escapes, bodies)
- a handful of grammar switches the parser and emitter consult

Dialects are frozen and the built-in registry is a read-only mapping built at
import time, so parallel translations can share them without locking.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import ConfigError
from .features import FeatureTag

logger = logging.getLogger(__name__)


def _frozen(d: Mapping[str, str] | None = None) -> Mapping[str, str]:
    return MappingProxyType(dict(d or {}))


# Type spellings every dialect accepts on input.
COMMON_TYPE_ALIASES: Mapping[str, str] = _frozen({
    "INT": "INTEGER",
    "INT4": "INTEGER",
    "INT8": "BIGINT",
    "INT2": "SMALLINT",
    "BOOL": "BOOLEAN",
    "DEC": "DECIMAL",
    "CHARACTER": "CHAR",
    "DOUBLE PRECISION": "DOUBLE",
})

# SELECT clause keys, in the order the emitter may lay them out.
CLAUSE_KEYS = (
    "SELECT",
    "TOP",
    "SELECT_LIST",
    "FROM",
    "WHERE",
    "GROUP_BY",
    "HAVING",
    "ORDER_BY",
    "LIMIT",
    "OFFSET_FETCH",
    "LOCK",
)


@dataclass(frozen=True)
class Dialect:
    """
    A named SQL variant.

    Attributes:
        name: Registry name ("postgres", "mysql", ...).
        keyword_synonyms: canonical keyword/function -> dialect spelling.
        keyword_aliases: extra input spelling -> canonical (parse only).
        clause_order: SELECT clause keys in emission order (subset of CLAUSE_KEYS).
        supported_features: FeatureTags the dialect can express.
        row_limit_syntaxes: row-limit forms accepted on input: LIMIT, OFFSET_FETCH, TOP.
        identifier_quotes: (open, close) delimiter pairs; the first is used on output.
        double_quoted_strings: "..." is a string literal rather than an identifier.
        backslash_escapes: backslash escapes inside string literals.
        dollar_quoting: $$...$$ / $tag$...$tag$ bodies.
        hash_comments: '#' starts a line comment.
        delimiter_directive: client-side DELIMITER lines switch the terminator.
        concat_style: how string concatenation is written: pipes | function | plus.
        pipes_as_or: '||' is logical OR.
        concat_precedence: binding level of '||' (5: looser than + -, 6: same).
        table_alias_as: AS may precede a table alias.
        apply_joins: lateral joins are written CROSS APPLY / OUTER APPLY.
        recursive_keyword: recursive CTEs are introduced by WITH RECURSIVE.
        requires_from: SELECT without FROM needs a dummy table (FROM DUAL).
        string_agg_style: inline_order | within_group | group_concat.
        json_style: arrow | function | value_query.
        identity_style: generated | auto_increment | identity.
        qualified_set_columns: UPDATE / MERGE SET targets may carry a table qualifier.
        merge_on_parens: MERGE ... ON needs a parenthesized condition.
        merge_where_conditions: MERGE branch conditions are written as a trailing WHERE.
        recursive_cte_columns: recursive CTEs must declare their column list.
        modulo_function: the remainder operator is written MOD(a, b).
        explain_prefix: keyword(s) that introduce a plan request.
        view_replace: how CREATE VIEW asks to replace an existing view (OR REPLACE / OR ALTER).
        materialized_view_style: postgres (WITH [NO] DATA after the query) | oracle
            (BUILD / REFRESH options before AS).
        optimizer_hints: /*+ ... */ comments after SELECT are read as optimizer hints.
        type_names: canonical type name -> dialect spelling.
        type_aliases: dialect type spelling -> canonical type name (parse only).
    """
    name: str
    keyword_synonyms: Mapping[str, str] = field(default_factory=_frozen)
    keyword_aliases: Mapping[str, str] = field(default_factory=_frozen)
    clause_order: tuple[str, ...] = (
        "SELECT", "SELECT_LIST", "FROM", "WHERE", "GROUP_BY", "HAVING", "ORDER_BY", "LIMIT", "LOCK",
    )
    supported_features: frozenset[FeatureTag] = frozenset()
    row_limit_syntaxes: frozenset[str] = frozenset({"LIMIT"})
    identifier_quotes: tuple[tuple[str, str], ...] = (('"', '"'),)
    double_quoted_strings: bool = False
    backslash_escapes: bool = False
    dollar_quoting: bool = False
    hash_comments: bool = False
    delimiter_directive: bool = False
    concat_style: str = "pipes"
    pipes_as_or: bool = False
    concat_precedence: int = 5
    table_alias_as: bool = True
    apply_joins: bool = False
    recursive_keyword: bool = True
    requires_from: bool = False
    string_agg_style: str = "inline_order"
    json_style: str = "function"
    identity_style: str = "generated"
    qualified_set_columns: bool = True
    merge_on_parens: bool = False
    merge_where_conditions: bool = False
    recursive_cte_columns: bool = False
    modulo_function: bool = False
    explain_prefix: str = "EXPLAIN"
    view_replace: str = "OR REPLACE"
    materialized_view_style: str = "postgres"
    optimizer_hints: bool = False
    type_names: Mapping[str, str] = field(default_factory=_frozen)
    type_aliases: Mapping[str, str] = field(default_factory=_frozen)

    _canonical_words: Mapping[str, str] = field(init=False, repr=False, compare=False)
    _canonical_types: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        unknown = [k for k in self.clause_order if k not in CLAUSE_KEYS]
        if unknown:
            raise ConfigError(f"Dialect {self.name!r}: unknown clause keys {unknown}")

        words: dict[str, str] = {}
        for canonical, spelling in self.keyword_synonyms.items():
            words[spelling.upper()] = canonical
        for spelling, canonical in self.keyword_aliases.items():
            words[spelling.upper()] = canonical
        object.__setattr__(self, "_canonical_words", MappingProxyType(words))

        types: dict[str, str] = dict(COMMON_TYPE_ALIASES)
        for canonical, spelling in self.type_names.items():
            types[spelling.upper()] = canonical
        for spelling, canonical in self.type_aliases.items():
            types[spelling.upper()] = canonical
        object.__setattr__(self, "_canonical_types", MappingProxyType(types))

    # ---------------- spellings ----------------

    def spell(self, canonical: str) -> str:
        """Dialect spelling of a canonical keyword or function name."""
        return self.keyword_synonyms.get(canonical, canonical)

    def canonical(self, spelling: str) -> str:
        """Canonical name for a keyword/function as written in this dialect."""
        upper = spelling.upper()
        return self._canonical_words.get(upper, upper)

    def spell_type(self, canonical: str) -> str:
        return self.type_names.get(canonical, canonical)

    def canonical_type(self, spelling: str) -> str | None:
        """Canonical type for a spelling, or None when the spelling is not mapped."""
        return self._canonical_types.get(spelling.upper())

    # ---------------- capabilities ----------------

    def supports(self, tag: FeatureTag) -> bool:
        return tag in self.supported_features

    @property
    def identifier_quote(self) -> tuple[str, str]:
        return self.identifier_quotes[0]


_CORE = frozenset({
    FeatureTag.CTE,
    FeatureTag.RECURSIVE_CTE,
    FeatureTag.WINDOW_FUNCTIONS,
    FeatureTag.JSON_EXTRACT,
})

POSTGRES = Dialect(
    name="postgres",
    keyword_synonyms=_frozen({
        "BEGIN_TRANSACTION": "BEGIN",
    }),
    keyword_aliases=_frozen({
        "NOW": "CURRENT_TIMESTAMP",
        "CHAR_LENGTH": "LENGTH",
        "CEILING": "CEIL",
    }),
    clause_order=("SELECT", "SELECT_LIST", "FROM", "WHERE", "GROUP_BY", "HAVING", "ORDER_BY", "LIMIT", "LOCK"),
    supported_features=_CORE | {
        FeatureTag.MERGE_STATEMENT,
        FeatureTag.LATERAL_JOIN,
        FeatureTag.FULL_OUTER_JOIN,
        FeatureTag.WINDOW_FRAME_RANGE,
        FeatureTag.STRING_AGGREGATE,
        FeatureTag.ARRAY_TYPE,
        FeatureTag.ILIKE,
        FeatureTag.BOOLEAN_LITERALS,
        FeatureTag.BOOLEAN_EXPRESSIONS,
        FeatureTag.ROW_LIMIT_WITH_TIES,
        FeatureTag.ROW_LOCKING,
        FeatureTag.ROW_LOCKING_SHARE,
        FeatureTag.NULLS_ORDERING,
        FeatureTag.EXPLAIN,
        FeatureTag.EXPLAIN_ANALYZE,
        FeatureTag.MATERIALIZED_VIEW,
    },
    row_limit_syntaxes=frozenset({"LIMIT", "OFFSET_FETCH"}),
    identifier_quotes=(('"', '"'),),
    dollar_quoting=True,
    concat_style="pipes",
    concat_precedence=5,
    string_agg_style="inline_order",
    json_style="arrow",
    identity_style="generated",
    qualified_set_columns=False,
    type_names=_frozen({
        "BLOB": "BYTEA",
        "DOUBLE": "DOUBLE PRECISION",
    }),
    type_aliases=_frozen({
        "FLOAT8": "DOUBLE",
        "JSONB": "JSON",
    }),
)

MYSQL = Dialect(
    name="mysql",
    keyword_synonyms=_frozen({
        "BEGIN_TRANSACTION": "START TRANSACTION",
        "RANDOM": "RAND",
        "STRING_AGG": "GROUP_CONCAT",
    }),
    keyword_aliases=_frozen({
        "IFNULL": "COALESCE",
        "NOW": "CURRENT_TIMESTAMP",
        "CHAR_LENGTH": "LENGTH",
        "CEILING": "CEIL",
        "SUBSTR": "SUBSTRING",
    }),
    clause_order=("SELECT", "SELECT_LIST", "FROM", "WHERE", "GROUP_BY", "HAVING", "ORDER_BY", "LIMIT", "LOCK"),
    supported_features=_CORE | {
        FeatureTag.LATERAL_JOIN,
        FeatureTag.WINDOW_FRAME_RANGE,
        FeatureTag.BOOLEAN_LITERALS,
        FeatureTag.BOOLEAN_EXPRESSIONS,
        FeatureTag.ROW_LOCKING,
        FeatureTag.ROW_LOCKING_SHARE,
        FeatureTag.EXPLAIN,
        FeatureTag.EXPLAIN_ANALYZE,
    },
    row_limit_syntaxes=frozenset({"LIMIT"}),
    identifier_quotes=(("`", "`"),),
    double_quoted_strings=True,
    backslash_escapes=True,
    hash_comments=True,
    optimizer_hints=True,
    delimiter_directive=True,
    concat_style="function",
    pipes_as_or=True,
    string_agg_style="group_concat",
    json_style="function",
    identity_style="auto_increment",
    type_names=_frozen({
        "TIMESTAMP": "DATETIME",
    }),
    type_aliases=_frozen({
        "TINYINT(1)": "BOOLEAN",
        "LONGTEXT": "TEXT",
        "MEDIUMTEXT": "TEXT",
        "LONGBLOB": "BLOB",
    }),
)

ORACLE = Dialect(
    name="oracle",
    keyword_synonyms=_frozen({
        "EXCEPT": "MINUS",
        "SUBSTRING": "SUBSTR",
        "BEGIN_TRANSACTION": "SET TRANSACTION READ WRITE",
        "STRING_AGG": "LISTAGG",
        "RANDOM": "DBMS_RANDOM.VALUE",
    }),
    keyword_aliases=_frozen({
        "NVL": "COALESCE",
    }),
    clause_order=("SELECT", "SELECT_LIST", "FROM", "WHERE", "GROUP_BY", "HAVING", "ORDER_BY", "OFFSET_FETCH", "LOCK"),
    supported_features=_CORE | {
        FeatureTag.MERGE_STATEMENT,
        FeatureTag.LATERAL_JOIN,
        FeatureTag.FULL_OUTER_JOIN,
        FeatureTag.WINDOW_FRAME_RANGE,
        FeatureTag.STRING_AGGREGATE,
        FeatureTag.ROW_LIMIT_PERCENT,
        FeatureTag.ROW_LIMIT_WITH_TIES,
        FeatureTag.ROW_LOCKING,
        FeatureTag.NULLS_ORDERING,
        FeatureTag.PIVOT,
        FeatureTag.EXPLAIN,
        FeatureTag.MATERIALIZED_VIEW,
        FeatureTag.MATERIALIZED_VIEW_REFRESH,
    },
    row_limit_syntaxes=frozenset({"OFFSET_FETCH"}),
    identifier_quotes=(('"', '"'),),
    concat_style="pipes",
    concat_precedence=6,
    table_alias_as=False,
    apply_joins=True,
    recursive_keyword=False,
    requires_from=True,
    string_agg_style="within_group",
    json_style="value_query",
    identity_style="generated",
    merge_on_parens=True,
    merge_where_conditions=True,
    recursive_cte_columns=True,
    modulo_function=True,
    explain_prefix="EXPLAIN PLAN FOR",
    materialized_view_style="oracle",
    optimizer_hints=True,
    type_names=_frozen({
        "VARCHAR": "VARCHAR2",
        "TEXT": "CLOB",
        "DECIMAL": "NUMBER",
        "BOOLEAN": "NUMBER(1)",
        "BIGINT": "NUMBER(19)",
        "DOUBLE": "BINARY_DOUBLE",
    }),
    type_aliases=_frozen({
        "NVARCHAR2": "VARCHAR",
    }),
)

TSQL = Dialect(
    name="tsql",
    keyword_synonyms=_frozen({
        "LENGTH": "LEN",
        "BEGIN_TRANSACTION": "BEGIN TRANSACTION",
        "CEIL": "CEILING",
        "RANDOM": "RAND",
        "REPEAT": "REPLICATE",
        "CURRENT_DATE": "CAST(GETDATE() AS DATE)",
    }),
    keyword_aliases=_frozen({
        "ISNULL": "COALESCE",
        "GETDATE": "CURRENT_TIMESTAMP",
        "SYSDATETIME": "CURRENT_TIMESTAMP",
    }),
    clause_order=(
        "SELECT", "TOP", "SELECT_LIST", "FROM", "WHERE", "GROUP_BY", "HAVING", "ORDER_BY", "OFFSET_FETCH", "LOCK",
    ),
    supported_features=_CORE | {
        FeatureTag.MERGE_STATEMENT,
        FeatureTag.LATERAL_JOIN,
        FeatureTag.FULL_OUTER_JOIN,
        FeatureTag.STRING_AGGREGATE,
        FeatureTag.ROW_LIMIT_PERCENT,
        FeatureTag.ROW_LIMIT_WITH_TIES,
        FeatureTag.PIVOT,
    },
    row_limit_syntaxes=frozenset({"TOP", "OFFSET_FETCH"}),
    identifier_quotes=(("[", "]"), ('"', '"')),
    concat_style="plus",
    apply_joins=True,
    recursive_keyword=False,
    string_agg_style="within_group",
    json_style="value_query",
    identity_style="identity",
    view_replace="OR ALTER",
    type_names=_frozen({
        "TEXT": "VARCHAR(MAX)",
        "BOOLEAN": "BIT",
        "TIMESTAMP": "DATETIME2",
        "BLOB": "VARBINARY(MAX)",
        "DOUBLE": "FLOAT",
    }),
    type_aliases=_frozen({
        "DATETIME": "TIMESTAMP",
        "NVARCHAR": "VARCHAR",
        "NVARCHAR(MAX)": "TEXT",
    }),
)

BUILTIN_DIALECTS: Mapping[str, Dialect] = MappingProxyType({
    d.name: d for d in (POSTGRES, MYSQL, ORACLE, TSQL)
})

DIALECT_ALIASES: Mapping[str, str] = _frozen({
    "postgresql": "postgres",
    "pg": "postgres",
    "mariadb": "mysql",
    "sqlserver": "tsql",
    "mssql": "tsql",
})


def get_dialect(name: str, registry: Mapping[str, Dialect] | None = None) -> Dialect:
    """
    Look up a dialect by name (case-insensitive, aliases allowed).

    Raises:
        ConfigError: if the name is not registered.
    """
    reg = BUILTIN_DIALECTS if registry is None else registry
    k = (name or "").strip().lower()
    k = DIALECT_ALIASES.get(k, k)
    if k not in reg:
        available = ", ".join(sorted(reg.keys()))
        raise ConfigError(f"Unknown dialect '{name}'. Available: {available}")
    return reg[k]


def resolve_dialect(dialect: Dialect | str, registry: Mapping[str, Dialect] | None = None) -> Dialect:
    """Accept either a Dialect or a registry name."""
    if isinstance(dialect, Dialect):
        return dialect
    return get_dialect(dialect, registry)


def derive_dialect(
    base: Dialect,
    name: str,
    *,
    add_features: Iterable[FeatureTag] = (),
    remove_features: Iterable[FeatureTag] = (),
) -> Dialect:
    """
    Build a new dialect from `base` with an adjusted feature set.

    Useful for older server versions, e.g. MySQL 5.7 = mysql without CTEs
    and window functions.
    """
    if not name or not isinstance(name, str):
        raise ConfigError("Derived dialect must define a non-empty name")
    features = (base.supported_features | frozenset(add_features)) - frozenset(remove_features)
    logger.debug("derived dialect %s from %s (%d features)", name, base.name, len(features))
    return dataclasses.replace(base, name=name.lower(), supported_features=features)


def build_registry(extra: Iterable[Dialect]) -> Mapping[str, Dialect]:
    """Return a new read-only registry: the built-ins plus `extra` dialects."""
    reg = dict(BUILTIN_DIALECTS)
    for d in extra:
        if d.name in BUILTIN_DIALECTS:
            raise ConfigError(f"Cannot redefine built-in dialect '{d.name}'")
        reg[d.name] = d
    return MappingProxyType(reg)
