import pytest

from sqlshift import translate
from sqlshift.dialects import derive_dialect, MYSQL
from sqlshift.errors import (
    AmbiguousConstructWarning,
    ConfigError,
    LexError,
    ParseError,
    Position,
    UnsupportedFeatureError,
)
from sqlshift.features import FeatureTag
from sqlshift.parser import parse_sql
from sqlshift.translator import Translator


def test_end_to_end_mysql_to_oracle():
    sql = (
        "SELECT department_id, COUNT(*) FROM employees GROUP BY department_id "
        "HAVING COUNT(*) > 10 ORDER BY department_id LIMIT 50"
    )
    assert translate(sql, "mysql", "oracle") == (
        "SELECT department_id, COUNT(*) FROM employees GROUP BY department_id "
        "HAVING COUNT(*) > 10 ORDER BY department_id FETCH FIRST 50 ROWS ONLY;"
    )


def test_translate_accepts_aliases_and_dialect_objects():
    assert translate("SELECT TOP 5 name FROM t", "mssql", "pg") == "SELECT name FROM t LIMIT 5;"
    t = Translator(MYSQL, "sqlserver")
    assert t.target.name == "tsql"
    assert t.translate("SELECT a FROM t LIMIT 2;") == "SELECT TOP 2 a FROM t;"


def test_unknown_dialect_lists_available():
    with pytest.raises(ConfigError) as ei:
        Translator("sybase", "postgres")
    assert str(ei.value) == "Unknown dialect 'sybase'. Available: mysql, oracle, postgres, tsql"


def test_strict_failure_propagates_from_translate():
    with pytest.raises(UnsupportedFeatureError):
        translate("SELECT a FROM t WHERE flag = TRUE", "postgres", "oracle")


def test_translate_reissues_warnings():
    with pytest.warns(AmbiguousConstructWarning):
        out = translate("WITH RECURSIVE r AS (SELECT 1 AS n) SELECT n FROM r", "postgres", "mysql")
    assert out == "WITH r AS (SELECT 1 AS n) SELECT n FROM r;"


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT a, b FROM t WHERE a > 1 ORDER BY b DESC",
        "SELECT g, COUNT(*) FROM t GROUP BY g HAVING COUNT(*) > 2",
        "SELECT t.a, u.b FROM t LEFT JOIN u ON t.id = u.id",
        "SELECT a FROM t LIMIT 10",
        "SELECT (a + b) * c FROM t",
        "SELECT CASE WHEN a > 0 THEN 'pos' ELSE 'neg' END AS sign FROM t",
        "SELECT a FROM t WHERE a IN (SELECT b FROM u)",
        "SELECT a FROM t WHERE a BETWEEN 1 AND 5 AND b IS NOT NULL",
        "SELECT a || 'x' AS y FROM t",
        "SELECT COUNT(DISTINCT a) FROM t",
    ],
)
@pytest.mark.parametrize("target", ["postgres", "mysql", "oracle", "tsql"])
def test_portable_queries_round_trip(sql, target):
    translated = translate(sql, "postgres", target)
    assert parse_sql(translated, target) == parse_sql(sql, "postgres")


def test_script_keeps_going_after_a_failure():
    t = Translator("postgres", "mysql")
    batch = t.translate_script(
        "SELECT a FROM t;\n"
        "SELECT FROM t;\n"
        "SELECT a FROM t WHERE name ILIKE 'x%';\n"
        "SELECT b FROM u LIMIT 3;"
    )
    assert [r.ok for r in batch.results] == [True, False, False, True]
    assert batch.results[0].sql == "SELECT a FROM t;"
    assert batch.results[3].sql == "SELECT b FROM u LIMIT 3;"

    parse_failure = batch.results[1].error
    assert isinstance(parse_failure, ParseError)
    assert parse_failure.position == Position(2, 8)

    feature_failure = batch.results[2].error
    assert isinstance(feature_failure, UnsupportedFeatureError)
    assert feature_failure.missing_feature == FeatureTag.ILIKE

    assert batch.summary() == "4 statement(s): 2 succeeded, 2 failed, 0 warned"
    assert batch.output() == (
        "SELECT a FROM t;\n"
        "-- sqlshift: statement 2 not translated\n"
        "-- sqlshift: statement 3 not translated\n"
        "SELECT b FROM u LIMIT 3;\n"
    )


def test_script_diagnostics_carry_statement_positions():
    batch = Translator("postgres", "mysql").translate_script("SELECT 1;\nSELECT FROM t;")
    (line,) = batch.results[1].diagnostics()
    assert line == (
        "statement 2 at line 2, col 1: "
        "ParseError at line 2, col 8: Expected expression, found 'FROM'"
    )


def test_script_unterminated_literal_fails_only_the_tail():
    batch = Translator("postgres", "mysql").translate_script("SELECT 1;\nSELECT 2;\nSELECT 'open")
    assert [r.ok for r in batch.results] == [True, True, False]
    assert batch.results[1].sql == "SELECT 2;"
    tail = batch.results[2]
    assert isinstance(tail.error, LexError)
    assert tail.error.position == Position(3, 8)
    assert tail.source == "SELECT 'open"


def test_script_stray_character_fails_only_its_statement():
    batch = Translator("mysql", "postgres").translate_script("SELECT 1;\nSELECT $x;\nSELECT 3;")
    assert [r.ok for r in batch.results] == [True, False, True]
    assert batch.results[2].sql == "SELECT 3;"
    err = batch.results[1].error
    assert isinstance(err, LexError)
    assert err.position == Position(2, 8)
    assert batch.summary() == "3 statement(s): 2 succeeded, 1 failed, 0 warned"


def test_script_collects_annotations():
    t = Translator("postgres", "mysql", "best-effort")
    batch = t.translate_script("SELECT a FROM t ORDER BY a NULLS FIRST;")
    (r,) = batch.results
    assert r.sql == "SELECT a FROM t ORDER BY CASE WHEN a IS NULL THEN 0 ELSE 1 END, a;"
    assert r.annotations == ("NULLS_ORDERING: NULLS FIRST/LAST rendered as a leading CASE sort key",)


def test_script_warnings_are_counted():
    batch = Translator("postgres", "oracle").translate_script(
        "WITH RECURSIVE r AS (SELECT 1 AS n) SELECT n FROM r; SELECT 2;"
    )
    assert batch.ok
    assert batch.warned == 1
    assert batch.results[0].warnings[0].position == Position(1, 1)


def test_parallel_script_keeps_order():
    statements = [f"SELECT c{i} FROM t{i} LIMIT {i + 1};" for i in range(20)]
    t = Translator("postgres", "tsql")
    batch = t.translate_script("\n".join(statements), workers=4)
    assert [r.index for r in batch.results] == list(range(1, 21))
    assert [r.sql for r in batch.results] == [f"SELECT TOP {i + 1} c{i} FROM t{i};" for i in range(20)]
    assert batch.results == t.translate_script("\n".join(statements)).results


def test_opaque_body_passes_through_with_warning():
    body = "CREATE PROCEDURE p AS BEGIN SELECT 1; END"
    batch = Translator("tsql", "postgres").translate_script(body + "; SELECT TOP 1 a FROM t;")
    first, second = batch.results
    assert first.sql == body + ";"
    assert "PROCEDURE body passed through untranslated" in first.warnings[0].message
    assert second.sql == "SELECT a FROM t LIMIT 1;"


def test_opaque_body_same_dialect_is_silent():
    body = "CREATE FUNCTION f() RETURNS int AS $$ BEGIN RETURN 1; END; $$ LANGUAGE plpgsql"
    batch = Translator("postgres", "postgres").translate_script(body + ";")
    (r,) = batch.results
    assert r.sql == body + ";"
    assert r.warnings == ()


def test_derived_dialect_in_registry():
    mysql57 = derive_dialect(
        MYSQL, "mysql57", remove_features=[FeatureTag.CTE, FeatureTag.RECURSIVE_CTE, FeatureTag.WINDOW_FUNCTIONS]
    )
    t = Translator("postgres", mysql57)
    with pytest.raises(UnsupportedFeatureError) as ei:
        t.translate("WITH x AS (SELECT 1 AS a) SELECT a FROM x")
    assert ei.value.missing_features == (FeatureTag.CTE,)
    assert t.translate("SELECT a FROM t LIMIT 1") == "SELECT a FROM t LIMIT 1;"
