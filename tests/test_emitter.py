import pytest

from sqlshift.ast import Identifier, Literal, LiteralKind, SelectItem, SelectStatement
from sqlshift.dialects import POSTGRES, derive_dialect
from sqlshift.emitter import ApproximationPolicy, Emitter, emit
from sqlshift.errors import ConfigError, UnsupportedFeatureError
from sqlshift.features import FeatureTag
from sqlshift.parser import parse_sql


def tr(sql, source, target, policy=ApproximationPolicy.STRICT):
    return emit(parse_sql(sql, source), target, policy)


# ---------- row limits ----------

def test_limit_to_top():
    assert tr("SELECT a FROM t ORDER BY a LIMIT 10", "postgres", "tsql") == "SELECT TOP 10 a FROM t ORDER BY a"


def test_top_to_limit():
    assert tr("SELECT TOP 10 a FROM t", "tsql", "mysql") == "SELECT a FROM t LIMIT 10"


def test_limit_to_fetch_first():
    assert (
        tr("SELECT a FROM t ORDER BY a LIMIT 50", "mysql", "oracle")
        == "SELECT a FROM t ORDER BY a FETCH FIRST 50 ROWS ONLY"
    )


def test_offset_in_tsql_needs_order_by():
    assert (
        tr("SELECT a FROM t LIMIT 10 OFFSET 5", "postgres", "tsql")
        == "SELECT a FROM t ORDER BY (SELECT NULL) OFFSET 5 ROWS FETCH FIRST 10 ROWS ONLY"
    )


def test_offset_only_in_mysql():
    assert (
        tr("SELECT a FROM t OFFSET 5", "postgres", "mysql")
        == "SELECT a FROM t LIMIT 18446744073709551615 OFFSET 5"
    )
    assert tr("SELECT a FROM t OFFSET 5", "postgres", "postgres") == "SELECT a FROM t OFFSET 5"


def test_fetch_to_limit_offset():
    assert (
        tr("SELECT a FROM t OFFSET 5 ROWS FETCH FIRST 10 ROWS ONLY", "oracle", "postgres")
        == "SELECT a FROM t LIMIT 10 OFFSET 5"
    )


def test_set_operation_limit_in_tsql():
    assert (
        tr("SELECT a FROM t UNION SELECT a FROM u LIMIT 5", "postgres", "tsql")
        == "SELECT a FROM t UNION SELECT a FROM u ORDER BY (SELECT NULL) OFFSET 0 ROWS FETCH FIRST 5 ROWS ONLY"
    )


def test_percent_limit_strict_in_postgres():
    with pytest.raises(UnsupportedFeatureError) as ei:
        tr("SELECT TOP 10 PERCENT a FROM t", "tsql", "postgres")
    assert ei.value.missing_feature == FeatureTag.ROW_LIMIT_PERCENT


# ---------- precedence ----------

def test_concat_precedence_differs_in_oracle():
    assert tr("SELECT a || b + c FROM t", "postgres", "oracle") == "SELECT a || (b + c) FROM t"
    assert tr("SELECT a || b + c FROM t", "postgres", "postgres") == "SELECT a || b + c FROM t"
    assert tr("SELECT a || b + c FROM t", "oracle", "postgres") == "SELECT (a || b) + c FROM t"


def test_arithmetic_parentheses_kept_only_when_needed():
    assert tr("SELECT (a + b) * c, a + (b * c), a - (b - c) FROM t", "postgres", "mysql") == (
        "SELECT (a + b) * c, a + b * c, a - (b - c) FROM t"
    )


def test_or_inside_and_keeps_parentheses():
    assert (
        tr("SELECT a FROM t WHERE (a = 1 OR b = 2) AND c = 3", "postgres", "oracle")
        == "SELECT a FROM t WHERE (a = 1 OR b = 2) AND c = 3"
    )


def test_not_keeps_its_operand_grouping():
    assert (
        tr("SELECT a FROM t WHERE NOT a = 1 AND b = 2", "postgres", "oracle")
        == "SELECT a FROM t WHERE NOT a = 1 AND b = 2"
    )
    assert (
        tr("SELECT a FROM t WHERE NOT (a = 1 OR b = 2)", "postgres", "mysql")
        == "SELECT a FROM t WHERE NOT (a = 1 OR b = 2)"
    )


def test_modulo_is_a_function_in_oracle():
    assert tr("SELECT a % 2 FROM t", "postgres", "oracle") == "SELECT MOD(a, 2) FROM t"


def test_concatenation_styles():
    sql = "SELECT first_name || ' ' || last_name FROM t"
    assert tr(sql, "postgres", "mysql") == "SELECT CONCAT(first_name, ' ', last_name) FROM t"
    assert tr(sql, "postgres", "tsql") == "SELECT first_name + ' ' + last_name FROM t"
    assert tr(sql, "postgres", "oracle") == "SELECT first_name || ' ' || last_name FROM t"


# ---------- policies ----------

def test_boolean_literal_strict_raises():
    with pytest.raises(UnsupportedFeatureError) as ei:
        tr("SELECT a FROM t WHERE flag = TRUE", "postgres", "tsql")
    assert ei.value.missing_features == (FeatureTag.BOOLEAN_LITERALS,)
    assert ei.value.dialect == "tsql"


def test_boolean_literal_best_effort():
    best = ApproximationPolicy.BEST_EFFORT
    assert tr("SELECT a FROM t WHERE flag = TRUE", "postgres", "tsql", best) == "SELECT a FROM t WHERE flag = 1"
    assert tr("SELECT a FROM t WHERE TRUE", "postgres", "tsql", best) == "SELECT a FROM t WHERE 1 = 1"


def test_boolean_expressions_strict_raises_in_tsql_and_oracle():
    for sql in ("SELECT a FROM t WHERE flag", "SELECT a = 1 AS f FROM t"):
        for target in ("tsql", "oracle"):
            with pytest.raises(UnsupportedFeatureError) as ei:
                tr(sql, "postgres", target)
            assert ei.value.missing_features == (FeatureTag.BOOLEAN_EXPRESSIONS,)
        assert tr(sql, "postgres", "mysql") == sql


def test_boolean_expressions_best_effort():
    best = ApproximationPolicy.BEST_EFFORT
    assert tr("SELECT a FROM t WHERE flag", "postgres", "tsql", best) == "SELECT a FROM t WHERE flag = 1"
    assert tr("SELECT a = 1 AS f FROM t", "postgres", "tsql", best) == (
        "SELECT CASE WHEN a = 1 THEN 1 ELSE 0 END AS f FROM t"
    )
    assert tr("SELECT a FROM t WHERE NOT flag AND b > 1", "postgres", "oracle", best) == (
        "SELECT a FROM t WHERE NOT flag = 1 AND b > 1"
    )
    assert tr("SELECT COUNT(*) FROM t HAVING SUM(x) OR MAX(y) > 2", "postgres", "tsql", best) == (
        "SELECT COUNT(*) FROM t HAVING SUM(x) = 1 OR MAX(y) > 2"
    )


def test_boolean_expressions_annotated():
    result = Emitter("tsql", "annotate").emit(parse_sql("SELECT a > b AS bigger FROM t", "postgres"))
    note = "BOOLEAN_EXPRESSIONS: boolean value rendered as CASE WHEN ... THEN 1 ELSE 0 END or compared with 1"
    assert result.sql == f"SELECT CASE WHEN a > b THEN 1 ELSE 0 END /* sqlshift: {note} */ AS bigger FROM t"
    assert result.annotations == (note,)


def test_ilike_best_effort_records_note():
    result = Emitter("mysql", "best-effort").emit(parse_sql("SELECT a FROM t WHERE name ILIKE 'j%'", "postgres"))
    assert result.sql == "SELECT a FROM t WHERE LOWER(name) LIKE LOWER('j%')"
    assert result.annotations == ("ILIKE: ILIKE rendered as LOWER(...) LIKE LOWER(...)",)


def test_nulls_ordering_best_effort():
    assert tr(
        "SELECT a FROM t ORDER BY a DESC NULLS LAST", "postgres", "mysql", ApproximationPolicy.BEST_EFFORT
    ) == "SELECT a FROM t ORDER BY CASE WHEN a IS NULL THEN 1 ELSE 0 END, a DESC"


def test_best_effort_still_raises_without_substitute():
    sql = "MERGE INTO tgt t USING src s ON t.id = s.id WHEN MATCHED THEN UPDATE SET val = s.val"
    with pytest.raises(UnsupportedFeatureError) as ei:
        tr(sql, "postgres", "mysql", ApproximationPolicy.BEST_EFFORT)
    assert ei.value.missing_feature == FeatureTag.MERGE_STATEMENT


def test_annotate_never_raises():
    sql = "MERGE INTO tgt t USING src s ON t.id = s.id WHEN MATCHED THEN UPDATE SET val = s.val"
    result = Emitter("mysql", ApproximationPolicy.ANNOTATE).emit(parse_sql(sql, "postgres"))
    assert result.sql.startswith("MERGE INTO tgt AS t USING src AS s ON t.id = s.id")
    assert result.sql.endswith("/* sqlshift: mysql does not support MERGE_STATEMENT */")
    assert result.annotations == ("mysql does not support MERGE_STATEMENT",)


def test_annotate_marks_approximations_inline():
    result = Emitter("mysql", "annotate").emit(parse_sql("SELECT a FROM t WHERE name ILIKE 'j%'", "postgres"))
    assert result.sql == (
        "SELECT a FROM t WHERE LOWER(name) LIKE LOWER('j%') "
        "/* sqlshift: ILIKE: ILIKE rendered as LOWER(...) LIKE LOWER(...) */"
    )


def test_unknown_policy_lists_choices():
    with pytest.raises(ConfigError) as ei:
        ApproximationPolicy.parse("lenient")
    assert "Available: strict, best-effort, annotate" in str(ei.value)
    assert ApproximationPolicy.parse("BEST_EFFORT") is ApproximationPolicy.BEST_EFFORT


# ---------- string aggregates ----------

def test_string_aggregate_per_dialect():
    sql = "SELECT STRING_AGG(name, ', ' ORDER BY name) FROM t"
    assert tr(sql, "postgres", "oracle") == "SELECT LISTAGG(name, ', ') WITHIN GROUP (ORDER BY name) FROM t"
    assert tr(sql, "postgres", "tsql") == "SELECT STRING_AGG(name, ', ') WITHIN GROUP (ORDER BY name) FROM t"
    assert tr(sql, "postgres", "postgres") == "SELECT STRING_AGG(name, ', ' ORDER BY name) FROM t"


def test_string_aggregate_in_mysql_is_approximate():
    sql = "SELECT STRING_AGG(name, ', ' ORDER BY name) FROM t"
    with pytest.raises(UnsupportedFeatureError):
        tr(sql, "postgres", "mysql")
    assert (
        tr(sql, "postgres", "mysql", ApproximationPolicy.BEST_EFFORT)
        == "SELECT GROUP_CONCAT(name ORDER BY name SEPARATOR ', ') FROM t"
    )


# ---------- statements ----------

def test_merge_to_oracle():
    sql = (
        "MERGE INTO tgt t USING src s ON t.id = s.id "
        "WHEN MATCHED THEN UPDATE SET val = s.val "
        "WHEN NOT MATCHED THEN INSERT (id, val) VALUES (s.id, s.val)"
    )
    assert tr(sql, "postgres", "oracle") == (
        "MERGE INTO tgt t USING src s ON (t.id = s.id) "
        "WHEN MATCHED THEN UPDATE SET val = s.val "
        "WHEN NOT MATCHED THEN INSERT (id, val) VALUES (s.id, s.val)"
    )


def test_merge_branch_condition_moves():
    sql = (
        "MERGE INTO tgt t USING src s ON (t.id = s.id) "
        "WHEN MATCHED THEN UPDATE SET t.val = s.val WHERE s.val > 0"
    )
    assert tr(sql, "oracle", "postgres") == (
        "MERGE INTO tgt AS t USING src AS s ON t.id = s.id "
        "WHEN MATCHED AND s.val > 0 THEN UPDATE SET val = s.val"
    )


def test_recursive_cte_to_oracle():
    sql = "WITH RECURSIVE r AS (SELECT 1 AS n UNION ALL SELECT n + 1 FROM r WHERE n < 5) SELECT n FROM r"
    assert tr(sql, "postgres", "oracle") == (
        "WITH r (n) AS (SELECT 1 AS n FROM DUAL UNION ALL SELECT n + 1 FROM r WHERE n < 5) SELECT n FROM r"
    )
    assert tr(sql, "postgres", "mysql") == (
        "WITH RECURSIVE r AS (SELECT 1 AS n UNION ALL SELECT n + 1 FROM r WHERE n < 5) SELECT n FROM r"
    )


def test_recursive_cte_to_dialect_without_recursion():
    flat = derive_dialect(POSTGRES, "pg-flat", remove_features=[FeatureTag.RECURSIVE_CTE])
    root = parse_sql(
        "WITH RECURSIVE r AS (SELECT 1 AS n UNION ALL SELECT n + 1 FROM r WHERE n < 5) SELECT n FROM r",
        "postgres",
    )
    with pytest.raises(UnsupportedFeatureError) as ei:
        emit(root, flat)
    assert ei.value.missing_features == (FeatureTag.RECURSIVE_CTE,)
    with pytest.raises(UnsupportedFeatureError):
        emit(root, flat, ApproximationPolicy.BEST_EFFORT)


def test_recursive_cte_with_unnamed_anchor_to_oracle():
    sql = "WITH RECURSIVE r AS (SELECT * FROM seed UNION ALL SELECT n + 1 FROM r WHERE n < 5) SELECT n FROM r"
    for policy in (ApproximationPolicy.STRICT, ApproximationPolicy.BEST_EFFORT):
        with pytest.raises(UnsupportedFeatureError) as ei:
            tr(sql, "postgres", "oracle", policy)
        assert ei.value.missing_features == (FeatureTag.RECURSIVE_CTE,)
    declared = sql.replace("WITH RECURSIVE r AS", "WITH RECURSIVE r (n) AS")
    assert tr(declared, "postgres", "oracle") == (
        "WITH r (n) AS (SELECT * FROM seed UNION ALL SELECT n + 1 FROM r WHERE n < 5) SELECT n FROM r"
    )


def test_lateral_join_styles():
    apply_sql = "SELECT s.x FROM t CROSS APPLY (SELECT t.a AS x) s"
    assert tr(apply_sql, "tsql", "postgres") == "SELECT s.x FROM t CROSS JOIN LATERAL (SELECT t.a AS x) AS s"
    outer = "SELECT s.x FROM t OUTER APPLY (SELECT t.a AS x) s"
    assert tr(outer, "tsql", "postgres") == "SELECT s.x FROM t LEFT JOIN LATERAL (SELECT t.a AS x) AS s ON TRUE"
    lateral = "SELECT s.x FROM t CROSS JOIN LATERAL (SELECT t.a AS x) AS s"
    assert tr(lateral, "postgres", "tsql") == "SELECT s.x FROM t CROSS APPLY (SELECT t.a AS x) AS s"


def test_create_table_per_dialect():
    sql = "CREATE TABLE users (id SERIAL PRIMARY KEY, name VARCHAR(100) NOT NULL, bio TEXT)"
    assert tr(sql, "postgres", "oracle") == (
        "CREATE TABLE users (id INTEGER GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY, "
        "name VARCHAR2(100) NOT NULL, bio CLOB)"
    )
    assert tr(sql, "postgres", "mysql") == (
        "CREATE TABLE users (id INTEGER AUTO_INCREMENT PRIMARY KEY, name VARCHAR(100) NOT NULL, bio TEXT)"
    )
    assert tr(sql, "postgres", "tsql") == (
        "CREATE TABLE users (id INTEGER IDENTITY(1,1) PRIMARY KEY, name VARCHAR(100) NOT NULL, bio VARCHAR(MAX))"
    )


def test_create_index():
    assert (
        tr("CREATE UNIQUE INDEX idx_email ON users (email)", "mysql", "postgres")
        == "CREATE UNIQUE INDEX idx_email ON users (email)"
    )


def test_transactions():
    assert tr("START TRANSACTION", "mysql", "tsql") == "BEGIN TRANSACTION"
    assert tr("START TRANSACTION", "mysql", "oracle") == "SET TRANSACTION READ WRITE"
    assert tr("BEGIN TRANSACTION", "tsql", "postgres") == "BEGIN"
    assert tr("COMMIT", "postgres", "mysql") == "COMMIT"


def test_explain_prefix():
    assert tr("EXPLAIN SELECT a FROM t", "postgres", "oracle") == "EXPLAIN PLAN FOR SELECT a FROM t"
    with pytest.raises(UnsupportedFeatureError):
        tr("EXPLAIN SELECT a FROM t", "postgres", "tsql")


def test_current_date_in_tsql():
    assert tr("SELECT CURRENT_DATE", "postgres", "tsql") == "SELECT CAST(GETDATE() AS DATE)"
    assert tr("SELECT CAST(GETDATE() AS DATE)", "tsql", "postgres") == "SELECT CURRENT_DATE"
    assert tr("SELECT CURRENT_DATE", "postgres", "oracle") == "SELECT CURRENT_DATE FROM DUAL"


def test_function_spellings():
    assert tr("SELECT LENGTH(name) FROM t", "postgres", "tsql") == "SELECT LEN(name) FROM t"
    assert tr("SELECT SUBSTRING(name, 1, 3) FROM t", "postgres", "oracle") == "SELECT SUBSTR(name, 1, 3) FROM t"
    assert tr("SELECT NVL(a, 0) FROM t", "oracle", "mysql") == "SELECT COALESCE(a, 0) FROM t"


def test_json_extraction():
    assert (
        tr("SELECT doc ->> 'name' FROM t", "postgres", "mysql")
        == "SELECT JSON_UNQUOTE(JSON_EXTRACT(doc, '$.name')) FROM t"
    )
    assert tr("SELECT doc ->> 'name' FROM t", "postgres", "oracle") == "SELECT JSON_VALUE(doc, '$.name') FROM t"
    assert tr("SELECT JSON_EXTRACT(doc, '$.a.b') FROM t", "mysql", "postgres") == "SELECT doc -> 'a' -> 'b' FROM t"


def test_except_is_minus_in_oracle():
    assert (
        tr("SELECT a FROM t EXCEPT SELECT a FROM u", "postgres", "oracle")
        == "SELECT a FROM t MINUS SELECT a FROM u"
    )


def test_set_operation_grouping_is_kept():
    sql = "(SELECT a FROM t UNION SELECT a FROM u) INTERSECT SELECT a FROM v"
    assert tr(sql, "postgres", "mysql") == "(SELECT a FROM t UNION SELECT a FROM u) INTERSECT SELECT a FROM v"


def test_pivot_values_per_dialect():
    sql = "SELECT * FROM sales PIVOT (SUM(amount) FOR region IN ([North], [South])) AS p"
    assert tr(sql, "tsql", "oracle") == "SELECT * FROM sales PIVOT (SUM(amount) FOR region IN ('North', 'South')) p"
    with pytest.raises(UnsupportedFeatureError):
        tr(sql, "tsql", "postgres")


def test_unpivot_per_dialect():
    sql = "SELECT id, quarter, amount FROM sales UNPIVOT (amount FOR quarter IN (q1, q2, q3)) AS u"
    assert tr(sql, "tsql", "oracle") == (
        "SELECT id, quarter, amount FROM sales UNPIVOT (amount FOR quarter IN (q1, q2, q3)) u"
    )
    assert tr(sql, "tsql", "tsql") == sql
    with pytest.raises(UnsupportedFeatureError) as ei:
        tr(sql, "tsql", "postgres")
    assert ei.value.missing_feature == FeatureTag.PIVOT


def test_views_per_dialect():
    sql = "CREATE OR REPLACE VIEW v (a, b) AS SELECT x, y FROM t"
    assert tr(sql, "postgres", "tsql") == "CREATE OR ALTER VIEW v (a, b) AS SELECT x, y FROM t"
    assert tr(sql, "postgres", "mysql") == sql
    assert tr("CREATE OR ALTER VIEW v AS SELECT x FROM t", "tsql", "oracle") == (
        "CREATE OR REPLACE VIEW v AS SELECT x FROM t"
    )


def test_materialized_views_per_dialect():
    empty = "CREATE MATERIALIZED VIEW mv AS SELECT x FROM t WITH NO DATA"
    assert tr(empty, "postgres", "postgres") == empty
    assert tr(empty, "postgres", "oracle") == "CREATE MATERIALIZED VIEW mv BUILD DEFERRED AS SELECT x FROM t"
    for target in ("mysql", "tsql"):
        with pytest.raises(UnsupportedFeatureError) as ei:
            tr(empty, "postgres", target)
        assert ei.value.missing_feature == FeatureTag.MATERIALIZED_VIEW
    fast = "CREATE MATERIALIZED VIEW mv REFRESH FAST ON COMMIT AS SELECT x FROM t"
    assert tr(fast, "oracle", "oracle") == fast
    with pytest.raises(UnsupportedFeatureError) as ei:
        tr(fast, "oracle", "postgres")
    assert ei.value.missing_feature == FeatureTag.MATERIALIZED_VIEW_REFRESH
    manual = "CREATE MATERIALIZED VIEW mv REFRESH COMPLETE ON DEMAND AS SELECT x FROM t"
    assert tr(manual, "oracle", "postgres") == "CREATE MATERIALIZED VIEW mv AS SELECT x FROM t"


def test_identifier_quoting():
    assert tr('SELECT "Order Id" FROM t', "postgres", "tsql") == "SELECT [Order Id] FROM t"
    assert tr("SELECT [Order Id] FROM t", "tsql", "mysql") == "SELECT `Order Id` FROM t"
    assert tr('SELECT "select" FROM t', "postgres", "postgres") == 'SELECT "select" FROM t'


def test_backslash_doubled_for_mysql():
    assert tr(r"SELECT 'C:\temp' AS p", "postgres", "mysql") == r"SELECT 'C:\\temp' AS p"
    assert tr(r"SELECT 'C:\\temp' AS p", "mysql", "postgres") == r"SELECT 'C:\temp' AS p"


def test_select_without_from_gets_dual_in_oracle():
    node = SelectStatement(items=(SelectItem(Literal(LiteralKind.NUMBER, "1"), Identifier("x")),))
    assert emit(node, "oracle") == "SELECT 1 AS x FROM DUAL"
    assert emit(node, "postgres") == "SELECT 1 AS x"


def test_emitter_is_reusable():
    e = Emitter("tsql")
    root = parse_sql("SELECT a FROM t LIMIT 3", "postgres")
    assert e.emit(root).sql == e.emit(root).sql == "SELECT TOP 3 a FROM t"


def test_optimizer_hints_kept_where_the_target_reads_them():
    root = parse_sql("SELECT /*+ INDEX(e emp_idx) */ DISTINCT name FROM emp e", "oracle")
    assert emit(root, "oracle") == "SELECT /*+ INDEX(e emp_idx) */ DISTINCT name FROM emp e"
    assert emit(root, "mysql") == "SELECT /*+ INDEX(e emp_idx) */ DISTINCT name FROM emp AS e"


def test_optimizer_hint_dropped_with_a_note():
    root = parse_sql("SELECT /*+ FULL(e) */ name FROM emp e", "oracle")
    result = Emitter("tsql").emit(root)
    assert result.sql == "SELECT name FROM emp AS e"
    assert result.annotations == ("optimizer hint dropped: FULL(e)",)
    annotated = Emitter("postgres", ApproximationPolicy.ANNOTATE).emit(root)
    assert annotated.sql == "SELECT /* sqlshift: optimizer hint dropped: FULL(e) */ name FROM emp AS e"
