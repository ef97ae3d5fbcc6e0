from sqlshift.repl import handle_meta, is_complete_statement, repl
from sqlshift.translator import Translator


def feed(monkeypatch, lines):
    it = iter(lines)

    def fake_input(_prompt):
        try:
            return next(it)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr("builtins.input", fake_input)


def test_complete_statement_detection():
    assert is_complete_statement("SELECT 1;")
    assert not is_complete_statement("SELECT 'a;b'")
    assert not is_complete_statement("SELECT [a;b]")
    assert not is_complete_statement("SELECT 1 -- done;\n")
    assert not is_complete_statement("SELECT 1 /* ; */")
    assert is_complete_statement("SELECT 1 /* x */;")


def test_repl_translates_multiline_input(monkeypatch, capsys):
    feed(monkeypatch, ["SELECT TOP 3 name", "FROM users;", ".exit"])
    assert repl(Translator("tsql", "postgres")) == 0
    out = capsys.readouterr().out
    assert "SELECT name FROM users LIMIT 3;" in out


def test_repl_reports_errors_and_continues(monkeypatch, capsys):
    feed(monkeypatch, ["SELECT FROM t;", "SELECT 1;"])
    assert repl(Translator("postgres", "oracle")) == 0
    out = capsys.readouterr().out
    assert "Expected expression, found 'FROM'" in out
    assert "SELECT 1 FROM DUAL;" in out


def test_repl_switches_target(monkeypatch, capsys):
    feed(monkeypatch, [".target oracle", "SELECT a FROM t LIMIT 1;", ".quit"])
    repl(Translator("postgres", "mysql"))
    out = capsys.readouterr().out
    assert "postgres -> oracle (strict)" in out
    assert "SELECT a FROM t FETCH FIRST 1 ROWS ONLY;" in out


def test_repl_bad_dialect_keeps_running(monkeypatch, capsys):
    feed(monkeypatch, [".source db2", "SELECT 1;"])
    repl(Translator("postgres", "postgres"))
    out = capsys.readouterr().out
    assert "Unknown dialect 'db2'" in out
    assert "SELECT 1;" in out


def test_meta_commands(capsys):
    t = Translator("mysql", "tsql")
    assert handle_meta(t, ".exit") is None
    assert handle_meta(t, ".policy") is t
    assert capsys.readouterr().out.strip() == "strict"

    t2 = handle_meta(t, ".policy annotate")
    assert t2.policy.value == "annotate"
    assert t2.source is t.source and t2.target is t.target

    handle_meta(t, ".dialects")
    listing = capsys.readouterr().out
    assert "mysql (mariadb)  <- source" in listing
    assert "tsql (mssql, sqlserver)  <- target" in listing

    handle_meta(t, ".features mysql")
    features = capsys.readouterr().out
    assert features.startswith("mysql:")
    assert "  - CTE" in features
    assert "MERGE_STATEMENT" not in features

    assert handle_meta(t, ".bogus") is t
    assert "Unknown command: .bogus" in capsys.readouterr().out


def test_repl_annotations_printed(monkeypatch, capsys):
    feed(monkeypatch, [".policy best-effort", "SELECT a FROM t WHERE name ILIKE 'a%';"])
    repl(Translator("postgres", "mysql"))
    out = capsys.readouterr().out
    assert "SELECT a FROM t WHERE LOWER(name) LIKE LOWER('a%');" in out
    assert "note: ILIKE: ILIKE rendered as LOWER(...) LIKE LOWER(...)" in out
