import pytest

from sqlshift.dialects import MYSQL, ORACLE, POSTGRES, TSQL
from sqlshift.errors import LexError, Position
from sqlshift.lexer import TokenKind, TokenStream, optimizer_hints, split_statements, tokenize


def kinds(tokens):
    return [t.kind for t in tokens]


def test_keywords_and_identifiers():
    toks = tokenize("select Foo from t").significant()
    assert kinds(toks) == [
        TokenKind.KEYWORD,
        TokenKind.IDENTIFIER,
        TokenKind.KEYWORD,
        TokenKind.IDENTIFIER,
        TokenKind.EOF,
    ]
    assert toks[0].value == "SELECT"
    assert toks[1].value == "Foo"


def test_positions_track_lines_and_columns():
    toks = tokenize("SELECT\n  x").significant()
    assert toks[1].pos == Position(2, 3)


def test_doubled_quote_escape():
    toks = tokenize("SELECT 'it''s'", POSTGRES).significant()
    assert toks[1].kind == TokenKind.STRING_LITERAL
    assert toks[1].value == "it's"


def test_mysql_backslash_escape_and_double_quoted_string():
    toks = tokenize("SELECT 'a\\'b', \"x\"", MYSQL).significant()
    assert toks[1].value == "a'b"
    assert toks[3].kind == TokenKind.STRING_LITERAL
    assert toks[3].value == "x"


def test_postgres_does_not_treat_backslash_as_escape():
    toks = tokenize("SELECT 'C:\\temp'", POSTGRES).significant()
    assert toks[1].value == "C:\\temp"


def test_quoted_identifiers_per_dialect():
    tsql = tokenize("SELECT [Order Details]", TSQL).significant()
    assert tsql[1].kind == TokenKind.IDENTIFIER
    assert tsql[1].quoted
    assert tsql[1].value == "Order Details"

    mysql = tokenize("SELECT `select`", MYSQL).significant()
    assert mysql[1].kind == TokenKind.IDENTIFIER
    assert mysql[1].value == "select"

    pg = tokenize('SELECT "Mixed"', POSTGRES).significant()
    assert pg[1].quoted
    assert pg[1].value == "Mixed"


def test_comments_are_tokens_but_not_significant():
    all_tokens = list(tokenize("SELECT 1 -- note\n/* block */ FROM t"))
    assert [t.kind for t in all_tokens].count(TokenKind.COMMENT) == 2
    significant = tokenize("SELECT 1 -- note\n/* block */ FROM t").significant()
    assert TokenKind.COMMENT not in kinds(significant)


def test_hash_comment_only_in_mysql():
    toks = tokenize("SELECT 1 # trailing", MYSQL).significant()
    assert kinds(toks) == [TokenKind.KEYWORD, TokenKind.NUMBER_LITERAL, TokenKind.EOF]
    with pytest.raises(LexError):
        tokenize("SELECT 1 # trailing", POSTGRES).significant()


def test_dollar_quoted_body():
    toks = tokenize("SELECT $$it's; here$$", POSTGRES).significant()
    assert toks[1].kind == TokenKind.STRING_LITERAL
    assert toks[1].value == "it's; here"


def test_longest_operator_wins():
    toks = tokenize("doc ->> 'a'", POSTGRES).significant()
    assert toks[1].kind == TokenKind.OPERATOR
    assert toks[1].text == "->>"


def test_unterminated_string_reports_start():
    with pytest.raises(LexError) as ei:
        tokenize("SELECT 'abc").significant()
    assert ei.value.position == Position(1, 8)
    assert "Unterminated string literal" in ei.value.reason


def test_unterminated_block_comment():
    with pytest.raises(LexError):
        tokenize("SELECT 1 /* open").significant()


def test_token_stream_is_restartable():
    stream = tokenize("SELECT a FROM t")
    assert [t.text for t in stream] == [t.text for t in stream]


def test_split_ignores_semicolons_in_strings_and_comments():
    pieces = split_statements("SELECT 1; SELECT 'a;b'; -- c;\nSELECT 2", POSTGRES)
    assert [p.text for p in pieces] == ["SELECT 1", "SELECT 'a;b'", "SELECT 2"]
    assert pieces[1].position == Position(1, 11)
    assert pieces[2].position == Position(2, 1)


def test_split_keeps_dollar_quoted_function_body_together():
    sql = "CREATE FUNCTION f() RETURNS int AS $$ BEGIN RETURN 1; END; $$ LANGUAGE plpgsql; SELECT 1;"
    pieces = split_statements(sql, POSTGRES)
    assert len(pieces) == 2
    assert pieces[0].text.endswith("LANGUAGE plpgsql")
    assert pieces[1].text == "SELECT 1"


def test_split_keeps_procedural_block_together():
    sql = "CREATE PROCEDURE p AS BEGIN SELECT 1; SELECT 2; END; SELECT 3;"
    pieces = split_statements(sql, TSQL)
    assert [p.text for p in pieces] == [
        "CREATE PROCEDURE p AS BEGIN SELECT 1; SELECT 2; END",
        "SELECT 3",
    ]


def test_split_oracle_block_with_nested_if():
    sql = (
        "CREATE OR REPLACE PROCEDURE p IS\n"
        "BEGIN\n"
        "  IF 1 = 1 THEN NULL; END IF;\n"
        "END;\n"
        "SELECT 1 FROM DUAL;"
    )
    pieces = split_statements(sql, ORACLE)
    assert len(pieces) == 2
    assert pieces[0].text.endswith("END")
    assert pieces[1].position == Position(5, 1)


def test_split_mysql_delimiter_directive():
    sql = "DELIMITER //\nCREATE PROCEDURE p() BEGIN SELECT 1; END //\nDELIMITER ;\nSELECT 2;"
    pieces = split_statements(sql, MYSQL)
    assert [p.text for p in pieces] == ["CREATE PROCEDURE p() BEGIN SELECT 1; END", "SELECT 2"]
    assert pieces[0].position == Position(2, 1)
    assert pieces[1].position == Position(4, 1)


def test_tolerant_stream_marks_bad_characters():
    toks = list(TokenStream("SELECT ¤ 1", tolerant=True))
    assert [t.kind for t in toks] == [
        TokenKind.KEYWORD, TokenKind.ERROR, TokenKind.NUMBER_LITERAL, TokenKind.EOF,
    ]


def test_tolerant_stream_swallows_unterminated_tail():
    toks = list(TokenStream("SELECT 1 /* open\nmore", tolerant=True))
    assert toks[-2].kind == TokenKind.ERROR
    assert toks[-2].text == "/* open\nmore"
    assert toks[-2].pos == Position(1, 10)
    assert toks[-1].pos == Position(2, 5)


def test_split_keeps_statements_around_an_unterminated_literal():
    pieces = split_statements("SELECT 1; SELECT 2;\nSELECT 'x; SELECT 3;", POSTGRES)
    assert [p.text for p in pieces] == ["SELECT 1", "SELECT 2", "SELECT 'x; SELECT 3;"]
    assert pieces[2].position == Position(2, 1)


def test_split_keeps_stray_character_inside_its_statement():
    pieces = split_statements("SELECT 1;\nSELECT $x;\nSELECT 3;", MYSQL)
    assert [p.text for p in pieces] == ["SELECT 1", "SELECT $x", "SELECT 3"]


def test_split_with_custom_delimiter_tolerates_open_quote():
    sql = "DELIMITER //\nSELECT 1 //\nSELECT 'x //\n"
    pieces = split_statements(sql, MYSQL)
    assert [p.text for p in pieces] == ["SELECT 1", "SELECT 'x //"]


def test_optimizer_hints_follow_select_keywords():
    tokens = list(tokenize("SELECT /*+ FULL(t)\n PARALLEL(4) */ a FROM (SELECT /* plain */ b FROM t) x"))
    assert optimizer_hints(tokens) == {0: "FULL(t) PARALLEL(4)"}
