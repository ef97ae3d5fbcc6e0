"""
sqlshift/lexer.py

Dialect-aware SQL tokenizer and statement splitter.

Responsibilities:
- Convert SQL text into a lazy, restartable stream of tokens with line/column positions
- Apply the dialect's quoting rules only (identifier quotes, string escapes,
  $$-bodies, '#' comments); keyword spelling is left to the parser
- Split a batch into statements on ';' outside strings, comments and bodies,
  honouring procedural BEGIN ... END blocks and MySQL DELIMITER directives

Notes:
- Reserved words come out as KEYWORD tokens. Non-reserved words (FIRST, ROWS,
  NULLS, PIVOT, ...) stay IDENTIFIER tokens; the parser matches them by text.
- Comments are produced as COMMENT tokens so callers can keep or drop them.
- A tolerant stream turns scan failures into ERROR tokens instead of raising:
  one per unexpected character, or one covering the rest of the input for an
  unterminated literal or comment. The splitter uses it so a bad statement
  fails on its own.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

from .dialects import Dialect
from .errors import LexError, Position

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    """Token categories recognized by the lexer."""
    KEYWORD = auto()
    IDENTIFIER = auto()
    STRING_LITERAL = auto()
    NUMBER_LITERAL = auto()
    OPERATOR = auto()
    PUNCTUATION = auto()
    COMMENT = auto()
    ERROR = auto()
    EOF = auto()


KEYWORDS: frozenset[str] = frozenset({
    "ALL", "AND", "ARRAY", "AS", "ASC", "BEGIN", "BETWEEN", "BY", "CASE", "CAST",
    "COMMIT", "CREATE", "CROSS", "DEFAULT", "DELETE", "DESC", "DISTINCT", "ELSE",
    "END", "ESCAPE", "EXCEPT", "EXISTS", "EXPLAIN", "FALSE", "FETCH", "FOR", "FROM",
    "FULL", "GROUP", "HAVING", "ILIKE", "IN", "INDEX", "INNER", "INSERT", "INTERSECT",
    "INTO", "IS", "JOIN", "KEY", "LATERAL", "LEFT", "LIKE", "LIMIT", "MERGE",
    "NATURAL", "NOT", "NULL", "OFFSET", "ON", "OR", "ORDER", "OUTER", "OVER",
    "PARTITION", "PRIMARY", "RECURSIVE", "RIGHT", "ROLLBACK", "SELECT", "SET",
    "TABLE", "THEN", "TRUE", "UNION", "UNIQUE", "UPDATE", "USING", "VALUES", "WHEN",
    "WHERE", "WITH",
})

# Longest first so '->>' wins over '->' and '-'. The procedural-only operators
# (':=', '@', ...) are lexed so opaque bodies tokenize; the parser rejects them.
OPERATORS: tuple[str, ...] = (
    "->>", "<>", "!=", "<=", ">=", "||", "::", ":=", "=>", "->",
    "=", "<", ">", "+", "-", "*", "/", "%",
    ":", "@", "?", "&", "|", "^", "~", "!",
)

PUNCTUATION: frozenset[str] = frozenset({"(", ")", ",", ";", ".", "[", "]"})

_DOLLAR_TAG = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)?\$")

_BACKSLASH_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "b": "\b",
    "Z": "\x1a",
    "\\": "\\",
    "'": "'",
    '"': '"',
}

# Lexical rules used when no dialect is given.
ANSI = Dialect(name="ansi")


@dataclass(frozen=True)
class Token:
    """
    A lexical token.

    Attributes:
        kind: TokenKind
        text: Exact source text of the token
        value: Normalized payload:
               - KEYWORD -> upper-case word
               - IDENTIFIER -> name (without quotes)
               - STRING_LITERAL -> unescaped content
               - others -> the text
        pos: Position in input (line/col)
        offset: Character index of the token in the scanned text
        quoted: True for delimited identifiers ("x", `x`, [x])
    """
    kind: TokenKind
    text: str
    value: str
    pos: Position
    offset: int = 0
    quoted: bool = False

    def is_keyword(self, *words: str) -> bool:
        return self.kind == TokenKind.KEYWORD and self.value in words

    def is_word(self, *words: str) -> bool:
        """Reserved keyword or bare identifier spelled as one of `words`."""
        if self.kind == TokenKind.KEYWORD:
            return self.value in words
        if self.kind == TokenKind.IDENTIFIER and not self.quoted:
            return self.value.upper() in words
        return False

    def is_op(self, *ops: str) -> bool:
        return self.kind in (TokenKind.OPERATOR, TokenKind.PUNCTUATION) and self.text in ops


class TokenStream:
    """
    Lazy, restartable token sequence.

    Every iteration re-scans the source, so a stream can be consumed more than
    once; scanning stops at the first LexError unless the stream is tolerant.
    """

    def __init__(
        self,
        sql: str,
        dialect: Dialect | None = None,
        origin: Position | None = None,
        tolerant: bool = False,
    ):
        self.sql = sql
        self.dialect = dialect or ANSI
        self.origin = origin or Position(1, 1)
        self.tolerant = tolerant

    def __iter__(self) -> Iterator[Token]:
        return _scan(self.sql, self.dialect, self.origin, self.tolerant)

    def significant(self) -> list[Token]:
        """All tokens except comments, EOF included."""
        return [t for t in self if t.kind != TokenKind.COMMENT]


def tokenize(sql: str, dialect: Dialect | None = None, origin: Position | None = None) -> TokenStream:
    """
    Tokenize SQL text.

    Args:
        sql: Raw SQL input string.
        dialect: Supplies quoting rules; ANSI rules when omitted.
        origin: Position of sql[0] in a larger input (for batch diagnostics).

    Returns:
        A TokenStream, always terminated with an EOF token when iterated.

    Raises (during iteration):
        LexError: for unexpected characters or unterminated literals/comments.
    """
    return TokenStream(sql, dialect, origin)


def _scan(sql: str, dialect: Dialect, origin: Position, tolerant: bool = False) -> Iterator[Token]:
    i = 0
    line = origin.line
    col = origin.col
    n = len(sql)

    ident_quotes = [
        (o, c) for (o, c) in dialect.identifier_quotes
        if not (o == '"' and dialect.double_quoted_strings)
    ]

    def cur_pos() -> Position:
        return Position(line=line, col=col)

    def peek(offset: int = 0) -> str:
        j = i + offset
        if j >= n:
            return ""
        return sql[j]

    def advance(count: int = 1) -> None:
        """Advance the cursor by count characters while tracking line/column."""
        nonlocal i, line, col
        for _ in range(count):
            if i >= n:
                return
            ch = sql[i]
            i += 1
            if ch == "\n":
                line += 1
                col = 1
            else:
                col += 1

    def read_quoted(close: str, what: str, backslashes: bool) -> str:
        """Consume up to and including the closing delimiter; doubled delimiters escape."""
        start = cur_pos()
        advance(1)
        buf: list[str] = []
        while True:
            if i >= n:
                raise LexError(f"Unterminated {what}", start)
            c = peek(0)
            if backslashes and c == "\\" and i + 1 < n:
                nxt = peek(1)
                if nxt in "%_":
                    # LIKE wildcards keep their backslash
                    buf.append("\\" + nxt)
                else:
                    buf.append(_BACKSLASH_ESCAPES.get(nxt, nxt))
                advance(2)
                continue
            if c == close:
                if peek(1) == close:
                    buf.append(close)
                    advance(2)
                    continue
                advance(1)
                return "".join(buf)
            buf.append(c)
            advance(1)

    start_i = 0
    try:
        while i < n:
            ch = peek(0)
            start_i = i

            if ch.isspace():
                advance(1)
                continue

            # Comments
            if ch == "-" and peek(1) == "-" or (ch == "#" and dialect.hash_comments):
                start = cur_pos()
                j = sql.find("\n", i)
                j = n if j == -1 else j
                text = sql[i:j]
                advance(j - i)
                yield Token(TokenKind.COMMENT, text, text, start, start_i)
                continue
            if ch == "/" and peek(1) == "*":
                start = cur_pos()
                j = sql.find("*/", i + 2)
                if j == -1:
                    raise LexError("Unterminated block comment", start)
                text = sql[i:j + 2]
                advance(j + 2 - i)
                yield Token(TokenKind.COMMENT, text, text, start, start_i)
                continue

            # Dollar-quoted body: $$...$$ or $tag$...$tag$
            if ch == "$" and dialect.dollar_quoting:
                m = _DOLLAR_TAG.match(sql, i)
                if m:
                    start = cur_pos()
                    tag = m.group(0)
                    j = sql.find(tag, m.end())
                    if j == -1:
                        raise LexError("Unterminated dollar-quoted body", start)
                    text = sql[i:j + len(tag)]
                    body = sql[m.end():j]
                    advance(len(text))
                    yield Token(TokenKind.STRING_LITERAL, text, body, start, start_i)
                    continue

            # National string: N'...'
            if ch in "Nn" and peek(1) == "'":
                start = cur_pos()
                advance(1)
                s = read_quoted("'", "string literal", dialect.backslash_escapes)
                yield Token(TokenKind.STRING_LITERAL, sql[start_i:i], s, start, start_i)
                continue

            # String literal
            if ch == "'" or (ch == '"' and dialect.double_quoted_strings):
                start = cur_pos()
                s = read_quoted(ch, "string literal", dialect.backslash_escapes)
                yield Token(TokenKind.STRING_LITERAL, sql[start_i:i], s, start, start_i)
                continue

            # Quoted identifier
            pair = next(((o, c) for (o, c) in ident_quotes if o == ch), None)
            if pair is not None:
                start = cur_pos()
                name = read_quoted(pair[1], "quoted identifier", False)
                yield Token(TokenKind.IDENTIFIER, sql[start_i:i], name, start, start_i, quoted=True)
                continue

            # Number literal
            if ch.isdigit() or (ch == "." and peek(1).isdigit()):
                start = cur_pos()
                j = i
                while j < n and sql[j].isdigit():
                    j += 1
                if j < n and sql[j] == ".":
                    j += 1
                    while j < n and sql[j].isdigit():
                        j += 1
                if j < n and sql[j] in "eE":
                    k = j + 1
                    if k < n and sql[k] in "+-":
                        k += 1
                    if k < n and sql[k].isdigit():
                        while k < n and sql[k].isdigit():
                            k += 1
                        j = k
                lex = sql[i:j]
                advance(j - i)
                yield Token(TokenKind.NUMBER_LITERAL, lex, lex, start, start_i)
                continue

            # Identifier / keyword
            if ch.isalpha() or ch == "_":
                start = cur_pos()
                j = i
                while j < n and (sql[j].isalnum() or sql[j] in "_$"):
                    j += 1
                lex = sql[i:j]
                upper = lex.upper()
                advance(j - i)
                if upper in KEYWORDS:
                    yield Token(TokenKind.KEYWORD, lex, upper, start, start_i)
                else:
                    yield Token(TokenKind.IDENTIFIER, lex, lex, start, start_i)
                continue

            # Operators
            op = next((o for o in OPERATORS if sql.startswith(o, i)), None)
            if op is not None:
                start = cur_pos()
                advance(len(op))
                yield Token(TokenKind.OPERATOR, op, op, start, start_i)
                continue

            if ch in PUNCTUATION:
                start = cur_pos()
                advance(1)
                yield Token(TokenKind.PUNCTUATION, ch, ch, start, start_i)
                continue

            if tolerant:
                yield Token(TokenKind.ERROR, ch, ch, cur_pos(), start_i)
                advance(1)
                continue
            raise LexError(f"Unexpected character: {ch!r}", cur_pos())
    except LexError as e:
        if not tolerant:
            raise
        # unterminated literal or comment swallows the rest of the input
        rest = sql[start_i:]
        yield Token(TokenKind.ERROR, rest, rest, e.position, start_i)
        advance(n - i)

    yield Token(TokenKind.EOF, "", "", Position(line=line, col=col), n)


# ---------------- statement splitting ----------------

@dataclass(frozen=True)
class StatementText:
    """
    One statement cut out of a batch.

    Attributes:
        text: Statement source without its terminator.
        position: Where the statement starts in the whole input.
    """
    text: str
    position: Position


_PROCEDURAL_OBJECTS = ("PROCEDURE", "FUNCTION", "TRIGGER")
_BLOCK_OPENERS = ("BEGIN", "CASE")
_END_SUFFIXES = ("IF", "LOOP", "WHILE", "REPEAT")
_DELIMITER_LINE = re.compile(r"^\s*DELIMITER\s+(\S+)\s*$", re.IGNORECASE)


def optimizer_hints(tokens: list[Token]) -> dict[int, str]:
    """
    Map the offset of each SELECT keyword to the body of a /*+ ... */ hint
    comment that directly follows it.
    """
    hints: dict[int, str] = {}
    for tok, nxt in zip(tokens, tokens[1:]):
        if tok.is_keyword("SELECT") and nxt.kind == TokenKind.COMMENT and nxt.text.startswith("/*+"):
            body = " ".join(nxt.text[3:-2].split())
            if body:
                hints[tok.offset] = body
    return hints


def procedural_kind(tokens: list[Token]) -> str | None:
    """
    Return PROCEDURE / FUNCTION / TRIGGER when the tokens start a procedural
    CREATE statement (CREATE [OR REPLACE] <kind> ...), else None.
    """
    words = [t for t in tokens[:4] if t.kind != TokenKind.COMMENT]
    if len(words) < 2 or not words[0].is_keyword("CREATE"):
        return None
    if words[1].is_word(*_PROCEDURAL_OBJECTS):
        return words[1].value.upper()
    if (
        len(words) >= 4
        and words[1].is_keyword("OR")
        and words[2].is_word("REPLACE")
        and words[3].is_word(*_PROCEDURAL_OBJECTS)
    ):
        return words[3].value.upper()
    return None


def split_statements(sql: str, dialect: Dialect | None = None) -> list[StatementText]:
    """
    Split a batch into statements.

    Args:
        sql: Script text.
        dialect: Quoting rules and DELIMITER support; ANSI when omitted.

    Returns:
        Non-empty statements in input order. Never raises: a stray character
        stays inside its statement, and an unterminated literal or comment
        turns the rest of the batch into one final statement. Parsing that
        piece reports the LexError.
    """
    d = dialect or ANSI
    if d.delimiter_directive:
        stmts = _split_with_directives(sql, d)
    else:
        stmts = _split_on_semicolons(sql, d, Position(1, 1))
    logger.debug("split %d statement(s) for dialect %s", len(stmts), d.name)
    return stmts


def _split_on_semicolons(sql: str, dialect: Dialect, origin: Position) -> list[StatementText]:
    out: list[StatementText] = []
    cur: list[Token] = []
    proc: str | None = None
    depth = 0
    seen_block = False
    in_decl = False
    pending_end = False
    pending_as = False

    def flush(end_offset: int) -> None:
        if cur:
            text = sql[cur[0].offset:end_offset].rstrip()
            out.append(StatementText(text=text, position=cur[0].pos))

    for tok in TokenStream(sql, dialect, origin, tolerant=True):
        if tok.kind == TokenKind.COMMENT:
            continue
        if tok.kind == TokenKind.EOF:
            flush(len(sql))
            break

        if proc:
            if pending_end:
                pending_end = False
                if not tok.is_word(*_END_SUFFIXES):
                    depth = max(depth - 1, 0)
                    if depth == 0:
                        seen_block = True
            if pending_as:
                pending_as = False
                in_decl = tok.kind == TokenKind.IDENTIFIER

        if tok.is_op(";"):
            if proc and depth > 0:
                cur.append(tok)
                continue
            if proc and in_decl and not seen_block:
                cur.append(tok)
                continue
            flush(tok.offset)
            cur = []
            proc = None
            depth = 0
            seen_block = in_decl = pending_end = pending_as = False
            continue

        cur.append(tok)
        if proc is None and len(cur) <= 4:
            proc = procedural_kind(cur)
        if proc:
            if tok.is_keyword(*_BLOCK_OPENERS):
                depth += 1
            elif tok.is_keyword("END"):
                pending_end = True
            elif tok.is_word("AS", "IS") and depth == 0 and not seen_block:
                pending_as = True
    return out


def _split_with_directives(sql: str, dialect: Dialect) -> list[StatementText]:
    """Handle MySQL client DELIMITER lines, then split each segment."""
    out: list[StatementText] = []
    delim = ";"
    seg_lines: list[str] = []
    seg_start = 1

    def flush() -> None:
        text = "".join(seg_lines)
        if not text.strip():
            return
        if delim == ";":
            out.extend(_split_on_semicolons(text, dialect, Position(seg_start, 1)))
        else:
            out.extend(_split_on_delimiter(text, dialect, delim, Position(seg_start, 1)))

    for lineno, line in enumerate(sql.splitlines(keepends=True), start=1):
        m = _DELIMITER_LINE.match(line)
        if m:
            flush()
            seg_lines = []
            seg_start = lineno + 1
            delim = m.group(1)
            continue
        seg_lines.append(line)
    flush()
    return out


def _split_on_delimiter(sql: str, dialect: Dialect, delim: str, origin: Position) -> list[StatementText]:
    """Split on a custom terminator, skipping quoted text and comments."""
    out: list[StatementText] = []
    quotes = {"'"} | {o for (o, _c) in dialect.identifier_quotes}
    if dialect.double_quoted_strings:
        quotes.add('"')
    i = 0
    start = 0
    n = len(sql)

    def emit(end: int) -> None:
        piece = sql[start:end]
        stripped = piece.strip()
        if stripped:
            lead = start + (len(piece) - len(piece.lstrip()))
            out.append(StatementText(text=stripped, position=_position_at(sql, lead, origin)))

    while i < n:
        ch = sql[i]
        if ch in quotes:
            close = next((c for (o, c) in dialect.identifier_quotes if o == ch), ch)
            j = i + 1
            while j < n:
                if dialect.backslash_escapes and sql[j] == "\\":
                    j += 2
                    continue
                if sql[j] == close:
                    break
                j += 1
            i = j + 1
            continue
        if sql.startswith("--", i) or (ch == "#" and dialect.hash_comments):
            j = sql.find("\n", i)
            i = n if j == -1 else j
            continue
        if sql.startswith("/*", i):
            j = sql.find("*/", i + 2)
            i = n if j == -1 else j + 2
            continue
        if sql.startswith(delim, i):
            emit(i)
            i += len(delim)
            start = i
            continue
        i += 1
    emit(n)
    return out


def _position_at(sql: str, index: int, origin: Position) -> Position:
    before = sql[:index]
    newlines = before.count("\n")
    if newlines == 0:
        return Position(origin.line, origin.col + index)
    return Position(origin.line + newlines, index - before.rfind("\n"))
