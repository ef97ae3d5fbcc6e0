"""
repl.py

Interactive REPL (Read-Eval-Print Loop) for the sqlshift translator.

Responsibilities:
- Provide a shell that translates SQL from the source to the target dialect as
  statements are typed.
- Support multiline SQL input until a semicolon ';' is entered outside of
  quotes and comments.
- Provide small meta-commands for switching dialects and introspection:
    - .help
    - .exit / .quit
    - .dialects
    - .source <name> / .target <name> / .policy <name>
    - .features [<name>]

Usage:
    sqlshift -i -s mysql -t oracle
"""

from __future__ import annotations

try:
    import readline  # noqa: F401
except ImportError:
    # readline is optional; if missing, REPL still works.
    readline = None  # type: ignore[assignment]

from .dialects import DIALECT_ALIASES, get_dialect
from .errors import SqlShiftError
from .results import StatementResult
from .translator import Translator


PROMPT = "sqlshift> "
PROMPT_CONT = "....> "


def is_complete_statement(buf: str) -> bool:
    """
    Decide whether the current buffer contains at least one complete statement.

    A statement is considered complete when a semicolon ';' appears outside of
    quoted strings, quoted identifiers and comments.

    Args:
        buf: Current accumulated input buffer.

    Returns:
        True if complete, else False.
    """
    quote: str | None = None
    in_line_comment = False
    in_block_comment = False
    i = 0
    while i < len(buf):
        ch = buf[i]
        nxt = buf[i + 1] if i + 1 < len(buf) else ""
        if in_line_comment:
            if ch == "\n":
                in_line_comment = False
        elif in_block_comment:
            if ch == "*" and nxt == "/":
                in_block_comment = False
                i += 1
        elif quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == "[":
            quote = "]"
        elif ch == "-" and nxt == "-":
            in_line_comment = True
            i += 1
        elif ch == "/" and nxt == "*":
            in_block_comment = True
            i += 1
        elif ch == ";":
            return True
        i += 1
    return False


def print_result(res: StatementResult) -> None:
    """
    Print one statement outcome: the translated SQL, or the error, then any notes.

    Args:
        res: StatementResult from Translator.translate_script().
    """
    if res.ok:
        print(res.sql)
    else:
        print(res.error)
    for w in res.warnings:
        print(f"warning: {w}")
    for note in res.annotations:
        print(f"note: {note}")


def cmd_dialects(t: Translator) -> None:
    """
    Meta-command: list registered dialects and their aliases.

    Args:
        t: Current translator.
    """
    for name in sorted(t.registry):
        aliases = sorted(a for a, target in DIALECT_ALIASES.items() if target == name)
        marks = []
        if name == t.source.name:
            marks.append("source")
        if name == t.target.name:
            marks.append("target")
        suffix = f" ({', '.join(aliases)})" if aliases else ""
        flag = f"  <- {', '.join(marks)}" if marks else ""
        print(f"{name}{suffix}{flag}")


def cmd_features(t: Translator, name: str | None) -> None:
    """
    Meta-command: print the feature tags a dialect supports.

    Args:
        t: Current translator.
        name: Dialect name; the current target when omitted.
    """
    d = t.target if name is None else get_dialect(name, t.registry)
    print(f"{d.name}:")
    for tag in sorted(d.supported_features, key=lambda f: f.name):
        print(f"  - {tag.name}")


def handle_meta(t: Translator, line: str) -> Translator | None:
    """
    Run a meta-command.

    Returns:
        The translator to use from now on, or None to leave the shell.

    Raises:
        SqlShiftError: unknown dialect or policy names.
    """
    parts = line.split()
    cmd = parts[0].lower()
    arg = parts[1] if len(parts) > 1 else None

    if cmd in (".exit", ".quit"):
        return None

    if cmd == ".help":
        print("Meta commands:")
        print("  .help              show this help")
        print("  .dialects          list dialects")
        print("  .source <name>     set the source dialect")
        print("  .target <name>     set the target dialect")
        print("  .policy <name>     strict | best-effort | annotate")
        print("  .features [name]   list features of a dialect (default: target)")
        print("  .exit / .quit      exit")
        print()
        print("SQL statements end with ';'. Example:")
        print("  SELECT TOP 5 name FROM users ORDER BY name;")
        return t

    if cmd == ".dialects":
        cmd_dialects(t)
        return t

    if cmd == ".features":
        cmd_features(t, arg)
        return t

    if cmd in (".source", ".target", ".policy"):
        if arg is None:
            current = {".source": t.source.name, ".target": t.target.name, ".policy": t.policy.value}[cmd]
            print(current)
            return t
        if cmd == ".source":
            t = Translator(arg, t.target, t.policy, t.registry)
        elif cmd == ".target":
            t = Translator(t.source, arg, t.policy, t.registry)
        else:
            t = Translator(t.source, t.target, arg, t.registry)
        print(f"{t.source.name} -> {t.target.name} ({t.policy.value})")
        return t

    print(f"Unknown command: {cmd}. Type .help")
    return t


def repl(translator: Translator) -> int:
    """
    Run the interactive REPL.

    Args:
        translator: Initial source/target/policy settings.

    Returns:
        Process exit code (0 on normal exit).
    """
    t = translator
    print(f"sqlshift REPL ({t.source.name} -> {t.target.name}, policy={t.policy.value})")
    print("Type .help for commands. End SQL with ';'.")

    buf = ""
    while True:
        try:
            prompt = PROMPT if not buf else PROMPT_CONT
            line = input(prompt)
        except EOFError:
            print()
            return 0
        except KeyboardInterrupt:
            # Clear current buffer on Ctrl+C
            print()
            buf = ""
            continue

        line_stripped = line.strip()

        # Meta commands only apply if we're not in the middle of a multi-line SQL buffer.
        if not buf and line_stripped.startswith("."):
            try:
                nt = handle_meta(t, line_stripped)
            except SqlShiftError as e:
                print(e)
                continue
            if nt is None:
                return 0
            t = nt
            continue

        buf += line + "\n"
        if not is_complete_statement(buf):
            continue

        for r in t.translate_script(buf).results:
            print_result(r)

        buf = ""
