"""
sqlshift/results.py

Result objects returned by Translator.translate_script().

- StatementResult: outcome of one statement in a batch (translated SQL or the error)
- BatchResult: all statement outcomes in input order, plus summary helpers

These are plain Python objects so the CLI, the REPL and library callers can
share them without extra dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import AmbiguousConstructWarning, Position, SqlShiftError


@dataclass(frozen=True)
class StatementResult:
    """
    Outcome of translating one statement.

    Attributes:
        index: 1-based statement number in the batch.
        source: Statement text as cut from the input.
        position: Where the statement starts in the input.
        sql: Translated statement with its ';' terminator, or None on failure.
        error: The error that stopped translation, or None.
        warnings: Ambiguous-construct warnings raised while parsing.
        annotations: Approximation / unsupported-construct notes from the emitter.
    """
    index: int
    source: str
    position: Position
    sql: str | None = None
    error: SqlShiftError | None = None
    warnings: tuple[AmbiguousConstructWarning, ...] = ()
    annotations: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    def diagnostics(self, include_warnings: bool = True) -> list[str]:
        """Human-readable lines for stderr: the error, then warnings and notes."""
        where = f"statement {self.index} at {self.position}"
        out: list[str] = []
        if self.error is not None:
            out.append(f"{where}: {self.error}")
        if include_warnings:
            for w in self.warnings:
                out.append(f"{where}: warning: {w}")
        for note in self.annotations:
            out.append(f"{where}: note: {note}")
        return out


@dataclass(frozen=True)
class BatchResult:
    """
    All statement outcomes of a batch, in input order.

    Attributes:
        results: One StatementResult per input statement.
    """
    results: tuple[StatementResult, ...] = ()

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def warned(self) -> int:
        return sum(1 for r in self.results if r.warnings)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def output(self) -> str:
        """
        Translated script text.

        Failed statements are replaced by a comment so the remaining output keeps
        its order and statement numbering.
        """
        lines = []
        for r in self.results:
            if r.ok:
                lines.append(r.sql)
            else:
                lines.append(f"-- sqlshift: statement {r.index} not translated")
        return "\n".join(lines) + ("\n" if lines else "")

    def summary(self) -> str:
        return (
            f"{len(self.results)} statement(s): {self.succeeded} succeeded, "
            f"{self.failed} failed, {self.warned} warned"
        )
