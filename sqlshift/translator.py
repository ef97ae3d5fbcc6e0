"""
sqlshift/translator.py

Public translation API.

Responsibilities:
- Provide a simple library interface:
    - translate(sql, source, target, policy) -> str
    - Translator(source, target, policy, registry)
        .translate(sql) -> str
        .translate_script(sql, workers=1) -> BatchResult
- Resolve dialect names against a registry (built-ins plus derived dialects)
- Keep batch statements isolated: one failure never stops the rest

A Translator holds only immutable configuration, so one instance can serve
several threads; translate_script itself fans out on a thread pool when
asked to.
"""

from __future__ import annotations

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Mapping

from .ast import OpaqueStatement
from .dialects import BUILTIN_DIALECTS, Dialect, resolve_dialect
from .emitter import ApproximationPolicy, Emitter
from .errors import AmbiguousConstructWarning, Position, SqlShiftError
from .lexer import StatementText, split_statements
from .parser import parse_statement_text
from .results import BatchResult, StatementResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Translation:
    """Translated text of one statement plus what was collected on the way."""
    sql: str
    warnings: tuple[AmbiguousConstructWarning, ...] = ()
    annotations: tuple[str, ...] = ()


class Translator:
    """
    Translator bound to a source dialect, a target dialect and a policy.

    Attributes:
        source: Dialect the input is written in.
        target: Dialect to render.
        policy: ApproximationPolicy for unsupported features.
        registry: Name -> Dialect mapping used to resolve string names.
    """

    def __init__(
        self,
        source: Dialect | str,
        target: Dialect | str,
        policy: ApproximationPolicy | str = ApproximationPolicy.STRICT,
        registry: Mapping[str, Dialect] | None = None,
    ):
        self.registry = BUILTIN_DIALECTS if registry is None else registry
        self.source = resolve_dialect(source, self.registry)
        self.target = resolve_dialect(target, self.registry)
        self.policy = ApproximationPolicy.parse(policy)
        self._emitter = Emitter(self.target, self.policy)
        logger.debug(
            "translator %s -> %s (policy=%s)", self.source.name, self.target.name, self.policy.value
        )

    def translate_statement(self, text: str, position: Position | None = None) -> Translation:
        """
        Parse one statement and render it for the target dialect.

        Args:
            text: Statement source; a trailing ';' is allowed.
            position: Where `text` starts in a larger input, for error positions.

        Returns:
            Translation whose sql ends with ';'.

        Raises:
            LexError / ParseError: the source does not parse.
            UnsupportedFeatureError: the policy forbids rendering a missing feature.
        """
        root, collected = parse_statement_text(text, self.source, position)
        if isinstance(root, OpaqueStatement):
            if self.source.name != self.target.name:
                w = AmbiguousConstructWarning(f"{root.kind} body passed through untranslated", position)
                logger.warning("%s", w)
                collected.append(w)
            return Translation(sql=root.text + ";", warnings=tuple(collected))

        result = self._emitter.emit(root)
        for note in result.annotations:
            logger.debug("note: %s", note)
        return Translation(sql=result.sql + ";", warnings=tuple(collected), annotations=result.annotations)

    def translate(self, sql: str) -> str:
        """
        Translate exactly one statement.

        Collected AmbiguousConstructWarnings are re-issued through warnings.warn.

        Returns:
            The translated statement, terminated by ';'.
        """
        out = self.translate_statement(sql)
        for w in out.warnings:
            warnings.warn(w, stacklevel=2)
        return out.sql

    def translate_script(self, sql: str, workers: int = 1) -> BatchResult:
        """
        Translate a batch of statements.

        Args:
            sql: Script text.
            workers: Number of threads; statements are translated in parallel when > 1.

        Returns:
            BatchResult with one StatementResult per statement, in input order.
        """
        jobs = list(enumerate(split_statements(sql, self.source), start=1))
        if workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(lambda job: self._run(*job), jobs))
        else:
            results = [self._run(i, piece) for i, piece in jobs]

        batch = BatchResult(results=tuple(results))
        logger.debug("batch done: %s", batch.summary())
        return batch

    def _run(self, index: int, piece: StatementText) -> StatementResult:
        try:
            out = self.translate_statement(piece.text, piece.position)
        except SqlShiftError as e:
            logger.debug("statement %d failed: %s", index, e)
            return StatementResult(index=index, source=piece.text, position=piece.position, error=e)
        return StatementResult(
            index=index,
            source=piece.text,
            position=piece.position,
            sql=out.sql,
            warnings=out.warnings,
            annotations=out.annotations,
        )


def translate(
    sql: str,
    source: Dialect | str,
    target: Dialect | str,
    policy: ApproximationPolicy | str = ApproximationPolicy.STRICT,
) -> str:
    """
    Translate one statement from `source` to `target`.

    Example:
        >>> translate("SELECT TOP 5 name FROM t", "tsql", "postgres")
        'SELECT name FROM t LIMIT 5;'
    """
    return Translator(source, target, policy).translate(sql)
