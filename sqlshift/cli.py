# sqlshift/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from enum import Enum
from pathlib import Path

from .config import TranslatorConfig, load_config
from .dialects import BUILTIN_DIALECTS
from .emitter import ApproximationPolicy
from .errors import ConfigError
from .translator import Translator

logger = logging.getLogger(__name__)

DEFAULT_DIALECT = "postgres"


class ExitCode(int, Enum):
    OK = 0
    STATEMENT_FAILED = 1
    USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sqlshift",
        description="Translate SQL between PostgreSQL, MySQL, Oracle and T-SQL.",
    )
    p.add_argument("file", nargs="?", help="SQL script to translate (default: stdin)")
    p.add_argument("-s", "--source", help=f"source dialect (default: {DEFAULT_DIALECT})")
    p.add_argument("-t", "--target", help=f"target dialect (default: {DEFAULT_DIALECT})")
    p.add_argument(
        "--policy",
        choices=[pol.value for pol in ApproximationPolicy],
        help="what to do with features the target lacks (default: strict)",
    )
    p.add_argument("--config", help="YAML/JSON config file")
    p.add_argument("--workers", type=int, help="translate statements on N threads")
    p.add_argument("-i", "--interactive", action="store_true", help="start the interactive shell")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="errors only")
    return p


def _configure_logging(args: argparse.Namespace, cfg: TranslatorConfig) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    else:
        level = getattr(logging, cfg.log_level or "WARNING")
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def _build_translator(args: argparse.Namespace, cfg: TranslatorConfig) -> Translator:
    """CLI flags override config values."""
    source = args.source or cfg.source_dialect or DEFAULT_DIALECT
    target = args.target or cfg.target_dialect or DEFAULT_DIALECT
    policy = args.policy or cfg.policy
    registry = cfg.registry() if cfg.dialects else BUILTIN_DIALECTS
    return Translator(source, target, policy, registry)


def _read_input(path: str | None) -> str:
    if path is None or path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read input file {path}: {e}") from None


def main(argv: list[str] | None = None) -> int:
    """
    Entry point used by the console script and `python -m sqlshift`.

    Returns:
        0 if every statement translated, 1 if any failed, 2 on usage/config errors.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else TranslatorConfig()
        _configure_logging(args, cfg)
        translator = _build_translator(args, cfg)
        workers = args.workers if args.workers is not None else cfg.workers
        if workers < 1:
            raise ConfigError(f"--workers must be a positive integer, got {workers}")

        if args.interactive:
            from .repl import repl
            return repl(translator)

        sql = _read_input(args.file)
    except ConfigError as e:
        print(f"sqlshift: error: {e}", file=sys.stderr)
        return int(ExitCode.USAGE)

    batch = translator.translate_script(sql, workers=workers)
    sys.stdout.write(batch.output())

    for r in batch.results:
        # warnings already went through logging
        for line in r.diagnostics(include_warnings=False):
            print(line, file=sys.stderr)
    if not args.quiet:
        print(batch.summary(), file=sys.stderr)

    return int(ExitCode.OK if batch.ok else ExitCode.STATEMENT_FAILED)


if __name__ == "__main__":
    raise SystemExit(main())
