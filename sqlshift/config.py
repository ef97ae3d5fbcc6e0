"""
Translator config loading for the sqlshift CLI.

Loads YAML/JSON config files and returns typed config objects.

Example file:

    source_dialect: mysql
    target_dialect: oracle
    policy: best-effort
    workers: 4
    log_level: INFO
    dialects:
      mysql57:
        base: mysql
        remove_features: [cte, recursive_cte, window_functions]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from .dialects import BUILTIN_DIALECTS, Dialect, build_registry, derive_dialect, get_dialect
from .emitter import ApproximationPolicy
from .errors import ConfigError
from .features import FeatureTag, parse_feature

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DialectDefinition:
    """A derived dialect declared in the config file."""

    name: str
    base: str
    add_features: tuple[FeatureTag, ...] = ()
    remove_features: tuple[FeatureTag, ...] = ()

    @classmethod
    def from_dict(cls, name: str, d: Any) -> DialectDefinition:
        if not isinstance(d, dict):
            raise ConfigError(f"Dialect '{name}' must be a mapping")
        base = d.get("base")
        if not base or not isinstance(base, str):
            raise ConfigError(f"Dialect '{name}' must name a base dialect")
        return cls(
            name=str(name).lower(),
            base=base,
            add_features=_feature_list(name, d.get("add_features")),
            remove_features=_feature_list(name, d.get("remove_features")),
        )


@dataclass(frozen=True)
class TranslatorConfig:
    """Loaded translator configuration. None means 'not set in the file'."""

    source_dialect: str | None = None
    target_dialect: str | None = None
    policy: ApproximationPolicy = ApproximationPolicy.STRICT
    workers: int = 1
    log_level: str | None = None
    dialects: tuple[DialectDefinition, ...] = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TranslatorConfig:
        unknown = set(d) - {"source_dialect", "target_dialect", "policy", "workers", "log_level", "dialects"}
        if unknown:
            raise ConfigError(f"Unknown config key(s): {', '.join(sorted(unknown))}")

        workers = d.get("workers", 1)
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise ConfigError(f"workers must be a positive integer, got {workers!r}")

        log_level = d.get("log_level")
        if log_level is not None:
            log_level = str(log_level).upper()
            if log_level not in _LOG_LEVELS:
                raise ConfigError(f"Unknown log_level '{d['log_level']}'. Available: {', '.join(_LOG_LEVELS)}")

        dialects = d.get("dialects") or {}
        if not isinstance(dialects, dict):
            raise ConfigError("dialects must be a mapping of name -> definition")

        return cls(
            source_dialect=_optional_str(d, "source_dialect"),
            target_dialect=_optional_str(d, "target_dialect"),
            policy=ApproximationPolicy.parse(d.get("policy", "strict")),
            workers=workers,
            log_level=log_level,
            dialects=tuple(DialectDefinition.from_dict(k, v) for k, v in dialects.items()),
        )

    def registry(self) -> Mapping[str, Dialect]:
        """
        Built-in dialects plus the derived ones, in file order.

        A definition may use an earlier definition as its base.
        """
        if not self.dialects:
            return BUILTIN_DIALECTS
        derived: list[Dialect] = []
        for spec in self.dialects:
            reg = build_registry(derived)
            base = get_dialect(spec.base, reg)
            derived.append(
                derive_dialect(base, spec.name, add_features=spec.add_features, remove_features=spec.remove_features)
            )
        return build_registry(derived)


def _optional_str(d: Dict[str, Any], key: str) -> str | None:
    value = d.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _feature_list(dialect: str, value: Any) -> tuple[FeatureTag, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"Dialect '{dialect}': feature lists must be lists")
    try:
        return tuple(parse_feature(str(v)) for v in value)
    except ValueError as e:
        raise ConfigError(f"Dialect '{dialect}': {e}") from None


def load_config(path: str | Path) -> TranslatorConfig:
    """
    Load a translator configuration from a YAML or JSON file.

    The file must contain a mapping; an empty file yields the defaults.

    Raises:
        ConfigError: unreadable file, invalid YAML, or invalid values.
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from None
    try:
        obj = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config file {p}: {e}") from None
    if obj is None:
        obj = {}
    if not isinstance(obj, dict):
        raise ConfigError(f"Config file must be a YAML/JSON object, got {type(obj).__name__}")
    logger.debug("loaded config from %s", p)
    return TranslatorConfig.from_dict(obj)
