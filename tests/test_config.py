import pytest

from sqlshift.config import DialectDefinition, TranslatorConfig, load_config
from sqlshift.dialects import BUILTIN_DIALECTS
from sqlshift.emitter import ApproximationPolicy
from sqlshift.errors import ConfigError
from sqlshift.features import FeatureTag


def write(tmp_path, text, name="sqlshift.yaml"):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_load_full_config(tmp_path):
    p = write(
        tmp_path,
        "source_dialect: mysql\n"
        "target_dialect: oracle\n"
        "policy: best-effort\n"
        "workers: 4\n"
        "log_level: info\n",
    )
    cfg = load_config(p)
    assert cfg.source_dialect == "mysql"
    assert cfg.target_dialect == "oracle"
    assert cfg.policy is ApproximationPolicy.BEST_EFFORT
    assert cfg.workers == 4
    assert cfg.log_level == "INFO"
    assert cfg.registry() is BUILTIN_DIALECTS


def test_empty_file_gives_defaults(tmp_path):
    cfg = load_config(write(tmp_path, ""))
    assert cfg == TranslatorConfig()
    assert cfg.policy is ApproximationPolicy.STRICT
    assert cfg.workers == 1


def test_config_holds_only_the_file_keys():
    cfg = TranslatorConfig.from_dict({"source_dialect": "mysql", "workers": 2})
    assert set(vars(cfg)) == {"source_dialect", "target_dialect", "policy", "workers", "log_level", "dialects"}
    assert cfg == TranslatorConfig(source_dialect="mysql", workers=2)


def test_json_is_accepted(tmp_path):
    cfg = load_config(write(tmp_path, '{"source_dialect": "tsql", "policy": "annotate"}', "cfg.json"))
    assert cfg.source_dialect == "tsql"
    assert cfg.policy is ApproximationPolicy.ANNOTATE


def test_derived_dialects_build_a_registry(tmp_path):
    p = write(
        tmp_path,
        "dialects:\n"
        "  mysql57:\n"
        "    base: mysql\n"
        "    remove_features: [cte, recursive_cte, window_functions]\n"
        "  mysql57_json:\n"
        "    base: mysql57\n"
        "    add_features: [json-extract]\n",
    )
    cfg = load_config(p)
    assert cfg.dialects[0] == DialectDefinition(
        name="mysql57",
        base="mysql",
        remove_features=(FeatureTag.CTE, FeatureTag.RECURSIVE_CTE, FeatureTag.WINDOW_FUNCTIONS),
    )
    reg = cfg.registry()
    assert set(reg) == {"postgres", "mysql", "oracle", "tsql", "mysql57", "mysql57_json"}
    assert not reg["mysql57"].supports(FeatureTag.CTE)
    assert reg["mysql57"].backslash_escapes
    assert reg["mysql57_json"].supports(FeatureTag.JSON_EXTRACT)
    assert not reg["mysql57_json"].supports(FeatureTag.WINDOW_FUNCTIONS)


def test_unknown_key_rejected():
    with pytest.raises(ConfigError) as ei:
        TranslatorConfig.from_dict({"sorce_dialect": "mysql"})
    assert "sorce_dialect" in str(ei.value)


@pytest.mark.parametrize("workers", [0, -2, "4", True])
def test_workers_must_be_positive_int(workers):
    with pytest.raises(ConfigError):
        TranslatorConfig.from_dict({"workers": workers})


def test_bad_policy_rejected():
    with pytest.raises(ConfigError) as ei:
        TranslatorConfig.from_dict({"policy": "loose"})
    assert "Available:" in str(ei.value)


def test_bad_log_level_rejected():
    with pytest.raises(ConfigError):
        TranslatorConfig.from_dict({"log_level": "chatty"})


def test_bad_feature_name_rejected():
    with pytest.raises(ConfigError) as ei:
        TranslatorConfig.from_dict({"dialects": {"x": {"base": "mysql", "add_features": ["teleport"]}}})
    assert "teleport" in str(ei.value)


def test_dialect_needs_a_base():
    with pytest.raises(ConfigError):
        TranslatorConfig.from_dict({"dialects": {"x": {"add_features": ["cte"]}}})


def test_unknown_base_dialect_fails_on_registry():
    cfg = TranslatorConfig.from_dict({"dialects": {"x": {"base": "db2"}}})
    with pytest.raises(ConfigError) as ei:
        cfg.registry()
    assert "Unknown dialect 'db2'" in str(ei.value)


def test_builtin_cannot_be_redefined():
    cfg = TranslatorConfig.from_dict({"dialects": {"mysql": {"base": "postgres"}}})
    with pytest.raises(ConfigError):
        cfg.registry()


def test_invalid_yaml(tmp_path):
    with pytest.raises(ConfigError) as ei:
        load_config(write(tmp_path, "source_dialect: [mysql\n"))
    assert "Invalid config file" in str(ei.value)


def test_top_level_must_be_mapping(tmp_path):
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, "- mysql\n- oracle\n"))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError) as ei:
        load_config(tmp_path / "nope.yaml")
    assert "Cannot read config file" in str(ei.value)
