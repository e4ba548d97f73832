import pytest

from chatcore import metrics
from chatcore.config import ConfigError, as_dict, clear_config_cache, get_config


def _use_dir(monkeypatch, tmp_path, yaml_text=None):
    if yaml_text is not None:
        (tmp_path / "base.yaml").write_text(yaml_text, encoding="utf-8")
    monkeypatch.setenv("RELAY_CONFIG_DIR", str(tmp_path))
    clear_config_cache()


def test_repo_base_yaml_defaults():
    cfg = get_config()
    assert cfg.server.port == 3000
    assert cfg.llm.default_model == "gemini-1.5-flash"
    assert cfg.history.max_turns == 50
    assert cfg.server.max_body_bytes == 1024 * 1024
    assert cfg.llm.api_key is None
    assert cfg.llm.has_api_key is False


def test_missing_dir_uses_schema_defaults(monkeypatch, tmp_path):
    _use_dir(monkeypatch, tmp_path / "nope")
    cfg = get_config()
    assert cfg.server.port == 3000
    assert cfg.llm.default_model == "gemini-1.5-flash"


def test_overrides_local_wins_over_base(monkeypatch, tmp_path):
    (tmp_path / "overrides.local.yaml").write_text(
        "history:\n  max_turns: 7\n", encoding="utf-8"
    )
    _use_dir(monkeypatch, tmp_path, "history:\n  max_turns: 20\n")
    assert get_config().history.max_turns == 7


def test_prefixed_env_override(monkeypatch):
    metrics.reset_for_tests()
    monkeypatch.setenv("RELAY__HISTORY__MAX_TURNS", "12")
    clear_config_cache()
    assert get_config().history.max_turns == 12
    assert (
        metrics.counter_value("env_override_total", {"path": "history.max_turns"})
        == 1.0
    )


def test_well_known_env(monkeypatch):
    monkeypatch.setenv("PORT", "8081")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-pro")
    monkeypatch.setenv("GEMINI_API_KEY", "12345")
    clear_config_cache()
    cfg = get_config()
    assert cfg.server.port == 8081
    assert cfg.llm.default_model == "gemini-pro"
    # numeric-looking credentials stay strings
    assert cfg.llm.api_key == "12345"
    assert cfg.llm.has_api_key is True


def test_blank_api_key_counts_as_missing(monkeypatch):
    monkeypatch.setenv("RELAY__LLM__API_KEY", "   ")
    clear_config_cache()
    assert get_config().llm.has_api_key is False


def test_as_dict_masks_api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    clear_config_cache()
    data = as_dict()
    assert data["llm"]["api_key"] == "***"
    assert "secret" not in repr(get_config().llm)


def test_unknown_top_level_key_rejected(monkeypatch, tmp_path):
    _use_dir(monkeypatch, tmp_path, "bogus: 1\n")
    with pytest.raises(ConfigError):
        get_config()


def test_unknown_section_field_rejected(monkeypatch, tmp_path):
    _use_dir(monkeypatch, tmp_path, "llm:\n  unknown_field: 123\n")
    with pytest.raises(ConfigError):
        get_config()


@pytest.mark.parametrize(
    "yaml_text",
    [
        "server:\n  port: 0\n",
        "server:\n  port: 70000\n",
        "server:\n  max_body_bytes: 0\n",
        "history:\n  max_turns: 0\n",
        "logging:\n  level: loud\n",
    ],
)
def test_out_of_range_values_rejected(monkeypatch, tmp_path, yaml_text):
    _use_dir(monkeypatch, tmp_path, yaml_text)
    with pytest.raises(ConfigError):
        get_config()


def test_non_numeric_port_env_rejected(monkeypatch):
    monkeypatch.setenv("PORT", "eighty")
    clear_config_cache()
    with pytest.raises(ConfigError):
        get_config()
