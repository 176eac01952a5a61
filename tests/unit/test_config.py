from pathlib import Path

import pytest

from kiln.config import BuildSettings, deep_merge, load_config
from kiln.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in (
        "KILN_NO_CACHE",
        "KILN_PROBE_TIMEOUT",
        "KILN_REGISTRY_USERNAME",
        "KILN_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults_produce_default_settings(tmp_path: Path) -> None:
    settings = BuildSettings.from_config(load_config(yaml_path=tmp_path / "none.yaml"))

    assert settings == BuildSettings()


def test_precedence_file_env_overrides(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    yaml_path = tmp_path / "kiln.yaml"
    yaml_path.write_text(
        "build:\n  probe_timeout: 3\n  tmp_prefix: .mytmp\n"
        "containers:\n  exports_image: example/rsync:2\n"
    )
    monkeypatch.setenv("KILN_PROBE_TIMEOUT", "5")
    monkeypatch.setenv("KILN_NO_CACHE", "1")
    monkeypatch.setenv("KILN_REGISTRY_USERNAME", "ci")

    config = load_config({"build": {"tmp_prefix": ".override"}}, yaml_path=yaml_path)
    settings = BuildSettings.from_config(config)

    assert settings.probe_timeout == 5.0
    assert settings.utilize_cache is False
    assert settings.tmp_prefix == ".override"
    assert settings.exports_image == "example/rsync:2"
    assert settings.auth is not None and settings.auth.username == "ci"


def test_invalid_timeout_is_a_configuration_error(tmp_path: Path) -> None:
    config = load_config({"build": {"probe_timeout": "soon"}}, yaml_path=tmp_path / "x")

    with pytest.raises(ConfigurationError, match="probe_timeout"):
        BuildSettings.from_config(config)


def test_broken_yaml_is_ignored(tmp_path: Path) -> None:
    yaml_path = tmp_path / "kiln.yaml"
    yaml_path.write_text("build: [unclosed\n")

    assert load_config(yaml_path=yaml_path)["build"]["probe_timeout"] == 10


def test_deep_merge_nested() -> None:
    base = {"a": {"b": 1, "c": 2}, "d": 1}
    deep_merge(base, {"a": {"c": 3}, "e": 4})

    assert base == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}


def test_log_level_from_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("KILN_LOG_LEVEL", "debug")

    settings = BuildSettings.from_config(load_config(yaml_path=tmp_path / "none"))

    assert settings.log_level == "DEBUG"


def test_unknown_log_level_is_a_configuration_error(tmp_path: Path) -> None:
    config = load_config({"logging": {"level": "chatty"}}, yaml_path=tmp_path / "x")

    with pytest.raises(ConfigurationError, match="logging.level"):
        BuildSettings.from_config(config)
