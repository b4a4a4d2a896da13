"""Tests for Settings: defaults, layering, environment overrides, introspection."""

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pytest as _pytest

import svalinn.config as config
import svalinn.config.settings as settings_mod
import svalinn.constants as constants
import svalinn.core.policy as policy
import svalinn.core.values as values


def _write_config(directory: _pathlib.Path, content: str) -> _pathlib.Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestSettingsDefaults:
    """Tests for values from the built-in defaults."""

    def test_sections(self, clean_settings: config.Settings) -> None:
        assert clean_settings.version == 1
        assert clean_settings.policy.denied_keys == []
        assert clean_settings.policy.allowed_keys is None
        assert clean_settings.policy.max_depth == constants.DEFAULT_MAX_DEPTH
        assert clean_settings.logging.level == "warning"
        assert clean_settings.guard.install_on_startup is True

    def test_default_merge_policy(self, clean_settings: config.Settings) -> None:
        merge_policy = clean_settings.merge_policy()

        assert merge_policy.denied_keys == constants.CANONICAL_DENIED_KEYS
        assert merge_policy.allowed_keys is None
        assert merge_policy.max_depth == constants.DEFAULT_MAX_DEPTH

    def test_merge_policy_annotation_resolves(self) -> None:
        """The ``policy`` field does not hide the policy module in annotations."""
        hints = _typing.get_type_hints(config.Settings.merge_policy)

        assert hints["return"] is policy.MergePolicy

    def test_config_dir_from_env(
        self, clean_settings: config.Settings, user_config_dir: _pathlib.Path
    ) -> None:
        assert clean_settings.config_dir == user_config_dir


class TestSettingsEnvironmentOverride:
    """Tests for SVALINN_* environment variables."""

    def test_nested_max_depth(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVALINN_POLICY__MAX_DEPTH", "16")

        settings = config.Settings()

        assert settings.policy.max_depth == 16
        # Other keys of the section still come from the YAML layers
        assert settings.policy.denied_keys == []

    def test_logging_level(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVALINN_LOGGING__LEVEL", "debug")

        assert config.Settings().logging.level == "debug"

    def test_guard_flag(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVALINN_GUARD__INSTALL_ON_STARTUP", "false")

        assert config.Settings().guard.install_on_startup is False

    def test_env_beats_user_config(
        self, monkeypatch: _pytest.MonkeyPatch, user_config_dir: _pathlib.Path
    ) -> None:
        _write_config(user_config_dir, "policy:\n  max_depth: 8\n")
        monkeypatch.setenv("SVALINN_POLICY__MAX_DEPTH", "12")

        assert config.Settings().policy.max_depth == 12

    def test_invalid_env_value(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVALINN_POLICY__MAX_DEPTH", "1000")

        with _pytest.raises(_pydantic.ValidationError):
            config.Settings()


class TestSettingsConfigFiles:
    """Tests for user and project config layers."""

    def test_user_config(self, user_config_dir: _pathlib.Path) -> None:
        _write_config(
            user_config_dir,
            "policy:\n  denied_keys: [secret]\n  field_schema:\n    timeout: number\n",
        )

        settings = config.Settings()
        merge_policy = settings.merge_policy()

        assert "secret" in merge_policy.denied_keys
        assert merge_policy.expected_kind(("timeout",)) is values.ValueKind.NUMBER

    def test_project_overrides_user(
        self, user_config_dir: _pathlib.Path, project_dir: _pathlib.Path
    ) -> None:
        _write_config(user_config_dir, "logging:\n  level: info\n")
        _write_config(project_dir / ".svalinn", "logging:\n  level: error\n")

        settings = config.Settings()

        assert settings.logging.level == "error"
        assert settings.project_root == project_dir.resolve()

    def test_alias_key_in_config_file(self, user_config_dir: _pathlib.Path) -> None:
        _write_config(user_config_dir, "guard:\n  constructor:\n    prototype: {}\n")

        with _pytest.raises(config.ConfigFileError, match="forbidden_key at guard.constructor"):
            config.Settings()

    def test_invalid_policy_combination(self, user_config_dir: _pathlib.Path) -> None:
        _write_config(user_config_dir, "policy:\n  allowed_keys: [name, Prototype]\n")

        settings = config.Settings()

        with _pytest.raises(policy.PolicyError):
            settings.merge_policy()


class TestSettingsIntrospection:
    """Tests for unknown-field reporting and serialization."""

    def test_no_extra_fields_by_default(self, clean_settings: config.Settings) -> None:
        assert not clean_settings.has_extra_fields()
        assert clean_settings.collect_all_extra_fields() == {}

    def test_collects_nested_and_top_level(self, user_config_dir: _pathlib.Path) -> None:
        _write_config(
            user_config_dir,
            "polcy:\n  max_depth: 3\npolicy:\n  field_shema:\n    timeout: number\n",
        )

        settings = config.Settings()

        assert settings.has_extra_fields()
        assert settings.collect_all_extra_fields() == {
            "polcy": {"max_depth": 3},
            "policy.field_shema": {"timeout": "number"},
        }

    def test_to_dict(self, clean_settings: config.Settings) -> None:
        data = clean_settings.to_dict()

        assert set(data) == {"version", "policy", "logging", "guard", "config_dir", "project_root"}
        assert data["policy"]["max_depth"] == constants.DEFAULT_MAX_DEPTH
        assert data["logging"] == {"level": "warning"}


class TestFindProjectRoot:
    """Tests for find_project_root()."""

    def test_finds_svalinn_dir(self, tmp_path: _pathlib.Path) -> None:
        root = tmp_path / "proj"
        nested = root / "a" / "b"
        nested.mkdir(parents=True)
        (root / ".svalinn").mkdir()

        assert config.find_project_root(nested) == root.resolve()

    def test_finds_git_dir(self, tmp_path: _pathlib.Path) -> None:
        root = tmp_path / "repo"
        (root / ".git").mkdir(parents=True)
        (root / "src").mkdir()

        assert config.find_project_root(root / "src") == root.resolve()

    def test_finds_pyproject(self, tmp_path: _pathlib.Path) -> None:
        root = tmp_path / "pkg"
        root.mkdir()
        (root / "pyproject.toml").write_text("", encoding="utf-8")

        assert config.find_project_root(root) == root.resolve()

    def test_defaults_to_cwd(self, project_dir: _pathlib.Path) -> None:
        assert config.find_project_root() == project_dir.resolve()

    def test_markers(self) -> None:
        assert ".svalinn" in settings_mod.PROJECT_MARKERS
