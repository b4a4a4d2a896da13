"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with SVALINN_ prefix
3. Layered YAML config files, combined with svalinn's own merge:
   - Project config: .svalinn/config.yaml (highest)
   - User config: ~/.config/svalinn/config.yaml
   - Built-in defaults: bundled defaults/config.yaml (lowest)

Nested config uses double underscore delimiter:
  SVALINN_POLICY__MAX_DEPTH=16
  SVALINN_LOGGING__LEVEL=debug
  SVALINN_GUARD__INSTALL_ON_STARTUP=false
"""

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import svalinn.config.sources as sources
import svalinn.config.types as types
import svalinn.core.policy as policy_mod

PROJECT_MARKERS = (sources.PROJECT_CONFIG_DIR, ".git", "pyproject.toml")


def find_project_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path:
    """
    Find the project root directory.

    Walks up from ``start_path`` looking for a ``.svalinn`` directory, a
    ``.git`` directory or a ``pyproject.toml``. Falls back to ``start_path``
    itself when nothing is found.

    Args:
        start_path: Starting path for search. Defaults to cwd.
    """
    if start_path is None:
        start_path = _pathlib.Path.cwd()

    current = start_path.resolve()
    while current != current.parent:
        for marker in PROJECT_MARKERS:
            if (current / marker).exists():
                return current
        current = current.parent

    return start_path


class Settings(_pydantic_settings.BaseSettings):
    """
    Svalinn configuration settings.

    All settings can be overridden via environment variables with SVALINN_ prefix.
    For nested config, use double underscore: SVALINN_POLICY__MAX_DEPTH=16

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (SVALINN_*)
    3. Project config (.svalinn/config.yaml)
    4. User config (~/.config/svalinn/config.yaml)
    5. Built-in defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="SVALINN_",
        env_nested_delimiter="__",  # SVALINN_POLICY__MAX_DEPTH
        extra="allow",  # Preserve unknown fields for `svalinn config check`
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (SVALINN_* env vars)
        3. yaml_settings (layered config.yaml files)
        4. (defaults via Field definitions), lowest
        """
        return (
            init_settings,
            env_settings,
            sources.LayeredYamlSettingsSource(settings_cls, find_project_root()),
            file_secret_settings,
        )

    # =========================================================================
    # Config version (for future migrations)
    # =========================================================================

    version: int = _pydantic.Field(default=1, description="Config schema version")

    # =========================================================================
    # Nested config sections
    # =========================================================================

    policy: types.PolicyConfig = _pydantic.Field(default_factory=types.PolicyConfig)
    """Default merge policy for the CLI."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    guard: types.GuardConfig = _pydantic.Field(default_factory=types.GuardConfig)
    """Ambient guard settings."""

    # =========================================================================
    # Directory settings (computed at runtime)
    # =========================================================================

    @property
    def config_dir(self) -> _pathlib.Path:
        """User configuration directory (~/.config/svalinn/)."""
        return sources.get_user_config_dir()

    @property
    def project_root(self) -> _pathlib.Path:
        """Project root directory (nearest marker or cwd)."""
        return find_project_root()

    # =========================================================================
    # Helper methods
    # =========================================================================

    def merge_policy(self) -> policy_mod.MergePolicy:
        """
        Build the configured merge policy.

        Raises:
            svalinn.core.policy.PolicyError: If the configured policy is invalid.
        """
        return self.policy.to_policy()

    # =========================================================================
    # Introspection (for `svalinn config check`)
    # =========================================================================

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Get unknown fields at the top level of Settings."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Recursively collect all extra fields from Settings and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"policy.field_shema": {...}, "guard.instal_on_startup": True}
        """
        result: dict[str, _typing.Any] = dict(self.get_extra_fields())
        for field_name in ("policy", "logging", "guard"):
            nested = getattr(self, field_name)
            result.update(nested.collect_all_extra_fields(prefix=field_name))
        return result

    def has_extra_fields(self) -> bool:
        """Check if there are any unknown fields anywhere in the config."""
        return bool(self.collect_all_extra_fields())

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, _typing.Any]:
        """Effective configuration plus resolved directories (for `config show`)."""
        return {
            "version": self.version,
            "policy": self.policy.model_dump(),
            "logging": self.logging.model_dump(),
            "guard": self.guard.model_dump(),
            "config_dir": str(self.config_dir),
            "project_root": str(self.project_root),
        }
