"""Custom pydantic-settings sources for Svalinn configuration.

This module provides:

- LayeredYamlSettingsSource: A pydantic-settings source that loads
  configuration from layered YAML files and combines them with the Svalinn
  merge engine itself.

Configuration layers (in precedence order, highest first):
1. Environment variables (handled by pydantic-settings)
2. Project config: .svalinn/config.yaml in project root
3. User config: ~/.config/svalinn/config.yaml (or SVALINN_CONFIG_DIR)
4. Built-in defaults: bundled config.yaml

Each layer is merged over the layers below it under the deny-only policy,
so a config file is held to the same rules as any other untrusted input: an
alias key anywhere in it is an error that names the file and line.

Environment variables:
- SVALINN_CONFIG_DIR: Override user config directory (default: ~/.config/svalinn)
"""

import collections.abc as _abc
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings
import yaml as _yaml

import svalinn.core.containers as containers
import svalinn.core.executor as executor
import svalinn.core.outcome as outcome
import svalinn.core.policy as policy

# Environment variable for overriding user config directory
ENV_CONFIG_DIR = "SVALINN_CONFIG_DIR"

PROJECT_CONFIG_DIR = ".svalinn"

# Maps key paths to (line, column) tuples; 1-indexed to match editor conventions
LineRegistry = dict[tuple[str, ...], tuple[int, int]]


class _LineTrackingLoader(_yaml.SafeLoader):
    """YAML loader that tracks line/column numbers for all keys.

    Intercepts mapping construction to record line numbers for each key,
    while delegating actual value construction to the parent class to
    preserve proper type handling (int, bool, etc.).
    """

    def __init__(self, stream: _typing.Any) -> None:
        super().__init__(stream)
        self._line_registry: LineRegistry = {}
        self._path_stack: list[str] = []

    def construct_mapping(
        self, node: _yaml.MappingNode, deep: bool = False
    ) -> dict[_typing.Any, _typing.Any]:
        """Override to track line numbers for each key."""
        if not self._path_stack:
            self._line_registry[()] = (node.start_mark.line + 1, node.start_mark.column + 1)

        # Resolve YAML merge keys (<<) before walking the pairs
        self.flatten_mapping(node)

        result: dict[_typing.Any, _typing.Any] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=True)

            self._path_stack.append(str(key))
            self._line_registry[tuple(self._path_stack)] = (
                key_node.start_mark.line + 1,
                key_node.start_mark.column + 1,
            )

            # deep=True so nested mappings are built while the path stack
            # still has this key on it
            value = self.construct_object(value_node, deep=True)
            self._path_stack.pop()

            result[key] = value

        return result


def _load_yaml_with_lines(
    content: str,
) -> tuple[_typing.Any, LineRegistry]:
    """
    Load YAML content and track line numbers for all keys.

    Raises:
        yaml.YAMLError: If YAML is malformed.
    """
    loader = _LineTrackingLoader(content)

    try:
        data = loader.get_single_data()
    finally:
        loader.dispose()

    return data, loader._line_registry


class ConfigFileError(Exception):
    """Error loading, parsing or merging a configuration file."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in config file {path}: {message}")


class LayeredYamlSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """
    Settings source that loads layered YAML config files.

    Flow:
        1. Load each YAML file into a dict
        2. Merge each layer over the ones below it with ``svalinn.merge``
        3. Return the merged dict to pydantic-settings
        4. Pydantic validates everything (fail-fast on errors)

    Layers (lowest to highest precedence):
    1. Built-in defaults (src/svalinn/config/defaults/config.yaml)
    2. User config (~/.config/svalinn/config.yaml)
    3. Project config (.svalinn/config.yaml)
    """

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        project_root: _pathlib.Path | None = None,
        *,
        user_config_path: _pathlib.Path | None = None,
        builtin_config_path: _pathlib.Path | None = None,
    ) -> None:
        """
        Initialize the settings source.

        Args:
            settings_cls: The Settings class being populated.
            project_root: Optional project root path for project-level config.
            user_config_path: Override path for user config file (for testing).
            builtin_config_path: Override path for builtin defaults (for testing).
        """
        super().__init__(settings_cls)
        self._project_root = project_root
        self._user_config_path = user_config_path
        self._builtin_config_path = builtin_config_path
        # Layers actually loaded, lowest precedence first
        self._loaded_layers: list[tuple[str, _pathlib.Path]] = []
        self._line_registries: dict[_pathlib.Path, LineRegistry] = {}
        self._merged = self._load_config_layers()

    def _load_config_layers(self) -> dict[str, _typing.Any]:
        """Load and merge config files, lowest precedence first."""
        # Built-in defaults are required; a missing or empty file is an
        # installation problem.
        builtin_path = self._get_builtin_config_path()
        if not builtin_path.exists():
            raise ConfigFileError(
                builtin_path,
                "built-in defaults not found (possible installation problem)",
            )
        builtin_content = self._load_yaml_file(builtin_path)
        if not builtin_content:
            raise ConfigFileError(
                builtin_path,
                "built-in defaults file is empty (possible installation problem)",
            )

        merged = self._merge_layer({}, builtin_content, "built-in", builtin_path)

        user_path = self._get_user_config_path()
        if user_path.exists():
            content = self._load_yaml_file(user_path)
            if content:
                merged = self._merge_layer(merged, content, "user", user_path)

        if self._project_root:
            project_path = get_project_config_path(self._project_root)
            if project_path.exists():
                content = self._load_yaml_file(project_path)
                if content:
                    merged = self._merge_layer(merged, content, "project", project_path)

        return containers.to_plain(merged)

    def _merge_layer(
        self,
        base: _abc.Mapping[str, _typing.Any],
        layer: dict[_typing.Any, _typing.Any],
        name: str,
        path: _pathlib.Path,
    ) -> _abc.Mapping[str, _typing.Any]:
        result = executor.merge(base, layer, policy.DEFAULT_POLICY)
        if isinstance(result, outcome.Rejected):
            details = "; ".join(self._describe(path, v) for v in result.violations)
            raise ConfigFileError(path, f"rejected entries: {details}")
        self._loaded_layers.append((name, path))
        return _typing.cast(_abc.Mapping[str, _typing.Any], result.value)

    def _describe(self, path: _pathlib.Path, violation: outcome.Violation) -> str:
        key_path = tuple(str(seg) for seg in violation.path if not isinstance(seg, int))
        line_info = self.get_line_info(path, key_path)
        where = f" (line {line_info[0]})" if line_info else ""
        return f"{violation.kind.value} at {violation.path_str}{where}"

    def get_loaded_layers(self) -> list[tuple[str, _pathlib.Path]]:
        """
        Get info about layers that were actually loaded.

        Returns:
            List of (layer_name, path) tuples, lowest precedence first.
        """
        return list(self._loaded_layers)

    def get_line_info(
        self,
        layer_path: _pathlib.Path,
        key_path: tuple[str, ...],
    ) -> tuple[int, int] | None:
        """
        Get line and column number for a key path in a specific layer file.

        Returns:
            Tuple of (line, column) (1-indexed) if found, None otherwise.
        """
        registry = self._line_registries.get(layer_path)
        if registry is None:
            return None
        return registry.get(key_path)

    def _get_builtin_config_path(self) -> _pathlib.Path:
        if self._builtin_config_path is not None:
            return self._builtin_config_path
        return get_builtin_defaults_path()

    def _get_user_config_path(self) -> _pathlib.Path:
        if self._user_config_path is not None:
            return self._user_config_path
        return get_user_config_path()

    def _load_yaml_file(
        self,
        path: _pathlib.Path,
    ) -> dict[_typing.Any, _typing.Any] | None:
        """
        Load a YAML file and return its contents as a dict.

        Returns:
            Parsed YAML contents, or None if file is empty.

        Raises:
            ConfigFileError: If the file cannot be read, is malformed YAML,
                or contains non-dict content at the top level.
        """
        try:
            content = path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ConfigFileError(path, f"permission denied: {e}") from e
        except OSError as e:
            raise ConfigFileError(path, f"cannot read file: {e}") from e

        try:
            parsed, line_registry = _load_yaml_with_lines(content)
        except _yaml.YAMLError as e:
            raise ConfigFileError(path, f"invalid YAML: {e}") from e

        self._line_registries[path] = line_registry

        if parsed is None:
            return None

        if not isinstance(parsed, dict):
            type_name = type(parsed).__name__
            raise ConfigFileError(
                path,
                f"config must be a YAML mapping (dict), got {type_name}",
            )

        return parsed

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,  # noqa: ARG002 - required by pydantic-settings interface
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        """
        Get value for a field from the merged layers.

        Returns:
            Tuple of (value, field_name, is_complex).
        """
        value = self._merged.get(field_name)
        if value is None:
            return None, field_name, False
        return value, field_name, isinstance(value, (_abc.Mapping, list))

    def __call__(self) -> dict[str, _typing.Any]:
        """
        Return merged config as a plain dict for Pydantic validation.

        Includes unknown keys; Settings keeps them via extra="allow" so
        `svalinn config check` can report them.
        """
        return dict(self._merged)


def get_builtin_defaults_path() -> _pathlib.Path:
    """Get the path to the built-in defaults config file."""
    return _pathlib.Path(__file__).parent / "defaults" / "config.yaml"


def get_user_config_dir() -> _pathlib.Path:
    """
    Get the user config directory.

    Respects SVALINN_CONFIG_DIR environment variable if set,
    otherwise uses XDG standard path.
    """
    config_dir_env = _os.environ.get(ENV_CONFIG_DIR)
    if config_dir_env:
        return _pathlib.Path(config_dir_env)
    return _pathlib.Path.home() / ".config" / "svalinn"


def get_user_config_path() -> _pathlib.Path:
    """Get the path to the user config file."""
    return get_user_config_dir() / "config.yaml"


def get_project_config_path(project_root: _pathlib.Path) -> _pathlib.Path:
    """Get the path to the project config file (.svalinn/config.yaml)."""
    return project_root / PROJECT_CONFIG_DIR / "config.yaml"
