"""Configuration type definitions for Svalinn settings.

This module defines the Pydantic models used to represent configuration
sections nested within the main Settings class:

- PolicyConfig: denied_keys, allowed_keys, field_schema, max_depth
- LoggingConfig: level
- GuardConfig: install_on_startup

Design decision: All types use `extra="allow"` to preserve unknown fields.
A misspelled policy key (``field_shema``) silently weakens a security
policy, so `svalinn config check` audits for them with
`collect_all_extra_fields()`.
"""

import typing as _typing

import pydantic as _pydantic

import svalinn.constants as constants
import svalinn.core.policy as policy_mod
import svalinn.core.values as values

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    Unknown fields are preserved rather than silently dropped, so they can
    be reported.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this config and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"policy.field_shema": {...}, "guard.instal_on_startup": True}
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


# =============================================================================
# Policy Settings
# =============================================================================


class PolicyConfig(ConfigBase):
    """
    Default merge policy.

    YAML section: policy.*
    """

    denied_keys: list[str] = _pydantic.Field(default_factory=list)
    """Extra denied key names. The canonical alias keys are always denied."""

    allowed_keys: list[str] | None = None
    """Optional allow-list. None = no allow-list."""

    field_schema: dict[str, str] = _pydantic.Field(default_factory=dict)
    """Field name or dotted path → kind name (number, string, boolean, ...)."""

    max_depth: int = _pydantic.Field(
        default=constants.DEFAULT_MAX_DEPTH,
        ge=0,
        le=constants.MAX_ALLOWED_DEPTH,
    )
    """Nesting bound for a single merge."""

    @_pydantic.field_validator("field_schema")
    @classmethod
    def _check_kind_names(cls, schema: dict[str, str]) -> dict[str, str]:
        for name, kind in schema.items():
            try:
                values.ValueKind.parse(kind)
            except ValueError as e:
                raise ValueError(f"field_schema.{name}: {e}") from e
        return schema

    def to_policy(self) -> policy_mod.MergePolicy:
        """
        Build the immutable merge policy this section describes.

        Raises:
            svalinn.core.policy.PolicyError: If the combination is invalid
                (e.g. the allow-list names a denied key).
        """
        return policy_mod.build_policy(
            denied=self.denied_keys,
            allowed=self.allowed_keys,
            schema=self.field_schema,
            max_depth=self.max_depth,
        )


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    level: _typing.Literal["debug", "info", "warning", "error"] = "warning"
    """Root log level. Forbidden keys are logged at warning."""


# =============================================================================
# Guard Settings
# =============================================================================


class GuardConfig(ConfigBase):
    """
    Ambient namespace guard settings.

    YAML section: guard.*
    """

    install_on_startup: bool = True
    """Freeze the process ambient namespace when the CLI starts."""
