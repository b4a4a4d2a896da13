"""
Merge outcome types.

A merge returns exactly one of:

- ``Merged``: the new value, plus the paths written without a schema
  guarantee.
- ``Rejected``: every violation found, each qualified by its full path.

Violations are data. Exceptions appear only when a host opts in through
``unwrap()`` / ``raise_for_violations()`` at its own boundary.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import typing as _typing

import svalinn.core.values as values


class ViolationKind(_enum.Enum):
    """Category of a rejected key or value."""

    FORBIDDEN_KEY = "forbidden_key"
    """Key is deny-listed, missing from the allow-list, or not a string."""

    TYPE_MISMATCH = "type_mismatch"
    """Schema-governed field holds a value of the wrong kind."""

    DEPTH_EXCEEDED = "depth_exceeded"
    """Nesting passed the policy's max_depth."""

    STRUCTURAL_CYCLE = "structural_cycle"
    """Source contains itself; the cycle is reported, never followed."""

    UNSUPPORTED_VALUE = "unsupported_value"
    """Value is outside the structural value model (bytes, sets, objects)."""


@_dataclasses.dataclass(frozen=True, slots=True)
class Violation:
    """One rejected key or value."""

    path: values.Path
    kind: ViolationKind
    detail: str

    @property
    def path_str(self) -> str:
        return values.format_path(self.path)

    def __str__(self) -> str:
        return f"{self.kind.value} at {self.path_str}: {self.detail}"


class MergeRejectedError(Exception):
    """Raised by ``Rejected.unwrap()`` for hosts that want an exception."""

    def __init__(self, violations: _typing.Sequence[Violation]) -> None:
        self.violations = tuple(violations)
        summary = "; ".join(str(v) for v in self.violations[:3])
        if len(self.violations) > 3:
            summary += f"; and {len(self.violations) - 3} more"
        super().__init__(f"Merge rejected ({len(self.violations)} violations): {summary}")


@_dataclasses.dataclass(frozen=True, slots=True)
class Merged:
    """Successful merge. The caller decides whether to commit ``value``."""

    value: _typing.Any
    unvalidated_paths: tuple[values.Path, ...] = ()

    ok: _typing.ClassVar[bool] = True

    @property
    def violations(self) -> tuple[Violation, ...]:
        return ()

    def unwrap(self) -> _typing.Any:
        return self.value

    def raise_for_violations(self) -> None:
        return None


@_dataclasses.dataclass(frozen=True, slots=True)
class Rejected:
    """Failed merge. Nothing was applied."""

    violations: tuple[Violation, ...]

    ok: _typing.ClassVar[bool] = False

    def __post_init__(self) -> None:
        if not self.violations:
            raise ValueError("Rejected requires at least one violation")

    def unwrap(self) -> _typing.NoReturn:
        raise MergeRejectedError(self.violations)

    def raise_for_violations(self) -> _typing.NoReturn:
        raise MergeRejectedError(self.violations)

    def by_kind(self, kind: ViolationKind) -> list[Violation]:
        """Violations of one kind, in recording order."""
        return [v for v in self.violations if v.kind is kind]

    @property
    def paths(self) -> list[str]:
        """Rendered paths of all violations, in recording order."""
        return [v.path_str for v in self.violations]


MergeOutcome: _typing.TypeAlias = Merged | Rejected
