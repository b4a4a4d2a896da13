"""
Schema validator.

Checks a value against the kind the policy's schema declares for its field,
before anything is written. The check is an exact tag comparison:

- no coercion of any kind ("10" never satisfies ``number``)
- ``bool`` never satisfies ``number``, even though it subclasses ``int``
- a container where a scalar is declared (or the reverse) is a mismatch

Fields the schema does not mention pass unchecked.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

import svalinn.core.policy as policy_mod
import svalinn.core.values as values


@_dataclasses.dataclass(frozen=True, slots=True)
class SchemaCheck:
    """Result of validating one field."""

    ok: bool
    expected: values.ValueKind | None = None
    actual: values.ValueKind | None = None

    @property
    def governed(self) -> bool:
        """Whether the schema declared a kind for this field."""
        return self.expected is not None

    def describe(self) -> str:
        expected = self.expected.value if self.expected else "any"
        actual = self.actual.value if self.actual else "unsupported"
        return f"expected {expected}, got {actual}"


def validate(
    key: str,
    value: _typing.Any,
    policy: policy_mod.MergePolicy,
    path: values.Path = (),
) -> SchemaCheck:
    """
    Validate ``value`` for ``key`` found under ``path``.

    Args:
        key: Field name.
        value: Candidate value from the source.
        policy: Policy whose schema applies.
        path: Path of the parent mapping.

    Returns:
        SchemaCheck with ``ok`` False on mismatch.
    """
    actual = values.kind_of(value)
    expected = policy.expected_kind(path + (key,))
    if expected is None:
        return SchemaCheck(ok=True, actual=actual)
    return SchemaCheck(ok=actual is expected, expected=expected, actual=actual)
