"""
Key classifier.

Every key is classified before its value is read or written. The result is
one of three dispositions:

- DENIED: never written. The key is deny-listed (case-insensitive, any
  depth), missing from an allow-list, or not a string at all.
- ALLOWED: accepted, and either typed by the schema or named by the
  allow-list.
- UNKNOWN: accepted structurally, but nothing types or names it. Values
  under such keys carry no type guarantee for downstream consumers.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import typing as _typing

import svalinn.core.policy as policy_mod
import svalinn.core.values as values


class Disposition(_enum.Enum):
    """Outcome of classifying one key."""

    ALLOWED = "allowed"
    DENIED = "denied"
    UNKNOWN = "unknown"


class DenyReason(_enum.Enum):
    """Why a key was denied."""

    DENY_LISTED = "deny_listed"
    """The key matches a denied name (case-insensitive)."""

    NOT_IN_ALLOW_LIST = "not_in_allow_list"
    """An allow-list is configured and does not name the key."""

    NOT_A_STRING = "not_a_string"
    """Mapping keys must be strings."""


@_dataclasses.dataclass(frozen=True, slots=True)
class KeyDecision:
    """Disposition of a key, plus the reason when denied."""

    disposition: Disposition
    reason: DenyReason | None = None

    @property
    def denied(self) -> bool:
        return self.disposition is Disposition.DENIED

    def describe(self, key: _typing.Any) -> str:
        """Human-readable explanation used in violation details."""
        if self.reason is DenyReason.DENY_LISTED:
            return f"key {key!r} is forbidden"
        if self.reason is DenyReason.NOT_IN_ALLOW_LIST:
            return f"key {key!r} is not in the allow-list"
        if self.reason is DenyReason.NOT_A_STRING:
            return f"key {key!r} is not a string ({type(key).__name__})"
        return f"key {key!r} is {self.disposition.value}"


_ALLOWED = KeyDecision(Disposition.ALLOWED)
_UNKNOWN = KeyDecision(Disposition.UNKNOWN)


def classify(
    key: _typing.Any,
    policy: policy_mod.MergePolicy,
    path: values.Path = (),
) -> KeyDecision:
    """
    Classify a key found at ``path`` (the path of its parent mapping).

    Pure: no logging, no side effects.
    """
    if not isinstance(key, str):
        return KeyDecision(Disposition.DENIED, DenyReason.NOT_A_STRING)
    if policy.is_denied(key):
        return KeyDecision(Disposition.DENIED, DenyReason.DENY_LISTED)

    full_path = path + (key,)
    if not policy.is_allow_listed(full_path):
        return KeyDecision(Disposition.DENIED, DenyReason.NOT_IN_ALLOW_LIST)
    if policy.allowed_keys is not None or policy.expected_kind(full_path) is not None:
        return _ALLOWED
    return _UNKNOWN
