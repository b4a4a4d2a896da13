"""
Merge policy.

A ``MergePolicy`` is built once (usually at startup, from configuration)
and shared read-only across every merge call. It is a frozen dataclass whose
collection fields are immutable as well: ``frozenset`` for key sets and a
``FrozenMapping`` for the schema.

The canonical alias keys are always denied. ``build_policy`` adds the
caller's extra denied keys to them; no call site can remove them.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import typing as _typing

import svalinn.constants as constants
import svalinn.core.values as values
import svalinn.utils.frozen as frozen


class PolicyError(ValueError):
    """Invalid input to ``build_policy``."""


def _dotted(path: values.Path) -> str:
    """Join the string segments of a path; sequence indexes are skipped."""
    return constants.PATH_SEPARATOR.join(str(seg) for seg in path if not isinstance(seg, int))


@_dataclasses.dataclass(frozen=True, slots=True)
class MergePolicy:
    """
    Immutable configuration governing merge calls.

    Attributes:
        denied_keys: Names never written at any depth (compared casefolded).
        allowed_keys: Optional allow-list of names or dotted paths.
        field_schema: Expected kind per field name or dotted path.
        max_depth: Nesting bound; the root mapping is depth 0.

    Use ``build_policy`` rather than constructing directly.
    """

    denied_keys: frozenset[str]
    allowed_keys: frozenset[str] | None
    field_schema: frozen.FrozenMapping
    max_depth: int
    _denied_folded: frozenset[str] = _dataclasses.field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if not constants.CANONICAL_DENIED_KEYS <= self.denied_keys:
            raise PolicyError("denied_keys must include the canonical alias keys")
        object.__setattr__(
            self,
            "_denied_folded",
            frozenset(key.casefold() for key in self.denied_keys),
        )

    def is_denied(self, key: str) -> bool:
        """Check a key name against the deny-list, ignoring case."""
        return key.casefold() in self._denied_folded

    def is_allow_listed(self, path: values.Path) -> bool:
        """
        Check a full key path against the allow-list.

        A path passes if its last key or its dotted form is listed. Without
        an allow-list everything passes.
        """
        if self.allowed_keys is None:
            return True
        return path[-1] in self.allowed_keys or _dotted(path) in self.allowed_keys

    def expected_kind(self, path: values.Path) -> values.ValueKind | None:
        """
        Look up the schema entry for a full key path.

        The exact dotted path wins over the bare field name. Returns None if
        the field is not governed by the schema.
        """
        if not path or not isinstance(path[-1], str):
            return None
        exact = self.field_schema.get(_dotted(path))
        if exact is not None:
            return _typing.cast(values.ValueKind, exact)
        return _typing.cast("values.ValueKind | None", self.field_schema.get(path[-1]))


def build_policy(
    denied: _abc.Iterable[str] = (),
    allowed: _abc.Iterable[str] | None = None,
    schema: _abc.Mapping[str, values.ValueKind | str] | None = None,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> MergePolicy:
    """
    Build an immutable merge policy.

    Args:
        denied: Extra key names to deny, on top of the canonical alias keys.
        allowed: Optional allow-list. Any key absent from it is rejected.
        schema: Field name (or dotted path) to expected kind. Kinds may be
            ``ValueKind`` members or their configuration spelling
            (``"number"``, ``"int"``, ``"string"`` ...).
        max_depth: Nesting bound, 0..MAX_ALLOWED_DEPTH.

    Returns:
        A frozen ``MergePolicy``.

    Raises:
        PolicyError: If any input is malformed, if the allow-list names a
            denied key, or if the schema governs a denied key.
    """
    denied_keys = constants.CANONICAL_DENIED_KEYS | _string_set(denied, "denied")
    folded_denied = {key.casefold() for key in denied_keys}

    allowed_keys: frozenset[str] | None = None
    if allowed is not None:
        allowed_keys = _string_set(allowed, "allowed")
        clashing = sorted(
            key
            for key in allowed_keys
            if key.split(constants.PATH_SEPARATOR)[-1].casefold() in folded_denied
        )
        if clashing:
            raise PolicyError(f"allowed keys may not name denied keys: {', '.join(clashing)}")

    field_schema: dict[str, values.ValueKind] = {}
    for name, kind in (schema or {}).items():
        if not isinstance(name, str) or not name:
            raise PolicyError(f"schema field names must be non-empty strings, got {name!r}")
        if name.split(constants.PATH_SEPARATOR)[-1].casefold() in folded_denied:
            raise PolicyError(f"schema may not govern denied key {name!r}")
        if isinstance(kind, values.ValueKind):
            field_schema[name] = kind
        elif isinstance(kind, str):
            try:
                field_schema[name] = values.ValueKind.parse(kind)
            except ValueError as e:
                raise PolicyError(f"schema field {name!r}: {e}") from e
        else:
            raise PolicyError(f"schema field {name!r}: kind must be a string, got {kind!r}")

    if isinstance(max_depth, bool) or not isinstance(max_depth, int):
        raise PolicyError(f"max_depth must be an integer, got {type(max_depth).__name__}")
    if not 0 <= max_depth <= constants.MAX_ALLOWED_DEPTH:
        raise PolicyError(
            f"max_depth must be between 0 and {constants.MAX_ALLOWED_DEPTH}, got {max_depth}"
        )

    return MergePolicy(
        denied_keys=denied_keys,
        allowed_keys=allowed_keys,
        field_schema=frozen.FrozenMapping(field_schema),
        max_depth=max_depth,
    )


def _string_set(names: _abc.Iterable[str], label: str) -> frozenset[str]:
    if isinstance(names, str):
        raise PolicyError(f"{label} keys must be a collection of strings, not a single string")
    result = frozenset(names)
    for name in result:
        if not isinstance(name, str) or not name:
            raise PolicyError(f"{label} keys must be non-empty strings, got {name!r}")
    return result


DEFAULT_POLICY = build_policy()
"""Deny-only policy: canonical alias keys, no schema, default depth."""
