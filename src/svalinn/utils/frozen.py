"""
Frozen (read-only) views of structural values.

Policies and diagnostic snapshots hand out these views so that shared,
long-lived state cannot be mutated through a reference obtained from it.
Nested containers are frozen on access, creating a fully immutable view of
the entire structure.

FrozenMapping wraps mappings, FrozenSequence wraps lists.
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing


class FrozenMapping(_abc.Mapping[str, _typing.Any]):
    """
    Read-only view of a mapping.

    The wrapped data is copied on construction, so later changes to the
    caller's dict are not visible through the view. Nested containers are
    frozen on access.

    Example:
        >>> schema = FrozenMapping({"timeout": "number"})
        >>> schema["timeout"]
        'number'
        >>> schema["timeout"] = "string"  # TypeError: immutable
    """

    __slots__ = ("_data",)

    def __init__(self, data: _abc.Mapping[str, _typing.Any] | None = None) -> None:
        self._data: dict[str, _typing.Any] = dict(data) if data is not None else {}

    def __getitem__(self, key: str) -> _typing.Any:
        """Get a value, freezing nested containers."""
        return freeze(self._data[key])

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FrozenMapping({self._data!r})"

    def __eq__(self, other: object) -> bool:
        """Compare equal to any Mapping with same content."""
        if isinstance(other, _abc.Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    def __hash__(self) -> int:
        """Hash by content; raises TypeError if any value is unhashable."""
        return hash(frozenset(self._data.items()))

    def thaw(self) -> dict[str, _typing.Any]:
        """Return an independent mutable copy of the top level."""
        return dict(self._data)


class FrozenSequence(_abc.Sequence[_typing.Any]):
    """
    Read-only view of a list.

    Nested containers are frozen on access.
    """

    __slots__ = ("_data",)

    def __init__(self, data: _abc.Iterable[_typing.Any] = ()) -> None:
        self._data: tuple[_typing.Any, ...] = tuple(data)

    @_typing.overload
    def __getitem__(self, index: int) -> _typing.Any: ...

    @_typing.overload
    def __getitem__(self, index: slice) -> FrozenSequence: ...

    def __getitem__(self, index: int | slice) -> _typing.Any:
        """Get an item or slice, freezing nested containers."""
        value = self._data[index]
        if isinstance(index, slice):
            return FrozenSequence(value)
        return freeze(value)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FrozenSequence({list(self._data)!r})"

    def __eq__(self, other: object) -> bool:
        """Compare equal to any Sequence with same content (except strings)."""
        if isinstance(other, (str, bytes)):
            return NotImplemented
        if isinstance(other, _abc.Sequence):
            return list(self) == list(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._data)


def freeze(value: _typing.Any) -> _typing.Any:
    """
    Wrap mutable containers in frozen views.

    - Mapping → FrozenMapping
    - Sequence → FrozenSequence (except str/bytes)
    - Already frozen views and scalars are returned as-is

    Example:
        >>> freeze({"a": [1, 2]})
        FrozenMapping({'a': [1, 2]})
        >>> freeze("string")
        'string'
    """
    if isinstance(value, (FrozenMapping, FrozenSequence)):
        return value
    if isinstance(value, _abc.Mapping):
        return FrozenMapping(value)
    if isinstance(value, _abc.Sequence) and not isinstance(value, (str, bytes)):
        return FrozenSequence(value)
    return value
