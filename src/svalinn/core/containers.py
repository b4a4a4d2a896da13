"""
Isolated container factory.

Every nested container the merge executor materializes is built here.
Isolated containers are plain ``dict``/``list`` subclasses: they hold only
their own entries and have no lookup path to any ambient namespace, so
probing one for an unset alias key (``__proto__``, ``constructor``) yields
absence rather than shared state.
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing

import svalinn.core.values as values


class IsolatedMapping(dict):  # type: ignore[type-arg]
    """Mapping created during a merge. Owns every key it reports."""

    __slots__ = ()

    def owned_keys(self) -> list[_typing.Any]:
        return list(dict.keys(self))

    def get_owned(self, key: _typing.Any, default: _typing.Any = None) -> _typing.Any:
        return dict.get(self, key, default)

    def __repr__(self) -> str:
        return f"IsolatedMapping({dict.__repr__(self)})"


class IsolatedSequence(list):  # type: ignore[type-arg]
    """Sequence created during a merge."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"IsolatedSequence({list.__repr__(self)})"


def new_mapping(
    entries: _abc.Iterable[tuple[_typing.Any, _typing.Any]] = (),
) -> IsolatedMapping:
    """Create an isolated mapping, optionally pre-filled from (key, value) pairs."""
    return IsolatedMapping(entries)


def new_sequence(items: _abc.Iterable[_typing.Any] = ()) -> IsolatedSequence:
    """Create an isolated sequence."""
    return IsolatedSequence(items)


def copy_owned(mapping: _abc.Mapping[_typing.Any, _typing.Any] | None) -> IsolatedMapping:
    """
    Shallow-copy the owned entries of a mapping into a new isolated mapping.

    Inherited entries of the source mapping are never copied. Nested values
    are shared with the original; the executor replaces any nested container
    it descends into with a fresh one, so the original is never written.
    """
    if mapping is None:
        return new_mapping()
    return new_mapping((key, values.get_owned(mapping, key)) for key in values.owned_keys(mapping))


def is_isolated(value: object) -> bool:
    """Whether a container came from this factory."""
    return isinstance(value, (IsolatedMapping, IsolatedSequence))


def to_plain(value: _typing.Any) -> _typing.Any:
    """
    Convert isolated containers (recursively) to plain ``dict``/``list``.

    Serializers that dispatch on exact type (``yaml.safe_dump``) need this
    before committing a merged value. Other values pass through unchanged.
    """
    if isinstance(value, _abc.Mapping):
        return {key: to_plain(values.get_owned(value, key)) for key in values.owned_keys(value)}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value
