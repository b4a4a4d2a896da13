"""
Structural value model.

Both sides of a merge are trees of structural values:

- Null → ``None``
- Boolean → ``bool``
- Number → ``int`` / ``float`` (never ``bool``)
- String → ``str``
- Sequence → any non-string ``collections.abc.Sequence``
- Mapping → any ``collections.abc.Mapping``

Anything else (bytes, sets, arbitrary objects) is outside the model.

Mappings are enumerated by *owned* keys only. Some host mapping types can
reach keys they do not hold themselves (a ChainMap's parents, or an
ambient-linked mapping's shared ancestor). ``owned_keys`` and ``get_owned``
never follow those paths.
"""

from __future__ import annotations

import collections as _collections
import collections.abc as _abc
import enum as _enum
import typing as _typing

import svalinn.constants as constants

# Path of key segments from the merge root; ints index into sequences
# Example: ("servers", 0, "port")
Path: _typing.TypeAlias = tuple[str | int, ...]

_MISSING = object()


class ValueKind(str, _enum.Enum):
    """Runtime tag of a structural value."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"

    @property
    def is_container(self) -> bool:
        """Whether values of this kind hold nested values."""
        return self in (ValueKind.SEQUENCE, ValueKind.MAPPING)

    @classmethod
    def parse(cls, name: str) -> ValueKind:
        """
        Parse a kind from its configuration spelling.

        Accepts the canonical names plus a few common aliases
        (``int``/``float`` → number, ``str`` → string, ``dict``/``object``
        → mapping, ``list``/``array`` → sequence, ``bool`` → boolean,
        ``none`` → null).

        Raises:
            ValueError: If the name is not a known kind.
        """
        normalized = name.strip().lower()
        alias = _KIND_ALIASES.get(normalized, normalized)
        try:
            return cls(alias)
        except ValueError:
            known = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown value kind {name!r} (expected one of: {known})") from None


_KIND_ALIASES = {
    "none": "null",
    "bool": "boolean",
    "int": "number",
    "float": "number",
    "integer": "number",
    "str": "string",
    "list": "sequence",
    "array": "sequence",
    "dict": "mapping",
    "object": "mapping",
}


def kind_of(value: _typing.Any) -> ValueKind | None:
    """
    Return the structural kind of a value, or None if it is outside the model.

    ``bool`` is checked before numbers because it subclasses ``int``.
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, _abc.Mapping):
        return ValueKind.MAPPING
    if isinstance(value, _abc.Sequence) and not isinstance(value, (bytes, bytearray)):
        return ValueKind.SEQUENCE
    return None


def is_container(value: _typing.Any) -> bool:
    """Check if a value is a structural container (sequence or mapping)."""
    kind = kind_of(value)
    return kind is not None and kind.is_container


def owned_keys(mapping: _abc.Mapping[_typing.Any, _typing.Any]) -> list[_typing.Any]:
    """
    Return the keys a mapping holds directly.

    Resolution order:
    1. A mapping that exposes ``owned_keys()`` is asked directly.
    2. A ``collections.ChainMap`` owns only its first map.
    3. Any other mapping owns what it iterates.

    Returns a list snapshot so callers may mutate while walking.
    """
    hook = getattr(mapping, "owned_keys", None)
    if callable(hook):
        return list(hook())
    if isinstance(mapping, _collections.ChainMap):
        return list(mapping.maps[0])
    return list(mapping)


def get_owned(
    mapping: _abc.Mapping[_typing.Any, _typing.Any],
    key: _typing.Any,
    default: _typing.Any = None,
) -> _typing.Any:
    """Get a directly held value, never one reached through an ancestor."""
    hook = getattr(mapping, "get_owned", None)
    if callable(hook):
        return hook(key, default)
    if isinstance(mapping, _collections.ChainMap):
        return mapping.maps[0].get(key, default)
    value = mapping.get(key, _MISSING)
    return default if value is _MISSING else value


def format_path(path: Path) -> str:
    """
    Render a path for humans.

    Example:
        >>> format_path(("a", "b", "__proto__"))
        'a.b.__proto__'
        >>> format_path(("servers", 0, "port"))
        'servers[0].port'
        >>> format_path(())
        '<root>'
    """
    if not path:
        return constants.ROOT_PATH_LABEL
    rendered = ""
    for segment in path:
        if isinstance(segment, int):
            rendered += f"[{segment}]"
        elif rendered:
            rendered += f"{constants.PATH_SEPARATOR}{segment}"
        else:
            rendered = str(segment)
    return rendered
