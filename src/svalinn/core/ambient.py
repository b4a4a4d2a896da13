"""
Ambient namespace and its guard.

Some host object models give every mapping an implicit, globally shared
parent: a lookup that misses on the mapping itself falls through to the
shared ancestor, and a few alias keys (``__proto__``, ``constructor`` →
``prototype``) hand out the ancestor itself. A single write through one of
those aliases changes what *every* mapping in the process appears to hold.

Svalinn models that state explicitly instead of relying on language-level
inheritance:

- ``AmbientNamespace``: the shared ancestor, a mutable mapping that can be
  frozen once and never thawed.
- ``AmbientLinkedMapping``: a host-model mapping that inherits from an
  ambient namespace. It separates the keys it owns from the keys it can
  reach, which is the distinction the merge executor depends on.
- ``install()`` / ``verify_clean()``: the process-wide guard. ``install``
  freezes the process namespace so any later write raises
  ``AmbientNamespaceFrozenError``; ``verify_clean`` is a read-only check for
  health checks and tests.

``install`` must run once during startup, before any merge call. It does no
locking of its own; the host's initialization ordering prevents races.
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import logging as _logging
import typing as _typing

import svalinn.constants as constants
import svalinn.utils.frozen as frozen

_logger = _logging.getLogger(__name__)

_MISSING = object()


class AmbientNamespaceFrozenError(TypeError):
    """Raised on any attempt to write to a frozen ambient namespace.

    This signals a logic bug somewhere in the process, not adversarial
    input. Svalinn never catches it.
    """

    def __init__(self, namespace: str, key: object, operation: str = "set") -> None:
        self.namespace = namespace
        self.key = key
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {key!r} on frozen ambient namespace {namespace!r}"
        )


class AmbientNamespace(_abc.MutableMapping[str, _typing.Any]):
    """
    The shared ancestor of every ambient-linked mapping.

    A baseline snapshot is taken at construction. ``polluted_keys`` compares
    the current contents against it, so pollution is detectable whether or
    not the namespace has been frozen.

    Once frozen, reads return frozen views of nested containers and every
    write raises ``AmbientNamespaceFrozenError``.
    """

    __slots__ = ("_name", "_data", "_baseline", "_frozen")

    def __init__(
        self,
        initial: _abc.Mapping[str, _typing.Any] | None = None,
        *,
        name: str = "ambient",
    ) -> None:
        self._name = name
        self._data: dict[str, _typing.Any] = dict(initial) if initial else {}
        self._baseline: dict[str, _typing.Any] = _copy.deepcopy(self._data)
        self._frozen = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_frozen(self) -> bool:
        """Whether writes are rejected."""
        return self._frozen

    @property
    def baseline(self) -> frozen.FrozenMapping:
        """Read-only view of the contents at construction time."""
        return frozen.FrozenMapping(self._baseline)

    def freeze(self) -> None:
        """Reject all future writes. Idempotent; there is no unfreeze."""
        self._frozen = True

    def snapshot(self) -> frozen.FrozenMapping:
        """Read-only view of the current contents."""
        return frozen.FrozenMapping(self._data)

    def reset(self) -> None:
        """
        Restore the baseline contents.

        Only meaningful for sandbox namespaces (demonstrations and tests).

        Raises:
            AmbientNamespaceFrozenError: If the namespace is frozen.
        """
        if self._frozen:
            raise AmbientNamespaceFrozenError(self._name, "*", operation="reset")
        self._data = _copy.deepcopy(self._baseline)

    def polluted_keys(
        self,
        denied_keys: _abc.Iterable[str] = constants.CANONICAL_DENIED_KEYS,
    ) -> list[str]:
        """
        Return names that no longer resolve to their baseline value.

        Checks every denied key name plus every name currently held or held
        at baseline. An object identical to its baseline counts as unchanged,
        so values that never compare equal (NaN) are not reported.
        """
        names = set(denied_keys) | set(self._data) | set(self._baseline)
        return sorted(name for name in names if self._changed(name))

    def _changed(self, name: str) -> bool:
        current = self._data.get(name, _MISSING)
        base = self._baseline.get(name, _MISSING)
        return current is not base and current != base

    def __getitem__(self, key: str) -> _typing.Any:
        value = self._data[key]
        return frozen.freeze(value) if self._frozen else value

    def __setitem__(self, key: str, value: _typing.Any) -> None:
        if self._frozen:
            raise AmbientNamespaceFrozenError(self._name, key)
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        if self._frozen:
            raise AmbientNamespaceFrozenError(self._name, key, operation="delete")
        del self._data[key]

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "mutable"
        return f"AmbientNamespace({self._name!r}, {state}, {self._data!r})"


class _ConstructorView(_abc.MutableMapping[str, _typing.Any]):
    """What ``mapping["constructor"]`` resolves to on a linked mapping.

    Its ``prototype`` slot is the ambient namespace itself.
    """

    __slots__ = ("_ambient", "_own")

    def __init__(self, ambient: AmbientNamespace) -> None:
        self._ambient = ambient
        self._own: dict[str, _typing.Any] = {}

    def __getitem__(self, key: str) -> _typing.Any:
        if key in self._own:
            return self._own[key]
        if key == constants.PROTOTYPE_SLOT_KEY:
            return self._ambient
        raise KeyError(key)

    def __setitem__(self, key: str, value: _typing.Any) -> None:
        self._own[key] = value

    def __delitem__(self, key: str) -> None:
        del self._own[key]

    def __iter__(self) -> _typing.Iterator[str]:
        yield from self._own
        if constants.PROTOTYPE_SLOT_KEY not in self._own:
            yield constants.PROTOTYPE_SLOT_KEY

    def __len__(self) -> int:
        return sum(1 for _ in self)


class AmbientLinkedMapping(_abc.MutableMapping[str, _typing.Any]):
    """
    Host-model mapping whose misses fall through to an ambient namespace.

    Reads:
        - an owned key returns the owned value
        - ``__proto__`` returns the ambient namespace itself
        - ``constructor`` returns a view whose ``prototype`` is the namespace
        - any other key is looked up on the namespace (inherited)

    Iteration yields every *reachable* key (owned first, then inherited).
    ``owned_keys()`` and ``get_owned()`` expose only what the mapping holds.

    Example:
        >>> ns = AmbientNamespace(name="sandbox")
        >>> user = AmbientLinkedMapping({"username": "alice"}, ambient=ns)
        >>> ns["isAdmin"] = True
        >>> user["isAdmin"]  # inherited
        True
        >>> user.owned_keys()
        ['username']
    """

    __slots__ = ("_own", "_ambient")

    def __init__(
        self,
        data: _abc.Mapping[str, _typing.Any] | None = None,
        *,
        ambient: AmbientNamespace | None = None,
    ) -> None:
        self._own: dict[str, _typing.Any] = dict(data) if data else {}
        self._ambient = ambient if ambient is not None else get_ambient()

    @property
    def ambient(self) -> AmbientNamespace:
        """The namespace this mapping inherits from."""
        return self._ambient

    def owned_keys(self) -> list[str]:
        """Keys held directly by this mapping."""
        return list(self._own)

    def get_owned(self, key: str, default: _typing.Any = None) -> _typing.Any:
        """Get a directly held value without consulting the namespace."""
        return self._own.get(key, default)

    def __getitem__(self, key: str) -> _typing.Any:
        if key in self._own:
            return self._own[key]
        if key == constants.ANCESTOR_ALIAS_KEY:
            return self._ambient
        if key == constants.CONSTRUCTOR_ALIAS_KEY:
            return _ConstructorView(self._ambient)
        return self._ambient[key]

    def __setitem__(self, key: str, value: _typing.Any) -> None:
        self._own[key] = value

    def __delitem__(self, key: str) -> None:
        del self._own[key]

    def __iter__(self) -> _typing.Iterator[str]:
        yield from self._own
        for key in self._ambient:
            if key not in self._own:
                yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"AmbientLinkedMapping({self._own!r}, ambient={self._ambient.name!r})"


# =============================================================================
# Process-wide guard
# =============================================================================

_PROCESS_NAMESPACE = AmbientNamespace(name="process")


def get_ambient() -> AmbientNamespace:
    """Return the process-wide ambient namespace."""
    return _PROCESS_NAMESPACE


def install() -> None:
    """
    Freeze the process-wide ambient namespace.

    Idempotent: later calls are no-ops. After this returns, any write to the
    namespace anywhere in the process raises ``AmbientNamespaceFrozenError``.
    """
    if _PROCESS_NAMESPACE.is_frozen:
        return
    polluted = _PROCESS_NAMESPACE.polluted_keys()
    if polluted:
        # Freezing still proceeds; the pollution predates the guard.
        _logger.warning(
            "Ambient namespace already polluted before guard install: %s",
            ", ".join(polluted),
        )
    _PROCESS_NAMESPACE.freeze()
    _logger.info("Ambient namespace %r frozen", _PROCESS_NAMESPACE.name)


def is_installed() -> bool:
    """Whether ``install()`` has run in this process."""
    return _PROCESS_NAMESPACE.is_frozen


def polluted_keys(
    denied_keys: _abc.Iterable[str] = constants.CANONICAL_DENIED_KEYS,
    *,
    namespace: AmbientNamespace | None = None,
) -> list[str]:
    """Names on the namespace that differ from baseline (sorted)."""
    target = namespace if namespace is not None else _PROCESS_NAMESPACE
    return target.polluted_keys(denied_keys)


def verify_clean(
    denied_keys: _abc.Iterable[str] = constants.CANONICAL_DENIED_KEYS,
    *,
    namespace: AmbientNamespace | None = None,
) -> bool:
    """
    Read-only diagnostic: True if nothing on the namespace has been changed.

    Used by health checks and tests, not by the merge path.
    """
    return not polluted_keys(denied_keys, namespace=namespace)
