"""
Shared constants for Svalinn.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Key policy defaults
CANONICAL_DENIED_KEYS: frozenset[str] = frozenset({"__proto__", "constructor", "prototype"})
"""Key names that alias the ambient namespace, its constructor, and its prototype slot.

Every merge policy denies these at every depth. Callers may add to the set
but can never remove from it.
"""

ANCESTOR_ALIAS_KEY = "__proto__"
"""Key that resolves directly to the ambient namespace on linked mappings."""

CONSTRUCTOR_ALIAS_KEY = "constructor"
"""Key that resolves to the constructor view on linked mappings."""

PROTOTYPE_SLOT_KEY = "prototype"
"""Key on the constructor view that resolves to the ambient namespace."""

# Recursion limits
DEFAULT_MAX_DEPTH = 32
"""Default bound on nesting depth for a single merge call."""

MAX_ALLOWED_DEPTH = 256
"""Upper bound accepted for a configured max_depth.

Each nesting level costs a few interpreter frames, and the default
recursion limit is 1000.
"""

# Display
PATH_SEPARATOR = "."
"""Separator used when rendering violation paths (e.g. ``a.b.__proto__``)."""

ROOT_PATH_LABEL = "<root>"
"""Label used when rendering the empty path."""
