"""
Svalinn - sanitizing structural merge

Merges untrusted nested documents into trusted ones without letting a
single key reach shared ancestor state. Named after the shield that stands
before the sun.

Host-facing surface:
    policy = svalinn.build_policy(allowed=["displayName", "email"])
    svalinn.install_ambient_guard()
    result = svalinn.merge(current, request_body, policy)
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("svalinn")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Svalinn Contributors"

from svalinn.core import (  # noqa: E402
    DEFAULT_POLICY,
    Merged,
    MergePolicy,
    MergeRejectedError,
    PolicyError,
    Rejected,
    Violation,
    ViolationKind,
    build_policy,
    install_ambient_guard,
    merge,
    merge_fields,
    verify_ambient_clean,
)

__all__ = [
    "DEFAULT_POLICY",
    "MergePolicy",
    "MergeRejectedError",
    "Merged",
    "PolicyError",
    "Rejected",
    "Violation",
    "ViolationKind",
    "__version__",
    "__version_info__",
    "build_policy",
    "install_ambient_guard",
    "merge",
    "merge_fields",
    "verify_ambient_clean",
]
