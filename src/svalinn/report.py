"""
Rejection reports for hosts.

A host that serves HTTP maps a ``Rejected`` outcome to a client-visible
error response that lists every violation. This module builds that body,
plus the one-line forms used in logs and on the CLI.

Example body (HTTP 400):

    {
      "error": "Invalid input",
      "details": [
        {"path": "__proto__", "segments": ["__proto__"],
         "kind": "forbidden_key", "detail": "key '__proto__' is forbidden"}
      ]
    }
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing

import svalinn.core.outcome as outcome

DEFAULT_ERROR_MESSAGE = "Invalid input"

REJECTED_STATUS_CODE = 400
"""HTTP status a host should use for a rejected merge."""


def violation_to_dict(violation: outcome.Violation) -> dict[str, _typing.Any]:
    """Serialize one violation to JSON-compatible types."""
    return {
        "path": violation.path_str,
        "segments": list(violation.path),
        "kind": violation.kind.value,
        "detail": violation.detail,
    }


def rejection_report(
    result: outcome.Rejected | _abc.Iterable[outcome.Violation],
    *,
    error: str = DEFAULT_ERROR_MESSAGE,
) -> dict[str, _typing.Any]:
    """
    Build the error body for a rejected merge.

    Args:
        result: A ``Rejected`` outcome, or any iterable of violations.
        error: Top-level error message.
    """
    violations = result.violations if isinstance(result, outcome.Rejected) else tuple(result)
    return {
        "error": error,
        "details": [violation_to_dict(v) for v in violations],
    }


def format_violation(violation: outcome.Violation) -> str:
    """One-line form, e.g. ``forbidden_key  a.b.__proto__  key '__proto__' is forbidden``."""
    return f"{violation.kind.value}  {violation.path_str}  {violation.detail}"


def summarize(result: outcome.MergeOutcome) -> str:
    """Short description of an outcome for status lines."""
    if isinstance(result, outcome.Merged):
        unvalidated = len(result.unvalidated_paths)
        if unvalidated:
            return f"merged ({unvalidated} field(s) without schema coverage)"
        return "merged"
    counts: dict[str, int] = {}
    for violation in result.violations:
        counts[violation.kind.value] = counts.get(violation.kind.value, 0) + 1
    parts = ", ".join(f"{count} {kind}" for kind, count in sorted(counts.items()))
    return f"rejected ({parts})"
