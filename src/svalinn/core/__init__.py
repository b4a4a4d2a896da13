"""
Svalinn merge engine core.

Host-facing surface:
- build_policy(denied, allowed, schema, max_depth) -> MergePolicy
- merge(target, source, policy) -> Merged | Rejected
- install_ambient_guard() -> None
- verify_ambient_clean(denied_keys) -> bool
"""

from svalinn.core.ambient import (
    AmbientLinkedMapping,
    AmbientNamespace,
    AmbientNamespaceFrozenError,
    get_ambient,
)
from svalinn.core.ambient import install as install_ambient_guard
from svalinn.core.ambient import verify_clean as verify_ambient_clean
from svalinn.core.classifier import DenyReason, Disposition, KeyDecision, classify
from svalinn.core.containers import (
    IsolatedMapping,
    IsolatedSequence,
    is_isolated,
    new_mapping,
    new_sequence,
    to_plain,
)
from svalinn.core.executor import merge, merge_fields
from svalinn.core.outcome import (
    MergeOutcome,
    Merged,
    MergeRejectedError,
    Rejected,
    Violation,
    ViolationKind,
)
from svalinn.core.policy import DEFAULT_POLICY, MergePolicy, PolicyError, build_policy
from svalinn.core.schema import SchemaCheck, validate
from svalinn.core.values import ValueKind, kind_of

__all__ = [
    "DEFAULT_POLICY",
    "AmbientLinkedMapping",
    "AmbientNamespace",
    "AmbientNamespaceFrozenError",
    "DenyReason",
    "Disposition",
    "IsolatedMapping",
    "IsolatedSequence",
    "KeyDecision",
    "MergeOutcome",
    "MergePolicy",
    "MergeRejectedError",
    "Merged",
    "PolicyError",
    "Rejected",
    "SchemaCheck",
    "ValueKind",
    "Violation",
    "ViolationKind",
    "build_policy",
    "classify",
    "get_ambient",
    "install_ambient_guard",
    "is_isolated",
    "kind_of",
    "merge",
    "merge_fields",
    "new_mapping",
    "new_sequence",
    "to_plain",
    "validate",
    "verify_ambient_clean",
]
