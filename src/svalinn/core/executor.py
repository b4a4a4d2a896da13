"""
Recursive merge executor.

Walks an untrusted source mapping against a trusted target and builds a new
merged value out of isolated containers. The caller's target and source are
never mutated; the caller decides whether to commit the result.

Merge rules:
    - mapping + mapping → recursive merge by key
    - sequence          → replaces the target value; elements are sanitized
                          (mapping elements are merged into fresh isolated
                          mappings under the same policy)
    - scalar            → replaces the target value after the schema check

Per key, in order:
    1. classify the key; denied keys are recorded and skipped entirely
       (their values are never inspected, even when they are containers)
    2. reject values outside the structural value model
    3. validate against the schema
    4. write (scalars), replace (sequences) or descend (mappings)

Only the source's *owned* keys are enumerated. Keys reachable solely
through an ancestor are never visited.

Violations are collected, never raised. A single violation anywhere makes
the whole outcome ``Rejected``; there is no partial application unless the
caller explicitly asks for it with ``merge_fields``.

Thread safety: every call builds its own state. Policies are immutable and
may be shared freely across threads.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import typing as _typing

import svalinn.core.classifier as classifier
import svalinn.core.containers as containers
import svalinn.core.outcome as outcome
import svalinn.core.policy as policy_mod
import svalinn.core.schema as schema
import svalinn.core.values as values

_logger = _logging.getLogger(__name__)


class _MergeRun:
    """State for a single merge call."""

    __slots__ = ("policy", "violations", "unvalidated", "_active")

    def __init__(self, policy: policy_mod.MergePolicy) -> None:
        self.policy = policy
        self.violations: list[outcome.Violation] = []
        self.unvalidated: list[values.Path] = []
        # ids of source containers on the current descent path
        self._active: set[int] = set()

    def record(self, path: values.Path, kind: outcome.ViolationKind, detail: str) -> None:
        violation = outcome.Violation(path=path, kind=kind, detail=detail)
        self.violations.append(violation)
        if kind is outcome.ViolationKind.FORBIDDEN_KEY:
            _logger.warning("Blocked forbidden key at %r: %s", violation.path, detail)
        else:
            _logger.info("Rejected %s at %r: %s", kind.value, violation.path, detail)

    def _enter(self, container: _typing.Any, path: values.Path, depth: int) -> bool:
        """
        Check whether a source container may be descended into.

        Records a violation and returns False on a cycle or when the depth
        bound is passed.
        """
        if id(container) in self._active:
            self.record(
                path,
                outcome.ViolationKind.STRUCTURAL_CYCLE,
                "container refers back to one of its ancestors",
            )
            return False
        if depth > self.policy.max_depth:
            self.record(
                path,
                outcome.ViolationKind.DEPTH_EXCEEDED,
                f"nesting depth {depth} exceeds max_depth {self.policy.max_depth}",
            )
            return False
        return True

    def merge_mapping(
        self,
        target: _abc.Mapping[_typing.Any, _typing.Any] | None,
        source: _abc.Mapping[_typing.Any, _typing.Any],
        path: values.Path,
        depth: int,
    ) -> containers.IsolatedMapping:
        """Merge ``source`` over a copy of ``target``'s owned entries."""
        result = containers.copy_owned(target)
        if not self._enter(source, path, depth):
            return result

        self._active.add(id(source))
        try:
            for key in values.owned_keys(source):
                self._merge_entry(result, key, values.get_owned(source, key), path, depth)
        finally:
            self._active.discard(id(source))
        return result

    def merge_sequence(
        self,
        source: _abc.Sequence[_typing.Any],
        path: values.Path,
        depth: int,
    ) -> containers.IsolatedSequence:
        """Copy a source sequence into a new isolated sequence, sanitizing elements."""
        result = containers.new_sequence()
        if not self._enter(source, path, depth):
            return result

        self._active.add(id(source))
        try:
            for index, item in enumerate(source):
                item_path = path + (index,)
                kind = values.kind_of(item)
                if kind is None:
                    self.record(
                        item_path,
                        outcome.ViolationKind.UNSUPPORTED_VALUE,
                        f"unsupported value type {type(item).__name__}",
                    )
                elif kind is values.ValueKind.MAPPING:
                    result.append(self.merge_mapping(None, item, item_path, depth + 1))
                elif kind is values.ValueKind.SEQUENCE:
                    result.append(self.merge_sequence(item, item_path, depth + 1))
                else:
                    result.append(item)
        finally:
            self._active.discard(id(source))
        return result

    def _merge_entry(
        self,
        result: containers.IsolatedMapping,
        key: _typing.Any,
        value: _typing.Any,
        path: values.Path,
        depth: int,
    ) -> None:
        decision = classifier.classify(key, self.policy, path)
        if decision.denied:
            self.record(
                path + (key if isinstance(key, str) else repr(key),),
                outcome.ViolationKind.FORBIDDEN_KEY,
                decision.describe(key),
            )
            return

        full_path = path + (key,)
        kind = values.kind_of(value)
        if kind is None:
            self.record(
                full_path,
                outcome.ViolationKind.UNSUPPORTED_VALUE,
                f"unsupported value type {type(value).__name__}",
            )
            return

        check = schema.validate(key, value, self.policy, path)
        if not check.ok:
            self.record(full_path, outcome.ViolationKind.TYPE_MISMATCH, check.describe())
            return

        if kind is values.ValueKind.MAPPING:
            existing = result.get_owned(key)
            base = existing if values.kind_of(existing) is values.ValueKind.MAPPING else None
            result[key] = self.merge_mapping(base, value, full_path, depth + 1)
        elif kind is values.ValueKind.SEQUENCE:
            result[key] = self.merge_sequence(value, full_path, depth + 1)
            if not check.governed:
                self.unvalidated.append(full_path)
        else:
            result[key] = value
            if not check.governed:
                self.unvalidated.append(full_path)


def merge(
    target: _abc.Mapping[str, _typing.Any],
    source: _typing.Any,
    policy: policy_mod.MergePolicy | None = None,
) -> outcome.MergeOutcome:
    """
    Merge an untrusted ``source`` into a copy of a trusted ``target``.

    Args:
        target: Trusted mapping. Never mutated.
        source: Untrusted value, normally a parsed JSON object. A source that
            is not a mapping is rejected rather than raised on.
        policy: Policy to enforce. Defaults to the deny-only policy.

    Returns:
        ``Merged`` with the new value, or ``Rejected`` with every violation.

    Raises:
        TypeError: If ``target`` is not a mapping (a caller bug, not input).

    Example:
        >>> result = merge({"timeout": 30}, {"timeout": 10})
        >>> result.value
        IsolatedMapping({'timeout': 10})
        >>> merge({}, {"__proto__": {"isAdmin": True}}).ok
        False
    """
    if not isinstance(target, _abc.Mapping):
        raise TypeError(f"merge target must be a mapping, got {type(target).__name__}")
    policy = policy if policy is not None else policy_mod.DEFAULT_POLICY

    if not isinstance(source, _abc.Mapping):
        actual = values.kind_of(source)
        violation = outcome.Violation(
            path=(),
            kind=outcome.ViolationKind.TYPE_MISMATCH,
            detail=f"expected mapping, got {actual.value if actual else type(source).__name__}",
        )
        _logger.info("Rejected merge: source is not a mapping")
        return outcome.Rejected((violation,))

    run = _MergeRun(policy)
    merged = run.merge_mapping(target, source, (), 0)
    if run.violations:
        _logger.debug("Merge rejected with %d violation(s)", len(run.violations))
        return outcome.Rejected(tuple(run.violations))

    _logger.debug(
        "Merge succeeded; %d field(s) written without schema coverage",
        len(run.unvalidated),
    )
    return outcome.Merged(merged, tuple(run.unvalidated))


def merge_fields(
    target: _abc.Mapping[str, _typing.Any],
    source: _typing.Any,
    policy: policy_mod.MergePolicy | None = None,
) -> tuple[containers.IsolatedMapping, tuple[outcome.Violation, ...]]:
    """
    Merge each top-level source field independently (explicit partial acceptance).

    Fields whose merge is rejected are left out; every other field is
    applied. This is opt-in: applying part of an adversarial payload is a
    policy decision the caller makes by choosing this function.

    Returns:
        (merged value, violations of the rejected fields)
    """
    if not isinstance(target, _abc.Mapping):
        raise TypeError(f"merge target must be a mapping, got {type(target).__name__}")

    current = containers.copy_owned(target)
    if not isinstance(source, _abc.Mapping):
        rejected = merge(current, source, policy)
        return current, rejected.violations

    rejected_violations: list[outcome.Violation] = []
    for key in values.owned_keys(source):
        result = merge(current, {key: values.get_owned(source, key)}, policy)
        if isinstance(result, outcome.Merged):
            current = result.value
        else:
            rejected_violations.extend(result.violations)
    return current, tuple(rejected_violations)
