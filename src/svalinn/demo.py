"""
Attack walkthrough: naive merge versus Svalinn.

Each scenario runs three times, each time against its own sandbox ambient
namespace (never the process namespace):

1. ``naive_merge`` into an ambient-linked target, showing what an attacker
   gains (a fresh mapping suddenly "has" isAdmin, a numeric setting turns
   into a string, an unset renderer option arrives at the sink).
2. The same naive merge against a *frozen* sandbox, showing the guard turn
   silent pollution into a loud ``AmbientNamespaceFrozenError``.
3. ``svalinn.core.executor.merge`` under a realistic policy, which rejects the
   payload and leaves the sandbox clean.

``naive_merge`` reproduces the vulnerable pattern and exists only
for this walkthrough and its tests.
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import dataclasses as _dataclasses
import typing as _typing

import svalinn.core.ambient as ambient
import svalinn.core.executor as executor
import svalinn.core.outcome as outcome
import svalinn.core.policy as policy_mod
import svalinn.report as report

PROFILE_POLICY = policy_mod.build_policy(allowed=("displayName", "email", "bio", "avatar"))
"""Profile updates: only the four editable profile fields."""

SETTINGS_POLICY = policy_mod.build_policy(schema={"timeout": "number", "retries": "number"})
"""Settings updates: numeric timeout and retries."""


def naive_merge(
    target: _abc.MutableMapping[str, _typing.Any],
    source: _abc.Mapping[str, _typing.Any],
) -> _abc.MutableMapping[str, _typing.Any]:
    """
    Merge by following every reachable key. Vulnerable by construction.

    Walks all keys of the source and resolves target keys through the
    ambient chain, so ``__proto__`` and ``constructor.prototype`` land on
    the shared namespace.
    """
    for key in source:
        value = source[key]
        if isinstance(value, _abc.Mapping):
            if key not in target or not isinstance(target[key], _abc.MutableMapping):
                target[key] = ambient.AmbientLinkedMapping(ambient=_namespace_of(target))
            naive_merge(target[key], value)
        else:
            target[key] = value
    return target


def _namespace_of(container: object) -> ambient.AmbientNamespace | None:
    if isinstance(container, ambient.AmbientNamespace):
        return container
    return _typing.cast("ambient.AmbientNamespace | None", getattr(container, "ambient", None))


@_dataclasses.dataclass(frozen=True, slots=True)
class Scenario:
    """One attack: a payload, the target it hits, and which key to read afterwards."""

    name: str
    description: str
    payload: dict[str, _typing.Any]
    target: dict[str, _typing.Any]
    watch_key: str
    policy: policy_mod.MergePolicy
    watch_fresh: bool = True
    """Read from a brand-new linked mapping (True) or the merged target (False)."""


@_dataclasses.dataclass(frozen=True, slots=True)
class DemoResult:
    """What happened to one scenario under each merge."""

    scenario: str
    naive_readout: _typing.Any
    naive_polluted: tuple[str, ...]
    guard_raised: bool
    safe_summary: str
    safe_violations: tuple[outcome.Violation, ...]
    safe_polluted: tuple[str, ...]

    @property
    def blocked(self) -> bool:
        """The safe merge rejected the payload and the sandbox stayed clean."""
        return bool(self.safe_violations) and not self.safe_polluted

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "scenario": self.scenario,
            "naive_readout": repr(self.naive_readout),
            "naive_polluted": list(self.naive_polluted),
            "guard_raised": self.guard_raised,
            "safe": self.safe_summary,
            "safe_violations": [report.violation_to_dict(v) for v in self.safe_violations],
            "blocked": self.blocked,
        }


SCENARIOS: tuple[Scenario, ...] = (
    Scenario(
        name="privilege-escalation",
        description="__proto__ payload makes every user look like an admin",
        payload={"__proto__": {"isAdmin": True, "role": "admin"}},
        target={"username": "alice", "role": "user"},
        watch_key="isAdmin",
        policy=PROFILE_POLICY,
    ),
    Scenario(
        name="constructor-prototype",
        description="constructor.prototype reaches the same shared namespace",
        payload={"constructor": {"prototype": {"isAdmin": True}}},
        target={"username": "alice", "role": "user"},
        watch_key="isAdmin",
        policy=PROFILE_POLICY,
    ),
    Scenario(
        name="inherited-type-confusion",
        description="polluted timeout turns a numeric setting into a string",
        payload={"__proto__": {"timeout": "CORRUPTED"}},
        target={"retries": 3},
        watch_key="timeout",
        policy=SETTINGS_POLICY,
    ),
    Scenario(
        name="direct-type-confusion",
        description="string timeout is accepted silently by a type-blind merge",
        payload={"timeout": "CORRUPTED"},
        target={"timeout": 30, "retries": 3},
        watch_key="timeout",
        policy=SETTINGS_POLICY,
        watch_fresh=False,
    ),
    Scenario(
        name="polluted-sink-option",
        description="an option nobody set reaches a privileged rendering sink",
        payload={"__proto__": {"dangerousOption": "process.exit()"}},
        target={"template": "index"},
        watch_key="dangerousOption",
        policy=policy_mod.DEFAULT_POLICY,
    ),
)


def run_scenario(scenario: Scenario) -> DemoResult:
    """Run one scenario against fresh sandbox namespaces."""
    # 1. naive merge, unfrozen sandbox
    sandbox = ambient.AmbientNamespace(name=f"sandbox:{scenario.name}")
    target = ambient.AmbientLinkedMapping(scenario.target, ambient=sandbox)
    naive_merge(target, _copy.deepcopy(scenario.payload))
    observed = ambient.AmbientLinkedMapping(ambient=sandbox) if scenario.watch_fresh else target
    naive_readout = observed.get(scenario.watch_key)

    # 2. naive merge, frozen sandbox
    frozen_sandbox = ambient.AmbientNamespace(name=f"frozen:{scenario.name}")
    frozen_sandbox.freeze()
    try:
        naive_merge(
            ambient.AmbientLinkedMapping(scenario.target, ambient=frozen_sandbox),
            _copy.deepcopy(scenario.payload),
        )
        guard_raised = False
    except ambient.AmbientNamespaceFrozenError:
        guard_raised = True

    # 3. safe merge
    safe_sandbox = ambient.AmbientNamespace(name=f"safe:{scenario.name}")
    safe_target = ambient.AmbientLinkedMapping(scenario.target, ambient=safe_sandbox)
    result = executor.merge(safe_target, scenario.payload, scenario.policy)

    return DemoResult(
        scenario=scenario.name,
        naive_readout=naive_readout,
        naive_polluted=tuple(sandbox.polluted_keys()),
        guard_raised=guard_raised,
        safe_summary=report.summarize(result),
        safe_violations=result.violations,
        safe_polluted=tuple(safe_sandbox.polluted_keys()),
    )


def run_all(scenarios: _abc.Iterable[Scenario] = SCENARIOS) -> list[DemoResult]:
    """Run every scenario in order."""
    return [run_scenario(scenario) for scenario in scenarios]
