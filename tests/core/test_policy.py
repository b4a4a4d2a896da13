"""Tests for merge policy construction."""

import dataclasses as _dataclasses

import pytest as _pytest

import svalinn.constants as constants
import svalinn.core.policy as policy
import svalinn.core.values as values


class TestBuildPolicy:
    """Tests for build_policy()."""

    def test_default_policy_denies_canonical_keys(self) -> None:
        built = policy.build_policy()

        assert built.denied_keys == constants.CANONICAL_DENIED_KEYS
        assert built.allowed_keys is None
        assert dict(built.field_schema) == {}
        assert built.max_depth == constants.DEFAULT_MAX_DEPTH

    def test_extra_denied_keys_are_added(self) -> None:
        built = policy.build_policy(denied=["__defineGetter__"])

        assert "__defineGetter__" in built.denied_keys
        assert constants.CANONICAL_DENIED_KEYS <= built.denied_keys

    def test_schema_kind_names_are_parsed(self) -> None:
        built = policy.build_policy(schema={"timeout": "int", "name": values.ValueKind.STRING})

        assert built.field_schema["timeout"] is values.ValueKind.NUMBER
        assert built.field_schema["name"] is values.ValueKind.STRING

    def test_policy_is_immutable(self) -> None:
        built = policy.build_policy(schema={"timeout": "number"})

        with _pytest.raises(_dataclasses.FrozenInstanceError):
            built.max_depth = 1  # type: ignore[misc]
        with _pytest.raises(TypeError):
            built.field_schema["timeout"] = values.ValueKind.STRING  # type: ignore[index]

    def test_schema_input_is_copied(self) -> None:
        schema = {"timeout": "number"}
        built = policy.build_policy(schema=schema)

        schema["retries"] = "number"

        assert "retries" not in built.field_schema

    def test_policies_with_same_inputs_are_equal(self) -> None:
        assert policy.build_policy(allowed=["a"]) == policy.build_policy(allowed=["a"])

    @_pytest.mark.parametrize("depth", [0, 1, constants.MAX_ALLOWED_DEPTH])
    def test_max_depth_bounds_accepted(self, depth: int) -> None:
        assert policy.build_policy(max_depth=depth).max_depth == depth

    @_pytest.mark.parametrize("depth", [-1, constants.MAX_ALLOWED_DEPTH + 1])
    def test_max_depth_out_of_range(self, depth: int) -> None:
        with _pytest.raises(policy.PolicyError, match="max_depth must be between"):
            policy.build_policy(max_depth=depth)

    def test_max_depth_must_be_int(self) -> None:
        with _pytest.raises(policy.PolicyError, match="must be an integer"):
            policy.build_policy(max_depth=True)

    def test_allow_list_may_not_name_denied_key(self) -> None:
        with _pytest.raises(policy.PolicyError, match="__proto__"):
            policy.build_policy(allowed=["name", "__proto__"])

    def test_allow_list_dotted_path_ending_in_denied_key(self) -> None:
        with _pytest.raises(policy.PolicyError, match="a.constructor"):
            policy.build_policy(allowed=["a.constructor"])

    def test_allow_list_denied_check_ignores_case(self) -> None:
        with _pytest.raises(policy.PolicyError):
            policy.build_policy(allowed=["Prototype"])

    def test_schema_may_not_govern_denied_key(self) -> None:
        with _pytest.raises(policy.PolicyError, match="may not govern"):
            policy.build_policy(schema={"__proto__": "mapping"})

    def test_unknown_schema_kind(self) -> None:
        with _pytest.raises(policy.PolicyError, match="Unknown value kind"):
            policy.build_policy(schema={"timeout": "decimal"})

    def test_single_string_is_not_a_key_collection(self) -> None:
        with _pytest.raises(policy.PolicyError, match="not a single string"):
            policy.build_policy(allowed="name")

    def test_empty_key_name_rejected(self) -> None:
        with _pytest.raises(policy.PolicyError, match="non-empty"):
            policy.build_policy(denied=[""])

    def test_direct_construction_requires_canonical_keys(self) -> None:
        with _pytest.raises(policy.PolicyError, match="canonical"):
            policy.MergePolicy(
                denied_keys=frozenset({"secret"}),
                allowed_keys=None,
                field_schema=policy.DEFAULT_POLICY.field_schema,
                max_depth=4,
            )


class TestPolicyLookups:
    """Tests for MergePolicy query methods."""

    def test_is_denied_ignores_case(self) -> None:
        built = policy.build_policy()

        assert built.is_denied("__proto__")
        assert built.is_denied("__PROTO__")
        assert built.is_denied("Constructor")
        assert not built.is_denied("proto")

    def test_no_allow_list_passes_everything(self) -> None:
        assert policy.build_policy().is_allow_listed(("anything",))

    def test_allow_list_by_bare_name(self) -> None:
        built = policy.build_policy(allowed=["email"])

        assert built.is_allow_listed(("email",))
        assert built.is_allow_listed(("contact", "email"))
        assert not built.is_allow_listed(("phone",))

    def test_allow_list_by_dotted_path(self) -> None:
        built = policy.build_policy(allowed=["contact", "contact.email"])

        assert built.is_allow_listed(("contact", "email"))
        assert not built.is_allow_listed(("email",))

    def test_allow_list_path_skips_sequence_indexes(self) -> None:
        built = policy.build_policy(allowed=["servers", "servers.port"])

        assert built.is_allow_listed(("servers", 0, "port"))

    def test_expected_kind_exact_path_wins(self) -> None:
        built = policy.build_policy(schema={"port": "string", "server.port": "number"})

        assert built.expected_kind(("server", "port")) is values.ValueKind.NUMBER
        assert built.expected_kind(("client", "port")) is values.ValueKind.STRING

    def test_expected_kind_ungoverned(self) -> None:
        assert policy.build_policy(schema={"a": "number"}).expected_kind(("b",)) is None

    def test_expected_kind_for_sequence_index(self) -> None:
        assert policy.build_policy(schema={"a": "number"}).expected_kind(("a", 0)) is None
