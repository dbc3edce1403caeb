"""Tests for policy/loader.py.

Covers document parsing, quantity validation and global inheritance.
"""

from pathlib import Path

import pytest

from limits_admission.core.errors import ConfigurationError
from limits_admission.policy.loader import (
    PolicyLoader,
    load_policy_file,
    parse_policy,
)
from limits_admission.policy.models import NameNamespace
from limits_admission.policy.quantity import Quantity

GI = 1024**3


def q(text: str) -> Quantity:
    return Quantity.parse(text)


class TestLoadTestdata:
    """Resolution against tests/testdata/test.yaml."""

    def test_kube_system(self, policy_path: Path):
        generation = load_policy_file(policy_path)
        ceiling = generation.resolve(NameNamespace("", "kube-system"))

        assert not ceiling.unlimited
        assert ceiling.storage.value == 50 * GI
        assert ceiling.cpu_limit == q("1")
        assert ceiling.memory_limit.value == 2 * GI
        assert ceiling.cpu_request == q("500m")
        assert ceiling.memory_request.value == 1 * GI

    def test_monitoring(self, policy_path: Path):
        ceiling = load_policy_file(policy_path).resolve(NameNamespace("", "monitoring"))

        assert ceiling.storage.value == 50 * GI
        assert ceiling.cpu_limit == q("2")
        assert ceiling.memory_limit.value == 3 * GI
        assert ceiling.cpu_request == q("1")
        assert ceiling.memory_request.value == 3 * GI

    def test_default_is_unlimited(self, policy_path: Path):
        ceiling = load_policy_file(policy_path).resolve(NameNamespace("", "default"))

        assert ceiling.unlimited
        assert ceiling.cpu_limit is None
        assert ceiling.memory_limit is None
        assert ceiling.cpu_request is None
        assert ceiling.memory_request is None
        assert ceiling.storage is None

    def test_test_namespace(self, policy_path: Path):
        ceiling = load_policy_file(policy_path).resolve(NameNamespace("", "test-namespace"))

        assert not ceiling.unlimited
        assert ceiling.storage.value == 10 * GI
        assert ceiling.cpu_limit == q("1")
        assert ceiling.memory_limit.value == 1 * GI
        assert ceiling.cpu_request == q("500m")
        assert ceiling.memory_request == q("500Mi")

    def test_flow_mapping_name_key(self, policy_path: Path):
        ceiling = load_policy_file(policy_path).resolve(
            NameNamespace("deployment-name", "test-namespace")
        )

        assert ceiling.storage.value == 15 * GI
        assert ceiling.cpu_limit == q("3")
        assert ceiling.memory_limit.value == 5 * GI
        assert ceiling.cpu_request == q("2")
        assert ceiling.memory_request.value == 3 * GI

    def test_string_name_key(self, policy_path: Path):
        generation = load_policy_file(policy_path)
        assert generation.is_excluded(NameNamespace("batch-runner", "test-namespace"))

    def test_unknown_namespace_gets_globals(self, policy_path: Path):
        generation = load_policy_file(policy_path)
        ceiling = generation.resolve(NameNamespace("anything", "shop"))

        assert ceiling == generation.defaults
        assert ceiling.cpu_limit == q("2")
        assert ceiling.memory_limit == q("2Gi")
        assert ceiling.storage == q("50Gi")

    def test_records_source(self, policy_path: Path):
        assert load_policy_file(policy_path).source == str(policy_path)


class TestInheritance:
    """Unset override fields inherit the global value."""

    def test_partial_namespace_override(self):
        generation = parse_policy(
            """
maxCPULimit: 2
maxMemLimit: 2Gi
maxPVCSize: 5Gi
customNamespaces:
  team-a:
    maxCPULimit: 4
"""
        )
        ceiling = generation.resolve(NameNamespace("", "team-a"))

        assert ceiling.cpu_limit == q("4")
        assert ceiling.memory_limit == q("2Gi")
        assert ceiling.storage == q("5Gi")

    def test_name_override_inherits_global_not_namespace(self):
        generation = parse_policy(
            """
maxMemLimit: 2Gi
customNamespaces:
  team-a:
    maxMemLimit: 8Gi
customNames:
  {name: web, namespace: team-a}:
    maxCPULimit: 1
"""
        )
        ceiling = generation.resolve(NameNamespace("web", "team-a"))

        assert ceiling.cpu_limit == q("1")
        assert ceiling.memory_limit == q("2Gi")

    def test_no_global_means_no_ceiling(self):
        generation = parse_policy("customNamespaces:\n  team-a:\n    maxCPULimit: 1\n")
        ceiling = generation.resolve(NameNamespace("", "team-a"))

        assert ceiling.memory_limit is None
        assert ceiling.storage is None

    def test_request_ceilings_default_to_zero(self):
        generation = parse_policy("maxCPULimit: 2\nmaxMemLimit: 2Gi\n")

        assert generation.defaults.cpu_request == q("0")
        assert generation.defaults.memory_request == q("0")

    def test_request_default_is_inherited(self):
        generation = parse_policy("customNamespaces:\n  team-a:\n    maxCPULimit: 1\n")
        ceiling = generation.resolve(NameNamespace("", "team-a"))

        assert ceiling.cpu_request == q("0")
        assert ceiling.memory_request == q("0")

    def test_empty_document(self):
        generation = parse_policy("")

        assert generation.defaults.cpu_limit is None
        assert generation.namespaces == {}
        assert generation.names == {}

    def test_null_sections(self):
        generation = parse_policy("maxCPULimit: 1\ncustomNamespaces:\ncustomNames:\n")
        assert generation.namespaces == {}


class TestErrors:
    """Any malformed input fails the whole load."""

    def test_bad_global_quantity(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_policy("maxCPULimit: lots\n")
        assert "maxCPULimit" in exc_info.value.message
        assert "global" in exc_info.value.message

    def test_bad_namespace_quantity_names_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_policy("customNamespaces:\n  kube-system:\n    maxMemLimit: 1Zi\n")
        assert "maxMemLimit" in exc_info.value.message
        assert "kube-system" in exc_info.value.message
        assert exc_info.value.details["key"] == 'namespace "kube-system"'

    def test_bad_name_quantity_names_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_policy("customNames:\n  {name: web, namespace: shop}:\n    maxPVCSize: huge\n")
        assert "maxPVCSize" in exc_info.value.message
        assert "web" in exc_info.value.message

    def test_negative_quantity(self):
        with pytest.raises(ConfigurationError):
            parse_policy("maxPVCSize: -1Gi\n")

    def test_boolean_quantity(self):
        with pytest.raises(ConfigurationError):
            parse_policy("maxCPULimit: true\n")

    def test_bad_unlimited_flag(self):
        with pytest.raises(ConfigurationError):
            parse_policy("customNamespaces:\n  a:\n    unlimited: maybe\n")

    def test_invalid_yaml(self):
        with pytest.raises(ConfigurationError):
            parse_policy("maxCPULimit: [1\n")

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_policy("- 1\n- 2\n")

    def test_bad_name_key(self):
        with pytest.raises(ConfigurationError):
            parse_policy("customNames:\n  just-a-name:\n    maxCPULimit: 1\n")

    def test_unhashable_name_key(self):
        with pytest.raises(ConfigurationError):
            parse_policy("customNames:\n  {name: [a], namespace: b}:\n    maxCPULimit: 1\n")

    def test_undecodable_file(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_bytes(b"maxCPULimit: \xff\xfe\n")
        with pytest.raises(ConfigurationError) as exc_info:
            PolicyLoader(path).load()
        assert exc_info.value.details["path"] == str(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError) as exc_info:
            PolicyLoader(tmp_path / "missing.yaml").load()
        assert exc_info.value.details["path"].endswith("missing.yaml")
