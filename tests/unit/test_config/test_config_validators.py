"""
Unit tests for configuration validation.

Covers per-variant defaults, cross-section checks (ports, relayer chains,
unique names) and the readiness probe section.
"""

import pytest

from localnet.config.validators import (
    DEFAULT_TEST_COMMAND,
    validate_artifacts_config,
    validate_probe_config,
)
from localnet.models.config import ChainType, ProbeConfig, ProbeKind, RelayerKind
from localnet.validation import ValidationError
from localnet.variants import CHAIN_VARIANTS, RELAYER_VARIANTS


@pytest.mark.unit
class TestAppConfigValidation:
    """Test cases for the full configuration document."""

    def test_sample_config_is_valid(self, make_config, sample_config_data, temp_dir):
        config = make_config(sample_config_data)

        assert config.component_names == ["c1", "c2", "r1"]
        assert config.chains[0].chain_type == ChainType.NEUTRON
        assert config.chains[1].chain_type == ChainType.GAIA
        assert config.relayers[0].kind == RelayerKind.HERMES
        assert config.relayers[0].chains == ("c1", "c2")
        assert config.general.state_root == temp_dir / "state"
        assert config.artifacts.output_dir == temp_dir / "artifacts"

    def test_defaults_from_variants(self, make_config, sample_config_data):
        chain = sample_config_data["chains"][0]
        for key in ("binary", "command", "readiness", "init_commands"):
            chain.pop(key)
        relayer = sample_config_data["relayers"][0]
        relayer.pop("binary")
        relayer.pop("readiness")

        config = make_config(sample_config_data)

        assert config.chains[0].binary == "neutrond"
        assert config.chains[0].readiness.kind == ProbeKind.RPC_HEIGHT
        assert config.chains[0].readiness.target == CHAIN_VARIANTS[ChainType.NEUTRON].default_probe.target
        assert config.chains[0].init_commands is None
        assert config.relayers[0].binary == "hermes"
        assert config.relayers[0].readiness.target == RELAYER_VARIANTS[RelayerKind.HERMES].default_probe.target
        assert config.relayers[0].readiness.expect == RELAYER_VARIANTS[RelayerKind.HERMES].default_probe.expect

    def test_probe_interval_inherits_timeouts(self, make_config, sample_config_data):
        sample_config_data["chains"][0].pop("readiness")

        config = make_config(sample_config_data)

        assert config.chains[0].readiness.interval == 0.05

    def test_missing_chains_rejected(self, make_config, sample_config_data):
        sample_config_data["chains"] = []
        sample_config_data["relayers"] = []

        with pytest.raises(ValidationError) as exc_info:
            make_config(sample_config_data)

        assert "chains" in str(exc_info.value)

    def test_unknown_chain_type_rejected(self, make_config, sample_config_data):
        sample_config_data["chains"][0]["type"] = "osmosis"

        with pytest.raises(ValidationError) as exc_info:
            make_config(sample_config_data)

        assert "chains[0].type" in str(exc_info.value)

    def test_duplicate_port_rejected(self, make_config, sample_config_data):
        sample_config_data["chains"][1]["grpc_port"] = sample_config_data["chains"][0]["rpc_port"]

        with pytest.raises(ValidationError) as exc_info:
            make_config(sample_config_data)

        assert "already used" in str(exc_info.value)

    def test_relayer_needs_two_chains(self, make_config, sample_config_data):
        sample_config_data["relayers"][0]["chains"] = ["c1"]

        with pytest.raises(ValidationError) as exc_info:
            make_config(sample_config_data)

        assert "at least two chains" in str(exc_info.value)

    def test_relayer_unknown_chain_rejected(self, make_config, sample_config_data):
        sample_config_data["relayers"][0]["chains"] = ["c1", "c3"]

        with pytest.raises(ValidationError) as exc_info:
            make_config(sample_config_data)

        assert "c3" in str(exc_info.value)

    def test_relayer_name_clashing_with_chain_rejected(self, make_config, sample_config_data):
        sample_config_data["relayers"][0]["name"] = "c1"

        with pytest.raises(ValidationError):
            make_config(sample_config_data)

    def test_name_used_by_state_root_rejected(self, make_config, sample_config_data):
        sample_config_data["chains"][0]["name"] = "bin"

        with pytest.raises(ValidationError) as exc_info:
            make_config(sample_config_data)

        assert "reserved" in str(exc_info.value)

    def test_relayer_init_commands(self, make_config, sample_config_data):
        sample_config_data["relayers"][0]["init_commands"] = ["{binary} --config {config_file} create channel --yes"]

        config = make_config(sample_config_data)

        assert config.relayers[0].init_commands == ("{binary} --config {config_file} create channel --yes",)

    def test_state_root_must_differ_from_workspace(self, make_config, sample_config_data, temp_dir):
        sample_config_data["general"]["state_root"] = str(temp_dir)

        with pytest.raises(ValidationError) as exc_info:
            make_config(sample_config_data)

        assert "state_root" in str(exc_info.value)

    def test_e2e_defaults(self, make_config, sample_config_data):
        sample_config_data.pop("e2e")

        config = make_config(sample_config_data)

        assert config.e2e.test_command_template == DEFAULT_TEST_COMMAND
        assert config.e2e.skip_dist_env == "E2E_NO_DIST"
        assert config.e2e.deploy_command is None

    def test_contract_package_defaults(self, make_config, sample_config_data, temp_dir):
        sample_config_data["contracts"] = [{"name": "multiple_ica_icq"}]

        config = make_config(sample_config_data)

        contract = config.contracts[0]
        assert contract.package == "multiple-ica-icq"
        assert contract.source_dir == temp_dir / "contracts" / "multiple-ica-icq"


@pytest.mark.unit
class TestProbeConfigValidation:
    """Test cases for readiness probe sections."""

    default = ProbeConfig(kind=ProbeKind.RPC_HEIGHT, target="http://127.0.0.1:{rpc_port}/status")

    def test_missing_section_uses_default(self):
        probe = validate_probe_config(None, self.default, 0.5, "readiness")

        assert probe.kind == ProbeKind.RPC_HEIGHT
        assert probe.target == self.default.target
        assert probe.interval == 0.5
        assert probe.timeout is None

    def test_timing_only_section_keeps_kind(self):
        probe = validate_probe_config({"timeout": 30, "min_height": 5}, self.default, 0.5, "readiness")

        assert probe.kind == ProbeKind.RPC_HEIGHT
        assert probe.timeout == 30.0
        assert probe.min_height == 5

    def test_kind_requires_target(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_probe_config({"kind": "tcp"}, self.default, 0.5, "readiness")

        assert "readiness.target" in str(exc_info.value)

    def test_invalid_log_regex_rejected(self):
        with pytest.raises(ValidationError):
            validate_probe_config({"kind": "log_marker", "target": "("}, self.default, 0.5, "readiness")

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValidationError):
            validate_probe_config({"timeout": -1}, self.default, 0.5, "readiness")

    def test_command_expect(self):
        probe = validate_probe_config(
            {"kind": "command", "target": "hermes query channels", "expect": "Open"}, self.default, 0.5, "readiness"
        )

        assert probe.kind == ProbeKind.COMMAND
        assert probe.expect == "Open"

    def test_expect_rejected_for_other_kinds(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_probe_config(
                {"kind": "log_marker", "target": "started", "expect": "Open"}, self.default, 0.5, "readiness"
            )

        assert "readiness.expect" in str(exc_info.value)


@pytest.mark.unit
class TestArtifactsConfigValidation:
    """Test cases for the [artifacts] section."""

    def test_optimize_command_needs_placeholders(self, temp_dir):
        with pytest.raises(ValidationError) as exc_info:
            validate_artifacts_config({"optimize_command": "wasm-opt -Os in.wasm"}, temp_dir)

        assert "{input}" in str(exc_info.value)

    def test_defaults(self, temp_dir):
        artifacts = validate_artifacts_config({}, temp_dir)

        assert artifacts.output_dir == temp_dir / "artifacts"
        assert artifacts.shared_inputs == ["Cargo.toml", "Cargo.lock"]
        assert "{package}" in artifacts.build_command_template
        assert artifacts.optimize_command_template is None
