"""Loading plan files from YAML."""

from pathlib import Path

import pytest

from chain_deploy.orchestrator.planner import DeploymentPlanner
from chain_deploy.plan.models import DeployableUnit, UnitRef, WiringStep
from chain_deploy.plan.parser import ConfigValidationError, PlanLoader, load_plan

EXAMPLE_PLAN = Path(__file__).parent.parent / "examples" / "vault_plan.yaml"


def write_plan(tmp_path, text: str) -> str:
    path = tmp_path / "plan.yaml"
    path.write_text(text)
    return str(path)


def test_load_example_plan():
    """The bundled vault plan loads and validates."""
    plan_file = load_plan(str(EXAMPLE_PLAN))
    plan = plan_file.plan

    assert plan.name == "vault"
    assert plan.unit_names() == ["VaultManager", "VaultController", "VaultStrategy"]
    assert len(plan.wiring) == 7
    assert plan_file.artifacts == "build/contracts"
    assert set(plan_file.networks) == {"bsc-testnet", "development"}
    assert plan_file.networks["bsc-testnet"].chain_id == 97

    manager = plan.get_unit("VaultManager")
    assert manager.contract == "VaultManager"
    assert manager.args == ["0xcde42733E82f663B671575bC30183709DD89D2a9", 3000000000000000, 2**256 - 1]
    assert plan.get_unit("VaultStrategy").args == [UnitRef(ref="VaultController")]
    assert plan.wiring[0].label() == "VaultManager.setVaultController"
    assert plan.wiring[0].description == "finish set controller"

    DeploymentPlanner().validate(plan)


def test_unit_contract_defaults_to_name():
    assert DeployableUnit(name="Token").contract == "Token"
    assert DeployableUnit(name="USDC", contract="Token").contract == "Token"


def test_ref_parsing_nested():
    unit = DeployableUnit(name="Pool", args=[[{"ref": "A"}, "0x00"], {"ref": "B"}, {"ref": "C", "extra": 1}])

    assert unit.args[0] == [UnitRef(ref="A"), "0x00"]
    assert unit.args[1] == UnitRef(ref="B")
    # Mappings with other keys are literal values
    assert unit.args[2] == {"ref": "C", "extra": 1}
    assert unit.references() == ["A", "B"]


def test_wiring_step_references_include_target():
    step = WiringStep(target="Vault", method="setStrategy", args=[{"ref": "Strategy"}])
    assert step.references() == ["Vault", "Strategy"]


def test_collects_all_validation_errors(tmp_path):
    path = write_plan(tmp_path, """
name: bad plan
units:
  - name: A
  - contract: B
wiring:
  - target: A
    method: "not a method"
networks:
  local:
    rpc_url: ws://127.0.0.1:8545
""")

    with pytest.raises(ConfigValidationError) as exc_info:
        PlanLoader(path).load()

    locations = [tuple(e["loc"]) for e in exc_info.value.errors]
    assert ("name",) in locations
    assert ("units", 1, "name") in locations
    assert ("wiring", 0, "method") in locations
    assert ("networks", "local", "rpc_url") in locations
    assert "units -> 1 -> name" in str(exc_info.value)


def test_missing_units(tmp_path):
    path = write_plan(tmp_path, "name: empty\nunits: []\n")
    with pytest.raises(ConfigValidationError) as exc_info:
        load_plan(path)
    assert exc_info.value.errors[0]["loc"] == ["units"]


def test_not_a_mapping(tmp_path):
    path = write_plan(tmp_path, "- just\n- a list\n")
    with pytest.raises(ConfigValidationError):
        load_plan(path)


def test_broken_yaml(tmp_path):
    path = write_plan(tmp_path, "name: [unclosed\n")
    with pytest.raises(ConfigValidationError) as exc_info:
        load_plan(path)
    assert "Failed to parse YAML" in exc_info.value.message


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_plan(str(tmp_path / "nope.yaml"))


def test_get_network():
    loader = PlanLoader(str(EXAMPLE_PLAN))
    network = loader.get_network("development")

    assert network.name == "development"
    assert network.rpc_url == "http://127.0.0.1:8545"
    assert network.private_key_env == "DEPLOYER_PRIVATE_KEY"
    assert network.receipt_timeout == 120

    with pytest.raises(ConfigValidationError) as exc_info:
        loader.get_network("mainnet")
    assert "bsc-testnet" in str(exc_info.value)
