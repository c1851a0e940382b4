"""Shared fixtures: an in-memory chain client and plan builders."""

from typing import Any, List, Optional, Set, Tuple

import pytest

from chain_deploy.chain.base import ChainClient, TransactionResult
from chain_deploy.plan.models import DeployableUnit, DeploymentPlan, UnitRef, WiringStep
from chain_deploy.state.manager import RecordManager
from chain_deploy.state.models import DeploymentRecord


class RecordingChainClient(ChainClient):
    """Fake chain that hands out sequential addresses and remembers every call."""

    def __init__(self):
        self.calls: List[Tuple] = []
        self.fail_contracts: Set[str] = set()
        self.fail_methods: Set[str] = set()
        self._counter = 0

    def deploy(self, contract: str, args: List[Any]) -> TransactionResult:
        self.calls.append(("deploy", contract, list(args)))
        if contract in self.fail_contracts:
            raise RuntimeError(f"{contract} constructor reverted")
        self._counter += 1
        return TransactionResult(
            tx_hash=f"0x{self._counter:064x}",
            address=f"0x{self._counter:040x}",
        )

    def call(self, contract: str, address: str, method: str, args: List[Any]) -> TransactionResult:
        self.calls.append(("call", address, method, list(args)))
        if method in self.fail_methods:
            raise RuntimeError(f"{method} reverted")
        self._counter += 1
        return TransactionResult(tx_hash=f"0x{self._counter:064x}")

    def deployed_contracts(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] == "deploy"]

    def called_methods(self) -> List[str]:
        return [c[2] for c in self.calls if c[0] == "call"]


@pytest.fixture()
def client() -> RecordingChainClient:
    return RecordingChainClient()


@pytest.fixture()
def record_manager(tmp_path) -> RecordManager:
    return RecordManager(str(tmp_path / "records" / "vault-test.json"))


@pytest.fixture()
def vault_plan() -> DeploymentPlan:
    """Manager, controller and strategy, wired as in the vault migration."""
    return DeploymentPlan(
        name="vault",
        units=[
            DeployableUnit(name="VaultManager", args=["0xcde42733E82f663B671575bC30183709DD89D2a9", 3000000000000000, 2**256 - 1]),
            DeployableUnit(name="VaultController"),
            DeployableUnit(name="VaultStrategy", args=[UnitRef(ref="VaultController")]),
        ],
        wiring=[
            WiringStep(target="VaultManager", method="setVaultController", args=[UnitRef(ref="VaultController")]),
            WiringStep(target="VaultController", method="setManager", args=[UnitRef(ref="VaultManager")]),
            WiringStep(target="VaultController", method="setStrategy", args=[UnitRef(ref="VaultStrategy")]),
            WiringStep(target="VaultController", method="approveToManager", args=["0xae13d989daC2f0dEbFf460aC112a837C89BAa7cd", 2**256 - 1]),
        ],
    )


@pytest.fixture()
def empty_record() -> DeploymentRecord:
    return DeploymentRecord(plan_name="vault", network="test")


def _make_plan(units: List[Tuple[str, list]], wiring: Optional[List[Tuple[str, str, list]]] = None, name: str = "test") -> DeploymentPlan:
    """Build a plan from (name, args) and (target, method, args) tuples.

    ``{"ref": X}`` entries in args become unit references.
    """
    return DeploymentPlan(
        name=name,
        units=[DeployableUnit(name=unit_name, args=args) for unit_name, args in units],
        wiring=[WiringStep(target=t, method=m, args=a) for t, m, a in (wiring or [])],
    )


@pytest.fixture()
def make_plan():
    return _make_plan
