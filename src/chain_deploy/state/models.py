"""Deployment record data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class UnitStatus(str, Enum):
    """Lifecycle of a deployable unit."""

    PENDING = "pending"
    DEPLOYED = "deployed"
    FAILED = "failed"


class StepStatus(str, Enum):
    """Lifecycle of a wiring step."""

    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"


class UnitRecord(BaseModel):
    """Recorded outcome of deploying one unit."""

    status: UnitStatus = UnitStatus.PENDING
    contract: Optional[str] = Field(None, description="Contract type the unit was deployed from")
    address: Optional[str] = Field(None, description="Deployed contract address")
    tx_hash: Optional[str] = Field(None, description="Deployment transaction hash")
    error: Optional[str] = Field(None, description="Last failure message")


class StepRecord(BaseModel):
    """Recorded outcome of one wiring step."""

    status: StepStatus = StepStatus.PENDING
    label: Optional[str] = Field(None, description="target.method of the step")
    tx_hash: Optional[str] = Field(None, description="Transaction hash or call result")
    error: Optional[str] = Field(None, description="Last failure message")


class DeploymentRecord(BaseModel):
    """Persisted progress of a plan on one network."""

    version: str = Field("1.0", description="Record file format version")
    plan_name: str = Field(..., description="Plan this record belongs to")
    network: str = Field(..., description="Network identifier")
    units: Dict[str, UnitRecord] = Field(
        default_factory=dict, description="Unit outcomes, keyed by unit name"
    )
    steps: Dict[int, StepRecord] = Field(
        default_factory=dict, description="Wiring step outcomes, keyed by step index"
    )
    step_index: int = Field(
        0, ge=0, description="Number of wiring steps fully applied (next step to run)"
    )
    updated_at: Optional[datetime] = Field(None, description="Last persisted change")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def unit_status(self, name: str) -> UnitStatus:
        """Status of a unit, pending when never attempted."""
        record = self.units.get(name)
        return record.status if record else UnitStatus.PENDING

    def step_status(self, index: int) -> StepStatus:
        """Status of a wiring step, pending when never attempted."""
        record = self.steps.get(index)
        return record.status if record else StepStatus.PENDING

    def is_deployed(self, name: str) -> bool:
        """Check if a unit is deployed."""
        return self.unit_status(name) == UnitStatus.DEPLOYED

    def is_applied(self, index: int) -> bool:
        """Check if a wiring step is applied."""
        return self.step_status(index) == StepStatus.APPLIED

    def address_of(self, name: str) -> Optional[str]:
        """Recorded address of a deployed unit."""
        if not self.is_deployed(name):
            return None
        return self.units[name].address

    def addresses(self) -> Dict[str, str]:
        """Addresses of all deployed units."""
        return {
            name: record.address
            for name, record in self.units.items()
            if record.status == UnitStatus.DEPLOYED
        }

    def mark_deployed(self, name: str, contract: str, address: str, tx_hash: Optional[str] = None) -> None:
        """Record a successful deployment."""
        self.units[name] = UnitRecord(
            status=UnitStatus.DEPLOYED, contract=contract, address=address, tx_hash=tx_hash
        )
        self._touch()

    def mark_unit_failed(self, name: str, contract: str, error: str) -> None:
        """Record a failed deployment."""
        self.units[name] = UnitRecord(status=UnitStatus.FAILED, contract=contract, error=error)
        self._touch()

    def mark_applied(self, index: int, label: str, tx_hash: Optional[str] = None) -> None:
        """Record a successful wiring step and advance the step cursor."""
        self.steps[index] = StepRecord(status=StepStatus.APPLIED, label=label, tx_hash=tx_hash)
        while self.is_applied(self.step_index):
            self.step_index += 1
        self._touch()

    def mark_step_failed(self, index: int, label: str, error: str) -> None:
        """Record a failed wiring step."""
        self.steps[index] = StepRecord(status=StepStatus.FAILED, label=label, error=error)
        self._touch()

    def failed_units(self) -> Dict[str, UnitRecord]:
        """Units whose last attempt failed."""
        return {name: r for name, r in self.units.items() if r.status == UnitStatus.FAILED}

    def failed_steps(self) -> Dict[int, StepRecord]:
        """Wiring steps whose last attempt failed."""
        return {index: r for index, r in self.steps.items() if r.status == StepStatus.FAILED}

    def has_failures(self) -> bool:
        """Check if any unit or step is marked failed."""
        return bool(self.failed_units() or self.failed_steps())

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
