"""Pydantic models for deployment plan files."""

from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, Field, field_validator, model_validator


class UnitRef(BaseModel):
    """Reference to the address of another unit in the plan."""

    ref: str = Field(..., min_length=1, description="Name of the referenced unit")

    def __str__(self) -> str:
        return f"@{self.ref}"


def _parse_argument(value: Any) -> Any:
    """Turn ``{ref: Name}`` mappings into UnitRef, recursing into lists."""
    if isinstance(value, UnitRef):
        return value
    if isinstance(value, dict) and set(value.keys()) == {"ref"}:
        return UnitRef(ref=value["ref"])
    if isinstance(value, (list, tuple)):
        return [_parse_argument(item) for item in value]
    return value


def collect_references(args: List[Any]) -> List[str]:
    """Get referenced unit names from an argument list, in order of appearance."""
    names = []
    for arg in args:
        if isinstance(arg, UnitRef):
            names.append(arg.ref)
        elif isinstance(arg, list):
            names.extend(collect_references(arg))
    return names


class DeployableUnit(BaseModel):
    """One contract instance to deploy."""

    name: str = Field(..., min_length=1, description="Unique unit name")
    contract: Optional[str] = Field(
        None, description="Contract type passed to the chain client (defaults to name)"
    )
    args: List[Any] = Field(default_factory=list, description="Constructor arguments")

    @field_validator("args", mode="before")
    @classmethod
    def parse_args(cls, v: Any) -> Any:
        """Parse unit references inside constructor arguments."""
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return [_parse_argument(item) for item in v]
        return v

    @model_validator(mode="after")
    def default_contract(self):
        """Use the unit name as contract type when none is given."""
        if not self.contract:
            self.contract = self.name
        return self

    def references(self) -> List[str]:
        """Names of units this unit's constructor depends on."""
        return collect_references(self.args)


class WiringStep(BaseModel):
    """Post-deployment method call on a deployed unit."""

    target: str = Field(..., min_length=1, description="Unit the method is called on")
    method: str = Field(..., min_length=1, pattern="^[A-Za-z_][A-Za-z0-9_]*$")
    args: List[Any] = Field(default_factory=list, description="Method arguments")
    description: Optional[str] = Field(None, description="Message logged when applied")

    @field_validator("args", mode="before")
    @classmethod
    def parse_args(cls, v: Any) -> Any:
        """Parse unit references inside method arguments."""
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return [_parse_argument(item) for item in v]
        return v

    def references(self) -> List[str]:
        """Names of units this step depends on, target first."""
        return [self.target] + collect_references(self.args)

    def label(self) -> str:
        """Short human-readable label."""
        return f"{self.target}.{self.method}"


class NetworkConfig(BaseModel):
    """Connection settings for one network."""

    name: str = Field(..., min_length=1)
    rpc_url: str = Field(..., min_length=1)
    chain_id: Optional[int] = Field(None, ge=1, description="Expected chain id, checked on connect")
    private_key_env: str = Field(
        "DEPLOYER_PRIVATE_KEY", description="Environment variable holding the deployer key"
    )
    gas: Optional[int] = Field(None, ge=21000, description="Fixed gas limit (estimated if unset)")
    receipt_timeout: int = Field(120, ge=1, le=3600)

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Validate RPC URL scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"RPC URL must be http or https: {v}")
        return v


class DeploymentPlan(BaseModel):
    """Ordered units followed by ordered wiring steps."""

    name: str = Field(..., min_length=1, max_length=64, pattern="^[A-Za-z0-9_-]+$")
    units: List[DeployableUnit] = Field(default_factory=list)
    wiring: List[WiringStep] = Field(default_factory=list)

    def unit_names(self) -> List[str]:
        """Unit names in declared order."""
        return [unit.name for unit in self.units]

    def get_unit(self, name: str) -> Optional[DeployableUnit]:
        """Get a unit by name."""
        for unit in self.units:
            if unit.name == name:
                return unit
        return None

    def referenced_names(self) -> Set[str]:
        """All unit names referenced anywhere in the plan."""
        names: Set[str] = set()
        for unit in self.units:
            names.update(unit.references())
        for step in self.wiring:
            names.update(step.references())
        return names


class PlanFile(BaseModel):
    """Top-level plan file: the plan plus artifact and network settings."""

    plan: DeploymentPlan
    artifacts: str = Field("build/contracts", description="Directory with compiled contract JSON")
    networks: Dict[str, NetworkConfig] = Field(default_factory=dict)
