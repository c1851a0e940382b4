"""Single-step execution: argument resolution, one deploy or one call."""

from typing import Any, Callable, List, Optional
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from chain_deploy.chain.base import ChainClient, TransactionResult
from chain_deploy.plan.models import DeployableUnit, DeploymentPlan, UnitRef, WiringStep
from chain_deploy.state.models import DeploymentRecord
from chain_deploy.utils.errors import DeployError, ErrorContext
from chain_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ExecutionStatus(Enum):
    """Status of execution."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


# Type alias for progress callback: (name, status, message)
ProgressCallback = Callable[[str, ExecutionStatus, Optional[str]], None]


@dataclass
class StepExecutionResult:
    """Result of executing a single deploy or call."""

    name: str
    status: ExecutionStatus
    result: Optional[TransactionResult] = None
    error: Optional[Exception] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """Check if execution was successful."""
        return self.status == ExecutionStatus.SUCCESS


def resolve_arguments(args: List[Any], record: DeploymentRecord) -> List[Any]:
    """Replace unit references with recorded addresses, leaving literals as they are.

    Raises:
        DeployError: If a referenced unit has no recorded address
    """
    resolved = []
    for arg in args:
        if isinstance(arg, UnitRef):
            address = record.address_of(arg.ref)
            if address is None:
                raise DeployError(
                    f"Unit '{arg.ref}' is referenced before it was deployed",
                    context=ErrorContext(unit=arg.ref)
                )
            resolved.append(address)
        elif isinstance(arg, list):
            resolved.append(resolve_arguments(arg, record))
        else:
            resolved.append(arg)
    return resolved


class StepExecutor:
    """Performs one external call and times it. Never touches the record."""

    def __init__(self, client: ChainClient):
        """Initialize step executor.

        Args:
            client: Chain client used for every external call
        """
        self.client = client
        self.logger = get_logger(__name__)

    def deploy_unit(self, unit: DeployableUnit, args: List[Any]) -> StepExecutionResult:
        """Deploy a unit with already resolved arguments."""
        self.logger.info(f"Deploying {unit.name} ({unit.contract})...")
        return self._execute(unit.name, lambda: self.client.deploy(unit.contract, args))

    def apply_step(
        self,
        plan: DeploymentPlan,
        step: WiringStep,
        address: str,
        args: List[Any]
    ) -> StepExecutionResult:
        """Call a wiring step's method on its target's address."""
        contract = plan.get_unit(step.target).contract
        self.logger.info(f"Calling {step.label()} at {address}...")
        return self._execute(
            step.label(),
            lambda: self.client.call(contract, address, step.method, args)
        )

    def _execute(self, name: str, operation: Callable[[], TransactionResult]) -> StepExecutionResult:
        start_time = datetime.now(timezone.utc)
        try:
            result = operation()
        except Exception as e:
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            self.logger.error(f"{name} failed after {duration:.1f}s: {e}")
            return StepExecutionResult(
                name=name,
                status=ExecutionStatus.FAILED,
                error=e,
                duration=duration
            )

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        return StepExecutionResult(
            name=name,
            status=ExecutionStatus.SUCCESS,
            result=result,
            duration=duration
        )
