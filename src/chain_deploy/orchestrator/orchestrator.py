"""Main orchestrator that validates a plan and drives it to completion."""

import threading
from typing import List, Optional

from chain_deploy.chain.base import ChainClient
from chain_deploy.plan.models import DeploymentPlan
from chain_deploy.state.manager import RecordManager
from chain_deploy.state.models import DeploymentRecord, StepStatus, UnitStatus
from chain_deploy.orchestrator.planner import DeploymentPlanner, PlannedAction
from chain_deploy.orchestrator.executor import (
    ExecutionStatus,
    ProgressCallback,
    StepExecutor,
    resolve_arguments,
)
from chain_deploy.utils.errors import (
    DeploymentCancelledError,
    ErrorContext,
    StateError,
    UnitFailedError,
    WiringFailedError,
)
from chain_deploy.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


class DeploymentOrchestrator:
    """Deploys plan units and applies wiring steps, each at most once.

    Steps run strictly one after another in plan order. The record is saved
    after every completed or failed step, before the next external call, so
    a restarted run never repeats a recorded deployment or call.
    """

    def __init__(
        self,
        client: ChainClient,
        record_manager: Optional[RecordManager] = None,
        planner: Optional[DeploymentPlanner] = None
    ):
        """Initialize deployment orchestrator.

        Args:
            client: Chain client for deploys and calls
            record_manager: Where the record is persisted; None keeps it in memory only
            planner: Plan validator
        """
        self.client = client
        self.record_manager = record_manager
        self.planner = planner or DeploymentPlanner()
        self.executor = StepExecutor(client)
        self.logger = get_logger(__name__)

    def validate(self, plan: DeploymentPlan) -> None:
        """Validate a plan.

        Raises:
            PlanError: CycleError, UnknownReferenceError or DuplicateUnitError
        """
        self.planner.validate(plan)

    def execution_order(
        self,
        plan: DeploymentPlan,
        record: Optional[DeploymentRecord] = None
    ) -> List[PlannedAction]:
        """List the plan's actions in execution order with their recorded status."""
        self.planner.validate(plan)
        return self.planner.execution_order(plan, record)

    def run(
        self,
        plan: DeploymentPlan,
        record: DeploymentRecord,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> DeploymentRecord:
        """Run the plan, resuming from ``record``.

        Deployed units and applied steps are skipped. Pending and failed ones
        are attempted in order. The record is updated in place, so after an
        error the caller still sees what was completed.

        Args:
            plan: Plan to execute
            record: Record from a previous run, or an empty one
            cancel_event: When set, the run stops before its next external call
            progress_callback: Called before and after every external call

        Returns:
            The completed record

        Raises:
            PlanError: If the plan is invalid (nothing is executed)
            StateError: If the record does not match the plan or cannot be saved
            UnitFailedError: If a deployment fails
            WiringFailedError: If a wiring step fails
            DeploymentCancelledError: If cancelled between steps
        """
        self.planner.validate(plan)

        if record.plan_name != plan.name:
            raise StateError(
                f"Record is for plan '{record.plan_name}', not '{plan.name}'"
            )
        self._check_record_matches(plan, record)

        self.logger.info(f"Running plan '{plan.name}' on {record.network}...")

        for unit in plan.units:
            if record.is_deployed(unit.name):
                self.logger.debug(f"Skipping {unit.name}, already at {record.address_of(unit.name)}")
                continue

            self._check_cancelled(cancel_event, f"deploying {unit.name}")

            with LogContext(self.logger, unit=unit.name, operation="deploy"):
                args = resolve_arguments(unit.args, record)
                self._notify(progress_callback, unit.name, ExecutionStatus.IN_PROGRESS, None)
                result = self.executor.deploy_unit(unit, args)

                if not result.is_success():
                    record.mark_unit_failed(unit.name, unit.contract, str(result.error))
                    self._persist(record)
                    self._notify(progress_callback, unit.name, ExecutionStatus.FAILED, str(result.error))
                    raise UnitFailedError(unit.name, result.error) from result.error

                address = result.result.address
                record.mark_deployed(unit.name, unit.contract, address, result.result.tx_hash)
                self._persist(record)
                self.logger.info(f"{unit.name} address: {address}")
                self._notify(progress_callback, unit.name, ExecutionStatus.SUCCESS, address)

        for index, step in enumerate(plan.wiring):
            if record.is_applied(index):
                continue

            label = step.label()
            self._check_cancelled(cancel_event, f"wiring step {index} ({label})")

            with LogContext(self.logger, step_index=index, operation=step.method):
                address = record.address_of(step.target)
                args = resolve_arguments(step.args, record)
                self._notify(progress_callback, label, ExecutionStatus.IN_PROGRESS, None)
                result = self.executor.apply_step(plan, step, address, args)

                if not result.is_success():
                    record.mark_step_failed(index, label, str(result.error))
                    self._persist(record)
                    self._notify(progress_callback, label, ExecutionStatus.FAILED, str(result.error))
                    raise WiringFailedError(index, result.error, method=step.method) from result.error

                record.mark_applied(index, label, result.result.tx_hash)
                self._persist(record)
                self.logger.info(step.description or f"Applied {label}")
                self._notify(progress_callback, label, ExecutionStatus.SUCCESS, None)

        self.logger.info(
            f"Plan '{plan.name}' complete: {len(plan.units)} units, {len(plan.wiring)} wiring steps"
        )
        return record

    def _check_record_matches(self, plan: DeploymentPlan, record: DeploymentRecord) -> None:
        """Refuse to resume when completed entries no longer line up with the plan.

        Units are skipped by name and wiring steps by position, so a changed
        contract type or an inserted, removed or reordered wiring step would
        make a run skip a new call and repeat an old one.

        Raises:
            StateError: On the first mismatch
        """
        suggestions = [
            'Restore the plan the record was written for',
            'Or start a fresh record with --record for the changed plan',
        ]

        for unit in plan.units:
            entry = record.units.get(unit.name)
            if entry and entry.status == UnitStatus.DEPLOYED and entry.contract and entry.contract != unit.contract:
                raise StateError(
                    f"Unit '{unit.name}' was deployed as {entry.contract}, "
                    f"but the plan now deploys it as {unit.contract}",
                    context=ErrorContext(unit=unit.name),
                    suggestions=suggestions
                )

        for index, step in enumerate(plan.wiring):
            entry = record.steps.get(index)
            if entry and entry.status == StepStatus.APPLIED and entry.label and entry.label != step.label():
                raise StateError(
                    f"Wiring step {index} was applied as {entry.label}, "
                    f"but the plan now has {step.label()} at that position",
                    context=ErrorContext(step_index=index, method=step.method),
                    suggestions=suggestions
                )

    def _persist(self, record: DeploymentRecord) -> None:
        if self.record_manager is not None:
            self.record_manager.save(record)

    def _check_cancelled(self, cancel_event: Optional[threading.Event], next_action: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            self.logger.warning(f"Cancellation requested, stopping before {next_action}")
            raise DeploymentCancelledError(next_action)

    def _notify(
        self,
        progress_callback: Optional[ProgressCallback],
        name: str,
        status: ExecutionStatus,
        message: Optional[str]
    ) -> None:
        if progress_callback:
            progress_callback(name, status, message)
