"""Plan validation and execution ordering."""

from typing import List, Optional
from dataclasses import dataclass
from enum import Enum

from chain_deploy.plan.models import DeploymentPlan
from chain_deploy.state.models import DeploymentRecord, StepStatus, UnitStatus
from chain_deploy.orchestrator.dependency_graph import DependencyGraph
from chain_deploy.utils.errors import CycleError, DuplicateUnitError, UnknownReferenceError
from chain_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ActionType(Enum):
    """Kind of external call an action performs."""
    DEPLOY = "deploy"
    WIRE = "wire"


@dataclass
class PlannedAction:
    """One external call the orchestrator will make, in order."""

    action_type: ActionType
    name: str  # Unit name, or target.method for wiring steps
    contract: str
    status: str
    step_index: Optional[int] = None
    description: Optional[str] = None

    def is_done(self) -> bool:
        """Check if the action was completed in an earlier run."""
        return self.status in (UnitStatus.DEPLOYED.value, StepStatus.APPLIED.value)


class DeploymentPlanner:
    """Validates plans and lists the actions a run would perform."""

    def __init__(self):
        """Initialize deployment planner."""
        self.logger = get_logger(__name__)

    def validate(self, plan: DeploymentPlan) -> None:
        """Validate a plan before any external call is made.

        Checks, in order: duplicate unit names, reference cycles among units,
        references to undeclared units, references to units declared later in
        the plan, and wiring steps referencing undeclared units.

        Args:
            plan: Plan to validate

        Raises:
            DuplicateUnitError: If two units share a name
            CycleError: If unit references form a cycle
            UnknownReferenceError: If a reference cannot be resolved in order
        """
        seen = set()
        for unit in plan.units:
            if unit.name in seen:
                raise DuplicateUnitError(unit.name)
            seen.add(unit.name)

        graph = DependencyGraph.from_plan(plan)

        cycle = graph.detect_circular_dependencies()
        if cycle:
            raise CycleError(cycle)

        missing = graph.missing_dependencies()
        if missing:
            unit_name, reference = missing[0]
            raise UnknownReferenceError(f"Unit '{unit_name}'", reference)

        declared = set()
        for unit in plan.units:
            for reference in unit.references():
                if reference not in declared:
                    raise UnknownReferenceError(
                        f"Unit '{unit.name}'", reference, "is declared later in the plan"
                    )
            declared.add(unit.name)

        for index, step in enumerate(plan.wiring):
            for reference in step.references():
                if reference not in declared:
                    raise UnknownReferenceError(f"Wiring step {index} ({step.label()})", reference)

        self.logger.debug(
            f"Plan '{plan.name}' is valid: {len(plan.units)} units, {len(plan.wiring)} wiring steps"
        )

    def execution_order(
        self,
        plan: DeploymentPlan,
        record: Optional[DeploymentRecord] = None
    ) -> List[PlannedAction]:
        """List every action of the plan in execution order with its recorded status.

        Args:
            plan: Validated plan
            record: Existing record, if any

        Returns:
            Actions in the order a run performs them
        """
        actions = []

        for unit in plan.units:
            status = record.unit_status(unit.name) if record else UnitStatus.PENDING
            actions.append(PlannedAction(
                action_type=ActionType.DEPLOY,
                name=unit.name,
                contract=unit.contract,
                status=status.value
            ))

        for index, step in enumerate(plan.wiring):
            status = record.step_status(index) if record else StepStatus.PENDING
            target = plan.get_unit(step.target)
            actions.append(PlannedAction(
                action_type=ActionType.WIRE,
                name=step.label(),
                contract=target.contract if target else step.target,
                status=status.value,
                step_index=index,
                description=step.description
            ))

        return actions

    def pending_actions(
        self,
        plan: DeploymentPlan,
        record: Optional[DeploymentRecord] = None
    ) -> List[PlannedAction]:
        """Actions a run would still perform."""
        return [action for action in self.execution_order(plan, record) if not action.is_done()]
