"""Orchestrator module for plan validation and execution."""

from chain_deploy.orchestrator.dependency_graph import DependencyGraph, DependencyNode
from chain_deploy.orchestrator.planner import (
    ActionType,
    DeploymentPlanner,
    PlannedAction
)
from chain_deploy.orchestrator.executor import (
    ExecutionStatus,
    ProgressCallback,
    StepExecutionResult,
    StepExecutor,
    resolve_arguments
)
from chain_deploy.orchestrator.orchestrator import DeploymentOrchestrator

__all__ = [
    # Dependency graph
    'DependencyGraph',
    'DependencyNode',

    # Planning
    'ActionType',
    'DeploymentPlanner',
    'PlannedAction',

    # Execution
    'ExecutionStatus',
    'ProgressCallback',
    'StepExecutionResult',
    'StepExecutor',
    'resolve_arguments',

    # Main orchestrator
    'DeploymentOrchestrator',
]
