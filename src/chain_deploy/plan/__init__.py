"""Deployment plan models and plan file loading."""

from .models import (
    DeployableUnit,
    DeploymentPlan,
    NetworkConfig,
    PlanFile,
    UnitRef,
    WiringStep,
    collect_references,
)
from .parser import ConfigValidationError, PlanLoader, load_plan

__all__ = [
    "DeployableUnit",
    "DeploymentPlan",
    "NetworkConfig",
    "PlanFile",
    "UnitRef",
    "WiringStep",
    "collect_references",
    "ConfigValidationError",
    "PlanLoader",
    "load_plan",
]
