"""Deployment record models and persistence."""

from .manager import RecordManager, StateNotFoundError
from .models import DeploymentRecord, StepRecord, StepStatus, UnitRecord, UnitStatus

__all__ = [
    "DeploymentRecord",
    "StepRecord",
    "StepStatus",
    "UnitRecord",
    "UnitStatus",
    "RecordManager",
    "StateNotFoundError",
]
