"""Utility modules for logging and error handling."""

from chain_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    StateError,
    StateLockError,
    PlanError,
    CycleError,
    UnknownReferenceError,
    DuplicateUnitError,
    DeployError,
    UnitFailedError,
    WiringFailedError,
    DeploymentCancelledError,
    ChainError,
    TransactionFailed,
    ArtifactNotFound,
    ErrorHandler,
    error_handler
)
from chain_deploy.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'StateError',
    'StateLockError',
    'PlanError',
    'CycleError',
    'UnknownReferenceError',
    'DuplicateUnitError',
    'DeployError',
    'UnitFailedError',
    'WiringFailedError',
    'DeploymentCancelledError',
    'ChainError',
    'TransactionFailed',
    'ArtifactNotFound',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
