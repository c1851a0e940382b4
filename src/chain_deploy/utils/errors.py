"""Error handling framework for deployment operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass, asdict

from requests.exceptions import ConnectionError as RequestsConnectionError, Timeout
from web3.exceptions import ContractLogicError, TimeExhausted

from chain_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during deployment."""
    CONFIGURATION = "configuration"
    PLAN = "plan"
    STATE = "state"
    CHAIN = "chain"
    NETWORK = "network"
    ARTIFACT = "artifact"
    EXECUTION = "execution"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Deployment cannot continue
    ERROR = "error"  # Step failed, run stopped
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    unit: Optional[str] = None
    step_index: Optional[int] = None
    method: Optional[str] = None
    network: Optional[str] = None
    tx_hash: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class DeploymentError(Exception):
    """Base exception for deployment errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize deployment error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.unit:
            lines.append(f"   Unit: {self.context.unit}")
        if self.context.step_index is not None:
            lines.append(f"   Wiring step: {self.context.step_index}")
        if self.context.method:
            lines.append(f"   Method: {self.context.method}")
        if self.context.tx_hash:
            lines.append(f"   Transaction: {self.context.tx_hash}")

        if self.cause:
            lines.append(f"   Cause: {self.cause}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': asdict(self.context),
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(DeploymentError):
    """Error in plan file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class StateError(DeploymentError):
    """Error reading or writing the deployment record."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class StateLockError(StateError):
    """Deployment record is locked by another process."""


class PlanError(DeploymentError):
    """Plan is structurally invalid. Raised before any external call."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', ['Fix the plan file and run validate again'])
        super().__init__(
            message,
            category=ErrorCategory.PLAN,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class CycleError(PlanError):
    """Unit references form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(
            f"Circular reference detected: {' -> '.join(cycle)}",
            context=ErrorContext(unit=cycle[0] if cycle else None)
        )


class UnknownReferenceError(PlanError):
    """A unit or wiring step references a name that is not available."""

    def __init__(self, referrer: str, reference: str, reason: str = "is not declared in the plan"):
        self.referrer = referrer
        self.reference = reference
        super().__init__(
            f"{referrer} references '{reference}' which {reason}",
            context=ErrorContext(additional_info={'reference': reference})
        )


class DuplicateUnitError(PlanError):
    """Two units share the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Unit '{name}' is declared more than once",
            context=ErrorContext(unit=name)
        )


class DeployError(DeploymentError):
    """A run stopped before completing the plan."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.EXECUTION)
        kwargs.setdefault('severity', ErrorSeverity.ERROR)
        super().__init__(message, **kwargs)


class UnitFailedError(DeployError):
    """Deploying a unit failed. Units deployed before it stay deployed."""

    def __init__(self, unit: str, cause: Exception):
        self.unit = unit
        super().__init__(
            f"Deployment of unit '{unit}' failed: {cause}",
            context=ErrorContext(unit=unit, tx_hash=getattr(cause, 'tx_hash', None)),
            cause=cause,
            suggestions=[
                'Check on-chain whether the deployment transaction was mined before retrying',
                'Re-run deploy to re-attempt the failed unit once it is safe to do so',
            ]
        )


class WiringFailedError(DeployError):
    """Applying a wiring step failed."""

    def __init__(self, step_index: int, cause: Exception, method: Optional[str] = None):
        self.step_index = step_index
        super().__init__(
            f"Wiring step {step_index} ({method or 'call'}) failed: {cause}",
            context=ErrorContext(
                step_index=step_index,
                method=method,
                tx_hash=getattr(cause, 'tx_hash', None)
            ),
            cause=cause,
            suggestions=[
                'Check on-chain whether the call took effect before retrying',
                'Re-run deploy to re-attempt the failed step once it is safe to do so',
            ]
        )


class DeploymentCancelledError(DeployError):
    """Run was cancelled between steps."""

    def __init__(self, next_action: str):
        self.next_action = next_action
        super().__init__(
            f"Deployment cancelled before {next_action}",
            category=ErrorCategory.CANCELLED,
            severity=ErrorSeverity.WARNING,
            suggestions=['Re-run deploy to continue from the saved record']
        )


class ChainError(DeploymentError):
    """Error raised by a chain client."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CHAIN)
        super().__init__(message, **kwargs)


class TransactionFailed(ChainError):
    """Transaction was mined but reverted."""

    def __init__(self, tx_hash: str, message: str):
        self.tx_hash = tx_hash
        super().__init__(message, context=ErrorContext(tx_hash=tx_hash))


class ArtifactNotFound(ChainError):
    """No compiled artifact for a contract type."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, category=ErrorCategory.ARTIFACT, severity=ErrorSeverity.CRITICAL, **kwargs)


class ErrorHandler:
    """Converts chain client exceptions into categorized errors."""

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        """Handle an exception and convert to DeploymentError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DeploymentError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, DeploymentError):
            return error

        if isinstance(error, ContractLogicError):
            return ChainError(
                f"Execution reverted: {error}",
                context=context,
                cause=error,
                suggestions=[
                    'Check constructor/method arguments against the contract ABI',
                    'Verify the deployer account has the required role or ownership',
                ]
            )

        if isinstance(error, TimeExhausted):
            return ChainError(
                f"Timed out waiting for transaction receipt: {error}",
                category=ErrorCategory.NETWORK,
                context=context,
                cause=error,
                suggestions=[
                    'The transaction may still be mined; check the explorer before retrying',
                    'Increase receipt_timeout for the network',
                ]
            )

        if isinstance(error, (RequestsConnectionError, Timeout, ConnectionError, TimeoutError)):
            return ChainError(
                f"Network error: {error}",
                category=ErrorCategory.NETWORK,
                context=context,
                cause=error,
                suggestions=[
                    'Check the RPC URL for the network',
                    'Verify the RPC provider is reachable',
                ]
            )

        return DeploymentError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def log_error(self, error: DeploymentError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
