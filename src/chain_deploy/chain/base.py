"""Chain client interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass
class TransactionResult:
    """Outcome of a confirmed transaction."""
    tx_hash: Optional[str]
    address: Optional[str] = None  # Set for contract deployments


class ChainClient(ABC):
    """Blocking client that deploys contracts and calls their methods.

    Both operations return only after the transaction is confirmed. Any
    exception they raise is treated by the orchestrator as the opaque cause
    of a failed step.
    """

    @abstractmethod
    def deploy(self, contract: str, args: List[Any]) -> TransactionResult:
        """Deploy a contract.

        Args:
            contract: Contract type token, passed through from the plan
            args: Resolved constructor arguments

        Returns:
            TransactionResult with the deployed address
        """
        pass

    @abstractmethod
    def call(self, contract: str, address: str, method: str, args: List[Any]) -> TransactionResult:
        """Send a state-changing method call to a deployed contract.

        Args:
            contract: Contract type of the target, needed to encode the call
            address: Target contract address
            method: Method name
            args: Resolved method arguments

        Returns:
            TransactionResult of the call
        """
        pass
