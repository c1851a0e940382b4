"""Chain clients and contract artifacts."""

from .artifacts import ArtifactStore, ContractArtifact
from .base import ChainClient, TransactionResult
from .web3_client import Web3ChainClient, normalise_argument

__all__ = [
    "ArtifactStore",
    "ContractArtifact",
    "ChainClient",
    "TransactionResult",
    "Web3ChainClient",
    "normalise_argument",
]
