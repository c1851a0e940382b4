"""Compiled contract artifact loading.

Reads the JSON files Truffle, Hardhat and Foundry write for each contract.
Only ``abi`` and ``bytecode`` are used. Loaded artifacts are cached per store.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from chain_deploy.utils.errors import ArtifactNotFound


@dataclass(frozen=True)
class ContractArtifact:
    """ABI and creation bytecode of one contract type."""
    name: str
    abi: List[dict]
    bytecode: str


class ArtifactStore:
    """Looks up ``<directory>/<contract>.json`` artifacts."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self._cache: Dict[str, ContractArtifact] = {}

    def path_for(self, contract: str) -> Path:
        """Artifact file path for a contract type."""
        fname = contract if contract.endswith(".json") else f"{contract}.json"
        return self.directory / fname

    def load(self, contract: str) -> ContractArtifact:
        """Load an artifact.

        :param contract:
            Contract type, e.g. ``VaultManager``

        :raise ArtifactNotFound:
            If the file is missing or has no ABI
        """
        if contract in self._cache:
            return self._cache[contract]

        path = self.path_for(contract)
        if not path.exists():
            raise ArtifactNotFound(
                f"No artifact for contract {contract} at {path}",
                suggestions=["Compile the contracts or point 'artifacts' at the build directory"]
            )

        with open(path, "rt", encoding="utf-8") as f:
            data = json.load(f)

        if "abi" not in data:
            raise ArtifactNotFound(f"Artifact {path} has no 'abi' entry")

        bytecode = data.get("bytecode", "")
        # Foundry nests the hex under "object"
        if isinstance(bytecode, dict):
            bytecode = bytecode.get("object", "")

        if bytecode and not bytecode.startswith("0x"):
            bytecode = "0x" + bytecode

        artifact = ContractArtifact(name=contract, abi=data["abi"], bytecode=bytecode)
        self._cache[contract] = artifact
        return artifact
