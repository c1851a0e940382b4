"""Chain client backed by web3.py and a locally held deployer key."""

import os
import re
from typing import Any, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from chain_deploy.chain.artifacts import ArtifactStore
from chain_deploy.chain.base import ChainClient, TransactionResult
from chain_deploy.plan.models import NetworkConfig
from chain_deploy.utils.errors import (
    ConfigurationError,
    DeploymentError,
    ErrorContext,
    TransactionFailed,
    error_handler,
)
from chain_deploy.utils.logging import get_logger

logger = get_logger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalise_argument(value: Any) -> Any:
    """Checksum address-shaped strings, recursing into lists.

    web3.py refuses non-checksummed addresses as ``address`` arguments,
    while plan files and records often carry lower case ones.
    """
    if isinstance(value, str) and _ADDRESS_RE.match(value):
        return Web3.to_checksum_address(value)
    if isinstance(value, (list, tuple)):
        return [normalise_argument(item) for item in value]
    return value


class Web3ChainClient(ChainClient):
    """Signs transactions locally, broadcasts them and waits for receipts."""

    def __init__(
        self,
        web3: Web3,
        deployer: LocalAccount,
        artifacts: ArtifactStore,
        gas: Optional[int] = None,
        receipt_timeout: int = 120,
    ):
        """
        :param web3:
            Connected Web3 instance

        :param deployer:
            Account that signs every deployment and call

        :param artifacts:
            Where compiled contracts are looked up

        :param gas:
            Fixed gas limit. Estimated per transaction when not set.

        :param receipt_timeout:
            Seconds to wait for each receipt
        """
        self.web3 = web3
        self.deployer = deployer
        self.artifacts = artifacts
        self.gas = gas
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_network(cls, network: NetworkConfig, artifacts: ArtifactStore) -> "Web3ChainClient":
        """Connect to a configured network.

        The deployer private key is read from the environment variable named
        by ``network.private_key_env``.

        :raise ConfigurationError:
            Missing or malformed key, or the RPC reports a different chain id

        :raise ChainError:
            The RPC cannot be reached while checking the chain id
        """
        private_key = os.environ.get(network.private_key_env)
        if not private_key:
            raise ConfigurationError(
                f"Environment variable {network.private_key_env} is not set",
                context=ErrorContext(network=network.name),
                suggestions=[f"export {network.private_key_env}=0x..."]
            )

        try:
            deployer = Account.from_key(private_key)
        except ValueError as e:
            raise ConfigurationError(
                f"Environment variable {network.private_key_env} does not hold a valid private key",
                context=ErrorContext(network=network.name),
                cause=e
            ) from e

        web3 = Web3(Web3.HTTPProvider(network.rpc_url))

        if network.chain_id is not None:
            try:
                chain_id = web3.eth.chain_id
            except Exception as e:
                raise error_handler.handle_exception(e, ErrorContext(network=network.name)) from e
            if chain_id != network.chain_id:
                raise ConfigurationError(
                    f"RPC for {network.name} reports chain id {chain_id}, expected {network.chain_id}",
                    context=ErrorContext(network=network.name)
                )

        logger.info(f"Connected to {network.name} as {deployer.address}")
        return cls(
            web3,
            deployer,
            artifacts,
            gas=network.gas,
            receipt_timeout=network.receipt_timeout,
        )

    def deploy(self, contract: str, args: List[Any]) -> TransactionResult:
        artifact = self.artifacts.load(contract)
        Contract = self.web3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        args = normalise_argument(list(args))

        try:
            tx_data = Contract.constructor(*args).build_transaction(self._tx_params())
            receipt = self._send(tx_data, f"Contract {contract} deployment with args {args}")
        except DeploymentError:
            raise
        except Exception as e:
            raise error_handler.handle_exception(e, ErrorContext(unit=contract)) from e

        return TransactionResult(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            address=receipt["contractAddress"],
        )

    def call(self, contract: str, address: str, method: str, args: List[Any]) -> TransactionResult:
        artifact = self.artifacts.load(contract)
        args = normalise_argument(list(args))

        try:
            instance = self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=artifact.abi)
            tx_data = instance.functions[method](*args).build_transaction(self._tx_params())
            receipt = self._send(tx_data, f"{contract}.{method}({args}) at {address}")
        except DeploymentError:
            raise
        except Exception as e:
            raise error_handler.handle_exception(e, ErrorContext(unit=contract, method=method)) from e

        return TransactionResult(tx_hash=Web3.to_hex(receipt["transactionHash"]))

    def _tx_params(self) -> dict:
        tx_params = {
            "from": self.deployer.address,
            "nonce": self.web3.eth.get_transaction_count(self.deployer.address, "pending"),
            "chainId": self.web3.eth.chain_id,
        }
        if self.gas:
            tx_params["gas"] = self.gas
        return tx_params

    def _send(self, tx_data: dict, what: str):
        """Sign, broadcast and wait for the receipt of a transaction.

        :raise TransactionFailed:
            The transaction was mined but reverted
        """
        signed_tx = self.deployer.sign_transaction(tx_data)
        tx_hash = self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.debug(f"Broadcast {Web3.to_hex(tx_hash)}: {what}")

        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt["status"] != 1:
            raise TransactionFailed(Web3.to_hex(tx_hash), f"{what} reverted, tx hash is {Web3.to_hex(tx_hash)}")
        return receipt
