"""Web3 chain client against an in-process test chain."""

import json
import secrets

import pytest
from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3, EthereumTesterProvider

from chain_deploy.chain.artifacts import ArtifactStore
from chain_deploy.chain.web3_client import Web3ChainClient
from chain_deploy.utils.errors import DeploymentError, TransactionFailed

# Hand-assembled contract. The constructor ignores its argument and installs
# a runtime that stops when called with exactly one word of arguments
# (``setPeer(address)``) and reverts otherwise (``fail()``).
PEER_RUNTIME = "36602414600b57600080fd5b00"
PEER_BYTECODE = "0x600d80600b6000396000f3" + PEER_RUNTIME

PEER_ABI = [
    {
        "type": "constructor",
        "inputs": [{"name": "owner", "type": "address"}],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "setPeer",
        "inputs": [{"name": "peer", "type": "address"}],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "fail",
        "inputs": [],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
]

# Lower case on purpose, web3 only accepts checksummed addresses
PEER_ADDRESS = "0xcde42733e82f663b671575bc30183709dd89d2a9"


@pytest.fixture
def tester_provider():
    return EthereumTesterProvider()


@pytest.fixture
def web3(tester_provider):
    """Set up a local unit testing blockchain."""
    return Web3(tester_provider)


@pytest.fixture()
def deployer(web3) -> LocalAccount:
    """Fresh key funded from the test chain's unlocked account."""
    account = Account.from_key(HexBytes(secrets.token_bytes(32)))
    web3.eth.send_transaction({"from": web3.eth.accounts[0], "to": account.address, "value": 10 * 10**18})
    return account


@pytest.fixture()
def artifacts(tmp_path) -> ArtifactStore:
    (tmp_path / "Peer.json").write_text(json.dumps({"abi": PEER_ABI, "bytecode": PEER_BYTECODE}))
    return ArtifactStore(str(tmp_path))


@pytest.fixture()
def client(web3, deployer, artifacts) -> Web3ChainClient:
    return Web3ChainClient(web3, deployer, artifacts, receipt_timeout=10)


def test_deploy_contract(web3, client):
    """Deployment returns the mined address and transaction hash."""
    result = client.deploy("Peer", [PEER_ADDRESS])

    assert Web3.is_checksum_address(result.address)
    assert web3.eth.get_code(result.address) == HexBytes(PEER_RUNTIME)

    receipt = web3.eth.get_transaction_receipt(result.tx_hash)
    assert receipt["status"] == 1
    assert receipt["contractAddress"] == result.address


def test_call_method(web3, client, deployer):
    """Calls accept the lower case addresses found in plans and records."""
    address = client.deploy("Peer", [PEER_ADDRESS]).address

    result = client.call("Peer", address.lower(), "setPeer", [PEER_ADDRESS])

    receipt = web3.eth.get_transaction_receipt(result.tx_hash)
    assert receipt["status"] == 1
    assert receipt["to"] == address
    assert web3.eth.get_transaction_count(deployer.address) == 2


def test_reverted_call_is_reported(web3, deployer, artifacts):
    """A reverting method surfaces as a deployment error, with or without gas estimation."""
    estimating = Web3ChainClient(web3, deployer, artifacts)
    address = estimating.deploy("Peer", [PEER_ADDRESS]).address

    with pytest.raises(DeploymentError) as exc_info:
        estimating.call("Peer", address, "fail", [])
    assert "revert" in exc_info.value.message.lower()

    fixed_gas = Web3ChainClient(web3, deployer, artifacts, gas=100_000)
    with pytest.raises(DeploymentError) as exc_info:
        fixed_gas.call("Peer", address, "fail", [])
    assert "revert" in exc_info.value.message.lower()


def test_failed_receipt_raises(web3, client, monkeypatch):
    """A receipt with status 0 raises TransactionFailed carrying the hash."""
    address = client.deploy("Peer", [PEER_ADDRESS]).address
    wait_for_receipt = web3.eth.wait_for_transaction_receipt

    def reverted_receipt(tx_hash, timeout=120):
        return {**wait_for_receipt(tx_hash, timeout=timeout), "status": 0}

    monkeypatch.setattr(web3.eth, "wait_for_transaction_receipt", reverted_receipt)

    with pytest.raises(TransactionFailed) as exc_info:
        client.call("Peer", address, "setPeer", [PEER_ADDRESS])

    assert exc_info.value.tx_hash.startswith("0x")
    assert exc_info.value.context.tx_hash == exc_info.value.tx_hash
    assert "reverted" in exc_info.value.message


def test_unknown_method(client):
    address = client.deploy("Peer", [PEER_ADDRESS]).address

    with pytest.raises(DeploymentError) as exc_info:
        client.call("Peer", address, "setManager", [PEER_ADDRESS])
    assert exc_info.value.context.method == "setManager"
