"""Command line interface, driven with click's test runner and a fake chain."""

import importlib
import json
import logging
import shutil
import signal
from pathlib import Path

import pytest
from click.testing import CliRunner

from chain_deploy.state.manager import RecordManager
from chain_deploy.state.models import StepStatus, UnitStatus
from chain_deploy.utils.logging import ConsoleFormatter, JSONFormatter

cli_main = importlib.import_module("chain_deploy.cli.main")

EXAMPLE_PLAN = Path(__file__).parent.parent / "examples" / "vault_plan.yaml"


@pytest.fixture()
def workdir(tmp_path, monkeypatch):
    """Run commands in a scratch directory holding a copy of the vault plan."""
    shutil.copy(EXAMPLE_PLAN, tmp_path / "vault_plan.yaml")
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    # The CLI points the root logger at the runner's streams
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler.formatter, (ConsoleFormatter, JSONFormatter)):
            root_logger.removeHandler(handler)
            handler.close()


@pytest.fixture()
def fake_chain(client, monkeypatch):
    monkeypatch.setattr(cli_main, "create_client", lambda loader, network: client)
    return client


def record_for(workdir: Path) -> RecordManager:
    return RecordManager(str(workdir / ".chain-deploy" / "records" / "vault-development.json"))


def test_validate_command(workdir):
    result = CliRunner().invoke(cli_main.cli, ["validate", "vault_plan.yaml"])

    assert result.exit_code == 0, result.output
    assert "is valid" in result.output
    assert "Wiring steps: 7" in result.output


def test_validate_reports_cycle(workdir):
    (workdir / "cycle.yaml").write_text("""
name: cycle
units:
  - name: A
    args: [{ref: B}]
  - name: B
    args: [{ref: A}]
""")
    result = CliRunner().invoke(cli_main.cli, ["validate", "cycle.yaml"])

    assert result.exit_code == 1
    assert "Circular reference" in result.output


def test_validate_missing_file(workdir):
    result = CliRunner().invoke(cli_main.cli, ["validate", "missing.yaml"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_plan_command(workdir):
    result = CliRunner().invoke(cli_main.cli, ["plan", "vault_plan.yaml", "--network", "development"])

    assert result.exit_code == 0, result.output
    assert "10 of 10 actions to run" in result.output


def test_deploy_and_status(workdir, fake_chain):
    runner = CliRunner()
    result = runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])

    assert result.exit_code == 0, result.output
    assert fake_chain.deployed_contracts() == ["VaultManager", "VaultController", "VaultStrategy"]
    assert len(fake_chain.called_methods()) == 7

    record = record_for(workdir).load()
    assert len(record.addresses()) == 3
    assert record.step_index == 7

    # Nothing left to do on the second run
    result = runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])
    assert result.exit_code == 0, result.output
    assert len(fake_chain.calls) == 10

    result = runner.invoke(cli_main.cli, ["plan", "vault_plan.yaml", "--network", "development"])
    assert "0 of 10 actions to run" in result.output

    result = runner.invoke(
        cli_main.cli, ["status", "vault_plan.yaml", "--network", "development", "--format", "json"]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["step_index"] == 7


def test_deploy_failure_then_retry(workdir, fake_chain):
    fake_chain.fail_contracts.add("VaultStrategy")
    runner = CliRunner()

    result = runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])

    assert result.exit_code == 1
    assert "Deployment failed" in result.output
    record = record_for(workdir).load()
    assert record.unit_status("VaultController") == UnitStatus.DEPLOYED
    assert record.unit_status("VaultStrategy") == UnitStatus.FAILED

    # Declining the confirmation leaves everything as it was
    fake_chain.fail_contracts.clear()
    result = runner.invoke(
        cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"], input="n\n"
    )
    assert result.exit_code == 1
    assert fake_chain.deployed_contracts() == ["VaultManager", "VaultController", "VaultStrategy"]

    result = runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development", "--yes"])
    assert result.exit_code == 0, result.output
    record = record_for(workdir).load()
    assert record.unit_status("VaultStrategy") == UnitStatus.DEPLOYED
    assert record.step_status(6) == StepStatus.APPLIED


def test_deploy_unknown_network(workdir, fake_chain):
    result = CliRunner().invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "mainnet"])

    assert result.exit_code == 1
    assert "not found" in result.output
    assert fake_chain.calls == []


def test_deploy_without_private_key(workdir, monkeypatch):
    monkeypatch.delenv("DEPLOYER_PRIVATE_KEY", raising=False)
    result = CliRunner().invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])

    assert result.exit_code == 1
    assert "DEPLOYER_PRIVATE_KEY" in result.output


def test_status_without_record(workdir):
    result = CliRunner().invoke(cli_main.cli, ["status", "vault_plan.yaml", "--network", "development"])

    assert result.exit_code == 0
    assert "No record found" in result.output


def test_interrupt_handler_covers_only_the_run(workdir, fake_chain, monkeypatch):
    """Ctrl-C at the retry prompt aborts normally, during the run it stops between transactions."""
    fake_chain.fail_contracts.add("VaultStrategy")
    runner = CliRunner()
    runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])
    fake_chain.fail_contracts.clear()

    original_handler = signal.getsignal(signal.SIGINT)
    handlers = {}

    def confirm(text, **kwargs):
        handlers["prompt"] = signal.getsignal(signal.SIGINT)
        return True

    deploy = fake_chain.deploy

    def deploy_and_record_handler(contract, args):
        handlers["run"] = signal.getsignal(signal.SIGINT)
        return deploy(contract, args)

    monkeypatch.setattr(cli_main.click, "confirm", confirm)
    monkeypatch.setattr(fake_chain, "deploy", deploy_and_record_handler)

    result = runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])

    assert result.exit_code == 0, result.output
    assert handlers["prompt"] is original_handler
    assert handlers["run"] is not original_handler
    assert signal.getsignal(signal.SIGINT) is original_handler


def test_deploy_refuses_changed_plan(workdir, fake_chain):
    """A record written for a different wiring order is not resumed."""
    runner = CliRunner()
    result = runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])
    assert result.exit_code == 0, result.output

    plan_text = (workdir / "vault_plan.yaml").read_text()
    (workdir / "vault_plan.yaml").write_text(
        plan_text.replace("method: setManager", "method: setOperator", 1)
    )
    calls_before = len(fake_chain.calls)

    result = runner.invoke(cli_main.cli, ["deploy", "vault_plan.yaml", "--network", "development"])

    assert result.exit_code == 1
    assert "Wiring step 1" in result.output
    assert len(fake_chain.calls) == calls_before
