"""Main CLI entry point."""

import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table

from chain_deploy.chain.artifacts import ArtifactStore
from chain_deploy.chain.base import ChainClient
from chain_deploy.chain.web3_client import Web3ChainClient
from chain_deploy.orchestrator.executor import ExecutionStatus
from chain_deploy.orchestrator.orchestrator import DeploymentOrchestrator
from chain_deploy.orchestrator.planner import DeploymentPlanner
from chain_deploy.plan.parser import ConfigValidationError, PlanLoader
from chain_deploy.state.manager import RecordManager
from chain_deploy.state.models import DeploymentRecord
from chain_deploy.utils.errors import (
    DeployError,
    DeploymentCancelledError,
    DeploymentError,
    PlanError,
    error_handler,
)
from chain_deploy.utils.logging import setup_logging, get_logger

console = Console()
logger = get_logger(__name__)

STATUS_STYLES = {
    'pending': 'dim',
    'deployed': 'green',
    'applied': 'green',
    'failed': 'red',
}


@click.group()
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.pass_context
def cli(ctx, log_level):
    """Sequenced smart contract deployment."""
    ctx.ensure_object(dict)
    ctx.obj['log_level'] = log_level
    setup_logging(log_level)


def load_plan_file(plan_path: str) -> PlanLoader:
    """Load and validate the plan file, exiting on errors."""
    loader = PlanLoader(plan_path)
    try:
        loader.load()
        return loader
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Plan file not found: {plan_path}")
        sys.exit(1)
    except ConfigValidationError as e:
        console.print("[red]Plan file validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(1)


def validate_plan(loader: PlanLoader) -> None:
    """Validate the plan's dependency graph, exiting on errors."""
    try:
        DeploymentPlanner().validate(loader.plan_file.plan)
    except PlanError as e:
        console.print(f"[red]Plan is invalid:[/red] {e.message}")
        sys.exit(1)


def get_network(loader: PlanLoader, network: str):
    """Look up a network, exiting when it is not configured."""
    try:
        return loader.get_network(network)
    except ConfigValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def get_record_path(plan_name: str, network: str, override: Optional[str] = None) -> Path:
    """Get record file path for a plan on a network."""
    if override:
        return Path(override)
    return Path.cwd() / ".chain-deploy" / "records" / f"{plan_name}-{network}.json"


def create_client(loader: PlanLoader, network: str) -> ChainClient:
    """Create the chain client for a network."""
    network_config = loader.get_network(network)
    artifacts = ArtifactStore(loader.plan_file.artifacts)
    return Web3ChainClient.from_network(network_config, artifacts)


def print_record(record: DeploymentRecord, loader: PlanLoader) -> None:
    """Render units and wiring steps with their recorded status."""
    plan = loader.plan_file.plan

    units_table = Table(title="Units", show_header=True, header_style="bold")
    units_table.add_column("Unit", style="cyan")
    units_table.add_column("Contract")
    units_table.add_column("Status")
    units_table.add_column("Address / Error")
    for unit in plan.units:
        status = record.unit_status(unit.name).value
        entry = record.units.get(unit.name)
        detail = (entry.address or entry.error or "") if entry else ""
        units_table.add_row(unit.name, unit.contract, f"[{STATUS_STYLES[status]}]{status}[/]", detail)
    console.print(units_table)

    if plan.wiring:
        steps_table = Table(title="Wiring", show_header=True, header_style="bold")
        steps_table.add_column("#", justify="right")
        steps_table.add_column("Call", style="cyan")
        steps_table.add_column("Status")
        steps_table.add_column("Detail")
        for index, step in enumerate(plan.wiring):
            status = record.step_status(index).value
            entry = record.steps.get(index)
            detail = (entry.error or entry.tx_hash or "") if entry else (step.description or "")
            steps_table.add_row(str(index), step.label(), f"[{STATUS_STYLES[status]}]{status}[/]", detail)
        console.print(steps_table)


class RichProgressCallback:
    """Progress callback that displays updates using Rich."""

    def __init__(self, progress: Progress, task_id, total: int):
        self.progress = progress
        self.task_id = task_id
        self.completed = 0
        self.progress.update(self.task_id, total=total)

    def __call__(self, name: str, status: ExecutionStatus, message: Optional[str]) -> None:
        if status == ExecutionStatus.IN_PROGRESS:
            self.progress.update(self.task_id, description=f"[cyan]Running:[/cyan] {name}")
        elif status == ExecutionStatus.SUCCESS:
            self.completed += 1
            self.progress.update(
                self.task_id,
                completed=self.completed,
                description=f"[green]✓[/green] {name}"
            )
        elif status == ExecutionStatus.FAILED:
            self.progress.update(self.task_id, description=f"[red]✗[/red] {name}")


@cli.command()
@click.argument('plan_path', type=click.Path())
def validate(plan_path):
    """Validate a plan file without deploying."""
    loader = load_plan_file(plan_path)
    validate_plan(loader)
    plan = loader.plan_file.plan

    console.print(Panel.fit(
        f"[green]Plan '{plan.name}' is valid[/green]\n\n"
        f"Units: {len(plan.units)}\n"
        f"Wiring steps: {len(plan.wiring)}\n"
        f"Networks: {', '.join(loader.plan_file.networks) or 'none'}",
        title="Validation",
        border_style="green"
    ))


@cli.command()
@click.argument('plan_path', type=click.Path())
@click.option('--network', required=True, help='Network identifier')
@click.option('--record', 'record_path', help='Path to the record file')
def plan(plan_path, network, record_path):
    """Show the actions a deploy would perform."""
    loader = load_plan_file(plan_path)
    validate_plan(loader)
    deployment_plan = loader.plan_file.plan

    record = None
    try:
        manager = RecordManager(str(get_record_path(deployment_plan.name, network, record_path)))
        record = manager.load_or_create(deployment_plan.name, network)
    except DeploymentError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)

    actions = DeploymentPlanner().execution_order(deployment_plan, record)

    table = Table(title=f"Plan '{deployment_plan.name}' on {network}", show_header=True, header_style="bold")
    table.add_column("Action")
    table.add_column("Target", style="cyan")
    table.add_column("Contract")
    table.add_column("Status")
    for action in actions:
        marker = "skip" if action.is_done() else "run"
        table.add_row(
            f"{action.action_type.value} ({marker})",
            action.name,
            action.contract,
            f"[{STATUS_STYLES[action.status]}]{action.status}[/]"
        )
    console.print(table)

    pending = [a for a in actions if not a.is_done()]
    console.print(f"\n{len(pending)} of {len(actions)} actions to run")


@cli.command()
@click.argument('plan_path', type=click.Path())
@click.option('--network', required=True, help='Network identifier')
@click.option('--record', 'record_path', help='Path to the record file')
@click.option('--yes', '-y', is_flag=True, help='Re-attempt failed steps without confirmation')
def deploy(plan_path, network, record_path, yes):
    """Deploy units and apply wiring steps, resuming from the record."""
    loader = load_plan_file(plan_path)
    validate_plan(loader)
    deployment_plan = loader.plan_file.plan
    get_network(loader, network)

    path = get_record_path(deployment_plan.name, network, record_path)
    manager = RecordManager(str(path))

    record = None
    try:
        with manager:
            record = manager.load_or_create(deployment_plan.name, network)

            if record.has_failures():
                failed = list(record.failed_units()) + [
                    f"wiring step {index}" for index in record.failed_steps()
                ]
                console.print(
                    f"[yellow]Previous run failed at:[/yellow] {', '.join(failed)}\n"
                    "A failed transaction may still have been mined. Check the chain before retrying."
                )
                if not yes and not click.confirm("Re-attempt the failed steps?"):
                    console.print("[dim]Aborted[/dim]")
                    sys.exit(1)

            console.print(Panel.fit(
                f"[bold]Deploying {deployment_plan.name} to {network}[/bold]\n"
                f"Record: {path}",
                title="Deployment",
                border_style="cyan"
            ))

            client = create_client(loader, network)
            orchestrator = DeploymentOrchestrator(client, record_manager=manager)
            total = len(DeploymentPlanner().pending_actions(deployment_plan, record))

            # Ctrl-C during the run stops between transactions; before this
            # point (including the confirmation prompt) it aborts as usual
            cancel_event = threading.Event()

            def signal_handler(sig, frame):
                console.print("\n[yellow]Stopping after the current transaction...[/yellow]")
                cancel_event.set()

            previous_handler = signal.signal(signal.SIGINT, signal_handler)
            try:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    console=console
                ) as progress:
                    task_id = progress.add_task("[cyan]Starting deployment...", total=None)
                    orchestrator.run(
                        deployment_plan,
                        record,
                        cancel_event=cancel_event,
                        progress_callback=RichProgressCallback(progress, task_id, total)
                    )
            finally:
                signal.signal(signal.SIGINT, previous_handler)

        console.print()
        print_record(record, loader)
        console.print(Panel.fit(
            f"[green]✓ Deployment complete[/green]\n\n"
            f"Units: {len(record.addresses())}\n"
            f"Wiring steps applied: {record.step_index}",
            border_style="green"
        ))

    except DeploymentCancelledError as e:
        console.print(f"\n[yellow]{e.message}[/yellow]")
        console.print(f"Progress saved to {path}")
        sys.exit(130)
    except DeployError as e:
        if record is not None:
            console.print()
            print_record(record, loader)
        console.print(f"\n[red]Deployment failed:[/red]\n{e.to_user_message()}")
        sys.exit(1)
    except DeploymentError as e:
        error_handler.log_error(e)
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)


@cli.command()
@click.argument('plan_path', type=click.Path())
@click.option('--network', required=True, help='Network identifier')
@click.option('--record', 'record_path', help='Path to the record file')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table', help='Output format')
def status(plan_path, network, record_path, output_format):
    """Show recorded addresses and step status."""
    loader = load_plan_file(plan_path)
    deployment_plan = loader.plan_file.plan
    path = get_record_path(deployment_plan.name, network, record_path)
    manager = RecordManager(str(path))

    if not manager.exists():
        console.print(f"[yellow]No record found for {deployment_plan.name} on {network}[/yellow]")
        return

    try:
        record = manager.load()
    except DeploymentError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)

    if output_format == 'json':
        console.print_json(record.model_dump_json())
    else:
        print_record(record, loader)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
