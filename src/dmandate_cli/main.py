"""
dmandate CLI main entry point.

Usage:
    dmandate [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import click
from rich.console import Console

from dmandate_core.config import CLUSTER_URLS
from dmandate_core.logging_config import setup_logging

from .commands import derive, mandates, payments, processor, subscriptions, users
from .config import CONFIG_FILE, load_config, reset_config, rpc_url_for, update_config

console = Console()


@click.group()
@click.version_option(package_name="dmandate", message="%(prog)s %(version)s")
@click.option("--network", type=click.Choice(sorted(CLUSTER_URLS)), help="Override the network")
@click.option("--keypair", "keypair_path", help="Override the keypair file")
@click.option("--program-id", help="Override the dmandate program ID")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, network: str | None, keypair_path: str | None, program_id: str | None, verbose: bool):
    """dmandate CLI - inspect and operate recurring Solana payment mandates."""
    ctx.ensure_object(dict)

    config = load_config()

    if network:
        config["network"] = network
    if keypair_path:
        config["keypair_path"] = keypair_path
    if program_id:
        config["program_id"] = program_id

    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    if verbose:
        setup_logging(level="DEBUG")


@cli.group("config")
def config_group():
    """Show or reset the stored configuration."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx):
    """Display current configuration."""
    config = ctx.obj["config"]

    console.print("\n[bold blue]dmandate configuration[/bold blue]\n")
    console.print(f"Config file: [dim]{CONFIG_FILE}[/dim]")
    console.print(f"Network: [cyan]{config['network']}[/cyan] ({rpc_url_for(config)})")
    console.print(f"Keypair: [cyan]{config['keypair_path']}[/cyan]")
    console.print(f"Program ID: [cyan]{config['program_id']}[/cyan]")
    if config.get("current_user"):
        console.print(f"Default user: [cyan]{config['current_user']['name']}[/cyan]")
    console.print()


@config_group.command("reset")
def config_reset():
    """Reset configuration to defaults."""
    reset_config()
    console.print("[green]✓ Configuration reset to defaults[/green]")


@cli.command("set-network")
@click.argument("network", type=click.Choice(sorted(CLUSTER_URLS)))
def set_network(network: str):
    """Set the Solana network to use."""
    update_config(network=network)
    console.print(f"[green]✓ Network set to {network}[/green] ({CLUSTER_URLS[network]})")


@cli.command("set-keypair")
@click.argument("path")
def set_keypair(path: str):
    """Set the keypair file path."""
    update_config(keypair_path=path)
    console.print(f"[green]✓ Keypair path set to {path}[/green]")


# Register command groups
cli.add_command(derive.derive)
cli.add_command(mandates.mandate)
cli.add_command(payments.payment)
cli.add_command(subscriptions.subscriptions)
cli.add_command(processor.processor)
cli.add_command(users.register_user)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
