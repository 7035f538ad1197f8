"""User subscription overview."""
from __future__ import annotations

import click
from rich.console import Console

from dmandate_core.exceptions import AccountNotFoundError, DMandateException
from dmandate_core.solana.keys import load_keypair

from .. import ledger
from .mandates import mandate_table

console = Console()


@click.command()
@click.option("--owner", help="Wallet address (default: the configured keypair)")
@click.pass_context
def subscriptions(ctx, owner: str | None):
    """Show a user's outgoing and incoming mandates."""
    config = ctx.obj["config"]

    try:
        if owner is None:
            owner = str(load_keypair(config["keypair_path"]).pubkey)
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    async def _fetch():
        async with ledger.connected(config) as gateway:
            try:
                user = await gateway.get_user(owner)
            except AccountNotFoundError:
                user = None
            outgoing = await gateway.list_mandates_for(payer=owner)
            incoming = await gateway.list_mandates_for(payee=owner)
            return user, outgoing, incoming

    console.print(f"Getting subscriptions for [cyan]{owner}[/cyan]...")
    try:
        user, outgoing, incoming = ledger.run(_fetch())
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    if user is None:
        console.print("[yellow]User not registered with the dmandate program[/yellow]")
    else:
        console.print(f"\n[bold blue]{user.name}[/bold blue]")
        console.print(f"Outgoing subscriptions: {user.outgoing_subscriptions_count}")
        console.print(f"Incoming subscriptions: {user.incoming_subscriptions_count}")

    if outgoing:
        console.print(mandate_table(outgoing, "Outgoing Mandates"))
    else:
        console.print("\n[dim]No outgoing mandates found[/dim]")

    if incoming:
        console.print(mandate_table(incoming, "Incoming Mandates"))
    else:
        console.print("\n[dim]No incoming mandates found[/dim]")
