"""User registration."""
from __future__ import annotations

import click
from rich.console import Console

from dmandate_core.derivation import find_user_address
from dmandate_core.exceptions import DMandateException, ProgramError, ProgramErrorCode

from .. import ledger
from ..config import update_config

console = Console()


@click.command("register-user")
@click.argument("name")
@click.option("-s", "--save", is_flag=True, help="Save this user as the default user")
@click.pass_context
def register_user(ctx, name: str, save: bool):
    """Register the configured keypair as a dmandate user."""
    config = ctx.obj["config"]

    async def _register():
        async with ledger.connected(config, signer=True) as gateway:
            signature = await gateway.submit_register_user(name)
            user, _ = find_user_address(gateway.signer, gateway.program_id)
            return signature, gateway.signer, user

    console.print(f'Registering user "{name}"...')
    try:
        signature, authority, user = ledger.run(_register())
    except ProgramError as e:
        if e.code == ProgramErrorCode.ACCOUNT_ALREADY_IN_USE:
            console.print("[red]Error: this wallet is already registered[/red]")
        else:
            console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    console.print("[green]✓ User registered[/green]")
    console.print(f"  User account: [cyan]{user}[/cyan]")
    console.print(f"  Transaction: [cyan]{signature}[/cyan]")

    if save:
        update_config(
            current_user={"name": name, "public_key": str(authority), "user_account": str(user)}
        )
        console.print(f'[green]✓ User "{name}" saved as default user[/green]')
