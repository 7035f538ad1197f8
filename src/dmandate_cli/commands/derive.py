"""Address derivation commands (offline)."""
from __future__ import annotations

import click
from rich.console import Console

from dmandate_core.derivation import (
    find_mandate_address,
    find_payment_record_address,
    find_token_holding_address,
    find_user_address,
)
from dmandate_core.exceptions import InvalidAddressError

console = Console()


@click.group()
def derive():
    """Derive program addresses without touching the network."""
    pass


def _print_address(label: str, address, bump: int | None = None) -> None:
    console.print(f"{label}: [cyan]{address}[/cyan]")
    if bump is not None:
        console.print(f"Bump: {bump}")


@derive.command()
@click.argument("owner")
@click.pass_context
def user(ctx, owner: str):
    """User account of OWNER."""
    try:
        address, bump = find_user_address(owner, ctx.obj["config"]["program_id"])
    except InvalidAddressError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)
    _print_address("User PDA", address, bump)


@derive.command()
@click.argument("payer")
@click.argument("payee")
@click.pass_context
def mandate(ctx, payer: str, payee: str):
    """Mandate account between PAYER and PAYEE."""
    try:
        address, bump = find_mandate_address(payer, payee, ctx.obj["config"]["program_id"])
    except InvalidAddressError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)
    _print_address("Mandate PDA", address, bump)


@derive.command("payment-record")
@click.argument("mandate_address")
@click.argument("payment_number", type=int)
@click.pass_context
def payment_record(ctx, mandate_address: str, payment_number: int):
    """Payment record #PAYMENT_NUMBER of MANDATE_ADDRESS."""
    try:
        address, bump = find_payment_record_address(
            mandate_address, payment_number, ctx.obj["config"]["program_id"]
        )
    except InvalidAddressError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)
    _print_address("Payment record PDA", address, bump)


@derive.command("token-account")
@click.argument("owner")
@click.argument("mint")
def token_account(owner: str, mint: str):
    """Associated token account of OWNER for MINT."""
    try:
        address = find_token_holding_address(owner, mint)
    except InvalidAddressError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)
    _print_address("Token account", address)
