"""Mandate commands."""
from __future__ import annotations

import time
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

from dmandate_core.derivation import find_mandate_address
from dmandate_core.exceptions import (
    AccountNotFoundError,
    DMandateException,
    ProgramError,
    ProgramErrorCode,
)
from dmandate_core.models import Mandate, PaymentRecord
from dmandate_core.payability import is_payable

from .. import ledger

console = Console()


def format_timestamp(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def print_mandate(mandate: Mandate) -> None:
    console.print(f"\n[bold blue]Mandate {mandate.address}[/bold blue]\n")
    console.print(f"Name: {mandate.name}")
    if mandate.description:
        console.print(f"Description: {mandate.description}")
    console.print(f"Payer: [cyan]{mandate.payer}[/cyan]")
    console.print(f"Payee: [cyan]{mandate.payee}[/cyan]")
    console.print(f"Token: [cyan]{mandate.token}[/cyan]")
    console.print(f"Amount: {mandate.amount}")
    console.print(f"Frequency: {mandate.frequency} seconds")
    status = "[green]active[/green]" if mandate.active else "[yellow]inactive[/yellow]"
    console.print(f"Status: {status}")
    console.print(f"Next payout: {format_timestamp(mandate.next_payout)}")
    console.print(f"Payment count: {mandate.payment_count}")


def mandate_table(mandates: list[Mandate], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Mandate", style="cyan")
    table.add_column("Name")
    table.add_column("Payer")
    table.add_column("Payee")
    table.add_column("Amount", justify="right")
    table.add_column("Next payout")
    table.add_column("Payments", justify="right")
    table.add_column("Active")

    for m in mandates:
        table.add_row(
            str(m.address),
            m.name,
            str(m.payer)[:12] + "...",
            str(m.payee)[:12] + "...",
            str(m.amount),
            format_timestamp(m.next_payout),
            str(m.payment_count),
            "yes" if m.active else "no",
        )
    return table


def history_table(records: list[PaymentRecord]) -> Table:
    table = Table(title="Payment History")
    table.add_column("#", justify="right")
    table.add_column("Record", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Executed")
    for record in records:
        table.add_row(
            str(record.payment_number),
            str(record.address),
            str(record.amount),
            format_timestamp(record.timestamp),
        )
    return table


@click.group()
def mandate():
    """Mandate inspection and management commands."""
    pass


@mandate.command()
@click.argument("address")
@click.pass_context
def get(ctx, address: str):
    """Show a mandate and its open payment records."""
    config = ctx.obj["config"]

    async def _fetch():
        async with ledger.connected(config) as gateway:
            m = await gateway.get_mandate(address)
            return m, await gateway.list_payment_records(m)

    try:
        m, records = ledger.run(_fetch())
    except AccountNotFoundError:
        console.print("[yellow]Mandate not found or has been cancelled[/yellow]")
        raise SystemExit(1)
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    print_mandate(m)

    if not records:
        console.print("\n[dim]No payment history found[/dim]")
        return

    console.print(history_table(records))


@mandate.command("list")
@click.option("--payer", help="Only mandates paid by this address")
@click.option("--payee", help="Only mandates paid to this address")
@click.option("--due", is_flag=True, help="Only mandates payable now")
@click.option("--buffer", "buffer_seconds", default=60, show_default=True, help="Due buffer in seconds")
@click.pass_context
def list_mandates(ctx, payer: str | None, payee: str | None, due: bool, buffer_seconds: int):
    """List mandate accounts."""
    config = ctx.obj["config"]

    async def _fetch():
        async with ledger.connected(config) as gateway:
            if payer or payee:
                return await gateway.list_mandates_for(payer=payer, payee=payee)
            return await gateway.list_mandates()

    try:
        mandates = ledger.run(_fetch())
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    if due:
        now = int(time.time())
        mandates = [m for m in mandates if is_payable(m, now, buffer_seconds)]

    if not mandates:
        console.print("[dim]No mandates found[/dim]")
        return

    console.print(mandate_table(mandates, f"Mandates ({len(mandates)})"))


@mandate.command()
@click.argument("address")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def cancel(ctx, address: str, yes: bool):
    """Cancel an active mandate (signer must be the payer)."""
    config = ctx.obj["config"]

    if not yes and not click.confirm(f"Cancel mandate {address}?"):
        console.print("[dim]Aborted[/dim]")
        return

    async def _cancel():
        async with ledger.connected(config, signer=True) as gateway:
            m = await gateway.get_mandate(address)
            if m.payer != gateway.signer:
                return None
            return await gateway.submit_cancel_mandate(m)

    try:
        signature = ledger.run(_cancel())
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    if signature is None:
        console.print("[red]Error: only the payer can cancel this mandate[/red]")
        raise SystemExit(1)

    console.print("[green]✓ Mandate cancelled[/green]")
    console.print(f"  Transaction: [cyan]{signature}[/cyan]")


@mandate.command()
@click.argument("payee")
@click.argument("token")
@click.argument("amount", type=click.IntRange(min=1))
@click.argument("frequency", type=click.IntRange(min=1))
@click.argument("name")
@click.argument("description")
@click.pass_context
def create(ctx, payee: str, token: str, amount: int, frequency: int, name: str, description: str):
    """Create a mandate paying AMOUNT base units of TOKEN every FREQUENCY seconds."""
    config = ctx.obj["config"]

    async def _create():
        async with ledger.connected(config, signer=True) as gateway:
            signature = await gateway.submit_create_mandate(
                payee, token, amount, frequency, name, description
            )
            address, _ = find_mandate_address(gateway.signer, payee, gateway.program_id)
            return signature, address

    console.print(f"Creating mandate to [cyan]{payee}[/cyan]...")
    try:
        signature, address = ledger.run(_create())
    except ProgramError as e:
        if e.code == ProgramErrorCode.ACCOUNT_ALREADY_IN_USE:
            console.print("[red]Error: a mandate to this payee already exists[/red]")
        else:
            console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    console.print("[green]✓ Mandate created[/green]")
    console.print(f"  Mandate: [cyan]{address}[/cyan]")
    console.print(f"  Transaction: [cyan]{signature}[/cyan]")


@mandate.command()
@click.argument("address")
@click.argument("amount", type=click.IntRange(min=0))
@click.pass_context
def reapprove(ctx, address: str, amount: int):
    """Set a new delegation AMOUNT on a mandate (signer must be the payer)."""
    config = ctx.obj["config"]

    async def _reapprove():
        async with ledger.connected(config, signer=True) as gateway:
            m = await gateway.get_mandate(address)
            if m.payer != gateway.signer:
                return None
            return await gateway.submit_reapprove_mandate(m, amount)

    console.print(f"Reapproving mandate [cyan]{address}[/cyan] for {amount}...")
    try:
        signature = ledger.run(_reapprove())
    except AccountNotFoundError:
        console.print("[yellow]Mandate not found or has been cancelled[/yellow]")
        raise SystemExit(1)
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    if signature is None:
        console.print("[red]Error: only the payer can reapprove this mandate[/red]")
        raise SystemExit(1)

    console.print("[green]✓ Mandate reapproved[/green]")
    console.print(f"  Transaction: [cyan]{signature}[/cyan]")
