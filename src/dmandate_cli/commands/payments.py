"""Payment commands."""
from __future__ import annotations

import click
from rich.console import Console
from rich.progress import Progress

from dmandate_core.exceptions import AccountNotFoundError, DMandateException
from dmandate_core.executor import PaymentExecutor
from dmandate_core.models import OutcomeKind

from .. import ledger
from .mandates import format_timestamp, history_table

console = Console()


@click.group()
def payment():
    """Payment execution and history commands."""
    pass


@payment.command()
@click.argument("mandate_address")
@click.pass_context
def execute(ctx, mandate_address: str):
    """Execute the next payment of a mandate."""
    config = ctx.obj["config"]

    async def _execute():
        async with ledger.connected(config, signer=True) as gateway:
            m = await gateway.get_mandate(mandate_address)
            console.print(f"Executing payment #{m.payment_count} for mandate {m.address}...")
            return m, await PaymentExecutor(gateway).execute(m)

    try:
        with Progress(transient=True) as progress:
            progress.add_task("Submitting payment...", total=None)
            m, outcome = ledger.run(_execute())
    except AccountNotFoundError:
        console.print("[yellow]Mandate not found or has been cancelled[/yellow]")
        raise SystemExit(1)
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    if outcome.kind == OutcomeKind.SUCCESS:
        console.print("\n[green]✓ Payment executed successfully[/green]")
        console.print(f"  Transaction: [cyan]{outcome.transaction_ref}[/cyan]")
        console.print(f"  Amount: {m.amount}")
        console.print(f"  Payment record: [cyan]{outcome.payment_record}[/cyan]")
    elif outcome.kind == OutcomeKind.SKIPPED_NOT_YET_DUE:
        console.print("[yellow]Cannot execute payment yet - next payout has not been reached[/yellow]")
        console.print(f"  Next payout: {format_timestamp(m.next_payout)}")
    else:
        console.print(f"[red]Payment failed: {outcome.reason.value}[/red]")
        if outcome.detail:
            console.print(f"  Detail: {outcome.detail}")
        raise SystemExit(1)


@payment.command()
@click.argument("mandate_address")
@click.pass_context
def history(ctx, mandate_address: str):
    """List the open payment records of a mandate."""
    config = ctx.obj["config"]

    async def _fetch():
        async with ledger.connected(config) as gateway:
            m = await gateway.get_mandate(mandate_address)
            return await gateway.list_payment_records(m)

    try:
        records = ledger.run(_fetch())
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    if not records:
        console.print("[dim]No payment history found[/dim]")
        return

    console.print(history_table(records))


@payment.command()
@click.argument("mandate_address")
@click.argument("payment_number", type=int)
@click.pass_context
def close(ctx, mandate_address: str, payment_number: int):
    """Close a payment record to reclaim rent."""
    config = ctx.obj["config"]

    async def _close():
        async with ledger.connected(config, signer=True) as gateway:
            return await gateway.submit_close_payment_record(mandate_address, payment_number)

    console.print(f"Closing payment record #{payment_number} of mandate {mandate_address}...")
    try:
        signature = ledger.run(_close())
    except DMandateException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise SystemExit(1)

    console.print("[green]✓ Payment record closed[/green]")
    console.print(f"  Transaction: [cyan]{signature}[/cyan]")
