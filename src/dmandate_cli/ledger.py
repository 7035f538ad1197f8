"""Ledger access helpers shared by the CLI commands."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, Dict, TypeVar

from dmandate_core.gateway import SolanaLedgerGateway

from .config import rpc_url_for

T = TypeVar("T")


def build_gateway(config: Dict[str, Any]) -> SolanaLedgerGateway:
    return SolanaLedgerGateway(
        rpc_url=rpc_url_for(config),
        program_id=config["program_id"],
        keypair_path=config["keypair_path"],
    )


@asynccontextmanager
async def connected(config: Dict[str, Any], *, signer: bool = False) -> AsyncIterator[Any]:
    """Yield a connected gateway; read-only commands skip loading the keypair."""
    gateway = build_gateway(config)
    await gateway.connect(require_signer=signer)
    try:
        yield gateway
    finally:
        await gateway.close()


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)
