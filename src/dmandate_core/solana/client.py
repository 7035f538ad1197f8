"""Solana RPC client wrapper."""
from __future__ import annotations

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..exceptions import (
    LedgerRPCError,
    LedgerTransportError,
    TransactionTimeoutError,
    exception_from_rpc_error,
    program_error_from_tx_error,
)

logger = logging.getLogger(__name__)


@dataclass
class SolanaConfig:
    """Solana connection configuration."""
    rpc_url: str
    commitment: str = "confirmed"
    timeout: float = 30.0
    confirm_timeout: float = 60.0
    confirm_poll_interval: float = 0.5


@dataclass
class KeyedAccount:
    """Raw account returned by getProgramAccounts / getAccountInfo."""
    address: str
    data: bytes
    owner: str
    lamports: int


class SolanaClient:
    """Async Solana JSON-RPC client.

    Uses raw httpx instead of solana-py to minimize dependencies.
    All Solana RPC methods are called via JSON-RPC 2.0.
    """

    def __init__(
        self,
        config: SolanaConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout)
        self._request_id = 0

    async def _rpc(self, method: str, params: list[Any] | None = None) -> Any:
        """Make a JSON-RPC call to Solana."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        try:
            resp = await self._client.post(self.config.rpc_url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise LedgerTransportError(
                f"RPC request {method} to {self.config.rpc_url} failed: {e}",
                details={"method": method},
            ) from e
        try:
            data = resp.json()
        except ValueError as e:
            raise LedgerTransportError(
                f"RPC response to {method} is not valid JSON",
                details={"method": method},
            ) from e
        if "error" in data:
            error = data["error"]
            error_data = error.get("data") or {}
            logs = error_data.get("logs") if isinstance(error_data, dict) else None
            raise LedgerRPCError(
                error.get("message", "Unknown RPC error"),
                method=method,
                rpc_code=error.get("code"),
                logs=logs,
                details={"err": error_data.get("err")} if isinstance(error_data, dict) else None,
            )
        return data.get("result")

    async def get_health(self) -> str:
        """Return "ok" when the node is healthy."""
        return await self._rpc("getHealth")

    async def get_version(self) -> dict[str, Any]:
        return await self._rpc("getVersion")

    async def get_program_accounts(
        self,
        program_id: str,
        filters: list[dict[str, Any]] | None = None,
    ) -> list[KeyedAccount]:
        """Fetch every account owned by a program, optionally filtered."""
        options: dict[str, Any] = {
            "encoding": "base64",
            "commitment": self.config.commitment,
        }
        if filters:
            options["filters"] = filters
        result = await self._rpc("getProgramAccounts", [program_id, options])
        return [
            _keyed_account(item["pubkey"], item["account"])
            for item in result or []
        ]

    async def get_account_info(self, address: str) -> Optional[KeyedAccount]:
        """Fetch one account; None if it does not exist."""
        result = await self._rpc(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.config.commitment}],
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        return _keyed_account(address, value)

    async def get_latest_blockhash(self) -> str:
        """Get latest blockhash for transaction building."""
        result = await self._rpc(
            "getLatestBlockhash", [{"commitment": self.config.commitment}]
        )
        return result["value"]["blockhash"]

    async def send_raw_transaction(self, signed_tx_base64: str) -> str:
        """Send a signed transaction. Returns transaction signature.

        Preflight failures are mapped to ProgramError when recognizable.
        """
        try:
            result = await self._rpc(
                "sendTransaction",
                [
                    signed_tx_base64,
                    {
                        "encoding": "base64",
                        "skipPreflight": False,
                        "preflightCommitment": self.config.commitment,
                    },
                ],
            )
        except LedgerRPCError as e:
            raise exception_from_rpc_error(e, e.details.get("err")) from e
        logger.debug("Solana tx sent: %s", result)
        return result

    async def get_signature_status(self, signature: str) -> Optional[dict[str, Any]]:
        result = await self._rpc(
            "getSignatureStatuses", [[signature], {"searchTransactionHistory": False}]
        )
        statuses = (result or {}).get("value") or []
        if not statuses:
            return None
        return statuses[0]

    async def confirm_transaction(
        self, signature: str, commitment: str | None = None
    ) -> bool:
        """Check once whether a transaction reached the desired commitment level."""
        status = await self.get_signature_status(signature)
        if status is None:
            return False
        if status.get("err"):
            mapped = program_error_from_tx_error(status["err"])
            if mapped is not None:
                mapped.details["signature"] = signature
                raise mapped
            raise LedgerRPCError(
                f"Transaction failed: {status['err']}",
                method="getSignatureStatuses",
                details={"signature": signature, "err": status["err"]},
            )
        target = commitment or self.config.commitment
        confirmation = status.get("confirmationStatus", "")
        if target == "finalized":
            return confirmation == "finalized"
        if target == "confirmed":
            return confirmation in ("confirmed", "finalized")
        return confirmation in ("processed", "confirmed", "finalized")

    async def wait_for_confirmation(self, signature: str) -> None:
        """Poll until the transaction is confirmed or the timeout elapses."""
        deadline = time.monotonic() + self.config.confirm_timeout
        while True:
            if await self.confirm_transaction(signature):
                return
            if time.monotonic() >= deadline:
                raise TransactionTimeoutError(
                    f"Transaction {signature} not confirmed within "
                    f"{self.config.confirm_timeout:.0f}s",
                    signature=signature,
                )
            await asyncio.sleep(self.config.confirm_poll_interval)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def _keyed_account(address: str, account: dict[str, Any]) -> KeyedAccount:
    raw = account.get("data") or ["", "base64"]
    encoded = raw[0] if isinstance(raw, list) else raw
    return KeyedAccount(
        address=address,
        data=base64.b64decode(encoded),
        owner=account.get("owner", ""),
        lamports=int(account.get("lamports", 0)),
    )
