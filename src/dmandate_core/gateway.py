"""Ledger gateway: typed reads and transaction submission for dmandate accounts.

The scheduler and the CLI talk to the ledger only through LedgerGateway, so a
fake gateway can be injected in tests.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

import base58
import httpx

from . import instructions
from .config import ProcessorSettings
from .derivation import (
    find_mandate_address,
    find_payment_record_address,
    find_token_holding_address,
    find_user_address,
)
from .exceptions import (
    AccountDecodeError,
    AccountNotFoundError,
    LedgerError,
    ProgramError,
    ProgramErrorCode,
)
from .instructions import ExecutePaymentAccounts
from .models import (
    MANDATE_ACCOUNT,
    MANDATE_PAYEE_OFFSET,
    MANDATE_PAYER_OFFSET,
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_USER_NAME_LENGTH,
    Mandate,
    PaymentRecord,
    UserAccount,
)
from .solana.borsh import account_discriminator
from .solana.client import KeyedAccount, SolanaClient, SolanaConfig
from .solana.keys import Keypair, Pubkey, PubkeyLike, as_pubkey, load_keypair
from .solana.transaction import Instruction, sign_transaction

logger = logging.getLogger(__name__)


@runtime_checkable
class LedgerGateway(Protocol):
    """Port used by the payment executor and the scheduler."""

    @property
    def program_id(self) -> Pubkey: ...

    @property
    def signer(self) -> Pubkey: ...

    async def connect(self) -> None: ...

    async def list_mandates(self) -> list[Mandate]: ...

    async def get_mandate(self, address: PubkeyLike) -> Mandate: ...

    async def submit_execute_payment(self, accounts: ExecutePaymentAccounts) -> str: ...

    async def close(self) -> None: ...


class SolanaLedgerGateway:
    """LedgerGateway backed by Solana JSON-RPC."""

    def __init__(
        self,
        rpc_url: str,
        program_id: PubkeyLike,
        keypair_path: Union[str, Path, None] = None,
        *,
        keypair: Optional[Keypair] = None,
        commitment: str = "confirmed",
        rpc_timeout: float = 30.0,
        confirm_timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._config = SolanaConfig(
            rpc_url=rpc_url,
            commitment=commitment,
            timeout=rpc_timeout,
            confirm_timeout=confirm_timeout,
        )
        self._program_id = as_pubkey(program_id)
        self._keypair_path = keypair_path
        self._keypair = keypair
        self._http_client = http_client
        self._client: Optional[SolanaClient] = None

    @classmethod
    def from_settings(cls, settings: ProcessorSettings) -> "SolanaLedgerGateway":
        return cls(
            rpc_url=settings.rpc_url,
            program_id=settings.program_id,
            keypair_path=settings.expanded_keypair_path,
            commitment=settings.commitment,
            rpc_timeout=settings.rpc_timeout_seconds,
            confirm_timeout=settings.confirm_timeout_seconds,
        )

    @property
    def program_id(self) -> Pubkey:
        return self._program_id

    @property
    def signer(self) -> Pubkey:
        if self._keypair is None:
            raise LedgerError("Gateway has no signing keypair loaded; call connect() first")
        return self._keypair.pubkey

    @property
    def client(self) -> SolanaClient:
        if self._client is None:
            raise LedgerError("Gateway is not connected; call connect() first")
        return self._client

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self, *, require_signer: bool = True) -> None:
        """Load the signing credential and verify the RPC endpoint answers."""
        if self._client is not None:
            return
        if self._keypair is None and require_signer:
            if self._keypair_path is None:
                raise LedgerError("No keypair path configured")
            self._keypair = load_keypair(self._keypair_path)
        client = SolanaClient(self._config, http_client=self._http_client)
        try:
            version = await client.get_version()
        except LedgerError:
            await client.close()
            raise
        self._client = client
        logger.info(
            "Connected to %s (solana-core %s)",
            self._config.rpc_url,
            (version or {}).get("solana-core", "unknown"),
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_mandates(self) -> list[Mandate]:
        """Full scan of mandate accounts, in the order the node returns them."""
        return await self._list_mandates()

    async def list_mandates_for(
        self,
        payer: Optional[PubkeyLike] = None,
        payee: Optional[PubkeyLike] = None,
    ) -> list[Mandate]:
        """Mandates filtered server-side by payer and/or payee."""
        extra = []
        if payer is not None:
            extra.append(_memcmp(MANDATE_PAYER_OFFSET, bytes(as_pubkey(payer))))
        if payee is not None:
            extra.append(_memcmp(MANDATE_PAYEE_OFFSET, bytes(as_pubkey(payee))))
        return await self._list_mandates(extra)

    async def _list_mandates(self, extra_filters: Optional[list[dict]] = None) -> list[Mandate]:
        filters = [_memcmp(0, account_discriminator(MANDATE_ACCOUNT)), *(extra_filters or [])]
        accounts = await self.client.get_program_accounts(str(self._program_id), filters)
        mandates = []
        for account in accounts:
            try:
                mandates.append(Mandate.decode(Pubkey.from_string(account.address), account.data))
            except AccountDecodeError as e:
                logger.error("Failed to decode mandate account %s: %s", account.address, e)
        logger.debug("Fetched %d mandate accounts", len(mandates))
        return mandates

    async def _fetch(self, address: PubkeyLike, account_type: str) -> KeyedAccount:
        pubkey = as_pubkey(address)
        account = await self.client.get_account_info(str(pubkey))
        if account is None:
            raise AccountNotFoundError(account_type, str(pubkey))
        return account

    async def get_mandate(self, address: PubkeyLike) -> Mandate:
        account = await self._fetch(address, "Mandate")
        return Mandate.decode(as_pubkey(address), account.data)

    async def get_payment_record(self, address: PubkeyLike) -> PaymentRecord:
        account = await self._fetch(address, "PaymentRecord")
        return PaymentRecord.decode(as_pubkey(address), account.data)

    async def get_user(self, owner: PubkeyLike) -> UserAccount:
        address, _ = find_user_address(owner, self._program_id)
        account = await self._fetch(address, "User")
        return UserAccount.decode(address, account.data)

    async def list_payment_records(self, mandate: Mandate) -> list[PaymentRecord]:
        """Payment records still open for a mandate (closed ones are skipped)."""
        records = []
        for number in range(mandate.payment_count):
            address, _ = find_payment_record_address(mandate.address, number, self._program_id)
            try:
                records.append(await self.get_payment_record(address))
            except AccountNotFoundError:
                logger.debug("Payment record #%d of %s is closed", number, mandate.address)
        return records

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _submit(self, instruction: Instruction) -> str:
        if self._keypair is None:
            raise LedgerError("Gateway has no signing keypair loaded")
        blockhash = await self.client.get_latest_blockhash()
        tx = sign_transaction([instruction], [self._keypair], blockhash)
        signature = await self.client.send_raw_transaction(tx.to_base64())
        await self.client.wait_for_confirmation(signature)
        return signature

    async def submit_execute_payment(self, accounts: ExecutePaymentAccounts) -> str:
        """Submit the transfer-and-record instruction and await confirmation."""
        return await self._submit(instructions.execute_payment(self._program_id, accounts))

    async def submit_cancel_mandate(self, mandate: Mandate) -> str:
        """Cancel a mandate; the signer must be its payer."""
        payer_user, _ = find_user_address(mandate.payer, self._program_id)
        payee_user, _ = find_user_address(mandate.payee, self._program_id)
        return await self._submit(
            instructions.cancel_mandate(
                self._program_id,
                payer=self.signer,
                token=mandate.token,
                payer_holding=find_token_holding_address(self.signer, mandate.token),
                mandate=mandate.address,
                payer_user=payer_user,
                payee_user=payee_user,
            )
        )

    async def submit_register_user(self, name: str) -> str:
        """Register the signer as a dmandate user."""
        _check_length("User name", name, MAX_USER_NAME_LENGTH, ProgramErrorCode.NAME_TOO_LONG)
        user, _ = find_user_address(self.signer, self._program_id)
        return await self._submit(
            instructions.register_user(
                self._program_id, authority=self.signer, user=user, name=name
            )
        )

    async def submit_create_mandate(
        self,
        payee: PubkeyLike,
        token: PubkeyLike,
        amount: int,
        frequency: int,
        name: str,
        description: str,
    ) -> str:
        """Create a mandate paid by the signer; both parties must be registered."""
        _check_length("Mandate name", name, MAX_NAME_LENGTH, ProgramErrorCode.NAME_TOO_LONG)
        _check_length(
            "Mandate description",
            description,
            MAX_DESCRIPTION_LENGTH,
            ProgramErrorCode.DESCRIPTION_TOO_LONG,
        )
        payee_key = as_pubkey(payee)
        token_key = as_pubkey(token)
        mandate, _ = find_mandate_address(self.signer, payee_key, self._program_id)
        payer_user, _ = find_user_address(self.signer, self._program_id)
        payee_user, _ = find_user_address(payee_key, self._program_id)
        return await self._submit(
            instructions.create_mandate(
                self._program_id,
                payer=self.signer,
                payee=payee_key,
                token=token_key,
                payer_holding=find_token_holding_address(self.signer, token_key),
                mandate=mandate,
                payer_user=payer_user,
                payee_user=payee_user,
                amount=amount,
                frequency=frequency,
                name=name,
                description=description,
            )
        )

    async def submit_reapprove_mandate(self, mandate: Mandate, amount: int) -> str:
        """Set a new delegation amount; the signer must be the mandate's payer."""
        return await self._submit(
            instructions.reapprove_mandate(
                self._program_id,
                payer=self.signer,
                token=mandate.token,
                payer_holding=find_token_holding_address(self.signer, mandate.token),
                mandate=mandate.address,
                amount=amount,
            )
        )

    async def submit_close_payment_record(self, mandate: PubkeyLike, payment_number: int) -> str:
        """Close a payment record to reclaim its rent."""
        mandate_key = as_pubkey(mandate)
        record, _ = find_payment_record_address(mandate_key, payment_number, self._program_id)
        return await self._submit(
            instructions.close_payment_history(
                self._program_id,
                authority=self.signer,
                mandate=mandate_key,
                payment_record=record,
            )
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def _memcmp(offset: int, data: bytes) -> dict:
    return {"memcmp": {"offset": offset, "bytes": base58.b58encode(data).decode()}}


def _check_length(field: str, value: str, limit: int, code: ProgramErrorCode) -> None:
    """Reject strings the program's fixed account space cannot hold."""
    size = len(value.encode("utf-8"))
    if size > limit:
        raise ProgramError(
            code,
            f"{field} is {size} bytes; the limit is {limit}",
            details={"field": field, "limit": limit},
        )
