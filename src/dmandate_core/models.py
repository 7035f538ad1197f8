"""Typed ledger account snapshots and payment outcomes.

Accounts are decoded from raw Anchor account data at the gateway boundary so
the scheduler never handles loosely-typed dictionaries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .solana.borsh import BorshReader, reader_for_account
from .solana.keys import Pubkey

MANDATE_ACCOUNT = "Mandate"
PAYMENT_RECORD_ACCOUNT = "PaymentHistory"
USER_ACCOUNT = "User"

# Field offsets used for server-side memcmp filters
MANDATE_PAYER_OFFSET = 8
MANDATE_PAYEE_OFFSET = 8 + 32

MAX_NAME_LENGTH = 20
MAX_DESCRIPTION_LENGTH = 50
MAX_USER_NAME_LENGTH = 32


@dataclass(frozen=True)
class Mandate:
    """Read-only snapshot of a mandate account."""
    address: Pubkey
    payer: Pubkey
    payee: Pubkey
    amount: int
    token: Pubkey
    frequency: int
    active: bool
    next_payout: int
    bump: int
    name: str
    description: str
    payment_count: int

    @classmethod
    def decode(cls, address: Pubkey, data: bytes) -> "Mandate":
        r = reader_for_account(data, MANDATE_ACCOUNT)
        return cls(
            address=address,
            payer=r.pubkey(),
            payee=r.pubkey(),
            amount=r.u64(),
            token=r.pubkey(),
            frequency=r.i64(),
            active=r.boolean(),
            next_payout=r.i64(),
            bump=r.u8(),
            name=r.string(),
            description=r.string(),
            payment_count=r.u32(),
        )

    @property
    def next_payout_at(self) -> datetime:
        return datetime.fromtimestamp(self.next_payout, tz=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": str(self.address),
            "payer": str(self.payer),
            "payee": str(self.payee),
            "token": str(self.token),
            "amount": self.amount,
            "frequency": self.frequency,
            "active": self.active,
            "next_payout": self.next_payout,
            "name": self.name,
            "description": self.description,
            "payment_count": self.payment_count,
        }


@dataclass(frozen=True)
class PaymentRecord:
    """Immutable proof of one executed payment."""
    address: Pubkey
    mandate: Pubkey
    amount: int
    timestamp: int
    payment_number: int
    bump: int

    @classmethod
    def decode(cls, address: Pubkey, data: bytes) -> "PaymentRecord":
        r = reader_for_account(data, PAYMENT_RECORD_ACCOUNT)
        return cls(
            address=address,
            mandate=r.pubkey(),
            amount=r.u64(),
            timestamp=r.i64(),
            payment_number=r.u32(),
            bump=r.u8(),
        )

    @property
    def executed_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


@dataclass(frozen=True)
class UserAccount:
    """Registered dmandate identity."""
    address: Pubkey
    authority: Pubkey
    outgoing_subscriptions_count: int
    incoming_subscriptions_count: int
    name: str
    bump: int

    @classmethod
    def decode(cls, address: Pubkey, data: bytes) -> "UserAccount":
        r: BorshReader = reader_for_account(data, USER_ACCOUNT)
        return cls(
            address=address,
            authority=r.pubkey(),
            outgoing_subscriptions_count=r.u32(),
            incoming_subscriptions_count=r.u32(),
            name=r.string(),
            bump=r.u8(),
        )


class OutcomeKind(str, Enum):
    """Result of one payment attempt."""
    SUCCESS = "success"
    SKIPPED_NOT_YET_DUE = "skipped_not_yet_due"
    FAILED = "failed"


class FailureReason(str, Enum):
    INSUFFICIENT_BALANCE = "insufficient_balance"
    UNCLASSIFIED = "unclassified"
    INVALID_SNAPSHOT = "invalid_snapshot"


@dataclass(frozen=True)
class PaymentOutcome:
    kind: OutcomeKind
    mandate: Pubkey
    payment_number: int
    transaction_ref: Optional[str] = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None
    payment_record: Optional[Pubkey] = None
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def success(
        cls,
        mandate: Mandate,
        transaction_ref: str,
        payment_record: Pubkey,
    ) -> "PaymentOutcome":
        return cls(
            kind=OutcomeKind.SUCCESS,
            mandate=mandate.address,
            payment_number=mandate.payment_count,
            transaction_ref=transaction_ref,
            payment_record=payment_record,
        )

    @classmethod
    def skipped_not_yet_due(cls, mandate: Mandate) -> "PaymentOutcome":
        return cls(
            kind=OutcomeKind.SKIPPED_NOT_YET_DUE,
            mandate=mandate.address,
            payment_number=mandate.payment_count,
        )

    @classmethod
    def failed(
        cls,
        mandate: Mandate,
        reason: FailureReason,
        detail: Optional[str] = None,
    ) -> "PaymentOutcome":
        return cls(
            kind=OutcomeKind.FAILED,
            mandate=mandate.address,
            payment_number=mandate.payment_count,
            reason=reason,
            detail=detail,
        )

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "mandate": str(self.mandate),
            "payment_number": self.payment_number,
            "completed_at": self.completed_at.isoformat(),
        }
        if self.transaction_ref:
            result["transaction_ref"] = self.transaction_ref
        if self.payment_record:
            result["payment_record"] = str(self.payment_record)
        if self.reason:
            result["reason"] = self.reason.value
        if self.detail:
            result["detail"] = self.detail
        return result
