"""Payment executor: submits one execute_payment per due mandate.

The executor never retries. A payment that is not confirmed in this pass is
attempted again in a later pass against a fresh snapshot; the payment-record
address derived from ``payment_count`` makes a duplicate submission fail on
the ledger instead of paying twice.
"""
from __future__ import annotations

import logging
from typing import Optional

from .derivation import find_payment_record_address, find_token_holding_address
from .exceptions import (
    AccountDecodeError,
    InvalidAddressError,
    LedgerError,
    ProgramError,
)
from .gateway import LedgerGateway
from .instructions import ExecutePaymentAccounts
from .models import FailureReason, Mandate, PaymentOutcome
from .notifications import PaymentNotifier, create_payment_event

logger = logging.getLogger(__name__)


class PaymentExecutor:
    """Executes a single mandate payment and classifies the result."""

    def __init__(
        self,
        gateway: LedgerGateway,
        notifier: Optional[PaymentNotifier] = None,
    ):
        self._gateway = gateway
        self._notifier = notifier

    def build_accounts(self, mandate: Mandate) -> ExecutePaymentAccounts:
        """Derive every account of the payment from one mandate snapshot."""
        program_id = self._gateway.program_id
        payment_record, _ = find_payment_record_address(
            mandate.address, mandate.payment_count, program_id
        )
        return ExecutePaymentAccounts(
            signer=self._gateway.signer,
            payer=mandate.payer,
            payer_holding=find_token_holding_address(mandate.payer, mandate.token),
            payee=mandate.payee,
            mandate=mandate.address,
            payment_record=payment_record,
            token=mandate.token,
            payee_holding=find_token_holding_address(mandate.payee, mandate.token),
        )

    async def execute(self, mandate: Mandate) -> PaymentOutcome:
        """Attempt the next payment of ``mandate``. Never raises for ledger failures."""
        try:
            accounts = self.build_accounts(mandate)
        except (InvalidAddressError, AccountDecodeError) as e:
            logger.error("Invalid snapshot for mandate %s: %s", mandate.address, e.message)
            return PaymentOutcome.failed(mandate, FailureReason.INVALID_SNAPSHOT, e.message)

        logger.info(
            "Executing payment #%d for mandate %s (%s): %d units of %s",
            mandate.payment_count,
            mandate.address,
            mandate.name,
            mandate.amount,
            mandate.token,
        )

        try:
            signature = await self._gateway.submit_execute_payment(accounts)
        except ProgramError as e:
            return self._classify_rejection(mandate, e)
        except LedgerError as e:
            logger.error(
                "Payment for mandate %s failed: %s (%s)", mandate.address, e.message, e.error_code
            )
            return PaymentOutcome.failed(mandate, FailureReason.UNCLASSIFIED, e.message)

        outcome = PaymentOutcome.success(mandate, signature, accounts.payment_record)
        logger.info(
            "Payment #%d for mandate %s confirmed: %s",
            outcome.payment_number,
            mandate.address,
            signature,
        )
        self._notify(mandate, outcome)
        return outcome

    def _classify_rejection(self, mandate: Mandate, error: ProgramError) -> PaymentOutcome:
        if error.is_not_yet_due:
            logger.debug("Mandate %s is not yet due on the ledger", mandate.address)
            return PaymentOutcome.skipped_not_yet_due(mandate)
        if error.is_insufficient_balance:
            logger.error(
                "Insufficient balance for mandate %s (payer %s)", mandate.address, mandate.payer
            )
            return PaymentOutcome.failed(
                mandate, FailureReason.INSUFFICIENT_BALANCE, error.name
            )
        logger.error("Program rejected payment for mandate %s: %s", mandate.address, error.name)
        return PaymentOutcome.failed(mandate, FailureReason.UNCLASSIFIED, error.name)

    def _notify(self, mandate: Mandate, outcome: PaymentOutcome) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(create_payment_event(mandate, outcome))
        except Exception as e:
            logger.warning("Failed to queue notification for %s: %s", mandate.address, e)
