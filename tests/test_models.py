"""
Tests for account decoding and payment outcomes.

Tests cover:
- Anchor discriminators
- Mandate / PaymentRecord / User decoding
- Rejection of foreign and truncated account data
- PaymentOutcome constructors and serialization
"""
from __future__ import annotations

import pytest

from dmandate_core.exceptions import AccountDecodeError
from dmandate_core.models import (
    MANDATE_PAYEE_OFFSET,
    MANDATE_PAYER_OFFSET,
    FailureReason,
    Mandate,
    OutcomeKind,
    PaymentOutcome,
    PaymentRecord,
    UserAccount,
)
from dmandate_core.solana.borsh import BorshReader, account_discriminator

from ledger_fakes import (
    encode_mandate,
    encode_payment_record,
    encode_user,
    key,
    make_mandate,
)


class TestDiscriminators:
    def test_account_discriminators(self):
        assert account_discriminator("Mandate").hex() == "71d8629fb93f3712"
        assert account_discriminator("PaymentHistory").hex() == "8a6089e2ea907b0e"
        assert account_discriminator("User").hex() == "9f755fe3ef973aec"


class TestMandateDecode:
    def test_decode(self):
        original = make_mandate(
            3,
            next_payout=1_750_000_000,
            payment_count=7,
            name="Gym",
            description="Monthly membership",
        )
        decoded = Mandate.decode(original.address, encode_mandate(original))
        assert decoded == original

    def test_filter_offsets_match_layout(self):
        m = make_mandate(4)
        data = encode_mandate(m)
        assert data[MANDATE_PAYER_OFFSET:MANDATE_PAYER_OFFSET + 32] == bytes(m.payer)
        assert data[MANDATE_PAYEE_OFFSET:MANDATE_PAYEE_OFFSET + 32] == bytes(m.payee)

    def test_negative_next_payout(self):
        m = make_mandate(next_payout=-5)
        assert Mandate.decode(m.address, encode_mandate(m)).next_payout == -5

    def test_wrong_discriminator(self):
        m = make_mandate()
        data = encode_payment_record(m.address, 1, 2, 3)
        with pytest.raises(AccountDecodeError) as exc_info:
            Mandate.decode(m.address, data)
        assert exc_info.value.details["expected"] == "71d8629fb93f3712"

    def test_truncated(self):
        m = make_mandate()
        data = encode_mandate(m)[:-2]
        with pytest.raises(AccountDecodeError):
            Mandate.decode(m.address, data)

    def test_invalid_bool(self):
        m = make_mandate()
        data = bytearray(encode_mandate(m))
        active_offset = 8 + 32 + 32 + 8 + 32 + 8
        data[active_offset] = 2
        with pytest.raises(AccountDecodeError):
            Mandate.decode(m.address, bytes(data))

    def test_trailing_padding_is_ignored(self):
        m = make_mandate()
        data = encode_mandate(m) + bytes(40)
        assert Mandate.decode(m.address, data) == m

    def test_to_dict(self):
        m = make_mandate()
        d = m.to_dict()
        assert d["address"] == str(m.address)
        assert d["payment_count"] == 0
        assert d["active"] is True

    def test_next_payout_at(self):
        m = make_mandate(next_payout=0)
        assert m.next_payout_at.year == 1970


class TestOtherAccounts:
    def test_payment_record(self):
        mandate = key(4)
        data = encode_payment_record(mandate, 1_000_000, 1_700_000_123, 5, bump=251)
        record = PaymentRecord.decode(key(5), data)
        assert record.mandate == mandate
        assert record.amount == 1_000_000
        assert record.timestamp == 1_700_000_123
        assert record.payment_number == 5
        assert record.bump == 251
        assert record.executed_at.year == 2023

    def test_user(self):
        data = encode_user(key(1), 2, 3, "alice")
        user = UserAccount.decode(key(7), data)
        assert user.authority == key(1)
        assert user.outgoing_subscriptions_count == 2
        assert user.incoming_subscriptions_count == 3
        assert user.name == "alice"

    def test_reader_offsets(self):
        reader = BorshReader(b"\x01\x02\x00\x00\x00", 0)
        assert reader.u8() == 1
        assert reader.u32() == 2
        assert reader.offset == 5
        with pytest.raises(AccountDecodeError):
            reader.u8()


class TestPaymentOutcome:
    def test_success(self):
        m = make_mandate(payment_count=4)
        outcome = PaymentOutcome.success(m, "sig123", key(8))
        assert outcome.succeeded
        assert outcome.kind == OutcomeKind.SUCCESS
        assert outcome.payment_number == 4
        d = outcome.to_dict()
        assert d["transaction_ref"] == "sig123"
        assert d["payment_record"] == str(key(8))
        assert "reason" not in d

    def test_skipped(self):
        outcome = PaymentOutcome.skipped_not_yet_due(make_mandate())
        assert not outcome.succeeded
        assert outcome.to_dict()["kind"] == "skipped_not_yet_due"

    def test_failed(self):
        outcome = PaymentOutcome.failed(
            make_mandate(), FailureReason.INSUFFICIENT_BALANCE, "InsufficientBalance"
        )
        d = outcome.to_dict()
        assert d["kind"] == "failed"
        assert d["reason"] == "insufficient_balance"
        assert d["detail"] == "InsufficientBalance"
