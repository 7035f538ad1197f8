"""Tests for legacy transaction compilation and the dmandate instruction builders."""
from __future__ import annotations

import base64

import base58
import pytest
from nacl.signing import VerifyKey

from dmandate_core import instructions
from dmandate_core.instructions import ExecutePaymentAccounts
from dmandate_core.solana.borsh import instruction_discriminator
from dmandate_core.solana.keys import Keypair, Pubkey
from dmandate_core.solana.transaction import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    AccountMeta,
    Instruction,
    compile_message,
    encode_compact_u16,
    sign_transaction,
)

from ledger_fakes import PROGRAM_ID, USDC_MINT, key

BLOCKHASH = str(Pubkey(bytes([7]) * 32))


@pytest.mark.parametrize(
    "value,expected",
    [
        (0, b"\x00"),
        (0x7F, b"\x7f"),
        (0x80, b"\x80\x01"),
        (0x3FFF, b"\xff\x7f"),
        (0x4000, b"\x80\x80\x01"),
        (0xFFFF, b"\xff\xff\x03"),
    ],
)
def test_compact_u16(value, expected):
    assert encode_compact_u16(value) == expected


def test_compact_u16_out_of_range():
    with pytest.raises(ValueError):
        encode_compact_u16(0x10000)


def _execute_accounts(signer: Pubkey) -> ExecutePaymentAccounts:
    return ExecutePaymentAccounts(
        signer=signer,
        payer=key(1),
        payer_holding=key(2),
        payee=key(3),
        mandate=key(4),
        payment_record=key(5),
        token=USDC_MINT,
        payee_holding=key(6),
    )


class TestInstructionBuilders:
    def test_discriminators(self):
        assert instructions.EXECUTE_PAYMENT.hex() == "56040707788be88b"
        assert instructions.CANCEL_MANDATE.hex() == "78ea16f7e57c6a95"
        assert instructions.CLOSE_PAYMENT_HISTORY.hex() == "cd879c0fe92fe18b"
        assert instruction_discriminator("execute_payment") == instructions.EXECUTE_PAYMENT

    def test_execute_payment_account_order(self):
        signer = key(9)
        ix = instructions.execute_payment(PROGRAM_ID, _execute_accounts(signer))

        assert ix.program_id == PROGRAM_ID
        assert ix.data == instructions.EXECUTE_PAYMENT
        assert [m.pubkey for m in ix.accounts] == [
            signer,
            key(1),
            key(2),
            key(3),
            key(4),
            key(5),
            USDC_MINT,
            key(6),
            ASSOCIATED_TOKEN_PROGRAM_ID,
            TOKEN_PROGRAM_ID,
            SYSTEM_PROGRAM_ID,
        ]
        assert ix.accounts[0].is_signer and ix.accounts[0].is_writable
        assert not any(m.is_signer for m in ix.accounts[1:])
        assert not ix.accounts[6].is_writable

    def test_close_payment_history(self):
        ix = instructions.close_payment_history(
            PROGRAM_ID, authority=key(9), mandate=key(4), payment_record=key(5)
        )
        assert [m.pubkey for m in ix.accounts] == [key(9), key(4), key(5), SYSTEM_PROGRAM_ID]
        assert ix.data == instructions.CLOSE_PAYMENT_HISTORY

    def test_setup_discriminators(self):
        assert instructions.REGISTER_USER.hex() == "02f196df63d67461"
        assert instructions.CREATE_MANDATE.hex() == "e6aa9e4421a9109e"
        assert instructions.REAPPROVE_MANDATE.hex() == "15b96cd5440c7e17"

    def test_register_user(self):
        ix = instructions.register_user(PROGRAM_ID, authority=key(9), user=key(8), name="alice")

        assert [m.pubkey for m in ix.accounts] == [key(8), key(9), SYSTEM_PROGRAM_ID]
        assert ix.accounts[1].is_signer
        assert not ix.accounts[0].is_signer and ix.accounts[0].is_writable
        assert ix.data == instructions.REGISTER_USER + b"\x05\x00\x00\x00alice"

    def test_create_mandate(self):
        ix = instructions.create_mandate(
            PROGRAM_ID,
            payer=key(1),
            payee=key(2),
            token=USDC_MINT,
            payer_holding=key(3),
            mandate=key(4),
            payer_user=key(5),
            payee_user=key(6),
            amount=1_000_000,
            frequency=2_592_000,
            name="Gym",
            description="",
        )

        assert [m.pubkey for m in ix.accounts] == [
            key(1),
            key(2),
            USDC_MINT,
            key(3),
            key(4),
            key(5),
            key(6),
            TOKEN_PROGRAM_ID,
            SYSTEM_PROGRAM_ID,
        ]
        assert [m.is_signer for m in ix.accounts] == [True] + [False] * 8
        assert not ix.accounts[2].is_writable
        assert ix.data == (
            instructions.CREATE_MANDATE
            + (1_000_000).to_bytes(8, "little")
            + (2_592_000).to_bytes(8, "little")
            + b"\x03\x00\x00\x00Gym"
            + b"\x00\x00\x00\x00"
        )

    def test_reapprove_mandate(self):
        ix = instructions.reapprove_mandate(
            PROGRAM_ID,
            payer=key(1),
            token=USDC_MINT,
            payer_holding=key(3),
            mandate=key(4),
            amount=3_000_000,
        )

        assert [m.pubkey for m in ix.accounts] == [
            key(1),
            USDC_MINT,
            key(3),
            key(4),
            TOKEN_PROGRAM_ID,
        ]
        assert ix.accounts[0].is_signer
        assert ix.data == instructions.REAPPROVE_MANDATE + (3_000_000).to_bytes(8, "little")


class TestCompileMessage:
    def test_account_ordering_and_header(self):
        fee_payer = key(9)
        ix = instructions.execute_payment(PROGRAM_ID, _execute_accounts(fee_payer))
        message = compile_message(fee_payer, [ix], BLOCKHASH)

        assert message.num_required_signatures == 1
        assert message.num_readonly_signed == 0
        # token mint, three programs and the dmandate program itself
        assert message.num_readonly_unsigned == 5
        assert message.account_keys[0] == fee_payer
        writable = message.account_keys[1:7]
        assert writable == [key(1), key(2), key(3), key(4), key(5), key(6)]
        assert set(message.account_keys[7:]) == {
            USDC_MINT,
            ASSOCIATED_TOKEN_PROGRAM_ID,
            TOKEN_PROGRAM_ID,
            SYSTEM_PROGRAM_ID,
            PROGRAM_ID,
        }

    def test_duplicate_keys_merge_flags(self):
        fee_payer = key(9)
        shared = key(1)
        ixs = [
            Instruction(PROGRAM_ID, [AccountMeta(shared, is_signer=False, is_writable=False)]),
            Instruction(PROGRAM_ID, [AccountMeta(shared, is_signer=False, is_writable=True)]),
        ]
        message = compile_message(fee_payer, ixs, BLOCKHASH)
        assert message.account_keys.count(shared) == 1
        assert message.account_keys.index(shared) == 1
        assert message.instructions[0][1] == message.instructions[1][1] == [1]

    def test_serialized_layout(self):
        fee_payer = key(9)
        ix = Instruction(PROGRAM_ID, [AccountMeta(key(1), False, True)], b"\x01\x02")
        raw = compile_message(fee_payer, [ix], BLOCKHASH).serialize()

        assert raw[:3] == bytes([1, 0, 1])
        assert raw[3] == 3  # account count
        assert raw[4:36] == bytes(fee_payer)
        assert raw[36:68] == bytes(key(1))
        assert raw[68:100] == bytes(PROGRAM_ID)
        assert raw[100:132] == base58.b58decode(BLOCKHASH)
        # one instruction: program index 2, accounts [1], data 0102
        assert raw[132:] == bytes([1, 2, 1, 1, 2, 1, 2])


class TestSignTransaction:
    def test_signature_covers_message(self):
        keypair = Keypair.generate()
        ix = instructions.execute_payment(PROGRAM_ID, _execute_accounts(keypair.pubkey))
        tx = sign_transaction([ix], [keypair], BLOCKHASH)

        assert len(tx.signatures) == 1
        VerifyKey(bytes(keypair.pubkey)).verify(tx.message, tx.signatures[0])
        assert tx.signature == base58.b58encode(tx.signatures[0]).decode()

        wire = base64.b64decode(tx.to_base64())
        assert wire[0] == 1
        assert wire[1:65] == tx.signatures[0]
        assert wire[65:] == tx.message

    def test_requires_signer(self):
        with pytest.raises(ValueError):
            sign_transaction([], [], BLOCKHASH)

    def test_missing_co_signer(self):
        keypair = Keypair.generate()
        other = key(3)
        ix = Instruction(PROGRAM_ID, [AccountMeta(other, is_signer=True, is_writable=False)])
        with pytest.raises(ValueError, match="Missing signer"):
            sign_transaction([ix], [keypair], BLOCKHASH)

    def test_oversized_transaction(self):
        keypair = Keypair.generate()
        ix = Instruction(PROGRAM_ID, [], b"\x00" * 1300)
        with pytest.raises(ValueError, match="too large"):
            sign_transaction([ix], [keypair], BLOCKHASH)
