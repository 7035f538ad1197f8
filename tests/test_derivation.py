"""
Tests for address derivation.

Reference addresses come from the Solana SDK's own program-address tests and
the SPL associated-token-account tests.
"""
from __future__ import annotations

import pytest

from dmandate_core.derivation import (
    encode_payment_number,
    find_mandate_address,
    find_payment_record_address,
    find_token_holding_address,
    find_user_address,
)
from dmandate_core.exceptions import InvalidAddressError
from dmandate_core.solana.keys import (
    Pubkey,
    create_program_address,
    find_program_address,
    is_on_curve,
)

from ledger_fakes import PROGRAM_ID, USDC_MINT, key

BPF_UPGRADEABLE_LOADER = "BPFLoaderUpgradeab1e11111111111111111111111"

# key(1) / key(2) in base58
PAYER = "1113diW7qC4UejYmrNwaGTZbE5bsokUdUaunfztqD2"
PAYEE = "1116GS1EfP7xJU6Yhkt9Xv8BTACkcVxFxApaLznfR3"


class TestCreateProgramAddress:
    @pytest.mark.parametrize(
        "seeds,expected",
        [
            ([b"", bytes([1])], "BwqrghZA2htAcqq8dzP1WDAhTXYTYWj7CHxF5j7TDBAe"),
            (["☉".encode(), bytes([0])], "13yWmRpaTR4r5nAktwLqMpRNr28tnVUZw26rTvPSSB19"),
            ([b"Talking", b"Squirrels"], "2fnQrngrQT4SeLcdToJAD96phoEjNL2man2kfRLCASVk"),
            (
                [bytes(Pubkey.from_string("SeedPubey1111111111111111111111111111111111")), bytes([1])],
                "976ymqVnfE32QFe6NfGDctSvVa36LWnvYxhU6G2232YL",
            ),
        ],
    )
    def test_known_addresses(self, seeds, expected):
        assert str(create_program_address(seeds, BPF_UPGRADEABLE_LOADER)) == expected

    def test_seed_too_long(self):
        with pytest.raises(InvalidAddressError):
            create_program_address([b"x" * 33], BPF_UPGRADEABLE_LOADER)

    def test_too_many_seeds(self):
        with pytest.raises(InvalidAddressError):
            create_program_address([b"a"] * 17, BPF_UPGRADEABLE_LOADER)


class TestFindProgramAddress:
    def test_canonical_bump_is_highest_off_curve(self):
        """Bump 250 is the first off-curve candidate for this seed."""
        address, bump = find_program_address([b"bump4"], PROGRAM_ID)
        assert bump == 250
        assert str(address) == "FrmMZNNaHYVnCavbWWpcKRipiTH3j3PcaC6xaH5MUYps"
        assert create_program_address([b"bump4", bytes([bump])], PROGRAM_ID) == address
        for higher in range(251, 256):
            with pytest.raises(InvalidAddressError):
                create_program_address([b"bump4", bytes([higher])], PROGRAM_ID)

    def test_result_is_off_curve(self):
        address, _ = find_program_address([b"user", bytes(key(1))], PROGRAM_ID)
        assert not is_on_curve(bytes(address))


class TestDomainAddresses:
    def test_key_fixtures(self):
        assert str(key(1)) == PAYER
        assert str(key(2)) == PAYEE

    def test_user_address(self):
        address, bump = find_user_address(PAYER, PROGRAM_ID)
        assert str(address) == "Hj6cTiN6aGRwRHA19cAtfwP8UUzZJ8SnfoF8H1WhM2ew"
        assert bump == 255

    def test_mandate_address(self):
        address, bump = find_mandate_address(PAYER, PAYEE, PROGRAM_ID)
        assert str(address) == "4dRRD4bUquYPUq3BADyRZmAGQ5VrXyyz3oXYzHN87hbw"
        assert bump == 255

    def test_mandate_address_is_directional(self):
        forward, _ = find_mandate_address(PAYER, PAYEE, PROGRAM_ID)
        reverse, _ = find_mandate_address(PAYEE, PAYER, PROGRAM_ID)
        assert forward != reverse

    @pytest.mark.parametrize(
        "number,expected,bump",
        [
            (0, "5j48dXEcMDpVX5QPkBKeDzFbJTAD9pBM84RR7ryzVYha", 255),
            (1, "AARVX246LznpjBDqj5NfhE6uXen7zYm7JUtpCQcvLaJX", 252),
            (5, "2AhAjNyj8KiKd7hfx8ZMJYX13Fozv4dhs5tnoD7uN5DJ", 255),
        ],
    )
    def test_payment_record_address(self, number, expected, bump):
        mandate, _ = find_mandate_address(PAYER, PAYEE, PROGRAM_ID)
        address, found_bump = find_payment_record_address(mandate, number, PROGRAM_ID)
        assert str(address) == expected
        assert found_bump == bump

    def test_payment_record_is_deterministic(self):
        mandate, _ = find_mandate_address(PAYER, PAYEE, PROGRAM_ID)
        first = find_payment_record_address(mandate, 5, PROGRAM_ID)
        second = find_payment_record_address(str(mandate), 5, str(PROGRAM_ID))
        assert first == second
        assert find_payment_record_address(mandate, 6, PROGRAM_ID) != first

    def test_payment_number_encoding(self):
        assert encode_payment_number(5) == bytes([0x05, 0x00, 0x00, 0x00])
        assert encode_payment_number(0x01020304) == bytes([0x04, 0x03, 0x02, 0x01])
        assert encode_payment_number(0xFFFFFFFF) == b"\xff\xff\xff\xff"

    @pytest.mark.parametrize("number", [-1, 2**32])
    def test_payment_number_out_of_range(self, number):
        with pytest.raises(InvalidAddressError):
            encode_payment_number(number)


class TestTokenHoldingAddress:
    def test_spl_reference_address(self):
        address = find_token_holding_address(
            "B8UwBUUnKwCyKuGMbFKWaG7exYdDk2ozZrPg72NyVbfj",
            "7o36UsWR1JQLpZ9PE2gn9L4SQ69CNNiWAXd4Jt7rqz9Z",
        )
        assert str(address) == "DShWnroshVbeUp28oopA3Pu7oFPDBtC1DBmPECXXAQ9n"

    def test_owner_and_mint_are_not_interchangeable(self):
        address = find_token_holding_address(
            "7o36UsWR1JQLpZ9PE2gn9L4SQ69CNNiWAXd4Jt7rqz9Z",
            "B8UwBUUnKwCyKuGMbFKWaG7exYdDk2ozZrPg72NyVbfj",
        )
        assert str(address) == "Ce8LrWyYKun3vTtFGVUSTxuNFD1b5C4Tx9G9g5NTWqBs"

    def test_usdc_holdings(self):
        assert str(find_token_holding_address(PAYER, USDC_MINT)) == (
            "8Y4dE6qgC5irTxrS4ACvTACbWixFDDBrKBbcsVEMd3c8"
        )
        assert str(find_token_holding_address(PAYEE, USDC_MINT)) == (
            "93u4jhzkWFJD2r87xB896eU4Ckq1DWeKim4X6AGPHzkT"
        )

    def test_invalid_owner(self):
        with pytest.raises(InvalidAddressError):
            find_token_holding_address("not-base58-0OIl", USDC_MINT)
