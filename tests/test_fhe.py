"""Tests for the local FHE capability and the clear value codec."""

import pytest

from conftest import ALICE, BOB, LEDGER_ADDRESS
from daocredit.codec import decode_clear_values, encode_clear_values
from daocredit.db import open_database
from daocredit.errors import (
    CapabilityUnavailableError,
    DecryptionNotPermittedError,
    InvalidProofError,
    MalformedCiphertextError,
)
from daocredit.models.contribution import MAX_SCORE, CiphertextHandle
from daocredit.services.fhe import LocalFHECapability


class TestCiphertextHandle:
    """Test the opaque handle token."""

    def test_hex_roundtrip(self):
        handle = CiphertextHandle(b"\x01\x02\x03\x04\x05")
        assert CiphertextHandle.from_hex(handle.to_hex()) == handle

    def test_repr_is_redacted(self):
        handle = CiphertextHandle(bytes(range(32)))
        assert bytes(range(32)).hex() not in repr(handle)

    def test_no_ordering(self):
        with pytest.raises(TypeError):
            CiphertextHandle(b"\x01") < CiphertextHandle(b"\x02")

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            CiphertextHandle(b"")


class TestLocalEncryption:
    """Test encrypted inputs and their binding proofs."""

    def test_input_well_formed_for_context_and_caller(self, fhe):
        encrypted = fhe.encrypt(LEDGER_ADDRESS, ALICE, 5)
        assert fhe.check_well_formed(encrypted, LEDGER_ADDRESS, ALICE)
        assert fhe.check_well_formed(encrypted, LEDGER_ADDRESS.upper().replace("0X", "0x"), ALICE)
        assert not fhe.check_well_formed(encrypted, LEDGER_ADDRESS, BOB)

    def test_same_value_encrypts_differently(self, fhe):
        first = fhe.encrypt(LEDGER_ADDRESS, ALICE, 5)
        second = fhe.encrypt(LEDGER_ADDRESS, ALICE, 5)
        assert first.handle != second.handle

    @pytest.mark.parametrize("value", [-1, MAX_SCORE + 1, 1.5, True, "3"])
    def test_rejects_out_of_range(self, fhe, value):
        with pytest.raises(ValueError):
            fhe.encrypt(LEDGER_ADDRESS, ALICE, value)

    def test_accepts_bounds(self, fhe):
        for value in (0, MAX_SCORE):
            encrypted = fhe.encrypt(LEDGER_ADDRESS, ALICE, value)
            fhe.grant_decrypt_access(encrypted.handle)
            result = fhe.public_decrypt([encrypted.handle])
            assert result.clear_values[encrypted.handle] == value

    def test_offline(self, fhe):
        fhe.available = False
        assert fhe.is_available() is False
        with pytest.raises(CapabilityUnavailableError):
            fhe.encrypt(LEDGER_ADDRESS, ALICE, 1)


class TestLocalDecryption:
    """Test grants, public decryption and proof checks."""

    def test_decrypt_requires_grant(self, fhe):
        encrypted = fhe.encrypt(LEDGER_ADDRESS, ALICE, 5)
        with pytest.raises(DecryptionNotPermittedError):
            fhe.public_decrypt([encrypted.handle])

    def test_grant_unknown_ciphertext(self, fhe):
        with pytest.raises(MalformedCiphertextError):
            fhe.grant_decrypt_access(CiphertextHandle(b"not a token"))

    def test_proof_verifies(self, fhe):
        encrypted = fhe.encrypt(LEDGER_ADDRESS, ALICE, 77)
        fhe.grant_decrypt_access(encrypted.handle)
        result = fhe.public_decrypt([encrypted.handle])

        assert decode_clear_values(result.clear_payload, 1) == [77]
        assert fhe.verify_clear_value([encrypted.handle], result.clear_payload, result.proof)
        assert not fhe.verify_clear_value([encrypted.handle], encode_clear_values([78]), result.proof)

    def test_proof_from_other_key_rejected(self, fhe):
        other = LocalFHECapability()
        encrypted = other.encrypt(LEDGER_ADDRESS, ALICE, 1)
        other.grant_decrypt_access(encrypted.handle)
        result = other.public_decrypt([encrypted.handle])

        assert not fhe.verify_clear_value([encrypted.handle], result.clear_payload, result.proof)

    def test_grants_persist_in_database(self, tmp_path):
        key = LocalFHECapability.generate_key()
        url = f"sqlite:///{tmp_path / 'acl.db'}"
        database = open_database(url)
        first = LocalFHECapability(key, database=database)
        encrypted = first.encrypt(LEDGER_ADDRESS, ALICE, 21)
        first.grant_decrypt_access(encrypted.handle)
        database.dispose()

        database = open_database(url)
        try:
            restarted = LocalFHECapability(key, database=database)
            result = restarted.public_decrypt([encrypted.handle])
            assert result.clear_values[encrypted.handle] == 21
        finally:
            database.dispose()


class TestCodec:
    """Test ABI encoding of clear values."""

    def test_words(self):
        payload = encode_clear_values([1, 2])
        assert len(payload) == 64
        assert payload[31] == 1 and payload[63] == 2

    def test_wrong_length(self):
        with pytest.raises(InvalidProofError):
            decode_clear_values(b"\x00" * 31, 1)

    def test_out_of_range_word(self):
        with pytest.raises(InvalidProofError):
            decode_clear_values(b"\x01" + b"\x00" * 31, 1)

    def test_encode_out_of_range(self):
        with pytest.raises(ValueError):
            encode_clear_values([MAX_SCORE + 1])
