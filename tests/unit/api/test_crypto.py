"""Unit tests for payload encryption and key derivation."""

from __future__ import annotations

import base64

import pytest

from tests.helpers.television import CHALLENGE_KEY, ENCRYPTION_KEY
from viera_controller.api.crypto import (
    HMAC_KEY_MASK,
    SIGNATURE_BYTES_LENGTH,
    KeyMaterial,
    Session,
    decrypt_payload,
    derive_pin_keys,
    derive_session_keys,
    encrypt_payload,
)
from viera_controller.exceptions import DecryptError, EncryptError

PLAINTEXT = "test_message_content"


def _flip_byte(payload: str, index: int) -> str:
    raw = bytearray(base64.b64decode(payload))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


class TestRoundTrip:
    """Tests for encrypt_payload / decrypt_payload."""

    def test_pin_keys_round_trip(self):
        """Test decrypt(encrypt(P)) == P with pairing keys."""
        material = derive_pin_keys(CHALLENGE_KEY)
        encrypted = encrypt_payload(PLAINTEXT, material.key, material.iv, material.hmac_key)

        assert decrypt_payload(encrypted, material.key, material.iv, material.hmac_key) == PLAINTEXT

    @pytest.mark.parametrize(
        "plaintext",
        [
            "",
            "a",
            "<X_PinCode>1234</X_PinCode>",
            "x" * 16,
            "ünïcödé <X_KeyEvent>NRC_POWER-ONOFF</X_KeyEvent>",
        ],
    )
    def test_session_keys_round_trip(self, plaintext: str):
        """Test round trip for empty, block-aligned and multi-byte payloads."""
        material = derive_session_keys(ENCRYPTION_KEY)
        encrypted = encrypt_payload(plaintext, material.key, material.iv, material.hmac_key)

        assert decrypt_payload(encrypted, material.key, material.iv, material.hmac_key) == plaintext

    def test_ciphertext_is_block_aligned_with_signature(self):
        """Test envelope is whole AES blocks followed by a 32 byte signature."""
        material = derive_session_keys(ENCRYPTION_KEY)
        encrypted = encrypt_payload(PLAINTEXT, material.key, material.iv, material.hmac_key)

        raw = base64.b64decode(encrypted)
        assert (len(raw) - SIGNATURE_BYTES_LENGTH) % 16 == 0
        # 12 random + 4 length + 20 data = 36 -> padded to 48
        assert len(raw) - SIGNATURE_BYTES_LENGTH == 48

    def test_random_prefix_changes_ciphertext(self):
        """Test encrypting the same payload twice produces different envelopes."""
        material = derive_session_keys(ENCRYPTION_KEY)
        first = encrypt_payload(PLAINTEXT, material.key, material.iv, material.hmac_key)
        second = encrypt_payload(PLAINTEXT, material.key, material.iv, material.hmac_key)

        assert first != second


class TestTampering:
    """Tests for signature verification."""

    def test_tampered_ciphertext_is_rejected(self):
        """Test flipping one ciphertext byte fails HMAC verification."""
        material = derive_pin_keys(CHALLENGE_KEY)
        encrypted = encrypt_payload(PLAINTEXT, material.key, material.iv, material.hmac_key)

        with pytest.raises(DecryptError, match="Signatures are different"):
            decrypt_payload(_flip_byte(encrypted, 0), material.key, material.iv, material.hmac_key)

    def test_tampered_signature_is_rejected(self):
        """Test flipping one signature byte fails HMAC verification."""
        material = derive_pin_keys(CHALLENGE_KEY)
        encrypted = encrypt_payload(PLAINTEXT, material.key, material.iv, material.hmac_key)

        with pytest.raises(DecryptError, match="Signatures are different"):
            decrypt_payload(_flip_byte(encrypted, -1), material.key, material.iv, material.hmac_key)

    def test_wrong_hmac_key_is_rejected(self):
        """Test a payload signed with other keys is rejected."""
        pin = derive_pin_keys(CHALLENGE_KEY)
        other = derive_session_keys(ENCRYPTION_KEY)
        encrypted = encrypt_payload(PLAINTEXT, pin.key, pin.iv, pin.hmac_key)

        with pytest.raises(DecryptError):
            decrypt_payload(encrypted, other.key, other.iv, other.hmac_key)

    def test_invalid_base64_is_rejected(self):
        """Test non-base64 input raises DecryptError."""
        material = derive_session_keys(ENCRYPTION_KEY)

        with pytest.raises(DecryptError, match="could not be decoded"):
            decrypt_payload("not base64!!", material.key, material.iv, material.hmac_key)

    def test_short_payload_is_rejected(self):
        """Test payload without room for a signature raises DecryptError."""
        material = derive_session_keys(ENCRYPTION_KEY)

        with pytest.raises(DecryptError, match="too short"):
            decrypt_payload(base64.b64encode(b"\x00" * 8).decode(), material.key, material.iv, material.hmac_key)


class TestKeyDerivation:
    """Tests for derive_pin_keys and derive_session_keys."""

    def test_pin_keys_layout(self):
        """Test pairing key is the challenge with reversed, inverted words."""
        iv = base64.b64decode(CHALLENGE_KEY)
        material = derive_pin_keys(CHALLENGE_KEY)

        assert isinstance(material, KeyMaterial)
        assert material.iv == iv
        assert len(material.key) == 16
        assert len(material.hmac_key) == 32
        for i in range(0, 16, 4):
            assert material.key[i] == ~iv[i + 3] & 0xFF
            assert material.key[i + 3] == ~iv[i] & 0xFF
        assert material.hmac_key[0] == HMAC_KEY_MASK[0] ^ iv[2]
        assert material.hmac_key[2] == HMAC_KEY_MASK[2] ^ iv[0]

    def test_session_keys_layout(self):
        """Test session key swaps word halves and HMAC key is the IV twice."""
        iv = base64.b64decode(ENCRYPTION_KEY)
        material = derive_session_keys(ENCRYPTION_KEY)

        assert material.iv == iv
        assert material.hmac_key == iv + iv
        assert material.key[:4] == iv[2:4] + iv[0:2]

    def test_wrong_key_length_raises(self):
        """Test a key that does not decode to 16 bytes raises EncryptError."""
        with pytest.raises(EncryptError, match="16 bytes"):
            derive_session_keys(base64.b64encode(b"short").decode())

    def test_invalid_key_raises(self):
        """Test a non-base64 challenge raises EncryptError."""
        with pytest.raises(EncryptError, match="could not be parsed"):
            derive_pin_keys("***")

    def test_invalid_aes_key_raises_encrypt_error(self):
        """Test cipher setup failures surface as EncryptError."""
        with pytest.raises(EncryptError):
            encrypt_payload(PLAINTEXT, b"short", b"\x00" * 16, b"\x00" * 32)


class TestSession:
    """Tests for the Session record."""

    def test_sequence_starts_at_one(self):
        """Test first sequence number is 1 when none was assigned."""
        session = Session.from_material(derive_session_keys(ENCRYPTION_KEY))

        assert session.seq_num is None
        assert session.next_sequence() == 1

    def test_sequence_strictly_increases(self, session: Session):
        """Test successive sequence numbers never repeat."""
        numbers = [session.next_sequence() for _ in range(50)]

        assert numbers == sorted(set(numbers))
        assert numbers[0] == 2

    def test_invalidate(self, session: Session):
        """Test invalidate marks the session unusable."""
        session.invalidate()

        assert session.valid is False

    def test_generation_is_carried(self):
        """Test from_material keeps the generation counter."""
        session = Session.from_material(derive_session_keys(ENCRYPTION_KEY), generation=3)

        assert session.generation == 3
        assert session.valid is True
