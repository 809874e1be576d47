"""Payload encryption and key derivation for encrypted Viera sessions.

Wire format of an encrypted payload (before base64)::

    AES-128-CBC( 12 random bytes | uint32 BE length | data | NUL padding ) | HMAC-SHA256

Padding is always 1 to 16 NUL bytes. The plaintext message is read back from
offset 16 up to the first NUL byte.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
import struct
from dataclasses import dataclass, field

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from viera_controller.exceptions import DecryptError, EncryptError

__all__ = [
    "HMAC_KEY_MASK",
    "SIGNATURE_BYTES_LENGTH",
    "KeyMaterial",
    "Session",
    "decrypt_payload",
    "derive_pin_keys",
    "derive_session_keys",
    "encrypt_payload",
]

SIGNATURE_BYTES_LENGTH = 32
BLOCK_SIZE = 16
HEADER_RANDOM_BYTES = 12
MESSAGE_OFFSET = 16

# Fixed mask applied to the challenge key when deriving the pairing HMAC key
HMAC_KEY_MASK = bytes(
    (
        0x15, 0xC9, 0x5A, 0xC2, 0xB0, 0x8A, 0xA7, 0xEB,
        0x4E, 0x22, 0x8F, 0x81, 0x1E, 0x34, 0xD0, 0x4F,
        0xA5, 0x4B, 0xA7, 0xDC, 0xAC, 0x98, 0x79, 0xFA,
        0x8A, 0xCD, 0xA3, 0xFC, 0x24, 0x4F, 0x38, 0x54,
    ),
)  # fmt: skip


@dataclass(frozen=True, slots=True)
class KeyMaterial:
    """AES key, IV and HMAC key derived from a token sent by the television."""

    key: bytes
    iv: bytes
    hmac_key: bytes


@dataclass(slots=True)
class Session:
    """Encrypted session with one television.

    Owned by a single ``TelevisionApi``. A re-handshake replaces the whole
    record (with ``generation + 1``) instead of mutating key material.
    """

    key: bytes
    iv: bytes
    hmac_key: bytes
    session_id: str | None = None
    seq_num: int | None = None
    generation: int = 0
    valid: bool = field(default=True)

    @classmethod
    def from_material(cls, material: KeyMaterial, generation: int = 0) -> Session:
        return cls(key=material.key, iv=material.iv, hmac_key=material.hmac_key, generation=generation)

    def next_sequence(self) -> int:
        """Consume and return the next sequence number.

        Numbers are never reused, even when the send that used one fails.
        """
        self.seq_num = 1 if self.seq_num is None else self.seq_num + 1
        return self.seq_num

    def invalidate(self) -> None:
        self.valid = False


def _cipher(key: bytes, iv: bytes) -> Cipher[modes.CBC]:
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def _sign(data: bytes, hmac_key: bytes) -> bytes:
    return hmac.new(hmac_key, data, hashlib.sha256).digest()


def encrypt_payload(data: str, key: bytes, iv: bytes, hmac_key: bytes) -> str:
    """Encrypt and sign ``data``, returning the base64 envelope.

    Raises:
        EncryptError: key or IV material is not valid for AES-128-CBC
    """
    raw = data.encode("utf-8")
    message = os.urandom(HEADER_RANDOM_BYTES) + struct.pack(">I", len(raw)) + raw
    message += b"\x00" * (BLOCK_SIZE - len(message) % BLOCK_SIZE)

    try:
        encryptor = _cipher(key, iv).encryptor()
        cipher_text = encryptor.update(message) + encryptor.finalize()
    except ValueError as e:
        raise EncryptError(f"Payload could not be encrypted: {e}") from e

    return base64.b64encode(cipher_text + _sign(cipher_text, hmac_key)).decode("ascii")


def decrypt_payload(payload: str, key: bytes, iv: bytes, hmac_key: bytes) -> str:
    """Verify and decrypt a base64 envelope produced by the television.

    Raises:
        DecryptError: payload is not base64, signature mismatch, or cipher failure
    """
    try:
        decoded_with_signature = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptError("Payload could not be decoded") from e

    if len(decoded_with_signature) <= SIGNATURE_BYTES_LENGTH:
        raise DecryptError("Payload is too short")

    decoded = decoded_with_signature[:-SIGNATURE_BYTES_LENGTH]
    signature = decoded_with_signature[-SIGNATURE_BYTES_LENGTH:]

    if not hmac.compare_digest(signature, _sign(decoded, hmac_key)):
        raise DecryptError("Payload could not be decrypted. Signatures are different")

    try:
        decryptor = _cipher(key, iv).decryptor()
        decrypted = decryptor.update(decoded) + decryptor.finalize()
    except ValueError as e:
        raise DecryptError(f"Payload could not be decrypted: {e}") from e

    body = decrypted[MESSAGE_OFFSET:]
    end = body.find(b"\x00")
    if end != -1:
        body = body[:end]
    return body.decode("utf-8", errors="replace")


def _decode_key(token: str, what: str) -> bytes:
    try:
        raw = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptError(f"{what} could not be parsed") from e
    if len(raw) != BLOCK_SIZE:
        raise EncryptError(f"{what} must decode to {BLOCK_SIZE} bytes, got {len(raw)}")
    return raw


def derive_pin_keys(challenge_key: str) -> KeyMaterial:
    """Key material for the pin authorization exchange.

    AES key: each 4-byte word of the challenge reversed and bit-inverted.
    HMAC key: ``HMAC_KEY_MASK`` xor the challenge with a rotating word offset.
    """
    iv = _decode_key(challenge_key, "Pairing challenge key")

    key = bytearray(BLOCK_SIZE)
    for i in range(0, BLOCK_SIZE, 4):
        key[i] = ~iv[i + 3] & 0xFF
        key[i + 1] = ~iv[i + 2] & 0xFF
        key[i + 2] = ~iv[i + 1] & 0xFF
        key[i + 3] = ~iv[i] & 0xFF

    hmac_key = bytearray(SIGNATURE_BYTES_LENGTH)
    for i in range(0, SIGNATURE_BYTES_LENGTH, 4):
        hmac_key[i] = HMAC_KEY_MASK[i] ^ iv[(i + 2) & 0xF]
        hmac_key[i + 1] = HMAC_KEY_MASK[i + 1] ^ iv[(i + 3) & 0xF]
        hmac_key[i + 2] = HMAC_KEY_MASK[i + 2] ^ iv[i & 0xF]
        hmac_key[i + 3] = HMAC_KEY_MASK[i + 3] ^ iv[(i + 1) & 0xF]

    return KeyMaterial(key=bytes(key), iv=iv, hmac_key=bytes(hmac_key))


def derive_session_keys(encryption_key: str) -> KeyMaterial:
    """Key material for a paired session, derived from the stored encryption key.

    AES key: each 4-byte word has its two halves swapped.
    HMAC key: the IV repeated twice.
    """
    iv = _decode_key(encryption_key, "Encryption key")

    key = bytearray(BLOCK_SIZE)
    for i in range(0, BLOCK_SIZE, 4):
        key[i] = iv[i + 2]
        key[i + 1] = iv[i + 3]
        key[i + 2] = iv[i]
        key[i + 3] = iv[i + 1]

    return KeyMaterial(key=bytes(key), iv=iv, hmac_key=iv + iv)
