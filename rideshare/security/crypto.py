"""
Phone number protection.

* ``hash_phone``  -- deterministic SHA-256 digest used as the lookup key.
* ``encrypt_phone`` / ``decrypt_phone`` -- AES-256-GCM so the number can be
  revealed to the other party of a confirmed booking.

Ciphertext format is ``<nonce hex>:<ciphertext+tag hex>``.
"""

from __future__ import annotations

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from rideshare.config import settings

NONCE_BYTES = 12


def _key(key_hex: str | None = None) -> bytes:
    key = bytes.fromhex(key_hex or settings.phone_encryption_key)
    if len(key) != 32:
        raise ValueError("phone_encryption_key must be 32 bytes of hex")
    return key


def hash_phone(phone: str) -> str:
    return hashlib.sha256(phone.encode("utf-8")).hexdigest()


def encrypt_phone(phone: str, key_hex: str | None = None) -> str:
    nonce = os.urandom(NONCE_BYTES)
    sealed = AESGCM(_key(key_hex)).encrypt(nonce, phone.encode("utf-8"), None)
    return f"{nonce.hex()}:{sealed.hex()}"


def decrypt_phone(token: str, key_hex: str | None = None) -> str:
    try:
        nonce_hex, sealed_hex = token.split(":", 1)
        plain = AESGCM(_key(key_hex)).decrypt(
            bytes.fromhex(nonce_hex), bytes.fromhex(sealed_hex), None
        )
    except (ValueError, InvalidTag) as exc:
        raise ValueError("Encrypted phone number is corrupt") from exc
    return plain.decode("utf-8")
