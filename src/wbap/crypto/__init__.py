"""
Backup file cryptography.

PBKDF2-HMAC-SHA256 key derivation and AES-256-GCM authenticated encryption
of backup payloads, wrapped in a versioned JSON envelope.

Usage:
    from wbap.crypto import encrypt_json, decrypt_json, parse_envelope

    envelope = encrypt_json({"plan": {...}}, "correct-horse")
    text = envelope.to_json()

    data = decrypt_json(parse_envelope(text), "correct-horse")
"""

from wbap.crypto.engine import (
    EncryptedEnvelope,
    decrypt,
    decrypt_json,
    encrypt,
    encrypt_json,
    parse_envelope,
)
from wbap.crypto.kdf import (
    FORMAT_VERSION,
    KDF_ITERATIONS,
    KEY_LENGTH,
    NONCE_LENGTH,
    SALT_LENGTH,
    derive_key,
    iterations_for_version,
)

__all__ = [
    # Envelope and engine
    "EncryptedEnvelope",
    "encrypt",
    "decrypt",
    "encrypt_json",
    "decrypt_json",
    "parse_envelope",
    # Key derivation
    "derive_key",
    "iterations_for_version",
    "FORMAT_VERSION",
    "KDF_ITERATIONS",
    "SALT_LENGTH",
    "NONCE_LENGTH",
    "KEY_LENGTH",
]
