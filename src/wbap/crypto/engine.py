"""
Authenticated encryption of backup payloads.

A backup file is a small JSON envelope:

    {
      "version": 1,
      "salt": "<base64, 16 bytes>",
      "iv":   "<base64, 12 bytes>",
      "data": "<base64, AES-256-GCM ciphertext with appended tag>"
    }

Security Design:
    - Fresh random salt and nonce from os.urandom on every encrypt() call
    - AES-256-GCM over the whole serialized payload, never per field
    - The GCM tag is the only correctness check: a wrong passphrase and a
      modified ciphertext raise the same DecryptionFailedError
    - Derived keys are never stored or logged
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from wbap.crypto.kdf import FORMAT_VERSION, NONCE_LENGTH, SALT_LENGTH, derive_key
from wbap.errors import (
    DecryptionFailedError,
    InvalidFormatError,
    InvalidStructureError,
    UnsupportedVersionError,
)

logger = logging.getLogger(__name__)

ENVELOPE_FIELDS = ("version", "salt", "iv", "data")


@dataclass(frozen=True)
class EncryptedEnvelope:
    """
    Encrypted backup as stored in the exported file.

    Attributes:
        version: Backup format version.
        salt: PBKDF2 salt.
        iv: AES-GCM nonce.
        ciphertext: Ciphertext with the 16-byte GCM tag appended.
    """

    version: int
    salt: bytes
    iv: bytes
    ciphertext: bytes

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dictionary with base64 byte fields."""
        return {
            "version": self.version,
            "salt": _b64encode(self.salt),
            "iv": _b64encode(self.iv),
            "data": _b64encode(self.ciphertext),
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize the envelope as backup file text."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EncryptedEnvelope:
        """
        Create an envelope from a parsed wire dictionary.

        The version gate runs before the byte fields are decoded, so a
        newer-version file is reported as such even if its layout changed.

        Raises:
            InvalidStructureError: If a field is missing or malformed.
            UnsupportedVersionError: If the version is newer than supported.
        """
        for name in ENVELOPE_FIELDS:
            if not data.get(name):
                raise InvalidStructureError()

        version = data["version"]
        if isinstance(version, float) and version.is_integer():
            version = int(version)
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise InvalidStructureError()
        if version > FORMAT_VERSION:
            raise UnsupportedVersionError(version)

        salt = _b64decode(data["salt"])
        iv = _b64decode(data["iv"])
        ciphertext = _b64decode(data["data"])

        if len(salt) != SALT_LENGTH or len(iv) != NONCE_LENGTH:
            raise InvalidStructureError()

        return cls(version=version, salt=salt, iv=iv, ciphertext=ciphertext)


def parse_envelope(text: str | bytes) -> EncryptedEnvelope:
    """
    Parse backup file text into an envelope.

    Compact and pretty-printed JSON are both accepted.

    Raises:
        InvalidFormatError: If the text is not a JSON object.
        InvalidStructureError: If required fields are missing or malformed.
        UnsupportedVersionError: If the envelope version is too new.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
        raise InvalidFormatError() from e

    if not isinstance(data, dict):
        raise InvalidFormatError()

    return EncryptedEnvelope.from_dict(data)


def encrypt(plaintext: bytes, passphrase: str) -> EncryptedEnvelope:
    """
    Encrypt bytes with a passphrase.

    Args:
        plaintext: Serialized payload.
        passphrase: User-provided passphrase.

    Returns:
        EncryptedEnvelope at the current format version.
    """
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(NONCE_LENGTH)

    key = derive_key(passphrase, salt, FORMAT_VERSION)
    ciphertext = AESGCM(key).encrypt(iv, plaintext, None)

    logger.debug(f"Encrypted {len(plaintext):,} bytes (format v{FORMAT_VERSION})")

    return EncryptedEnvelope(
        version=FORMAT_VERSION,
        salt=salt,
        iv=iv,
        ciphertext=ciphertext,
    )


def decrypt(envelope: EncryptedEnvelope, passphrase: str) -> bytes:
    """
    Decrypt an envelope with a passphrase.

    Args:
        envelope: Envelope read from a backup file.
        passphrase: Passphrase to try.

    Returns:
        The decrypted plaintext bytes.

    Raises:
        UnsupportedVersionError: If the envelope version is too new.
        DecryptionFailedError: If authentication fails for any reason.
    """
    if envelope.version > FORMAT_VERSION:
        raise UnsupportedVersionError(envelope.version)

    key = derive_key(passphrase, envelope.salt, envelope.version)

    try:
        return AESGCM(key).decrypt(envelope.iv, envelope.ciphertext, None)
    except (InvalidTag, ValueError) as e:
        # ValueError covers nonce lengths AESGCM rejects outright
        raise DecryptionFailedError() from e


def encrypt_json(data: dict[str, Any], passphrase: str) -> EncryptedEnvelope:
    """Encrypt a JSON-serializable dictionary as one atomic blob."""
    plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return encrypt(plaintext, passphrase)


def decrypt_json(envelope: EncryptedEnvelope, passphrase: str) -> dict[str, Any]:
    """
    Decrypt an envelope whose plaintext is a JSON object.

    Raises:
        DecryptionFailedError: If authentication fails.
        InvalidStructureError: If the plaintext is not a JSON object.
    """
    plaintext = decrypt(envelope, passphrase)

    try:
        data = json.loads(plaintext.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
        raise InvalidStructureError() from e

    if not isinstance(data, dict):
        raise InvalidStructureError()

    return data


def _b64encode(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _b64decode(value: Any) -> bytes:
    if not isinstance(value, str):
        raise InvalidStructureError()
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidStructureError() from e
