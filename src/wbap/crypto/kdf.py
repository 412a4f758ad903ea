"""
Passphrase key derivation for backup files.

Keys are derived with PBKDF2-HMAC-SHA256. The iteration count is pinned to
the backup format version instead of being written into each file, so a
backup created at version 1 always derives its key with the version 1 cost.
Raising the cost means adding a new format version to KDF_ITERATIONS.
"""

from __future__ import annotations

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from wbap.errors import UnsupportedVersionError

# Current backup format version. Increment for breaking format changes.
FORMAT_VERSION = 1

# PBKDF2 iterations per format version. Existing entries must never change.
KDF_ITERATIONS: dict[int, int] = {
    1: 100_000,
}

SALT_LENGTH = 16  # 128 bits
NONCE_LENGTH = 12  # 96 bits, the AES-GCM standard nonce size
KEY_LENGTH = 32  # AES-256


def iterations_for_version(version: int) -> int:
    """
    Look up the PBKDF2 iteration count for a format version.

    Raises:
        UnsupportedVersionError: If the version has no pinned iteration count.
    """
    try:
        return KDF_ITERATIONS[version]
    except KeyError:
        raise UnsupportedVersionError(version) from None


def derive_key(passphrase: str, salt: bytes, version: int = FORMAT_VERSION) -> bytes:
    """
    Derive a 256-bit AES key from a passphrase and salt.

    No passphrase rules are enforced here. A wrong passphrase still yields
    a key; it is only rejected later by the authentication tag.

    Args:
        passphrase: User-provided passphrase.
        salt: Random salt bytes from the envelope.
        version: Backup format version that selects the iteration count.

    Returns:
        Raw key bytes (KEY_LENGTH long).
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations_for_version(version),
    )
    return kdf.derive(passphrase.encode("utf-8"))
