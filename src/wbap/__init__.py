"""
wbap - encrypted backup and restore for Well-Being Action Plans

Lets a patient export the plan data held on their device (plan snapshot,
profile and check-in history) into a single passphrase-protected file, and
restore that file on any device.

Key Features:
    - PBKDF2-HMAC-SHA256 key derivation, cost pinned per format version
    - AES-256-GCM authenticated encryption of the whole payload
    - Self-describing, versioned JSON envelope (.wbap)
    - Restore flow that forgives one mistyped passphrase, then escalates

Design Principles:
    - No server: backup and restore are purely local
    - Nothing secret is stored: derived keys live only for one call
    - Generic failures: a wrong passphrase and a damaged file look the same
"""

__version__ = "0.1.0"
__author__ = ""
__email__ = ""

from wbap.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
