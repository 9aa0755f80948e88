"""
Account key hashing.

  • SHA-256 is enough here: keys are 256-bit random strings, not
    passwords, and the hash sits on the hot path of every request.
  • Raw keys carry the ps_live_ prefix so they are recognisable in
    secret scanners.
  • generate_account_key() hands out the raw key exactly once.
"""

import hashlib
import secrets


KEY_PREFIX = "ps_live_"
DISPLAY_PREFIX_LENGTH = 12


def hash_account_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def display_prefix(raw_key: str) -> str:
    """First characters of a key, safe to show in the UI and in logs."""
    return raw_key[:DISPLAY_PREFIX_LENGTH]


def generate_account_key() -> tuple[str, str]:
    """
    Generate a new account key.

    Returns:
        (raw_key, key_hash) — raw_key is shown once, key_hash is stored.
    """
    raw_key = f"{KEY_PREFIX}{secrets.token_hex(32)}"
    return raw_key, hash_account_key(raw_key)
