"""
Recovery identity for Envii.

A single 12-word BIP-39 recovery phrase is the only secret a user holds.
Everything else derives from it:

    - The symmetric encryption key, via PBKDF2-HMAC-SHA256 with a random
      per-backup salt (600,000 iterations).
    - The vault identifier, an unsalted SHA-256 digest of the phrase, used
      as the bearer credential towards the remote store.

Security Notes:
    - The vault identifier is deterministic and unsalted so that any
      machine holding the phrase can address the same vault. The same
      secret therefore protects confidentiality and grants access.
    - The store only ever sees the vault identifier, never the phrase or
      the derived key.
"""

from __future__ import annotations

import hashlib
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from mnemonic import Mnemonic

from envii.errors import InputError

# OWASP 2023 recommends 600,000 iterations for PBKDF2-SHA256
PBKDF2_ITERATIONS = 600_000
KEY_LENGTH = 32  # 256 bits, AES-256
SALT_LENGTH = 32  # 256 bits
PHRASE_WORD_COUNT = 12
PHRASE_STRENGTH_BITS = 128  # 12 words

_mnemonic = Mnemonic("english")


def generate_recovery_phrase() -> str:
    """
    Generate a new 12-word recovery phrase.

    Returns:
        Space-separated BIP-39 mnemonic with an embedded checksum.
    """
    return _mnemonic.generate(strength=PHRASE_STRENGTH_BITS)


def normalize_phrase(phrase: str) -> str:
    """Lower-case a phrase and collapse all whitespace to single spaces."""
    return " ".join(phrase.lower().split())


def validate_recovery_phrase(phrase: str) -> bool:
    """
    Check that a phrase is exactly 12 words with a valid BIP-39 checksum.

    Validation does not depend on whether this system ever issued the
    phrase.
    """
    normalized = normalize_phrase(phrase)
    if len(normalized.split(" ")) != PHRASE_WORD_COUNT:
        return False
    try:
        return bool(_mnemonic.check(normalized))
    except (ValueError, LookupError):
        return False


def require_valid_phrase(phrase: str) -> str:
    """
    Validate a phrase and return its normalized form.

    Raises:
        InputError: If the phrase is not a valid 12-word recovery phrase.
    """
    normalized = normalize_phrase(phrase)
    word_count = len(normalized.split()) if normalized else 0
    if word_count != PHRASE_WORD_COUNT:
        raise InputError(
            f"Recovery phrase must be exactly {PHRASE_WORD_COUNT} words "
            f"(got {word_count})."
        )
    if not validate_recovery_phrase(normalized):
        raise InputError("Invalid recovery phrase. Check the words and try again.")
    return normalized


def generate_salt() -> bytes:
    """Generate a fresh random salt for key derivation."""
    return secrets.token_bytes(SALT_LENGTH)


def derive_key(
    phrase: str,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
) -> bytes:
    """
    Derive the symmetric encryption key from a phrase and salt.

    Same phrase and salt always produce the same key, so the salt stored
    in an envelope is enough to rebuild the key on another machine.

    Args:
        phrase: Recovery phrase (normalized before use).
        salt: Salt bytes taken from the envelope.
        iterations: PBKDF2 round count.

    Returns:
        32-byte key suitable for AES-256-GCM.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(normalize_phrase(phrase).encode("utf-8"))


def vault_identifier(phrase: str) -> str:
    """
    Compute the vault identifier for a phrase.

    Returns:
        Hex-encoded SHA-256 digest of the normalized phrase.
    """
    return hashlib.sha256(normalize_phrase(phrase).encode("utf-8")).hexdigest()
