"""
Cryptography for Envii.

Recovery phrase handling (key derivation, vault identifier) and the
authenticated, compressed envelope that wraps every backup.
"""

from envii.crypto.envelope import (
    NONCE_LENGTH,
    TAG_LENGTH,
    compressed_sizes,
    extract_salt,
    seal,
    seal_with_phrase,
    sha256_hex,
    unseal,
)
from envii.crypto.recovery import (
    PBKDF2_ITERATIONS,
    SALT_LENGTH,
    derive_key,
    generate_recovery_phrase,
    generate_salt,
    normalize_phrase,
    require_valid_phrase,
    validate_recovery_phrase,
    vault_identifier,
)

__all__ = [
    # Recovery identity
    "generate_recovery_phrase",
    "validate_recovery_phrase",
    "require_valid_phrase",
    "normalize_phrase",
    "generate_salt",
    "derive_key",
    "vault_identifier",
    "PBKDF2_ITERATIONS",
    "SALT_LENGTH",
    # Envelope
    "seal",
    "seal_with_phrase",
    "extract_salt",
    "unseal",
    "sha256_hex",
    "compressed_sizes",
    "NONCE_LENGTH",
    "TAG_LENGTH",
]
