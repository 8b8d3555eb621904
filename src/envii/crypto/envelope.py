"""
Encrypted envelope format for Envii backups.

An envelope is a single base64 string:

    base64( salt[32] || nonce[12] || ciphertext || tag[16] )

The plaintext sealed inside is gzip-compressed before encryption, never
after, so ciphertext length reflects the compressed size. Encryption is
AES-256-GCM; the nonce is generated inside seal() on every call and
cannot be supplied by callers. No associated data is used. The salt is
not covered by the tag, but altering it changes the derived key, so the
tag check fails all the same.

Opening an envelope fails with a single AuthenticationError for every
kind of problem (bad base64, truncated data, tag mismatch, bad gzip
stream) so that a wrong phrase and a corrupted blob look identical.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import hashlib
import logging
import secrets
import zlib

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from envii.crypto.recovery import KEY_LENGTH, SALT_LENGTH, derive_key, generate_salt
from envii.errors import AuthenticationError

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12  # 96 bits for GCM
TAG_LENGTH = 16  # 128 bits
HEADER_LENGTH = SALT_LENGTH + NONCE_LENGTH
MIN_ENVELOPE_LENGTH = HEADER_LENGTH + TAG_LENGTH

DECRYPT_FAILED_MESSAGE = "Could not decrypt the backup. Wrong recovery phrase?"


def sha256_hex(content: str | bytes) -> str:
    """Compute the hex SHA-256 checksum of text (UTF-8) or bytes."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def compress(data: bytes) -> bytes:
    """Gzip-compress data with a fixed header timestamp."""
    return gzip.compress(data, mtime=0)


def decompress(data: bytes) -> bytes:
    """Decompress gzip data."""
    return gzip.decompress(data)


def compressed_sizes(plaintext: str | bytes) -> tuple[int, int]:
    """
    Get the uncompressed and compressed size of a plaintext.

    Returns:
        Tuple of (original_bytes, compressed_bytes).
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    return len(plaintext), len(compress(plaintext))


def seal(plaintext: str | bytes, key: bytes, salt: bytes) -> str:
    """
    Compress and encrypt a plaintext into an envelope.

    Args:
        plaintext: Data to protect. Text is encoded as UTF-8.
        key: 32-byte key derived from the recovery phrase and `salt`.
        salt: The salt used to derive `key`; stored in the clear so the
              key can be rebuilt before decryption.

    Returns:
        Base64 envelope string.

    Raises:
        ValueError: If the key or salt has the wrong length.
    """
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Key must be {KEY_LENGTH} bytes, got {len(key)}")
    if len(salt) != SALT_LENGTH:
        raise ValueError(f"Salt must be {SALT_LENGTH} bytes, got {len(salt)}")

    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")

    nonce = secrets.token_bytes(NONCE_LENGTH)
    # AESGCM appends the 16-byte tag
    encrypted = AESGCM(key).encrypt(nonce, compress(plaintext), None)

    return base64.b64encode(salt + nonce + encrypted).decode("ascii")


def seal_with_phrase(plaintext: str | bytes, phrase: str) -> str:
    """
    Seal a plaintext under a fresh salt derived key.

    Every call generates a new salt and, inside seal(), a new nonce.

    Args:
        plaintext: Data to protect.
        phrase: Recovery phrase.

    Returns:
        Base64 envelope string.
    """
    salt = generate_salt()
    key = derive_key(phrase, salt)
    return seal(plaintext, key, salt)


def _decode(envelope_text: str) -> bytes:
    """Decode an envelope string, rejecting anything too short to be valid."""
    try:
        data = base64.b64decode(envelope_text.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AuthenticationError(DECRYPT_FAILED_MESSAGE) from e

    if len(data) < MIN_ENVELOPE_LENGTH:
        raise AuthenticationError(DECRYPT_FAILED_MESSAGE)

    return data


def extract_salt(envelope_text: str) -> bytes:
    """
    Read the salt from an envelope without decrypting it.

    The salt must be read first because the key needed for decryption
    is derived from it.

    Raises:
        AuthenticationError: If the envelope is not decodable.
    """
    return _decode(envelope_text)[:SALT_LENGTH]


def unseal(envelope_text: str, key: bytes) -> bytes:
    """
    Decrypt, verify and decompress an envelope.

    Args:
        envelope_text: Base64 envelope produced by seal().
        key: Key derived from the phrase and the envelope's salt.

    Returns:
        The original plaintext bytes.

    Raises:
        AuthenticationError: On any failure. The cause is never exposed
                             in the message.
    """
    data = _decode(envelope_text)
    nonce = data[SALT_LENGTH:HEADER_LENGTH]
    encrypted = data[HEADER_LENGTH:]

    try:
        compressed = AESGCM(key).decrypt(nonce, encrypted, None)
    except (InvalidTag, ValueError) as e:
        logger.debug("Envelope tag verification failed")
        raise AuthenticationError(DECRYPT_FAILED_MESSAGE) from e

    try:
        return decompress(compressed)
    except (OSError, EOFError, zlib.error) as e:
        raise AuthenticationError(DECRYPT_FAILED_MESSAGE) from e
