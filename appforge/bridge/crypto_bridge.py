"""Crypto bridge — anonymous sealed boxes via PyNaCl (libsodium).

Bridge boundary
---------------
Deployment credentials are handed to the remote CI system encrypted to the
repository's secret-store public key with ``crypto_box_seal``:

- the sender has no persistent keypair, so ciphertext cannot be attributed;
- only the holder of the matching private key can decrypt;
- sealing is randomised (an ephemeral keypair per call), so sealing the same
  plaintext twice never produces the same ciphertext.

The recipient key must be fetched immediately before each seal; nothing in
this module caches keys.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging

import nacl.exceptions
import nacl.public

from appforge.models.provisioning import SecretBundle

logger = logging.getLogger(__name__)

# Curve25519 public keys are 32 bytes.
PUBLIC_KEY_SIZE = nacl.public.PublicKey.SIZE


class SealingError(ValueError):
    """Raised when a recipient key is malformed or sealing fails."""


def seal(plaintext: bytes, recipient_public_key: bytes) -> bytes:
    """Encrypt *plaintext* to *recipient_public_key* with an anonymous sealed box.

    Parameters
    ----------
    plaintext:
        The secret bytes to protect.
    recipient_public_key:
        Raw 32-byte Curve25519 public key of the recipient.

    Returns
    -------
    bytes
        Raw ciphertext (ephemeral public key + MAC + encrypted payload).
    """
    if len(recipient_public_key) != PUBLIC_KEY_SIZE:
        raise SealingError(
            f"Recipient public key must be {PUBLIC_KEY_SIZE} bytes, "
            f"got {len(recipient_public_key)}"
        )
    try:
        box = nacl.public.SealedBox(nacl.public.PublicKey(recipient_public_key))
        return box.encrypt(plaintext)
    except nacl.exceptions.CryptoError as exc:
        raise SealingError(f"Sealing failed: {exc}") from exc


def decode_public_key(public_key_b64: str) -> bytes:
    """Decode a base64 public key as returned by the source-hosting API."""
    try:
        return base64.b64decode(public_key_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SealingError(f"Public key is not valid base64: {exc}") from exc


def seal_secret(plaintext: bytes, public_key_b64: str, key_id: str) -> SecretBundle:
    """Seal *plaintext* for the key identified by *key_id*.

    The key id travels with the ciphertext so the remote side can pick the
    matching private key if it holds several.
    """
    recipient = decode_public_key(public_key_b64)
    encrypted = seal(plaintext, recipient)
    logger.debug(
        "Sealed %d bytes for key_id=%s (fingerprint %s)",
        len(plaintext),
        key_id,
        key_fingerprint(public_key_b64),
    )
    return SecretBundle(encrypted_value=encrypted, key_id=key_id)


def key_fingerprint(public_key: str) -> str:
    """Compute a short fingerprint of a public key.

    Returns the first 16 hex characters of SHA-256(public_key_bytes).
    Used for recording which key was active without logging the key.
    """
    if not public_key:
        return ""
    digest = hashlib.sha256(public_key.encode("utf-8")).hexdigest()
    return digest[:16]
