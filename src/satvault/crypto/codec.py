"""Authenticated encryption of secrets before persistence.

Secrets are sealed with AES-256-GCM under a key derived from the server-held
master passphrase. The storage encoding is two base64 strings:

- payload: ciphertext followed by the 16-byte GCM tag
- iv: the 12-byte nonce generated for this call

Key derivation uses a fixed application salt so the same passphrase yields the
same key after a restart without storing key material. Per-record salts are not
supported; swap the KeyDeriver to change that.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16

FIXED_SALT = b"sat-cred-salt"
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


class CodecError(Exception):
    """Raised when a secret cannot be encoded or decoded."""


class AuthenticationError(CodecError):
    """Raised when the GCM tag does not verify (tampered data or wrong key)."""


class LegacyNonceError(CodecError):
    """Raised when decoding a row stored before the iv column existed."""


@dataclass(frozen=True)
class EncodedSecret:
    """Storage-ready encoding of one encrypted secret.

    Attributes:
        payload: base64(ciphertext || tag).
        iv: base64(nonce).
    """

    payload: str
    iv: str


class KeyDeriver(Protocol):
    """Turns a passphrase into a symmetric key."""

    def derive(self, passphrase: bytes) -> bytes: ...


@lru_cache(maxsize=8)
def _scrypt(passphrase: bytes, salt: bytes, n: int, r: int, p: int) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=n, r=r, p=p)
    return kdf.derive(passphrase)


class FixedSaltScryptKeyDeriver:
    """scrypt key derivation with a constant application salt.

    Parameters match the defaults of Node's crypto.scryptSync so rows written
    by earlier deployments stay decodable.
    """

    def __init__(
        self,
        salt: bytes = FIXED_SALT,
        *,
        n: int = SCRYPT_N,
        r: int = SCRYPT_R,
        p: int = SCRYPT_P,
    ) -> None:
        self._salt = salt
        self._n = n
        self._r = r
        self._p = p

    def derive(self, passphrase: bytes) -> bytes:
        """Derive a 256-bit key. Results are memoized in process memory."""
        if not passphrase:
            raise CodecError("Master passphrase is not configured")
        return _scrypt(passphrase, self._salt, self._n, self._r, self._p)


def _b64decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"Invalid base64 in {field}") from e


class SecretCodec:
    """AES-256-GCM encoder for secrets at rest."""

    def __init__(self, key_deriver: KeyDeriver | None = None) -> None:
        self._key_deriver = key_deriver or FixedSaltScryptKeyDeriver()

    def encrypt(self, plaintext: bytes, passphrase: bytes) -> EncodedSecret:
        """Encrypt a secret with a fresh nonce.

        Args:
            plaintext: Secret bytes; must be non-empty.
            passphrase: Master passphrase; must be non-empty.

        Returns:
            EncodedSecret with base64 payload and base64 iv.

        Raises:
            CodecError: If plaintext or passphrase is empty.
        """
        if not plaintext:
            raise CodecError("Refusing to encrypt an empty secret")
        if not passphrase:
            raise CodecError("Master passphrase is not configured")

        key = self._key_deriver.derive(passphrase)
        nonce = os.urandom(NONCE_LENGTH)
        sealed = AESGCM(key).encrypt(nonce, plaintext, None)

        return EncodedSecret(
            payload=base64.b64encode(sealed).decode("ascii"),
            iv=base64.b64encode(nonce).decode("ascii"),
        )

    def decrypt(self, payload: str, iv: str | None, passphrase: bytes) -> bytes:
        """Decrypt a stored payload.

        Args:
            payload: base64(ciphertext || tag) as produced by encrypt().
            iv: base64 nonce, or None for rows written before iv was stored.
            passphrase: Master passphrase used at encryption time.

        Returns:
            The original plaintext bytes.

        Raises:
            LegacyNonceError: If iv is None.
            AuthenticationError: If the tag does not verify.
            CodecError: If the encoding is malformed or passphrase is empty.
        """
        if iv is None:
            raise LegacyNonceError("Row has no stored iv; legacy nonce convention is unsupported")
        if not passphrase:
            raise CodecError("Master passphrase is not configured")

        nonce = _b64decode(iv, "iv")
        if len(nonce) != NONCE_LENGTH:
            raise CodecError(f"iv must decode to {NONCE_LENGTH} bytes, got {len(nonce)}")

        sealed = _b64decode(payload, "payload")
        if len(sealed) < TAG_LENGTH:
            raise CodecError("Payload is shorter than the authentication tag")

        key = self._key_deriver.derive(passphrase)
        try:
            return AESGCM(key).decrypt(nonce, sealed, None)
        except InvalidTag as e:
            logger.warning("Authentication tag mismatch on decrypt (payload_len=%d)", len(sealed))
            raise AuthenticationError("Authentication tag mismatch") from e
