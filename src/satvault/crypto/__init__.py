"""Secret encryption for SAT Vault."""

from satvault.crypto.codec import (
    AuthenticationError,
    CodecError,
    EncodedSecret,
    FixedSaltScryptKeyDeriver,
    KeyDeriver,
    LegacyNonceError,
    SecretCodec,
)

__all__ = [
    "AuthenticationError",
    "CodecError",
    "EncodedSecret",
    "FixedSaltScryptKeyDeriver",
    "KeyDeriver",
    "LegacyNonceError",
    "SecretCodec",
]
