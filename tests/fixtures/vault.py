"""Shared constants for SAT Vault tests."""

TEST_PASSPHRASE = b"test-master-passphrase"

# Low-cost scrypt parameters keep the suite fast; production uses N=2**14.
FAST_SCRYPT_N = 2**10
