"""SAT Vault - encrypted storage for SAT credentials and FIEL uploads."""

__version__ = "1.0.0"
