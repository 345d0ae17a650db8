"""SAT Vault HTTP API."""
