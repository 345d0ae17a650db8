"""Persistence repositories for SAT Vault."""

from satvault.persistence.repositories.submissions import (
    InMemorySubmissionStore,
    PostgresSubmissionStore,
    RecordWriter,
    SubmissionStore,
)

__all__ = [
    "InMemorySubmissionStore",
    "PostgresSubmissionStore",
    "RecordWriter",
    "SubmissionStore",
]
