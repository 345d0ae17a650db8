"""SAT Vault services."""

from satvault.services.submissions import SubmissionService, build_submission_service

__all__ = ["SubmissionService", "build_submission_service"]
