"""SAT Vault API middleware."""

from satvault.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware

__all__ = ["REQUEST_ID_HEADER", "RequestIdMiddleware"]
