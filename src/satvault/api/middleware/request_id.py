"""Request ID middleware for the SAT Vault API.

Every request carries a request ID that appears in logs and error envelopes.
"""

import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to request.state and the X-Request-Id response header.

    A non-empty incoming X-Request-Id (up to 128 chars) is reused; otherwise a
    uuid4 is generated.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        incoming_request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip()

        if incoming_request_id and len(incoming_request_id) <= MAX_REQUEST_ID_LENGTH:
            request_id = incoming_request_id
        else:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id

        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        return response
