"""Per-request log context and response tagging."""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

REQUEST_ID_HEADER = "X-Request-Id"
CHAIN_ID_HEADER = "X-Chain-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Propagate X-Request-Id (or mint one) and tag every response with the indexed chain id.

    The chain id is bound into the structlog context too, so API logs from
    deployments serving different networks stay distinguishable.
    """

    def __init__(self, app: ASGIApp, chain_id: int) -> None:
        super().__init__(app)
        self.chain_id = str(chain_id)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path, chain_id=self.chain_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CHAIN_ID_HEADER] = self.chain_id
        return response
