import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("gatewayapi")

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by load balancers, logged at DEBUG
QUIET_PATHS = ("/health",)


def _operation(request: Request) -> str:
    """Route template such as /api/v1/transactions/{transaction_id}"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _caller(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    return "bearer" if auth.lower().startswith("bearer ") else "anonymous"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request, tagged with a request id.

    The id is taken from X-Request-ID when the caller sends one and is
    echoed back on the response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        client = request.client.host if request.client else "-"
        tag = f"[{request_id}] {request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{tag} from {client} failed ({_caller(request)})")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        message = (
            f"{tag} -> {response.status_code} in {duration_ms:.1f}ms "
            f"op={_operation(request)} caller={_caller(request)} client={client}"
        )
        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        elif request.url.path in QUIET_PATHS:
            logger.debug(message)
        else:
            logger.info(message)
        return response
