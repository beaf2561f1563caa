import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)

#Adds security headers to every response.
class SecurityMiddleware(BaseHTTPMiddleware):
    """Security headers for browser clients."""

    async def dispatch(self, request: Request, call_next):
        #Calls the next middleware (call_next) and waits for the response.
        response = await call_next(request)

        # Security headers
        response.headers["X-Content-Type-Options"] = "nosniff"  #Prevents browsers from interpreting files as a different MIME type.
        response.headers["X-Frame-Options"] = "DENY" #Prevents clickjacking by disallowing embedding in iframes.
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains" #Forces HTTPS for a year.
        response.headers["Content-Security-Policy"] = "default-src 'self'"  #Restricts content sources to only the same origin.

        return response

#Binds request id, method and path to every log line of the request.
class RequestContextMiddleware(BaseHTTPMiddleware):
    """Per-request logging context and an access log entry."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        clear_context()
        bind_context(request_id=request_id, method=request.method, path=request.url.path)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed")
            raise
        finally:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        response.headers["X-Request-ID"] = request_id
        clear_context()
        return response
