import hmac
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import AuthenticationError, BusinessLogicError, create_error_response

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("X-Tenant-ID", "X-App-ID", "X-API-Key")


class TenantMiddleware(BaseHTTPMiddleware):
    """Identifies the tenant and calling application for every API request."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        # OpenAPI schema is public
        if not path.startswith(settings.API_PREFIX) or path == request.app.openapi_url:
            return await call_next(request)

        missing = [name for name in REQUIRED_HEADERS if not request.headers.get(name)]
        if missing:
            error = BusinessLogicError(
                message="Missing tenant identification headers",
                details={"missing_headers": missing},
                error_code="MISSING_TENANT_HEADERS"
            )
            return JSONResponse(status_code=error.status_code, content=create_error_response(error))

        app_id = request.headers["X-App-ID"]
        expected_key = settings.APP_API_KEYS.get(app_id)
        if not expected_key or not hmac.compare_digest(expected_key, request.headers["X-API-Key"]):
            logger.warning(f"Rejected API key for app {app_id}")
            error = AuthenticationError(message="Invalid application credentials", error_code="INVALID_API_KEY")
            return JSONResponse(status_code=error.status_code, content=create_error_response(error))

        request.state.tenant_id = request.headers["X-Tenant-ID"]
        request.state.app_id = app_id

        response = await call_next(request)
        return response
