from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pharmalync.config.sentry import add_breadcrumb, capture_exception
from pharmalync.core.errors import PharmaLyncError
from pharmalync.logging.utils import get_app_logger
from pharmalync.middlewares.request_context import request_context

logger = get_app_logger(__name__)

# Settings
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()


async def _domain_exception_handler(request: Request, exc: PharmaLyncError):
    """Typed service errors are expected outcomes: warn, never page."""
    request_context.module_name = 'middleware_handlers'
    logger.warning(
        f"domain_error | method={request.method} path={request.url.path} "
        f"error={exc.error_code} status_code={exc.status_code} message={exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    request_context.module_name = 'middleware_handlers'
    logger.warning(f"validation_error | method={request.method} path={request.url.path} errors={exc.errors()}")
    add_breadcrumb(
        message=f"Validation error on {request.method} {request.url.path}",
        category="validation",
        level="warning",
        data={"errors": str(exc.errors())},
    )

    if not configs.DEBUG:
        payload = {"success": False, "error": "invalid_request", "message": "Invalid request data"}
    else:
        error_messages = []
        for err in exc.errors():
            field_path = " -> ".join(str(loc) for loc in err.get("loc", []))
            error_messages.append(f"{field_path}: {err.get('msg', 'Invalid input')}")
        payload = {"success": False, "error": "invalid_request", "message": "; ".join(error_messages)}
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload)


async def _http_exception_handler(request: Request, exc: Any):
    request_context.module_name = 'middleware_handlers'
    status_code = getattr(exc, 'status_code', status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail = getattr(exc, 'detail', str(exc))
    if status_code >= 500:
        logger.error(f"http_exception | method={request.method} path={request.url.path} status_code={status_code} detail={detail}")
        add_breadcrumb(
            message=f"HTTP {status_code} on {request.method} {request.url.path}",
            category="http",
            level="error",
            data={"status_code": status_code, "detail": str(detail)},
        )
        capture_exception(exc)
    else:
        logger.warning(f"http_exception | method={request.method} path={request.url.path} status_code={status_code} detail={detail}")

    if not configs.DEBUG:
        if status_code == 404:
            message = "Resource not found"
        elif 400 <= status_code < 500:
            message = "Invalid request"
        else:
            message = "Something went wrong"
    else:
        message = detail
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def _general_exception_handler(request: Request, exc: Exception):
    request_context.module_name = 'middleware_handlers'
    logger.error(
        f"unhandled_exception | method={request.method} path={request.url.path} "
        f"exception_type={type(exc).__name__} exception_message={exc}",
        exc_info=exc,
    )
    add_breadcrumb(
        message=f"Unhandled exception on {request.method} {request.url.path}",
        category="exception",
        level="error",
        data={"exception_type": type(exc).__name__},
    )
    capture_exception(exc)

    if not configs.DEBUG:
        payload = {"success": False, "message": "Something went wrong"}
    else:
        payload = {"success": False, "message": f"Internal server error: {exc}"}
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PharmaLyncError, _domain_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _general_exception_handler)
