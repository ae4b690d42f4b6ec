"""
Request audit middleware.
Starts a fresh request context, records timing and writes one audit entry
per request to the audit stream.
"""
import json
import socket
import time
from datetime import datetime

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from pharmalync.logging.config import LoggingConfig
from pharmalync.logging.utils import get_app_logger, get_audit_logger
from pharmalync.middlewares.request_context import clear_request_context, create_request_id, request_context

# Settings
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()

MASKED_HEADERS = ('authorization', 'cookie', 'x-api-key')
# request bodies on these paths carry OTP codes or device tokens
MASKED_BODY_FIELDS = ('code', 'otp', 'token')


class AuditMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.logger = get_app_logger('pharmalync.middlewares.audit')
        self.exclude_audit_paths = exclude_paths or ['/health', '/docs', '/redoc', '/openapi.json']
        self.hostname = socket.gethostname()
        self.app_name = configs.APP_NAME
        self.version = configs.APP_VERSION

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = create_request_id()
        start_time = time.time()
        timestamp = datetime.now().isoformat()
        body_bytes = await request.body()

        request_context.request_method = request.method
        request_context.request_path = request.url.path
        request_context.app_version = request.headers.get('x-app-version', '')

        should_audit = LoggingConfig.AUDIT_LOGGING_ENABLED and not any(
            request.url.path.startswith(p) for p in self.exclude_audit_paths
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration = (time.time() - start_time) * 1000
            self.logger.error(
                f"request_failed | method={request.method} path={request.url.path} "
                f"error_type={exc.__class__.__name__} duration_ms={duration:.0f}",
                exc_info=True,
            )
            if should_audit:
                audit_data = self._build_audit_data(request, 500, body_bytes, duration, request_id, timestamp)
                audit_data['exception'] = exc.__class__.__name__
                get_audit_logger().info("audit", extra=audit_data)
            clear_request_context()
            raise

        duration = (time.time() - start_time) * 1000
        if should_audit:
            audit_data = self._build_audit_data(request, response.status_code, body_bytes, duration, request_id, timestamp)
            get_audit_logger().info("audit", extra=audit_data)
        response.headers['x-request-id'] = request_id
        clear_request_context()
        return response

    @staticmethod
    def _mask_headers(headers) -> dict:
        return {k: ('****' if k.lower() in MASKED_HEADERS else v) for k, v in headers.items()}

    @staticmethod
    def _parse_body(request: Request, body_bytes: bytes):
        if not body_bytes:
            return {}
        if 'application/json' not in request.headers.get('content-type', ''):
            return body_bytes.decode('utf-8', errors='replace')[:1000]
        try:
            body = json.loads(body_bytes.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return {}
        if isinstance(body, dict):
            for field in MASKED_BODY_FIELDS:
                if field in body:
                    body[field] = '****'
        return body

    def _build_audit_data(self, request: Request, status_code: int, body_bytes: bytes,
                          duration: float, request_id: str, timestamp: str) -> dict:
        request_json = {
            "GET": dict(request.query_params),
            "BODY": self._parse_body(request, body_bytes),
            "HEADERS": self._mask_headers(dict(request.headers)),
        }
        return {
            'duration': round(duration, 2),
            'hostname': self.hostname,
            'app_name': self.app_name,
            'module_name': request_context.module_name,
            'request': request_json,
            'request_id': request_id,
            'request_method': request.method,
            'request_path': request.url.path,
            'status_code': status_code,
            'timestamp': timestamp,
            'version': self.version,
            'app_version': request_context.app_version,
        }
