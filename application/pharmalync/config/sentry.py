import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger("pharmalync.sentry")

# Settings
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()

SENSITIVE_HEADERS = ('authorization', 'cookie', 'x-api-key', 'x-auth-token')
# OTP codes and device tokens must never leave the service
SENSITIVE_FIELDS = ('otp', 'code', 'token', 'secret', 'key', 'password', 'auth')


def init_sentry():
    """Initialize Sentry when SENTRY_ENABLED is set and a DSN is configured"""
    if not configs.SENTRY_ENABLED:
        logger.info("sentry_disabled")
        return

    if not configs.SENTRY_DSN:
        logger.warning("sentry_dsn_missing | SENTRY_ENABLED is true but SENTRY_DSN is empty")
        return

    sentry_sdk.init(
        dsn=configs.SENTRY_DSN,
        environment=configs.ENVIRONMENT,
        release=configs.SENTRY_RELEASE,
        traces_sample_rate=float(configs.SENTRY_TRACES_SAMPLE_RATE),
        profiles_sample_rate=float(configs.SENTRY_PROFILES_SAMPLE_RATE),
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
        before_send=before_send_filter,
    )
    logger.info(f"sentry_initialized | environment={configs.ENVIRONMENT}")


def _scrub(data: dict):
    for key in list(data.keys()):
        lowered = key.lower()
        if any(field in lowered for field in SENSITIVE_FIELDS):
            data[key] = '[Filtered]'


def before_send_filter(event, hint):
    """Strip credentials, OTP codes and device tokens from outgoing events"""
    request = event.get('request') or {}

    headers = request.get('headers')
    if isinstance(headers, dict):
        for header in SENSITIVE_HEADERS:
            if header in headers:
                headers[header] = '[Filtered]'

    data = request.get('data')
    if isinstance(data, dict):
        _scrub(data)

    return event


def capture_exception(exception, **kwargs):
    if configs.SENTRY_ENABLED:
        sentry_sdk.capture_exception(exception, **kwargs)
    logger.error(f"exception_captured | error={exception}", exc_info=exception)


def add_breadcrumb(message, category="payments", level="info", data=None):
    if configs.SENTRY_ENABLED:
        sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data or {})
