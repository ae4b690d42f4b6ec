"""
Logger factories used across the service.

    logger = get_app_logger(__name__)
    logger.info(f"otp_issued | payment_id={payment_id}")
"""
import atexit
import logging

from pharmalync.logging.config import LoggingConfig
from pharmalync.logging.filters import PaymentContextFilter, RequestContextFilter
from pharmalync.logging.handlers import flush_all_handlers, get_app_handler, get_audit_handler
from pharmalync.logging.slack_handler import slack_handler

_app_handler = None


def _shared_app_handler():
    global _app_handler
    if _app_handler is None:
        _app_handler = get_app_handler()
        _app_handler.addFilter(RequestContextFilter())
        _app_handler.addFilter(PaymentContextFilter())
    return _app_handler


def get_app_logger(name: str = 'pharmalync'):
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.addHandler(_shared_app_handler())
    logger.addHandler(slack_handler)
    logger.setLevel(getattr(logging, LoggingConfig.LOG_LEVEL, logging.INFO))
    logger.propagate = False
    return logger


def get_audit_logger(name: str = 'pharmalync.audit'):
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    handler = get_audit_handler()
    handler.addFilter(RequestContextFilter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def initialize_logging():
    is_valid, message = LoggingConfig.is_valid_config()
    logger = get_app_logger('pharmalync')
    if not is_valid:
        logger.warning(f"logging_config_invalid | reason={message}")
    atexit.register(flush_all_handlers)
    logger.info(f"logging_initialized | firehose={LoggingConfig.FIREHOSE_ENABLED} local_target={LoggingConfig.LOCAL_LOG_TARGET}")
