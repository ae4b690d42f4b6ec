"""
Logging handlers for PharmaLync payments.
Buffered Firehose delivery when enabled, local file or stream otherwise.
"""
import logging
import os
import sys
import time
from logging.handlers import MemoryHandler

import boto3
from botocore.config import Config

from pharmalync.logging.config import LoggingConfig
from pharmalync.logging.formatters import AppLogsJSONFormatter, AuditLogsJSONFormatter


class FireHoseHandler(logging.Handler):
    """Kinesis Firehose sink with exponential backoff between batch retries"""

    def __init__(self, stream_name: str):
        super().__init__()
        self.stream_name = stream_name
        self.client = self._create_client()
        self.retry_count = LoggingConfig.FIREHOSE_RETRY_COUNT
        self.retry_delay = LoggingConfig.FIREHOSE_RETRY_DELAY

    def _create_client(self):
        return boto3.client(
            "firehose",
            region_name=LoggingConfig.FIREHOSE_REGION_NAME,
            aws_access_key_id=LoggingConfig.FIREHOSE_ACCESS_KEY_ID,
            aws_secret_access_key=LoggingConfig.FIREHOSE_SECRET_ACCESS_KEY,
            config=Config(connect_timeout=10, read_timeout=30, retries={"max_attempts": 2}),
        )

    def bulk_insert(self, actions) -> bool:
        if not actions:
            return True

        for attempt in range(self.retry_count):
            last_attempt = attempt == self.retry_count - 1
            try:
                response = self.client.put_record_batch(
                    DeliveryStreamName=self.stream_name,
                    Records=actions,
                )
                if response.get("FailedPutCount", 0) == 0:
                    return True
            except Exception as exc:
                # a logging sink must never raise into application code
                if last_attempt:
                    sys.stderr.write(f"firehose_put_failed | stream={self.stream_name} error={exc}\n")
                    return False
            if not last_attempt:
                time.sleep(self.retry_delay * (2 ** attempt))
        return False


class BufferedFirehoseHandler(MemoryHandler):
    """Flushes on capacity or once the buffer is older than LOG_BUFFER_TIMEOUT"""

    def __init__(self, capacity, target_handler, stream_name):
        super().__init__(capacity=capacity, target=target_handler)
        self.stream_name = stream_name
        self.buffer_timeout = LoggingConfig.LOG_BUFFER_TIMEOUT
        self.last_flush = time.time()

    def emit(self, record):
        super().emit(record)
        if time.time() - self.last_flush >= self.buffer_timeout:
            self.flush()

    def flush(self):
        self.acquire()
        try:
            if self.target and self.buffer:
                actions = [{"Data": self.format(record)} for record in self.buffer]
                self.target.bulk_insert(actions)
                self.buffer.clear()
                self.last_flush = time.time()
        finally:
            self.release()


def _buffered_handler(stream_name: str, capacity: int, formatter: logging.Formatter):
    target = FireHoseHandler(stream_name)
    handler = BufferedFirehoseHandler(capacity=capacity, target_handler=target, stream_name=stream_name)
    handler.setFormatter(formatter)
    target.setFormatter(formatter)
    return handler


_handlers = {}


def get_local_handler(name: str = 'app'):
    formatter = AuditLogsJSONFormatter() if name.startswith('audit') else AppLogsJSONFormatter()
    if LoggingConfig.LOCAL_LOG_TARGET == 'stream':
        handler = logging.StreamHandler()
    else:
        os.makedirs(LoggingConfig.LOG_DIR, exist_ok=True)
        handler = logging.FileHandler(os.path.join(LoggingConfig.LOG_DIR, f'{name}.log'))
    handler.setFormatter(formatter)
    return handler


def get_app_handler():
    if not LoggingConfig.FIREHOSE_ENABLED:
        return get_local_handler('app')
    if 'app' not in _handlers:
        stream = LoggingConfig.APP_LOGS_STREAM_NAME or 'pharmalync-payments-app-logs'
        _handlers['app'] = _buffered_handler(stream, LoggingConfig.APP_LOGS_CAPACITY, AppLogsJSONFormatter())
    return _handlers['app']


def get_audit_handler():
    if not LoggingConfig.FIREHOSE_ENABLED:
        return get_local_handler('audit_logs')
    if 'audit' not in _handlers:
        stream = LoggingConfig.AUDIT_LOGS_STREAM_NAME or 'pharmalync-payments-audit-logs'
        _handlers['audit'] = _buffered_handler(stream, LoggingConfig.AUDIT_LOGS_CAPACITY, AuditLogsJSONFormatter())
    return _handlers['audit']


def flush_all_handlers():
    for handler in _handlers.values():
        handler.flush()
