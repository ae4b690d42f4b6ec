"""
JSON formatters for application and audit logs.

Every record becomes one JSON line. Context fields are copied from the
record, where the logging filters and ``extra=`` put them.
"""
import json
import logging
from datetime import datetime, timezone

from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()

SERVICE_NAME = 'pharmalync-payments'

# (record attribute, default)
APP_CONTEXT_FIELDS = (
    ('request_id', ''),
    ('payment_id', ''),
    ('retailer_id', ''),
    ('tenant_id', ''),
    ('app_version', ''),
)

AUDIT_CONTEXT_FIELDS = (
    ('request_id', ''),
    ('request_method', ''),
    ('request_path', ''),
    ('status_code', 0),
    ('duration', 0.0),
    ('hostname', ''),
    ('app_name', ''),
    ('module_name', ''),
    ('version', ''),
    ('app_version', ''),
)


class BaseJSONFormatter(logging.Formatter):
    context_fields: tuple = ()
    include_message = True

    def __init__(self):
        super().__init__()
        self.application_environment = configs.APPLICATION_ENVIRONMENT

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'service': SERVICE_NAME,
            'environment': self.application_environment,
            'level': record.levelname,
            'logger': record.name,
            'location': f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if self.include_message:
            entry['message'] = record.getMessage()
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception_type'] = record.exc_info[0].__name__
            entry['exception'] = str(record.exc_info[1])

        for name, default in self.context_fields:
            entry[name] = getattr(record, name, default)
        self.add_extra_fields(entry, record)
        return json.dumps(entry, ensure_ascii=False, default=str)

    def add_extra_fields(self, entry, record):
        pass


class AppLogsJSONFormatter(BaseJSONFormatter):
    context_fields = APP_CONTEXT_FIELDS


class AuditLogsJSONFormatter(BaseJSONFormatter):
    """Audit lines carry the request snapshot instead of a message"""

    context_fields = AUDIT_CONTEXT_FIELDS
    include_message = False

    def add_extra_fields(self, entry, record):
        snapshot = getattr(record, 'request', None)
        # stored as a string so the log sink keeps a flat schema
        entry['request'] = json.dumps(snapshot, ensure_ascii=False, default=str) if snapshot else ''
