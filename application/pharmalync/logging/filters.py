"""
Logging filters that copy request and payment identifiers onto records.
"""
import logging
from pharmalync.middlewares.request_context import request_context


class RequestContextFilter(logging.Filter):
    def filter(self, record):
        record.request_id = getattr(request_context, 'request_id', None) or ''
        record.request_method = getattr(request_context, 'request_method', None) or ''
        record.request_path = getattr(request_context, 'request_path', None) or ''
        record.app_version = getattr(request_context, 'app_version', None) or ''
        return True


class PaymentContextFilter(logging.Filter):
    def filter(self, record):
        # explicit extra= values win over the ambient context
        if not getattr(record, 'payment_id', None):
            record.payment_id = getattr(request_context, 'payment_id', None) or ''
        if not getattr(record, 'retailer_id', None):
            record.retailer_id = getattr(request_context, 'retailer_id', None) or ''
        if not getattr(record, 'tenant_id', None):
            record.tenant_id = getattr(request_context, 'tenant_id', None) or ''
        return True
