"""
Request context stored in a ContextVar so logging filters can read the
identifiers of the payment being worked on.
"""
from contextvars import ContextVar
import uuid


class RequestContext:
    def __init__(self):
        self.request_id: str | None = None
        self.module_name: str | None = None
        self.request_method: str | None = None
        self.request_path: str | None = None
        self.payment_id: str | None = None
        self.retailer_id: str | None = None
        self.tenant_id: str | None = None
        self.app_version: str | None = None


_request_context_var: ContextVar[RequestContext] = ContextVar("request_context", default=RequestContext())


class _RequestContextProxy:
    def __getattr__(self, name):
        return getattr(_request_context_var.get(), name)

    def __setattr__(self, name, value):
        setattr(_request_context_var.get(), name, value)


request_context = _RequestContextProxy()


def set_request_context(ctx: RequestContext):
    _request_context_var.set(ctx)


def clear_request_context():
    _request_context_var.set(RequestContext())


def create_request_id() -> str:
    # fresh context per request so values never leak between requests
    set_request_context(RequestContext())
    rid = str(uuid.uuid4())
    request_context.request_id = rid
    return rid


def bind_payment_context(payment_id: str | None = None, retailer_id: str | None = None, tenant_id: str | None = None):
    """Attach business identifiers to the current context for log enrichment."""
    if payment_id:
        request_context.payment_id = payment_id
    if retailer_id:
        request_context.retailer_id = retailer_id
    if tenant_id:
        request_context.tenant_id = tenant_id
