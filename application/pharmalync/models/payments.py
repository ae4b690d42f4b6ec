from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from pharmalync.core.constants import PaymentState
from pharmalync.models.common import Amount, DocumentModel
from pharmalync.models.notifications import CompletionReport, DispatchResult
from pharmalync.utils.datetime_helpers import to_instant


class PaymentTimeline(DocumentModel):
    initiated_at: Optional[datetime] = None
    otp_sent_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("*", mode="before")
    @classmethod
    def _normalize(cls, v):
        return to_instant(v, default=None) if v is not None else None


class PaymentRecord(DocumentModel):
    id: str
    retailer_id: str
    tenant_id: str = ""
    line_worker_id: str = ""
    total_paid: Amount = Decimal("0")
    state: PaymentState = PaymentState.INITIATED
    timeline: PaymentTimeline = Field(default_factory=PaymentTimeline)

    @field_validator("tenant_id", "line_worker_id", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or ""


class PaymentEvent(DocumentModel):
    payment_id: str
    type: str
    from_state: PaymentState
    to_state: PaymentState
    at: datetime


class InitiationReport(DocumentModel):
    payment_id: str
    state: PaymentState
    expires_at: datetime
    seconds_remaining: int
    dispatch: DispatchResult


class ConfirmationReport(DocumentModel):
    payment_id: str
    state: PaymentState
    verified_at: Optional[datetime] = None
    completion: CompletionReport


class CancellationReport(DocumentModel):
    payment_id: str
    state: PaymentState
    otp_invalidated: bool = False
