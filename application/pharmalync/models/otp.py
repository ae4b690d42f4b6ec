"""
OTP record stored per payment in the ``secure_otps`` collection.

Only the SHA-256 digest of the code is persisted; the plaintext exists just
long enough to be handed to the notification dispatcher.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import field_validator

from pharmalync.models.common import Amount, DocumentModel
from pharmalync.utils.datetime_helpers import to_instant


class OTPRecord(DocumentModel):
    payment_id: str
    retailer_id: str
    code_hash: str
    amount: Amount
    line_worker_name: str = ""
    created_at: datetime
    expires_at: datetime
    is_used: bool = False
    attempts: int = 0
    used_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None

    @field_validator("created_at", "expires_at", mode="before")
    @classmethod
    def _normalize_required_instant(cls, v):
        return to_instant(v)

    @field_validator("used_at", "last_attempt_at", mode="before")
    @classmethod
    def _normalize_optional_instant(cls, v):
        return to_instant(v, default=None) if v is not None else None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_active(self, now: datetime) -> bool:
        return not self.is_used and not self.is_expired(now)

    def seconds_remaining(self, now: datetime) -> int:
        remaining = (self.expires_at - now).total_seconds()
        return max(0, math.ceil(remaining))


@dataclass(frozen=True)
class IssuedOTP:
    """A freshly written record plus the plaintext code for delivery."""
    record: OTPRecord
    code: str


class OTPSecurityStatus(DocumentModel):
    payment_id: str
    exists: bool
    attempts: int = 0
    remaining_attempts: int = 0
    max_attempts: int = 0
    is_used: bool = False
    is_expired: bool = False
    is_exhausted: bool = False
    seconds_remaining: int = 0
    expires_at: Optional[datetime] = None
