from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from pharmalync.models.common import Amount
from pharmalync.models.notifications import CompletionReport, DispatchResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendOTPRequest(CamelModel):
    """Request model for issuing a payment OTP"""
    payment_id: str = Field(..., min_length=1, description="Payment awaiting confirmation")
    retailer_id: Optional[str] = Field(None, description="Defaults to the payment's retailer")
    amount: Optional[Amount] = Field(None, gt=0, description="Defaults to the payment's totalPaid")
    line_worker_name: Optional[str] = Field(None, description="Collector shown to the retailer")
    reissue: bool = Field(False, description="Replace an active OTP (resend)")


class SendOTPResponse(CamelModel):
    success: bool
    payment_id: str
    state: str
    expires_at: datetime
    time_remaining: int
    dispatch: DispatchResult


class VerifyOTPRequest(CamelModel):
    """Request model for verifying a payment OTP"""
    payment_id: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=12, description="Code entered by the retailer")

    @field_validator('code')
    @classmethod
    def validate_code(cls, v):
        # no trimming: the code is compared exactly as entered
        if not v.isdigit():
            raise ValueError('OTP must be numeric')
        return v


class VerifyOTPResponse(CamelModel):
    success: bool
    payment_id: str
    state: str
    verified_at: Optional[datetime] = None
    completion: CompletionReport


class ActiveOTP(CamelModel):
    payment_id: str
    amount: Amount
    line_worker_name: str
    expires_at: datetime
    time_remaining: int
    attempts: int


class ActiveOTPsResponse(CamelModel):
    success: bool
    retailer_id: str
    otps: list[ActiveOTP]
