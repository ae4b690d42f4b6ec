"""
Delivery results returned by the notification dispatcher.
"""
from typing import Optional

from pharmalync.core.constants import DeliveryChannel, DeliveryOutcome
from pharmalync.models.common import DocumentModel


class PushResult(DocumentModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    fallback_to_sms: bool = False
    configuration_fault: bool = False
    token_unregistered: bool = False


class SmsResult(DocumentModel):
    success: bool
    request_id: Optional[str] = None
    error: Optional[str] = None
    dev_mode: bool = False
    configuration_fault: bool = False


class DispatchResult(DocumentModel):
    outcome: DeliveryOutcome
    success: bool
    channel: DeliveryChannel
    fallback_to_sms: bool = False
    message_id: Optional[str] = None
    device_id: Optional[str] = None
    push_error: Optional[str] = None
    sms_error: Optional[str] = None


class CompletionReport(DocumentModel):
    retailer_result: DispatchResult
    wholesaler_result: DispatchResult

    @property
    def success(self) -> bool:
        return self.retailer_result.success and self.wholesaler_result.success
