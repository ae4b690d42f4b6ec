"""
Notification dispatcher.

Each dispatch resolves the recipient's most recently active device, tries a
push, and falls back to SMS when there is no device or the push fails. The
result names exactly one outcome; channel failures never raise out of here.
"""
import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from pharmalync.core.constants import DeliveryChannel, DeliveryOutcome, NotificationType, UserType
from pharmalync.core.errors import GatewayConfigurationError, GatewayDeliveryError
from pharmalync.dto.phone_validations import normalize_phone
from pharmalync.models.notifications import CompletionReport, DispatchResult, PushResult, SmsResult
from pharmalync.repository.directory import Directory
from pharmalync.repository.notification_logs import NotificationLogRepository
from pharmalync.services.device_service import DeviceService
from pharmalync.utils.datetime_helpers import format_date_for_sms, utc_now
from pharmalync.utils.formatting import format_currency, mask_code, mask_token, plain_amount
from pharmalync.logging.utils import get_app_logger
from pharmalync.config.settings import PharmaLyncConfigs

logger = get_app_logger(__name__)
configs = PharmaLyncConfigs()

OTP_PUSH_TITLE = "🔐 Payment OTP Required"
COMPLETION_PUSH_TITLE = "✅ Payment Completed"

SmsSender = Callable[[str], Awaitable[str]]


def decide_outcome(push: PushResult, sms: Optional[SmsResult]) -> DeliveryOutcome:
    if push.success:
        return DeliveryOutcome.PUSH_DELIVERED
    if sms is None:
        return DeliveryOutcome.DELIVERY_FAILED
    if sms.dev_mode:
        return DeliveryOutcome.DEV_MODE_DELIVERY
    if sms.success:
        return DeliveryOutcome.SMS_DELIVERED
    if sms.configuration_fault:
        return DeliveryOutcome.CONFIGURATION_FAULT
    return DeliveryOutcome.DELIVERY_FAILED


class NotificationService:
    def __init__(self, devices: DeviceService, directory: Directory, push_gateway, sms_gateway,
                 notification_logs: Optional[NotificationLogRepository] = None,
                 clock: Callable[[], datetime] = utc_now,
                 sms_dev_mode: Optional[bool] = None):
        self.devices = devices
        self.directory = directory
        self.push = push_gateway
        self.sms = sms_gateway
        self.notification_logs = notification_logs if configs.FCM_LOGS_ENABLED else None
        self.clock = clock
        self.sms_dev_mode = configs.SMS_DEV_MODE if sms_dev_mode is None else sms_dev_mode

    def _record_push(self, log_type: str, user_type: UserType, user_id: str, token: str,
                     result: PushResult, context: dict):
        if self.notification_logs is None:
            return
        entry = {
            "type": log_type,
            "userType": UserType(user_type).value,
            "userId": user_id,
            "token": mask_token(token),
            "status": "SENT" if result.success else "FAILED",
            "messageId": result.message_id,
            "error": result.error,
            **context,
        }
        try:
            self.notification_logs.record(entry)
        except Exception as e:
            # the push already happened; a failed audit write must not change its outcome
            logger.warning(f"fcm_log_write_failed | user_id={user_id} error={e}")

    async def _try_push(self, user_type: UserType, user_id: str, title: str, body: str,
                        data: dict, log_type: str, context: dict):
        device = await self.devices.most_recent_active(user_type, user_id)
        if device is None:
            logger.info(f"push_skipped | user_type={UserType(user_type).value} user_id={user_id} reason=no_active_device")
            return PushResult(success=False, error="no active device", fallback_to_sms=True), None

        try:
            message_id = await self.push.send(device.token, title, body, data)
        except GatewayConfigurationError as e:
            logger.error(f"push_configuration_fault | user_id={user_id} error={e.message}")
            result = PushResult(success=False, error=e.message, fallback_to_sms=True, configuration_fault=True)
        except GatewayDeliveryError as e:
            logger.warning(f"push_failed | user_id={user_id} device_id={device.device_id} error={e.message}")
            result = PushResult(success=False, error=e.message, fallback_to_sms=True, token_unregistered=e.unregistered)
            if e.unregistered:
                await self.devices.deactivate(user_type, user_id, device.token)
        else:
            logger.info(f"push_sent | user_id={user_id} device_id={device.device_id} message_id={message_id}")
            result = PushResult(success=True, message_id=message_id)

        self._record_push(log_type, user_type, user_id, device.token, result, context)
        return result, device

    async def _try_sms(self, phone: str, send: SmsSender, dev_note: str) -> SmsResult:
        number = normalize_phone(phone)
        if not self.sms.configured:
            if self.sms_dev_mode:
                logger.info(f"sms_dev_mode | phone={number or phone} {dev_note}")
                return SmsResult(success=True, dev_mode=True)
            logger.error("sms_configuration_fault | FAST2SMS_API_KEY not configured and SMS_DEV_MODE disabled")
            return SmsResult(success=False, configuration_fault=True, error="SMS gateway not configured")
        if not number:
            logger.warning("sms_skipped | reason=no_valid_phone")
            return SmsResult(success=False, error="no valid phone number")
        try:
            request_id = await send(number)
        except GatewayConfigurationError as e:
            logger.error(f"sms_configuration_fault | error={e.message}")
            return SmsResult(success=False, configuration_fault=True, error=e.message)
        except GatewayDeliveryError as e:
            logger.warning(f"sms_failed | phone=******{number[-4:]} error={e.message}")
            return SmsResult(success=False, error=e.message)
        return SmsResult(success=True, request_id=request_id)

    async def dispatch(self, user_type: UserType, user_id: str, phone: str, title: str, body: str,
                       data: dict, send_sms: SmsSender, log_type: str, context: dict,
                       dev_note: str = "") -> DispatchResult:
        push, device = await self._try_push(user_type, user_id, title, body, data, log_type, context)
        sms = None if push.success else await self._try_sms(phone, send_sms, dev_note)
        outcome = decide_outcome(push, sms)

        if outcome == DeliveryOutcome.PUSH_DELIVERED:
            channel = DeliveryChannel.PUSH
        elif sms is not None and (sms.success or sms.dev_mode):
            channel = DeliveryChannel.SMS
        else:
            channel = DeliveryChannel.NONE

        result = DispatchResult(
            outcome=outcome,
            success=outcome.delivered,
            channel=channel,
            fallback_to_sms=sms is not None,
            message_id=push.message_id if push.success else (sms.request_id if sms else None),
            device_id=device.device_id if device else None,
            push_error=push.error,
            sms_error=sms.error if sms else None,
        )
        log = logger.info if result.success else logger.error
        log(f"dispatch_complete | user_type={UserType(user_type).value} user_id={user_id} outcome={outcome.value} channel={channel.value}")
        return result

    async def send_otp(self, retailer_id: str, code: str, payment_id: str, amount: Decimal,
                       line_worker_name: str, retailer_name: Optional[str] = None) -> DispatchResult:
        """
        Deliver a payment OTP to the retailer.

        Args:
            retailer_id: Retailer document id
            code: The full OTP code
            payment_id: Payment the code unlocks
            amount: Payment amount in rupees
            line_worker_name: Collector shown in the notification
            retailer_name: Defaults to the directory name of the retailer

        Returns:
            DispatchResult: push, SMS, dev-mode, failed or configuration fault
        """
        retailer = self.directory.get_retailer(retailer_id)
        data = {
            "type": NotificationType.OTP.value,
            "otp": code,
            "amount": plain_amount(amount),
            "paymentId": payment_id,
            "retailerId": retailer_id,
            "lineWorkerName": line_worker_name,
            "retailerName": retailer_name or (retailer.name if retailer else ""),
            "tag": f"otp-{payment_id}",
            "requireInteraction": "true",
        }
        body = f"OTP: {code} for {format_currency(amount)} by {line_worker_name}"
        dev_note = f"payment_id={payment_id} otp={code}" if self.sms_dev_mode else f"payment_id={payment_id} otp={mask_code(code)}"
        return await self.dispatch(
            UserType.RETAILER, retailer_id,
            phone=retailer.phone if retailer else "",
            title=OTP_PUSH_TITLE,
            body=body,
            data=data,
            send_sms=lambda number: self.sms.send_otp(number, code),
            log_type="OTP_NOTIFICATION",
            context={"retailerId": retailer_id, "paymentId": payment_id},
            dev_note=dev_note,
        )

    async def send_payment_completion(self, retailer_id: str, wholesaler_id: str, amount: Decimal,
                                      payment_id: str, line_worker_name: str = "",
                                      retailer_name: Optional[str] = None,
                                      wholesaler_name: Optional[str] = None,
                                      collected_at: Optional[datetime] = None) -> CompletionReport:
        """Notify retailer and wholesaler concurrently; neither result depends on the other."""
        retailer = self.directory.get_retailer(retailer_id)
        wholesaler = self.directory.get_tenant(wholesaler_id)

        amount_text = plain_amount(amount)
        retailer_name = retailer_name or (retailer.name if retailer else "") or "Retailer"
        retailer_area = retailer.area if retailer else "Unknown Area"
        wholesaler_name = wholesaler_name or (wholesaler.name if wholesaler else "") or "Wholesaler"
        line_worker_name = line_worker_name or "Line Worker"
        date = format_date_for_sms(collected_at or self.clock())

        retailer_variables = [amount_text, retailer_name, retailer_area, wholesaler_name, line_worker_name, date]
        wholesaler_variables = [amount_text, retailer_name, retailer_area, line_worker_name, wholesaler_name, date]

        body = f"Payment of {format_currency(amount)} completed successfully"
        data = {
            "type": NotificationType.PAYMENT_COMPLETED.value,
            "amount": amount_text,
            "paymentId": payment_id,
            "retailerId": retailer_id,
            "tag": f"payment-{payment_id}",
        }
        context = {"retailerId": retailer_id, "paymentId": payment_id, "tenantId": wholesaler_id}

        results = await asyncio.gather(
            self.dispatch(
                UserType.RETAILER, retailer_id,
                phone=retailer.phone if retailer else "",
                title=COMPLETION_PUSH_TITLE, body=body, data=data,
                send_sms=lambda number: self.sms.send_template(number, configs.FAST2SMS_RETAILER_MESSAGE_ID, retailer_variables),
                log_type="PAYMENT_COMPLETION",
                context=context,
                dev_note=f"template=retailer variables={'|'.join(retailer_variables)}",
            ),
            self.dispatch(
                UserType.WHOLESALER, wholesaler_id,
                phone=wholesaler.phone if wholesaler else "",
                title=COMPLETION_PUSH_TITLE, body=body, data=data,
                send_sms=lambda number: self.sms.send_template(number, configs.FAST2SMS_WHOLESALER_MESSAGE_ID, wholesaler_variables),
                log_type="PAYMENT_COMPLETION",
                context=context,
                dev_note=f"template=wholesaler variables={'|'.join(wholesaler_variables)}",
            ),
            return_exceptions=True,
        )

        retailer_result, wholesaler_result = (self._as_result(payment_id, result) for result in results)
        return CompletionReport(retailer_result=retailer_result, wholesaler_result=wholesaler_result)

    @staticmethod
    def _as_result(payment_id: str, result) -> DispatchResult:
        if isinstance(result, DispatchResult):
            return result
        if not isinstance(result, Exception):
            raise result
        logger.error(f"completion_dispatch_error | payment_id={payment_id} error={result}", exc_info=result)
        return DispatchResult(
            outcome=DeliveryOutcome.DELIVERY_FAILED,
            success=False,
            channel=DeliveryChannel.NONE,
            push_error=str(result),
        )
