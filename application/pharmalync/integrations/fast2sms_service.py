import asyncio
from typing import Optional

import requests

from pharmalync.core.errors import GatewayConfigurationError, GatewayDeliveryError
from pharmalync.dto.phone_validations import normalize_phone
from pharmalync.logging.utils import get_app_logger
from pharmalync.config.settings import PharmaLyncConfigs

logger = get_app_logger(__name__)
configs = PharmaLyncConfigs()

CHANNEL = "sms"


class Fast2SMSGateway:
    """
    Fast2SMS bulkV2 client.

    OTP codes go over the ``otp`` route; payment confirmations use the
    registered DLT templates with pipe-joined variables. Every failure is
    raised as a gateway error so the dispatcher can turn it into an outcome.
    """

    def __init__(self, api_key: Optional[str] = None, sender_id: Optional[str] = None,
                 entity_id: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[int] = None):
        self.api_key = configs.FAST2SMS_API_KEY if api_key is None else api_key
        self.sender_id = configs.FAST2SMS_SENDER_ID if sender_id is None else sender_id
        self.entity_id = configs.FAST2SMS_ENTITY_ID if entity_id is None else entity_id
        self.base_url = base_url or configs.FAST2SMS_BASE_URL
        self.timeout = timeout or configs.SMS_TIMEOUT

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _require_config(self, dlt: bool = False):
        if not self.api_key:
            raise GatewayConfigurationError(CHANNEL, "FAST2SMS_API_KEY not configured")
        if dlt and not self.sender_id:
            raise GatewayConfigurationError(CHANNEL, "FAST2SMS_SENDER_ID not configured")

    @staticmethod
    def _number(phone: str) -> str:
        number = normalize_phone(phone)
        if not number:
            raise GatewayDeliveryError(CHANNEL, "invalid phone number")
        return number

    def _get(self, params: dict) -> str:
        try:
            response = requests.get(
                self.base_url,
                params=params,
                headers={"Cache-Control": "no-cache"},
                timeout=self.timeout,
            )
            data = response.json()
        except requests.RequestException as e:
            raise GatewayDeliveryError(CHANNEL, f"request failed: {e}") from e
        except ValueError as e:
            raise GatewayDeliveryError(CHANNEL, f"unreadable response (status={response.status_code})") from e

        if data.get("return") and data.get("request_id"):
            return data["request_id"]
        messages = data.get("message") or []
        if isinstance(messages, list):
            messages = ", ".join(str(m) for m in messages)
        raise GatewayDeliveryError(CHANNEL, messages or f"rejected (status={response.status_code})")

    def send_otp_sync(self, phone: str, code: str) -> str:
        self._require_config()
        number = self._number(phone)
        request_id = self._get({
            "authorization": self.api_key,
            "route": "otp",
            "variables_values": code,
            "flash": "0",
            "numbers": number,
        })
        logger.info(f"otp_sms_sent | phone=******{number[-4:]} request_id={request_id}")
        return request_id

    def send_template_sync(self, phone: str, message_id: str, variables: list[str]) -> str:
        self._require_config(dlt=True)
        number = self._number(phone)
        params = {
            "authorization": self.api_key,
            "route": "dlt",
            "sender_id": self.sender_id,
            "message": message_id,
            "variables_values": "|".join(str(v) for v in variables),
            "flash": "0",
            "numbers": number,
        }
        if self.entity_id:
            params["entity_id"] = self.entity_id
        request_id = self._get(params)
        logger.info(f"template_sms_sent | phone=******{number[-4:]} message_id={message_id} request_id={request_id}")
        return request_id

    async def send_otp(self, phone: str, code: str) -> str:
        return await asyncio.to_thread(self.send_otp_sync, phone, code)

    async def send_template(self, phone: str, message_id: str, variables: list[str]) -> str:
        return await asyncio.to_thread(self.send_template_sync, phone, message_id, variables)
