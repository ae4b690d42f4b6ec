import asyncio
from typing import Optional

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from pharmalync.connections.firebase import get_firebase_app
from pharmalync.core.errors import GatewayConfigurationError, GatewayDeliveryError
from pharmalync.logging.utils import get_app_logger
from pharmalync.config.settings import PharmaLyncConfigs

logger = get_app_logger(__name__)
configs = PharmaLyncConfigs()

CHANNEL = "push"


def build_message(token: str, title: str, body: str, data: dict, high_priority: bool = True) -> messaging.Message:
    # FCM data payloads only accept string values
    payload = {key: str(value) for key, value in data.items() if value is not None}
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=title, body=body),
        data=payload,
        android=messaging.AndroidConfig(
            priority="high" if high_priority else "normal",
            notification=messaging.AndroidNotification(
                priority="high" if high_priority else "default",
                default_sound=True,
                default_vibrate_timings=True,
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound="default", badge=1, content_available=True),
            ),
        ),
    )


class FCMPushGateway:
    """Fire-once push through Firebase Cloud Messaging. No retries."""

    def __init__(self, enabled: Optional[bool] = None, app=None):
        self.enabled = configs.FCM_ENABLED if enabled is None else enabled
        self._app = app

    def _resolve_app(self):
        if self._app is not None:
            return self._app
        try:
            return get_firebase_app()
        except ValueError as e:
            raise GatewayConfigurationError(CHANNEL, "firebase app not initialised") from e

    def send_sync(self, token: str, title: str, body: str, data: dict) -> str:
        if not self.enabled:
            raise GatewayConfigurationError(CHANNEL, "FCM disabled (FCM_ENABLED=false)")
        app = self._resolve_app()
        message = build_message(token, title, body, data)
        try:
            return messaging.send(message, app=app)
        except messaging.UnregisteredError as e:
            raise GatewayDeliveryError(CHANNEL, "token unregistered", unregistered=True) from e
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            raise GatewayDeliveryError(CHANNEL, str(e)) from e

    async def send(self, token: str, title: str, body: str, data: dict) -> str:
        return await asyncio.to_thread(self.send_sync, token, title, body, data)
