"""
Service wiring.

Builds one set of repositories, gateways and services per process and hands
them to routes through FastAPI ``Depends``. ``STORAGE_BACKEND=memory`` swaps
every Firestore repository for its in-memory counterpart.
"""
from dataclasses import dataclass, field
from typing import Optional

from pharmalync.connections.cache import TTLCache, build_cache
from pharmalync.integrations.fast2sms_service import Fast2SMSGateway
from pharmalync.integrations.fcm_service import FCMPushGateway
from pharmalync.repository.devices import FirestoreUserDeviceRepository, InMemoryUserDeviceRepository
from pharmalync.repository.directory import Directory
from pharmalync.repository.notification_logs import (
    FirestoreNotificationLogRepository,
    InMemoryNotificationLogRepository,
)
from pharmalync.repository.otp import FirestoreOTPRepository, InMemoryOTPRepository
from pharmalync.repository.payments import FirestorePaymentRepository, InMemoryPaymentRepository
from pharmalync.services.device_service import DeviceService
from pharmalync.services.notification_service import NotificationService
from pharmalync.services.otp_service import OTPService
from pharmalync.services.payment_confirmation import PaymentConfirmationService
from pharmalync.logging.utils import get_app_logger
from pharmalync.config.settings import PharmaLyncConfigs

logger = get_app_logger(__name__)
configs = PharmaLyncConfigs()


@dataclass
class ServiceContainer:
    otp_repository: object
    device_repository: object
    payment_repository: object
    notification_logs: object
    cache: TTLCache
    push_gateway: object = field(default_factory=FCMPushGateway)
    sms_gateway: object = field(default_factory=Fast2SMSGateway)

    def __post_init__(self):
        self.directory = Directory(self.device_repository, self.cache, ttl_seconds=configs.CACHE_TTL_SECONDS)
        self.otp_service = OTPService(self.otp_repository)
        self.device_service = DeviceService(self.device_repository)
        self.notification_service = NotificationService(
            self.device_service, self.directory, self.push_gateway, self.sms_gateway, self.notification_logs,
        )
        self.payment_service = PaymentConfirmationService(
            self.payment_repository, self.otp_service, self.notification_service, self.directory,
        )


def build_container(backend: Optional[str] = None) -> ServiceContainer:
    backend = (backend or configs.STORAGE_BACKEND).lower()
    cache = build_cache()
    if backend == "memory":
        logger.info("container_built | storage=memory")
        return ServiceContainer(
            otp_repository=InMemoryOTPRepository(),
            device_repository=InMemoryUserDeviceRepository(),
            payment_repository=InMemoryPaymentRepository(),
            notification_logs=InMemoryNotificationLogRepository(),
            cache=cache,
        )

    from pharmalync.connections.firebase import get_firestore_client
    db = get_firestore_client()
    logger.info("container_built | storage=firestore")
    return ServiceContainer(
        otp_repository=FirestoreOTPRepository(db),
        device_repository=FirestoreUserDeviceRepository(db),
        payment_repository=FirestorePaymentRepository(db),
        notification_logs=FirestoreNotificationLogRepository(db),
        cache=cache,
    )


_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        _container = build_container()
    return _container


def set_container(container: Optional[ServiceContainer]) -> None:
    global _container
    _container = container


def get_otp_service() -> OTPService:
    return get_container().otp_service


def get_device_service() -> DeviceService:
    return get_container().device_service


def get_payment_service() -> PaymentConfirmationService:
    return get_container().payment_service
