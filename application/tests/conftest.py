"""
Shared fixtures: in-memory storage, fake gateways and a controllable clock.
"""
import os

# must be set before any pharmalync module reads its configuration
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["LOCAL_LOG_TARGET"] = "stream"
os.environ["FIREHOSE_ENABLED"] = "false"
os.environ["SENTRY_ENABLED"] = "false"
os.environ["SLACK_WEBHOOK_URL"] = ""
os.environ["SMS_DEV_MODE"] = "false"
os.environ["FCM_LOGS_ENABLED"] = "true"
os.environ["OTP_RESEND_COOLDOWN_SECONDS"] = "30"

import pytest

from pharmalync.connections.cache import InMemoryTTLCache
from pharmalync.core.constants import PaymentState, UserType
from pharmalync.models.payments import PaymentRecord
from pharmalync.repository.devices import InMemoryUserDeviceRepository
from pharmalync.repository.directory import Directory
from pharmalync.repository.notification_logs import InMemoryNotificationLogRepository
from pharmalync.repository.otp import InMemoryOTPRepository
from pharmalync.repository.payments import InMemoryPaymentRepository
from pharmalync.services.device_service import DeviceService
from pharmalync.services.notification_service import NotificationService
from pharmalync.services.otp_service import OTPService
from pharmalync.services.payment_confirmation import PaymentConfirmationService
from tests.fakes import FakeClock, FakePushGateway, FakeSmsGateway

RETAILER_ID = "retailer_9876543210"
TENANT_ID = "tenant_sharma_pharma"
LINE_WORKER_ID = "lw_ravi"
PAYMENT_ID = "P1"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def otp_repo() -> InMemoryOTPRepository:
    return InMemoryOTPRepository()


@pytest.fixture
def otp_service(otp_repo, clock) -> OTPService:
    return OTPService(
        otp_repo,
        clock=clock,
        code_generator=lambda length: "482913",
        otp_length=6,
        expiry_minutes=10,
        max_attempts=3,
        resend_cooldown_seconds=30,
    )


@pytest.fixture
def user_repo() -> InMemoryUserDeviceRepository:
    repo = InMemoryUserDeviceRepository()
    repo.seed(UserType.RETAILER, RETAILER_ID, {
        "profile": {"realName": "Gupta Medicals", "phone": "+91 98765-43210", "address": "Karol Bagh"},
        "fcmDevices": [],
    })
    repo.seed(UserType.WHOLESALER, TENANT_ID, {
        "name": "Sharma Pharma",
        "contactPhone": "919812345678",
    })
    repo.seed(UserType.LINE_WORKER, LINE_WORKER_ID, {
        "name": "Ravi",
        "phone": "9000000001",
    })
    return repo


@pytest.fixture
def device_service(user_repo, clock) -> DeviceService:
    return DeviceService(user_repo, clock=clock)


@pytest.fixture
def directory(user_repo) -> Directory:
    return Directory(user_repo, InMemoryTTLCache(default_ttl=300), ttl_seconds=300)


@pytest.fixture
def push_gateway() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture
def sms_gateway() -> FakeSmsGateway:
    return FakeSmsGateway()


@pytest.fixture
def notification_logs() -> InMemoryNotificationLogRepository:
    return InMemoryNotificationLogRepository()


@pytest.fixture
def notification_service(device_service, directory, push_gateway, sms_gateway, notification_logs, clock) -> NotificationService:
    return NotificationService(
        device_service, directory, push_gateway, sms_gateway, notification_logs,
        clock=clock, sms_dev_mode=False,
    )


@pytest.fixture
def payment_repo() -> InMemoryPaymentRepository:
    repo = InMemoryPaymentRepository()
    repo.add(PaymentRecord(
        id=PAYMENT_ID,
        retailer_id=RETAILER_ID,
        tenant_id=TENANT_ID,
        line_worker_id=LINE_WORKER_ID,
        total_paid=5000,
        state=PaymentState.INITIATED,
    ))
    return repo


@pytest.fixture
def payment_service(payment_repo, otp_service, notification_service, directory, clock) -> PaymentConfirmationService:
    return PaymentConfirmationService(payment_repo, otp_service, notification_service, directory, clock=clock)
