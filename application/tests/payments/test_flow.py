"""
Tests for the OTP-gated payment confirmation flow.
"""
import asyncio
from decimal import Decimal

import pytest

from pharmalync.core.constants import DeliveryOutcome, PaymentState
from pharmalync.core.errors import (
    DuplicateActiveOTPError,
    InvalidPaymentTransitionError,
    OTPAlreadyUsedError,
    OTPInvalidCodeError,
    PaymentNotFoundError,
)
from pharmalync.services.notification_service import NotificationService
from pharmalync.services.payment_confirmation import PaymentConfirmationService
from tests.conftest import PAYMENT_ID, RETAILER_ID
from tests.fakes import T0, FakePushGateway, FakeSmsGateway

CODE = "482913"


class ConfirmingSmsGateway(FakeSmsGateway):
    """Retailer types the code in while initiate is still delivering it."""

    def __init__(self):
        super().__init__()
        self.service = None
        self.reports = []

    async def send_otp(self, phone: str, code: str) -> str:
        request_id = await super().send_otp(phone, code)
        self.reports.append(await self.service.confirm(PAYMENT_ID, code))
        return request_id


class TestInitiate:
    def test_initiate_sends_otp_and_moves_to_otp_sent(self, payment_service, payment_repo, sms_gateway) -> None:
        """Should issue the code, text the retailer and record OTP_SENT."""
        report = asyncio.run(payment_service.initiate(PAYMENT_ID))

        assert report.state == PaymentState.OTP_SENT
        assert report.seconds_remaining == 600
        assert report.dispatch.outcome == DeliveryOutcome.SMS_DELIVERED
        assert sms_gateway.otps == [{"phone": "9876543210", "code": CODE}]

        payment = payment_repo.get(PAYMENT_ID)
        assert payment.state == PaymentState.OTP_SENT
        assert payment.timeline.otp_sent_at == T0

    def test_defaults_come_from_payment_and_directory(self, payment_service, otp_repo) -> None:
        """Should fill amount and collector name when the caller leaves them out."""
        asyncio.run(payment_service.initiate(PAYMENT_ID))

        record = otp_repo.get(PAYMENT_ID)
        assert record.retailer_id == RETAILER_ID
        assert record.amount == Decimal("5000")
        assert record.line_worker_name == "Ravi"

    def test_undelivered_otp_still_moves_to_otp_sent(self, payment_repo, otp_service, device_service, directory,
                                                     notification_logs, clock) -> None:
        notifications = NotificationService(
            device_service, directory, FakePushGateway(), FakeSmsGateway.failing(), notification_logs,
            clock=clock, sms_dev_mode=False,
        )
        service = PaymentConfirmationService(payment_repo, otp_service, notifications, directory, clock=clock)

        report = asyncio.run(service.initiate(PAYMENT_ID))

        assert report.dispatch.outcome == DeliveryOutcome.DELIVERY_FAILED
        assert report.state == PaymentState.OTP_SENT

    def test_second_initiate_while_active_is_rejected(self, payment_service) -> None:
        asyncio.run(payment_service.initiate(PAYMENT_ID))

        with pytest.raises(DuplicateActiveOTPError):
            asyncio.run(payment_service.initiate(PAYMENT_ID))

    def test_reissue_after_cooldown(self, payment_service, sms_gateway, clock) -> None:
        """Should send a fresh code and stay in OTP_SENT."""
        asyncio.run(payment_service.initiate(PAYMENT_ID))
        clock.advance(seconds=45)

        report = asyncio.run(payment_service.initiate(PAYMENT_ID, reissue=True))

        assert report.state == PaymentState.OTP_SENT
        assert len(sms_gateway.otps) == 2

    def test_completed_payment_cannot_be_reinitiated(self, payment_service, otp_repo) -> None:
        """Should reject before touching the OTP store."""
        asyncio.run(payment_service.initiate(PAYMENT_ID))
        asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))

        with pytest.raises(InvalidPaymentTransitionError):
            asyncio.run(payment_service.initiate(PAYMENT_ID, reissue=True))
        assert PAYMENT_ID not in otp_repo.history

    def test_unknown_payment(self, payment_service) -> None:
        with pytest.raises(PaymentNotFoundError):
            asyncio.run(payment_service.initiate("missing"))


class TestConfirm:
    def test_confirm_completes_payment_and_notifies_both_parties(self, payment_service, payment_repo, sms_gateway, clock) -> None:
        """Should walk OTP_VERIFIED then COMPLETED and send both completion SMS."""
        asyncio.run(payment_service.initiate(PAYMENT_ID))
        clock.advance(minutes=2)

        report = asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))

        assert report.state == PaymentState.COMPLETED
        assert report.verified_at == clock.now
        assert report.completion.success
        assert sorted(sms["message_id"] for sms in sms_gateway.templates) == ["199054", "199055"]

        payment = payment_repo.get(PAYMENT_ID)
        assert payment.state == PaymentState.COMPLETED
        assert payment.timeline.completed_at == clock.now
        assert [event.to_state for event in payment_repo.events] == [
            PaymentState.OTP_SENT, PaymentState.OTP_VERIFIED, PaymentState.COMPLETED,
        ]

    def test_wrong_code_leaves_payment_untouched(self, payment_service, payment_repo) -> None:
        asyncio.run(payment_service.initiate(PAYMENT_ID))

        with pytest.raises(OTPInvalidCodeError) as exc_info:
            asyncio.run(payment_service.confirm(PAYMENT_ID, "000000"))

        assert exc_info.value.remaining_attempts == 2
        assert payment_repo.get(PAYMENT_ID).state == PaymentState.OTP_SENT

    def test_second_confirm_is_rejected(self, payment_service) -> None:
        """Should never complete the same payment twice."""
        asyncio.run(payment_service.initiate(PAYMENT_ID))
        asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))

        with pytest.raises(OTPAlreadyUsedError):
            asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))


class TestCancel:
    def test_cancel_invalidates_active_otp(self, payment_service, payment_repo) -> None:
        asyncio.run(payment_service.initiate(PAYMENT_ID))

        report = asyncio.run(payment_service.cancel(PAYMENT_ID))

        assert report.state == PaymentState.CANCELLED
        assert report.otp_invalidated
        assert payment_repo.get(PAYMENT_ID).timeline.cancelled_at == T0

    def test_cancel_before_any_otp(self, payment_service) -> None:
        report = asyncio.run(payment_service.cancel(PAYMENT_ID))

        assert report.state == PaymentState.CANCELLED
        assert not report.otp_invalidated

    def test_completed_payment_cannot_be_cancelled(self, payment_service) -> None:
        asyncio.run(payment_service.initiate(PAYMENT_ID))
        asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))

        with pytest.raises(InvalidPaymentTransitionError) as exc_info:
            asyncio.run(payment_service.cancel(PAYMENT_ID))

        assert exc_info.value.status_code == 409


class TestConfirmOrdering:
    """Payment state is checked before the OTP is consumed."""

    def test_confirm_during_delivery_completes(self, payment_repo, otp_service, device_service, directory,
                                               notification_logs, clock) -> None:
        """Should accept a code entered before initiate has finished sending it."""
        gateway = ConfirmingSmsGateway()
        notifications = NotificationService(
            device_service, directory, FakePushGateway(), gateway, notification_logs,
            clock=clock, sms_dev_mode=False,
        )
        service = PaymentConfirmationService(payment_repo, otp_service, notifications, directory, clock=clock)
        gateway.service = service

        asyncio.run(service.initiate(PAYMENT_ID))

        assert [report.state for report in gateway.reports] == [PaymentState.COMPLETED]
        assert payment_repo.get(PAYMENT_ID).state == PaymentState.COMPLETED

    def test_confirm_before_otp_sent_keeps_otp(self, payment_service, otp_service, otp_repo) -> None:
        """Should reject an INITIATED payment without burning its code."""
        asyncio.run(otp_service.issue(PAYMENT_ID, RETAILER_ID, 5000, "Ravi"))

        with pytest.raises(InvalidPaymentTransitionError):
            asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))

        stored = otp_repo.get(PAYMENT_ID)
        assert not stored.is_used
        assert stored.attempts == 0

    def test_confirm_on_cancelled_payment_keeps_otp(self, payment_service, payment_repo, otp_repo, clock) -> None:
        """Should leave a still-live code untouched when the payment is cancelled."""
        asyncio.run(payment_service.initiate(PAYMENT_ID))
        payment_repo.transition(PAYMENT_ID, PaymentState.CANCELLED, clock())

        with pytest.raises(InvalidPaymentTransitionError) as exc_info:
            asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))

        assert exc_info.value.status_code == 409
        assert not otp_repo.get(PAYMENT_ID).is_used

    def test_confirm_on_completed_payment_sends_nothing(self, payment_service, sms_gateway, otp_repo) -> None:
        """Should report the code as used without a second completion notice."""
        asyncio.run(payment_service.initiate(PAYMENT_ID))
        asyncio.run(payment_service.confirm(PAYMENT_ID, CODE))
        sent = sms_gateway.calls

        with pytest.raises(OTPAlreadyUsedError):
            asyncio.run(payment_service.confirm(PAYMENT_ID, "000000"))

        assert sms_gateway.calls == sent
        assert otp_repo.get(PAYMENT_ID).attempts == 0
