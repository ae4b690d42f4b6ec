from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from pharmalync.core.constants import PaymentState
from pharmalync.core.errors import OTPAlreadyUsedError, PaymentNotFoundError
from pharmalync.core.state_machine import validate_transition
from pharmalync.middlewares.request_context import bind_payment_context
from pharmalync.models.payments import CancellationReport, ConfirmationReport, InitiationReport, PaymentRecord
from pharmalync.repository.directory import Directory
from pharmalync.repository.payments import PaymentRepository
from pharmalync.services.notification_service import NotificationService
from pharmalync.services.otp_service import OTPService
from pharmalync.utils.datetime_helpers import utc_now
from pharmalync.logging.utils import get_app_logger

logger = get_app_logger(__name__)


class PaymentConfirmationService:
    """
    OTP-gated payment confirmation.

    initiate: issue OTP -> OTP_SENT -> send to retailer
    confirm:  verify OTP -> OTP_VERIFIED -> COMPLETED -> notify retailer and wholesaler
    cancel:   any non-terminal state -> CANCELLED, active OTP expired
    """

    def __init__(self, payments: PaymentRepository, otp_service: OTPService,
                 notifications: NotificationService, directory: Directory,
                 clock: Callable[[], datetime] = utc_now):
        self.payments = payments
        self.otp_service = otp_service
        self.notifications = notifications
        self.directory = directory
        self.clock = clock

    def _load(self, payment_id: str) -> PaymentRecord:
        payment = self.payments.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        bind_payment_context(payment_id=payment_id, retailer_id=payment.retailer_id, tenant_id=payment.tenant_id)
        return payment

    def _line_worker_name(self, payment: PaymentRecord) -> str:
        entry = self.directory.get_line_worker(payment.line_worker_id)
        return entry.name if entry else ""

    async def initiate(self, payment_id: str, retailer_id: Optional[str] = None, amount: Optional[Decimal] = None,
                       line_worker_name: Optional[str] = None, reissue: bool = False) -> InitiationReport:
        """
        Issue an OTP for a payment and deliver it to the retailer.

        The payment moves to OTP_SENT as soon as the OTP is stored and before
        delivery starts, so a code entered while delivery is still running can
        be confirmed. Delivery failure leaves it in OTP_SENT and the retailer
        can ask for a resend.

        Args:
            payment_id: Payment being confirmed
            retailer_id: Defaults to the payment's retailer
            amount: Defaults to the payment's totalPaid
            line_worker_name: Defaults to the collecting line worker's name
            reissue: Replace an active OTP instead of rejecting the request

        Raises:
            PaymentNotFoundError, InvalidPaymentTransitionError,
            DuplicateActiveOTPError, OTPResendTooSoonError
        """
        payment = self._load(payment_id)
        validate_transition(payment_id, payment.state, PaymentState.OTP_SENT)

        retailer_id = retailer_id or payment.retailer_id
        amount = payment.total_paid if amount is None else amount
        line_worker_name = line_worker_name or self._line_worker_name(payment)

        if reissue:
            issued = await self.otp_service.reissue(payment_id, retailer_id, amount, line_worker_name)
        else:
            issued = await self.otp_service.issue(payment_id, retailer_id, amount, line_worker_name)
        updated = self.payments.transition(payment_id, PaymentState.OTP_SENT, self.clock())

        dispatch = await self.notifications.send_otp(
            retailer_id=retailer_id,
            code=issued.code,
            payment_id=payment_id,
            amount=amount,
            line_worker_name=line_worker_name,
        )
        logger.info(f"payment_otp_sent | payment_id={payment_id} outcome={dispatch.outcome.value} reissue={reissue}")

        return InitiationReport(
            payment_id=payment_id,
            state=updated.state,
            expires_at=issued.record.expires_at,
            seconds_remaining=issued.record.seconds_remaining(self.clock()),
            dispatch=dispatch,
        )

    async def confirm(self, payment_id: str, submitted_code: str) -> ConfirmationReport:
        """
        Verify the retailer's code and complete the payment.

        Payment state is checked before the OTP is touched: a payment that
        already consumed its OTP reports it as used, and any other state that
        cannot move to OTP_VERIFIED is rejected with the code left usable.
        OTP errors propagate unchanged; nothing about the payment changes
        unless the code is accepted.
        """
        payment = self._load(payment_id)
        if payment.state in (PaymentState.OTP_VERIFIED, PaymentState.COMPLETED):
            raise OTPAlreadyUsedError(payment_id)
        validate_transition(payment_id, payment.state, PaymentState.OTP_VERIFIED)
        record = await self.otp_service.verify(payment_id, submitted_code)

        self.payments.transition(payment_id, PaymentState.OTP_VERIFIED, self.clock())
        completed = self.payments.transition(payment_id, PaymentState.COMPLETED, self.clock())
        logger.info(f"payment_completed | payment_id={payment_id} amount={record.amount}")

        completion = await self.notifications.send_payment_completion(
            retailer_id=record.retailer_id,
            wholesaler_id=payment.tenant_id,
            amount=record.amount,
            payment_id=payment_id,
            line_worker_name=record.line_worker_name,
            collected_at=completed.timeline.completed_at,
        )
        return ConfirmationReport(
            payment_id=payment_id,
            state=completed.state,
            verified_at=record.used_at,
            completion=completion,
        )

    async def cancel(self, payment_id: str) -> CancellationReport:
        self._load(payment_id)
        cancelled = self.payments.transition(payment_id, PaymentState.CANCELLED, self.clock())
        invalidated = await self.otp_service.invalidate(payment_id)
        logger.info(f"payment_cancelled | payment_id={payment_id} otp_invalidated={invalidated}")
        return CancellationReport(payment_id=payment_id, state=cancelled.state, otp_invalidated=invalidated)
