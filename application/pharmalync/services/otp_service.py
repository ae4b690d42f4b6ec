import hashlib
import hmac
import math
import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from pharmalync.core.errors import (
    DuplicateActiveOTPError,
    OTPAlreadyUsedError,
    OTPAttemptsExhaustedError,
    OTPExpiredError,
    OTPInvalidCodeError,
    OTPNotFoundError,
    OTPResendTooSoonError,
)
from pharmalync.models.otp import IssuedOTP, OTPRecord, OTPSecurityStatus
from pharmalync.repository.otp import OTPMutation, OTPRepository
from pharmalync.utils.datetime_helpers import utc_now
from pharmalync.utils.formatting import mask_code
from pharmalync.logging.utils import get_app_logger
from pharmalync.config.settings import PharmaLyncConfigs

logger = get_app_logger(__name__)
configs = PharmaLyncConfigs()


class OTPService:
    """
    OTP issuance and verification for payments.

    - one record per payment id, at most one of them active
    - verification is a single atomic read-modify-write on that record
    - wrong codes burn an attempt; expired or exhausted records never do
    """

    def __init__(self, repository: OTPRepository,
                 clock: Callable[[], datetime] = utc_now,
                 code_generator: Optional[Callable[[int], str]] = None,
                 otp_length: Optional[int] = None,
                 expiry_minutes: Optional[int] = None,
                 max_attempts: Optional[int] = None,
                 resend_cooldown_seconds: Optional[int] = None):
        self.repository = repository
        self.clock = clock
        self.code_generator = self.generate_otp if code_generator is None else code_generator
        self.otp_length = configs.OTP_LENGTH if otp_length is None else otp_length
        self.expiry = timedelta(
            minutes=configs.OTP_EXPIRY_MINUTES if expiry_minutes is None else expiry_minutes
        )
        self.max_attempts = configs.OTP_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.resend_cooldown = timedelta(
            seconds=configs.OTP_RESEND_COOLDOWN_SECONDS if resend_cooldown_seconds is None else resend_cooldown_seconds
        )

    @staticmethod
    def generate_otp(length: int) -> str:
        """
        Generate a random numeric OTP.

        Args:
            length: Number of digits

        Returns:
            str: Code of exactly ``length`` digits, no leading zero
        """
        return str(random.randint(10 ** (length - 1), (10 ** length) - 1))

    @staticmethod
    def hash_otp(code: str) -> str:
        """
        Hash OTP for secure storage.

        Args:
            code: OTP code to hash

        Returns:
            str: Hex SHA-256 digest
        """
        return hashlib.sha256(code.encode()).hexdigest()

    def _new_record(self, payment_id: str, retailer_id: str, amount: Decimal, line_worker_name: str,
                    now: datetime) -> IssuedOTP:
        code = self.code_generator(self.otp_length)
        record = OTPRecord(
            payment_id=payment_id,
            retailer_id=retailer_id,
            code_hash=self.hash_otp(code),
            amount=amount,
            line_worker_name=line_worker_name or "",
            created_at=now,
            expires_at=now + self.expiry,
        )
        return IssuedOTP(record=record, code=code)

    async def issue(self, payment_id: str, retailer_id: str, amount: Decimal, line_worker_name: str) -> IssuedOTP:
        """
        Create the OTP for a payment.

        Returns:
            IssuedOTP: the stored record and the plaintext code, which is not persisted

        Raises:
            DuplicateActiveOTPError: an unused, unexpired OTP already exists
        """
        now = self.clock()

        def decide(current: Optional[OTPRecord]) -> OTPMutation:
            if current is not None and current.is_active(now):
                return OTPMutation(result=DuplicateActiveOTPError(
                    payment_id, current.seconds_remaining(now), current.expires_at,
                ))
            issued = self._new_record(payment_id, retailer_id, amount, line_worker_name, now)
            return OTPMutation(result=issued, write=issued.record, archive_previous=current is not None)

        outcome = self.repository.transact(payment_id, decide).result
        if isinstance(outcome, Exception):
            logger.warning(f"otp_issue_rejected | payment_id={payment_id} reason=active_otp_exists seconds_remaining={outcome.seconds_remaining}")
            raise outcome
        logger.info(f"otp_issued | payment_id={payment_id} retailer_id={retailer_id} code={mask_code(outcome.code)} expires_at={outcome.record.expires_at.isoformat()}")
        return outcome

    async def reissue(self, payment_id: str, retailer_id: str, amount: Decimal, line_worker_name: str) -> IssuedOTP:
        """
        Replace any active OTP with a fresh one, archiving the old record.

        Raises:
            OTPResendTooSoonError: the previous OTP is younger than the resend cooldown
        """
        now = self.clock()

        def decide(current: Optional[OTPRecord]) -> OTPMutation:
            if current is not None and current.is_active(now):
                ready_at = current.created_at + self.resend_cooldown
                if now < ready_at:
                    wait = max(1, math.ceil((ready_at - now).total_seconds()))
                    return OTPMutation(result=OTPResendTooSoonError(payment_id, wait))
            issued = self._new_record(payment_id, retailer_id, amount, line_worker_name, now)
            return OTPMutation(result=issued, write=issued.record, archive_previous=current is not None)

        outcome = self.repository.transact(payment_id, decide).result
        if isinstance(outcome, Exception):
            logger.warning(f"otp_reissue_rejected | payment_id={payment_id} wait_seconds={outcome.wait_seconds}")
            raise outcome
        logger.info(f"otp_reissued | payment_id={payment_id} retailer_id={retailer_id} code={mask_code(outcome.code)}")
        return outcome

    async def invalidate(self, payment_id: str) -> bool:
        """Expire the active OTP of a payment. Returns False when nothing was active."""
        now = self.clock()

        def decide(current: Optional[OTPRecord]) -> OTPMutation:
            if current is None or not current.is_active(now):
                return OTPMutation(result=False)
            return OTPMutation(result=True, write=current.model_copy(update={"expires_at": now}))

        invalidated = self.repository.transact(payment_id, decide).result
        if invalidated:
            logger.info(f"otp_invalidated | payment_id={payment_id}")
        return invalidated

    async def verify(self, payment_id: str, submitted_code: str) -> OTPRecord:
        """
        Check a submitted code against the payment's OTP.

        Checks run in order: missing, used, expired, attempts exhausted, then
        the code comparison. The submitted code is hashed as given, so
        whitespace or any other difference counts as a wrong code. Only a
        mismatch consumes an attempt.

        Returns:
            OTPRecord: the record, now marked used

        Raises:
            OTPNotFoundError, OTPAlreadyUsedError, OTPExpiredError,
            OTPAttemptsExhaustedError, OTPInvalidCodeError
        """
        now = self.clock()
        submitted_hash = self.hash_otp(submitted_code or "")

        def decide(current: Optional[OTPRecord]) -> OTPMutation:
            if current is None:
                return OTPMutation(result=OTPNotFoundError(payment_id))
            if current.is_used:
                return OTPMutation(result=OTPAlreadyUsedError(payment_id))
            if current.is_expired(now):
                return OTPMutation(result=OTPExpiredError(payment_id, current.expires_at))
            if current.attempts >= self.max_attempts:
                return OTPMutation(result=OTPAttemptsExhaustedError(payment_id, current.attempts))
            if not hmac.compare_digest(submitted_hash, current.code_hash):
                attempts = current.attempts + 1
                updated = current.model_copy(update={"attempts": attempts, "last_attempt_at": now})
                return OTPMutation(
                    result=OTPInvalidCodeError(payment_id, max(0, self.max_attempts - attempts)),
                    write=updated,
                )
            used = current.model_copy(update={"is_used": True, "used_at": now, "last_attempt_at": now})
            return OTPMutation(result=used, write=used)

        outcome = self.repository.transact(payment_id, decide).result
        if isinstance(outcome, Exception):
            logger.warning(f"otp_verify_failed | payment_id={payment_id} error={getattr(outcome, 'error_code', type(outcome).__name__)}")
            raise outcome
        logger.info(f"otp_verified | payment_id={payment_id} retailer_id={outcome.retailer_id}")
        return outcome

    async def active_for_retailer(self, retailer_id: str) -> list[OTPRecord]:
        now = self.clock()
        records = self.repository.list_unused_for_retailer(retailer_id)
        return [record for record in records if record.is_active(now)]

    async def security_status(self, payment_id: str) -> OTPSecurityStatus:
        now = self.clock()
        record = self.repository.get(payment_id)
        if record is None:
            return OTPSecurityStatus(payment_id=payment_id, exists=False, max_attempts=self.max_attempts)
        return OTPSecurityStatus(
            payment_id=payment_id,
            exists=True,
            attempts=record.attempts,
            remaining_attempts=max(0, self.max_attempts - record.attempts),
            max_attempts=self.max_attempts,
            is_used=record.is_used,
            is_expired=record.is_expired(now),
            is_exhausted=record.attempts >= self.max_attempts,
            seconds_remaining=record.seconds_remaining(now),
            expires_at=record.expires_at,
        )
