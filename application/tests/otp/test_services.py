"""
Tests for OTP issuance and verification.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from pharmalync.core.errors import (
    DuplicateActiveOTPError,
    OTPAlreadyUsedError,
    OTPAttemptsExhaustedError,
    OTPExpiredError,
    OTPInvalidCodeError,
    OTPNotFoundError,
    OTPResendTooSoonError,
)
from pharmalync.repository.otp import InMemoryOTPRepository
from pharmalync.services.otp_service import OTPService
from tests.conftest import PAYMENT_ID, RETAILER_ID
from tests.fakes import T0, FakeClock

CODE = "482913"
CODE_SHA256 = "4a8eec4925826f4b60526d7ac3c0a9b61ef54ac19233bafce2f4a13eb49395d2"


def _issue(otp_service, payment_id=PAYMENT_ID):
    return asyncio.run(otp_service.issue(payment_id, RETAILER_ID, 5000, "Ravi"))


class TestGenerateOTP:
    def test_code_has_requested_length(self) -> None:
        """Should produce numeric codes of exactly the requested length."""
        for _ in range(50):
            code = OTPService.generate_otp(6)
            assert len(code) == 6
            assert code.isdigit()
            assert code[0] != "0"


class TestIssue:
    def test_issue_stores_record(self, otp_service, otp_repo) -> None:
        """Should persist only the code's digest, with a ten minute expiry."""
        issued = _issue(otp_service)

        assert issued.code == CODE
        assert issued.record.created_at == T0
        assert (issued.record.expires_at - issued.record.created_at).total_seconds() == 600

        stored = otp_repo.get(PAYMENT_ID)
        assert stored.code_hash == CODE_SHA256
        assert CODE not in str(stored.to_document())

    def test_hash_otp_is_sha256_hex(self) -> None:
        assert OTPService.hash_otp(CODE) == CODE_SHA256

    def test_amount_is_kept_as_decimal(self, otp_service, otp_repo) -> None:
        """Should keep paise exact and store a plain number."""
        asyncio.run(otp_service.issue(PAYMENT_ID, RETAILER_ID, 579.5, "Ravi"))

        stored = otp_repo.get(PAYMENT_ID)
        assert stored.amount == Decimal("579.5")
        assert stored.to_document()["amount"] == 579.5

    def test_duplicate_active_otp_is_rejected(self, otp_service, clock) -> None:
        """Should refuse a second OTP while the first is still live."""
        _issue(otp_service)
        clock.advance(minutes=4)

        with pytest.raises(DuplicateActiveOTPError) as exc_info:
            _issue(otp_service)

        assert exc_info.value.seconds_remaining == 360
        payload = exc_info.value.to_payload()
        assert payload["error"] == "duplicate_active_otp"
        assert payload["timeRemaining"] == 360

    def test_issue_after_expiry_archives_old_record(self, otp_service, otp_repo, clock) -> None:
        """Should move the expired record to history and write a fresh one."""
        _issue(otp_service)
        clock.advance(minutes=11)

        fresh = _issue(otp_service)

        assert fresh.record.created_at == clock.now
        assert len(otp_repo.history[PAYMENT_ID]) == 1
        assert otp_repo.history[PAYMENT_ID][0].created_at == T0


class TestReissue:
    def test_reissue_inside_cooldown_is_rejected(self, otp_service, clock) -> None:
        """Should ask the caller to wait out the resend cooldown."""
        _issue(otp_service)
        clock.advance(seconds=10, milliseconds=500)

        with pytest.raises(OTPResendTooSoonError) as exc_info:
            asyncio.run(otp_service.reissue(PAYMENT_ID, RETAILER_ID, 5000, "Ravi"))

        assert exc_info.value.wait_seconds == 20
        assert exc_info.value.to_payload()["waitSeconds"] == 20

    def test_reissue_after_cooldown_replaces_code(self, otp_service, otp_repo, clock) -> None:
        """Should archive the active record and reset attempts."""
        _issue(otp_service)
        with pytest.raises(OTPInvalidCodeError):
            asyncio.run(otp_service.verify(PAYMENT_ID, "000000"))
        clock.advance(seconds=31)

        issued = asyncio.run(otp_service.reissue(PAYMENT_ID, RETAILER_ID, 5000, "Ravi"))

        assert issued.record.attempts == 0
        assert issued.record.created_at == clock.now
        assert otp_repo.history[PAYMENT_ID][0].attempts == 1

    def test_reissue_without_prior_record(self, otp_service, otp_repo) -> None:
        issued = asyncio.run(otp_service.reissue(PAYMENT_ID, RETAILER_ID, 5000, "Ravi"))
        assert issued.code == CODE
        assert PAYMENT_ID not in otp_repo.history


class TestVerify:
    def test_correct_code_marks_record_used(self, otp_service, otp_repo, clock) -> None:
        """Should mark the record used and stamp the verification time."""
        _issue(otp_service)
        clock.advance(minutes=2)

        record = asyncio.run(otp_service.verify(PAYMENT_ID, CODE))

        assert record.is_used
        assert record.used_at == clock.now
        assert otp_repo.get(PAYMENT_ID).is_used

    def test_padded_code_is_a_wrong_code(self, otp_service, otp_repo) -> None:
        """Should compare exactly, so surrounding whitespace burns an attempt."""
        _issue(otp_service)

        with pytest.raises(OTPInvalidCodeError) as exc_info:
            asyncio.run(otp_service.verify(PAYMENT_ID, f" {CODE} "))

        assert exc_info.value.remaining_attempts == 2
        stored = otp_repo.get(PAYMENT_ID)
        assert stored.attempts == 1
        assert not stored.is_used

    def test_wrong_codes_then_exhausted(self, otp_service, otp_repo) -> None:
        """Should count down remaining attempts, then refuse even the right code."""
        _issue(otp_service)

        remaining = []
        for _ in range(3):
            with pytest.raises(OTPInvalidCodeError) as exc_info:
                asyncio.run(otp_service.verify(PAYMENT_ID, "111111"))
            remaining.append(exc_info.value.remaining_attempts)
        assert remaining == [2, 1, 0]

        with pytest.raises(OTPAttemptsExhaustedError) as exc_info:
            asyncio.run(otp_service.verify(PAYMENT_ID, CODE))
        assert exc_info.value.to_payload()["remainingAttempts"] == 0

        stored = otp_repo.get(PAYMENT_ID)
        assert stored.attempts == 3
        assert not stored.is_used

    def test_expired_code_is_rejected_without_burning_attempt(self, otp_service, otp_repo, clock) -> None:
        """Should report expiry even for the correct code."""
        _issue(otp_service)
        clock.advance(minutes=10, seconds=1)

        with pytest.raises(OTPExpiredError):
            asyncio.run(otp_service.verify(PAYMENT_ID, CODE))
        assert otp_repo.get(PAYMENT_ID).attempts == 0

    def test_code_valid_at_exact_expiry(self, otp_service, clock) -> None:
        """Should still accept the code at the expiry instant itself."""
        _issue(otp_service)
        clock.advance(minutes=10)

        assert asyncio.run(otp_service.verify(PAYMENT_ID, CODE)).is_used

    def test_second_verify_reports_already_used(self, otp_service) -> None:
        """Should treat a consumed OTP as gone."""
        _issue(otp_service)
        asyncio.run(otp_service.verify(PAYMENT_ID, CODE))

        with pytest.raises(OTPAlreadyUsedError) as exc_info:
            asyncio.run(otp_service.verify(PAYMENT_ID, CODE))

        assert isinstance(exc_info.value, OTPNotFoundError)
        assert exc_info.value.status_code == 404

    def test_unknown_payment(self, otp_service) -> None:
        with pytest.raises(OTPNotFoundError):
            asyncio.run(otp_service.verify("missing", CODE))


class TestExplicitZeroSettings:
    """Zero is a real setting, not a request for the configured default."""

    def _service(self, **overrides) -> OTPService:
        settings = {"otp_length": 6, "expiry_minutes": 10, "max_attempts": 3, "resend_cooldown_seconds": 30}
        settings.update(overrides)
        return OTPService(InMemoryOTPRepository(), clock=FakeClock(), code_generator=lambda length: CODE, **settings)

    def test_zero_attempt_ceiling_refuses_every_code(self) -> None:
        service = self._service(max_attempts=0)
        assert service.max_attempts == 0
        _issue(service)

        with pytest.raises(OTPAttemptsExhaustedError):
            asyncio.run(service.verify(PAYMENT_ID, CODE))

    def test_zero_expiry_lapses_after_the_issue_instant(self) -> None:
        """Should accept at the issue instant only."""
        service = self._service(expiry_minutes=0)
        _issue(service)
        service.clock.advance(seconds=1)

        with pytest.raises(OTPExpiredError):
            asyncio.run(service.verify(PAYMENT_ID, CODE))

    def test_zero_length_reaches_the_generator(self) -> None:
        lengths = []
        service = OTPService(InMemoryOTPRepository(), clock=FakeClock(), otp_length=0,
                             code_generator=lambda length: lengths.append(length) or CODE)
        _issue(service)
        assert lengths == [0]


class TestConcurrentVerify:
    """Verification is one atomic read-modify-write per submission."""

    WORKERS = 8

    def _run_concurrently(self, otp_service, codes):
        def submit(code):
            try:
                return asyncio.run(otp_service.verify(PAYMENT_ID, code))
            except Exception as e:
                return e

        with ThreadPoolExecutor(max_workers=self.WORKERS) as pool:
            return list(pool.map(submit, codes))

    def test_correct_code_succeeds_exactly_once(self, otp_service, otp_repo) -> None:
        """Should let one submission win and report the rest as already used."""
        _issue(otp_service)

        results = self._run_concurrently(otp_service, [CODE] * self.WORKERS)

        successes = [result for result in results if not isinstance(result, Exception)]
        assert len(successes) == 1
        assert successes[0].is_used
        rejected = [result for result in results if isinstance(result, Exception)]
        assert len(rejected) == self.WORKERS - 1
        assert all(isinstance(error, OTPAlreadyUsedError) for error in rejected)
        assert otp_repo.get(PAYMENT_ID).is_used

    def test_wrong_codes_never_push_attempts_past_ceiling(self, otp_service, otp_repo) -> None:
        """Should burn exactly the ceiling and refuse the rest as exhausted."""
        _issue(otp_service)

        results = self._run_concurrently(otp_service, ["000000"] * self.WORKERS)

        invalid = [result for result in results if isinstance(result, OTPInvalidCodeError)]
        exhausted = [result for result in results if isinstance(result, OTPAttemptsExhaustedError)]
        assert len(invalid) == 3
        assert len(exhausted) == self.WORKERS - 3
        assert sorted(error.remaining_attempts for error in invalid) == [0, 1, 2]
        assert otp_repo.get(PAYMENT_ID).attempts == 3


class TestInvalidate:
    def test_invalidate_expires_active_otp(self, otp_service, clock) -> None:
        """Should make the OTP unusable from now on."""
        _issue(otp_service)
        clock.advance(minutes=1)

        assert asyncio.run(otp_service.invalidate(PAYMENT_ID)) is True
        clock.advance(seconds=1)
        with pytest.raises(OTPExpiredError):
            asyncio.run(otp_service.verify(PAYMENT_ID, CODE))

    def test_invalidate_without_active_otp(self, otp_service) -> None:
        assert asyncio.run(otp_service.invalidate(PAYMENT_ID)) is False


class TestQueries:
    def test_active_for_retailer_skips_expired_and_used(self, otp_service, clock) -> None:
        """Should list only live OTPs of the retailer."""
        _issue(otp_service, "P1")
        _issue(otp_service, "P2")
        asyncio.run(otp_service.verify("P2", CODE))
        clock.advance(minutes=5)
        _issue(otp_service, "P3")
        clock.advance(minutes=6)

        active = asyncio.run(otp_service.active_for_retailer(RETAILER_ID))

        assert [record.payment_id for record in active] == ["P3"]

    def test_security_status(self, otp_service, clock) -> None:
        """Should summarise attempts and expiry without exposing the code."""
        _issue(otp_service)
        with pytest.raises(OTPInvalidCodeError):
            asyncio.run(otp_service.verify(PAYMENT_ID, "000000"))
        clock.advance(minutes=1)

        status = asyncio.run(otp_service.security_status(PAYMENT_ID))

        assert status.exists
        assert status.attempts == 1
        assert status.remaining_attempts == 2
        assert status.seconds_remaining == 540
        assert not status.is_exhausted
        assert "codeHash" not in status.to_document()

    def test_security_status_for_unknown_payment(self, otp_service) -> None:
        status = asyncio.run(otp_service.security_status("missing"))
        assert not status.exists
        assert status.max_attempts == 3
