"""
Typed errors raised by the services.

Each error carries a stable ``error_code`` for the wire and the HTTP status
the exception handler answers with. Routes never build these responses
themselves.
"""
from datetime import datetime


class PharmaLyncError(Exception):
    error_code = "error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_payload(self) -> dict:
        return {"success": False, "error": self.error_code, "message": self.message}


# OTP

class OTPError(PharmaLyncError):
    error_code = "otp_error"


class OTPNotFoundError(OTPError):
    error_code = "not_found"
    status_code = 404

    def __init__(self, payment_id: str, message: str = ""):
        super().__init__(message or f"No OTP found for payment {payment_id}")
        self.payment_id = payment_id


class OTPAlreadyUsedError(OTPNotFoundError):
    """A used OTP is indistinguishable from a missing one for the caller"""

    error_code = "already_used"

    def __init__(self, payment_id: str):
        super().__init__(payment_id, f"OTP for payment {payment_id} has already been used")


class OTPExpiredError(OTPError):
    error_code = "expired"

    def __init__(self, payment_id: str, expires_at: datetime | None = None):
        super().__init__(f"OTP for payment {payment_id} has expired")
        self.payment_id = payment_id
        self.expires_at = expires_at

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["remainingAttempts"] = 0
        return payload


class OTPAttemptsExhaustedError(OTPError):
    error_code = "attempts_exhausted"

    def __init__(self, payment_id: str, attempts: int):
        super().__init__(f"Maximum verification attempts reached for payment {payment_id}")
        self.payment_id = payment_id
        self.attempts = attempts

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["remainingAttempts"] = 0
        return payload


class OTPInvalidCodeError(OTPError):
    error_code = "invalid_code"

    def __init__(self, payment_id: str, remaining_attempts: int):
        super().__init__(f"Invalid OTP. {remaining_attempts} attempt(s) remaining")
        self.payment_id = payment_id
        self.remaining_attempts = remaining_attempts

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["remainingAttempts"] = self.remaining_attempts
        return payload


class DuplicateActiveOTPError(OTPError):
    error_code = "duplicate_active_otp"
    status_code = 409

    def __init__(self, payment_id: str, seconds_remaining: int, expires_at: datetime):
        super().__init__(f"An active OTP already exists for payment {payment_id}")
        self.payment_id = payment_id
        self.seconds_remaining = seconds_remaining
        self.expires_at = expires_at

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["timeRemaining"] = self.seconds_remaining
        payload["expiresAt"] = self.expires_at.isoformat()
        return payload


class OTPResendTooSoonError(OTPError):
    error_code = "resend_too_soon"
    status_code = 429

    def __init__(self, payment_id: str, wait_seconds: int):
        super().__init__(f"Please wait {wait_seconds}s before requesting a new OTP")
        self.payment_id = payment_id
        self.wait_seconds = wait_seconds

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["waitSeconds"] = self.wait_seconds
        return payload


# Devices

class DeviceError(PharmaLyncError):
    error_code = "device_error"


class DeviceOwnerNotFoundError(DeviceError):
    error_code = "user_not_found"
    status_code = 404

    def __init__(self, user_type: str, user_id: str):
        super().__init__(f"{user_type} {user_id} not found")
        self.user_type = user_type
        self.user_id = user_id


# Payments

class PaymentError(PharmaLyncError):
    error_code = "payment_error"


class PaymentNotFoundError(PaymentError):
    error_code = "payment_not_found"
    status_code = 404

    def __init__(self, payment_id: str):
        super().__init__(f"Payment {payment_id} not found")
        self.payment_id = payment_id


class InvalidPaymentTransitionError(PaymentError):
    error_code = "invalid_transition"
    status_code = 409

    def __init__(self, payment_id: str, from_state: str, to_state: str):
        super().__init__(f"Payment {payment_id} cannot move from {from_state} to {to_state}")
        self.payment_id = payment_id
        self.from_state = from_state
        self.to_state = to_state


# Gateways (raised by integrations, converted to outcomes by the dispatcher)

class GatewayError(Exception):
    def __init__(self, channel: str, message: str):
        super().__init__(f"{channel}: {message}")
        self.channel = channel
        self.message = message


class GatewayConfigurationError(GatewayError):
    pass


class GatewayDeliveryError(GatewayError):
    def __init__(self, channel: str, message: str, unregistered: bool = False):
        super().__init__(channel, message)
        self.unregistered = unregistered
