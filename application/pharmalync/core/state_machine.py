from pharmalync.core.constants import PaymentState
from pharmalync.core.errors import InvalidPaymentTransitionError

ALLOWED_TRANSITIONS: dict[PaymentState, set[PaymentState]] = {
    PaymentState.INITIATED: {PaymentState.OTP_SENT, PaymentState.CANCELLED},
    # OTP_SENT -> OTP_SENT is a reissue
    PaymentState.OTP_SENT: {PaymentState.OTP_SENT, PaymentState.OTP_VERIFIED, PaymentState.CANCELLED},
    PaymentState.OTP_VERIFIED: {PaymentState.COMPLETED, PaymentState.CANCELLED},
    PaymentState.COMPLETED: set(),
    PaymentState.CANCELLED: set(),
}


def can_transition(from_state: PaymentState, to_state: PaymentState) -> bool:
    return to_state in ALLOWED_TRANSITIONS.get(PaymentState(from_state), set())


def validate_transition(payment_id: str, from_state: PaymentState, to_state: PaymentState) -> None:
    """Raise InvalidPaymentTransitionError unless from_state -> to_state is allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidPaymentTransitionError(payment_id, PaymentState(from_state).value, PaymentState(to_state).value)
