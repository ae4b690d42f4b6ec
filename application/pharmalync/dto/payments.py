from pharmalync.dto.otp import CamelModel


class CancelPaymentResponse(CamelModel):
    success: bool
    payment_id: str
    state: str
    otp_invalidated: bool
