from fastapi import APIRouter, Depends

from pharmalync.dto.payments import CancelPaymentResponse
from pharmalync.services.container import get_payment_service
from pharmalync.services.payment_confirmation import PaymentConfirmationService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/{payment_id}/cancel", response_model=CancelPaymentResponse)
async def cancel_payment(payment_id: str, payments: PaymentConfirmationService = Depends(get_payment_service)):
    report = await payments.cancel(payment_id)
    return CancelPaymentResponse(
        success=True,
        payment_id=report.payment_id,
        state=report.state.value,
        otp_invalidated=report.otp_invalidated,
    )
