from fastapi import APIRouter, Depends, Query

from pharmalync.dto.otp import (
    ActiveOTP,
    ActiveOTPsResponse,
    SendOTPRequest,
    SendOTPResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from pharmalync.models.otp import OTPSecurityStatus
from pharmalync.services.container import get_otp_service, get_payment_service
from pharmalync.services.otp_service import OTPService
from pharmalync.services.payment_confirmation import PaymentConfirmationService
from pharmalync.logging.utils import get_app_logger

logger = get_app_logger(__name__)

router = APIRouter(prefix="/otp", tags=["otp"])


@router.post("/send", response_model=SendOTPResponse)
async def send_otp(request: SendOTPRequest, payments: PaymentConfirmationService = Depends(get_payment_service)):
    """
    Issue a payment OTP and deliver it to the retailer.

    Typed errors (duplicate active OTP, resend too soon, unknown payment)
    are rendered by the domain exception handler.
    """
    logger.info(f"otp_send_requested | payment_id={request.payment_id} reissue={request.reissue}")
    report = await payments.initiate(
        request.payment_id,
        retailer_id=request.retailer_id,
        amount=request.amount,
        line_worker_name=request.line_worker_name,
        reissue=request.reissue,
    )
    return SendOTPResponse(
        success=report.dispatch.success,
        payment_id=report.payment_id,
        state=report.state.value,
        expires_at=report.expires_at,
        time_remaining=report.seconds_remaining,
        dispatch=report.dispatch,
    )


@router.post("/verify", response_model=VerifyOTPResponse)
async def verify_otp(request: VerifyOTPRequest, payments: PaymentConfirmationService = Depends(get_payment_service)):
    report = await payments.confirm(request.payment_id, request.code)
    return VerifyOTPResponse(
        success=True,
        payment_id=report.payment_id,
        state=report.state.value,
        verified_at=report.verified_at,
        completion=report.completion,
    )


@router.get("/security-status", response_model=OTPSecurityStatus)
async def security_status(payment_id: str = Query(..., alias="paymentId", min_length=1),
                          otp_service: OTPService = Depends(get_otp_service)):
    return await otp_service.security_status(payment_id)


@router.get("/active", response_model=ActiveOTPsResponse)
async def active_otps(retailer_id: str = Query(..., alias="retailerId", min_length=1),
                      otp_service: OTPService = Depends(get_otp_service)):
    """Unused, unexpired OTPs of a retailer. Codes are never returned."""
    records = await otp_service.active_for_retailer(retailer_id)
    now = otp_service.clock()
    return ActiveOTPsResponse(
        success=True,
        retailer_id=retailer_id,
        otps=[
            ActiveOTP(
                payment_id=record.payment_id,
                amount=record.amount,
                line_worker_name=record.line_worker_name,
                expires_at=record.expires_at,
                time_remaining=record.seconds_remaining(now),
                attempts=record.attempts,
            )
            for record in records
        ],
    )
