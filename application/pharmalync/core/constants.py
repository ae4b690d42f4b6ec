from enum import Enum


class PaymentState(str, Enum):
    INITIATED = "INITIATED"
    OTP_SENT = "OTP_SENT"
    OTP_VERIFIED = "OTP_VERIFIED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentState.COMPLETED, PaymentState.CANCELLED)


# timeline field stamped when a payment enters the state
TIMELINE_FIELDS = {
    PaymentState.INITIATED: "initiatedAt",
    PaymentState.OTP_SENT: "otpSentAt",
    PaymentState.OTP_VERIFIED: "verifiedAt",
    PaymentState.COMPLETED: "completedAt",
    PaymentState.CANCELLED: "cancelledAt",
}


class UserType(str, Enum):
    RETAILER = "retailer"
    WHOLESALER = "wholesaler"
    LINE_WORKER = "line_worker"


RETAILERS_COLLECTION = "retailers"
TENANTS_COLLECTION = "tenants"
USERS_COLLECTION = "users"

USER_COLLECTIONS = {
    UserType.RETAILER: RETAILERS_COLLECTION,
    UserType.WHOLESALER: TENANTS_COLLECTION,
    UserType.LINE_WORKER: USERS_COLLECTION,
}


class DeliveryChannel(str, Enum):
    PUSH = "push"
    SMS = "sms"
    NONE = "none"


class DeliveryOutcome(str, Enum):
    PUSH_DELIVERED = "PUSH_DELIVERED"
    SMS_DELIVERED = "SMS_DELIVERED"
    DEV_MODE_DELIVERY = "DEV_MODE_DELIVERY"
    DELIVERY_FAILED = "DELIVERY_FAILED"
    CONFIGURATION_FAULT = "CONFIGURATION_FAULT"

    @property
    def delivered(self) -> bool:
        return self in (
            DeliveryOutcome.PUSH_DELIVERED,
            DeliveryOutcome.SMS_DELIVERED,
            DeliveryOutcome.DEV_MODE_DELIVERY,
        )


class NotificationType(str, Enum):
    OTP = "otp"
    PAYMENT_COMPLETED = "payment_completed"


# Firestore collections
OTP_COLLECTION = "secure_otps"
OTP_HISTORY_SUBCOLLECTION = "history"
PAYMENTS_COLLECTION = "payments"
PAYMENT_EVENTS_COLLECTION = "paymentEvents"
FCM_LOGS_COLLECTION = "fcmLogs"

PAYMENT_EVENT_STATE_CHANGE = "STATE_CHANGE"
