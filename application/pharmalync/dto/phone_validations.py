import re

from pydantic import BaseModel, field_validator

from pharmalync.logging.utils import get_app_logger
logger = get_app_logger('pharmalync.dto.phone_validations')

PHONE_DIGITS = 10


def normalize_phone(phone: str | None) -> str:
    """
    Reduce a phone number to the 10-digit national form the SMS gateway expects.

    Non-digits are stripped and the last 10 digits kept, so +91, 91 and 0
    prefixes all collapse to the same number. Returns an empty string when
    fewer than 10 digits remain.
    """
    digits = re.sub(r'\D', '', phone or '')
    if len(digits) < PHONE_DIGITS:
        return ''
    return digits[-PHONE_DIGITS:]


class PhoneNumberValidator(BaseModel):
    phone_number: str

    @field_validator('phone_number')
    @classmethod
    def validate_phone_number(cls, v):
        normalized = normalize_phone(v)
        if not normalized:
            logger.warning(f"invalid_phone_number | length={len(v or '')}")
            raise ValueError('Invalid phone number. Expected at least 10 digits')
        return normalized


def validate_phone_number(phone: str) -> str:
    return PhoneNumberValidator(phone_number=phone).phone_number
