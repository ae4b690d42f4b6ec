from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_amount(amount) -> str:
    """Whole-rupee amount with Indian digit grouping, e.g. 123456.7 -> '1,23,457'"""
    try:
        value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        value = Decimal(0)
    sign = "-" if value < 0 else ""
    return sign + _group_indian(str(abs(int(value))))


def format_currency(amount) -> str:
    return f"₹{format_amount(amount)}"


def mask_code(code: str | None) -> str:
    """Keep the last two digits of an OTP for log correlation."""
    if not code:
        return ""
    if len(code) <= 2:
        return "*" * len(code)
    return "*" * (len(code) - 2) + code[-2:]


def mask_token(token: str | None) -> str:
    if not token:
        return ""
    if len(token) <= 20:
        return token[:4] + "..."
    return f"{token[:10]}...{token[-6:]}"


def plain_amount(amount) -> str:
    """Amount as sent in SMS variables: no grouping, no trailing .0"""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return "0"
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")
