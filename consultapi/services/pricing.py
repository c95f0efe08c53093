"""
금액 계산 (fils 단위 정수, 내림)

basis point(bps): 10000 = 100%
"""

from typing import Tuple

from consultapi.core.exceptions import ValidationError

BPS_DENOMINATOR = 10000


def _check(amount: int, bps: int) -> None:
    if amount < 0:
        raise ValidationError("Amount must not be negative", details={"amount": amount})
    if not 0 <= bps <= BPS_DENOMINATOR:
        raise ValidationError(
            "Basis points must be between 0 and 10000", details={"bps": bps}
        )


def apply_bps(amount: int, bps: int) -> int:
    """amount × bps / 10000 (내림)"""
    _check(amount, bps)
    return amount * bps // BPS_DENOMINATOR


def compute_discount(gross_amount: int, discount_rate_bps: int) -> Tuple[int, int]:
    """(할인액, 순액) - 순액 = 총액 - 할인액"""
    discount = apply_bps(gross_amount, discount_rate_bps)
    return discount, gross_amount - discount


def compute_fee_split(gross_amount: int, platform_fee_bps: int) -> Tuple[int, int]:
    """(플랫폼 수수료, 상담사 지급액) - 두 값의 합은 항상 총액과 같다"""
    fee = apply_bps(gross_amount, platform_fee_bps)
    return fee, gross_amount - fee
