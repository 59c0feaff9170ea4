from decimal import Decimal
from enum import Enum

from app.domain.money import ZERO, to_money


class TuitionStatus(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"


def effective_fee(*, fee_amount: Decimal, scholarship_amount: Decimal, discount_amount: Decimal) -> Decimal:
    return max(to_money(fee_amount - scholarship_amount - discount_amount), ZERO)


def outstanding_amount(
    *,
    fee_amount: Decimal,
    scholarship_amount: Decimal,
    discount_amount: Decimal,
    paid_amount: Decimal,
) -> Decimal:
    fee = effective_fee(
        fee_amount=fee_amount,
        scholarship_amount=scholarship_amount,
        discount_amount=discount_amount,
    )
    return max(to_money(fee - paid_amount), ZERO)


def derive_tuition_status(
    *,
    fee_amount: Decimal,
    scholarship_amount: Decimal,
    discount_amount: Decimal,
    paid_amount: Decimal,
) -> TuitionStatus:
    """
    Single source of truth for a tuition's status.

    A tuition is paid once the cumulative paid amount reaches the effective fee
    (fee minus scholarship and discount, floored at zero); a zero effective fee is
    therefore already paid.
    """
    fee = effective_fee(
        fee_amount=fee_amount,
        scholarship_amount=scholarship_amount,
        discount_amount=discount_amount,
    )
    if paid_amount >= fee:
        return TuitionStatus.paid
    if paid_amount > ZERO:
        return TuitionStatus.partial
    return TuitionStatus.unpaid
