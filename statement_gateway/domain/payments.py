"""Payment status projection - core business logic for reconciliation"""

from decimal import Decimal
from typing import Iterable

from statement_gateway.domain.models import PaymentStatus, PaymentSummary


def derive_payment_status(amount_paid: Decimal, total: Decimal) -> PaymentStatus:
    """
    Classify payment completeness from the amount paid against the total.

    - paid:            amount_paid >= total
    - partially_paid:  0 < amount_paid < total
    - unpaid:          amount_paid == 0
    """
    if amount_paid >= total:
        return PaymentStatus.PAID
    elif amount_paid > 0:
        return PaymentStatus.PARTIALLY_PAID
    else:
        return PaymentStatus.UNPAID


def recompute_payment_summary(total: Decimal, payment_amounts: Iterable[Decimal]) -> PaymentSummary:
    """
    Recompute a transaction's payment state from all of its linked payments.

    The result depends only on the current set of payments, so calling it
    again without an intervening change yields the same summary, whatever
    order the payments were recorded in.
    """
    amount_paid = sum((Decimal(amount) for amount in payment_amounts), Decimal("0"))
    return PaymentSummary(
        amount_paid=amount_paid,
        payment_status=derive_payment_status(amount_paid, Decimal(total)),
    )
