"""Unit tests for payment status derivation"""

from decimal import Decimal
from itertools import permutations
from statement_gateway.domain.models import PaymentStatus
from statement_gateway.domain.payments import derive_payment_status, recompute_payment_summary


def test_derive_payment_status_boundaries():
    total = Decimal("100.00")

    assert derive_payment_status(Decimal("0"), total) is PaymentStatus.UNPAID
    assert derive_payment_status(Decimal("0.01"), total) is PaymentStatus.PARTIALLY_PAID
    assert derive_payment_status(Decimal("99.99"), total) is PaymentStatus.PARTIALLY_PAID
    assert derive_payment_status(Decimal("100.00"), total) is PaymentStatus.PAID
    # Overpayment still counts as paid
    assert derive_payment_status(Decimal("150.00"), total) is PaymentStatus.PAID


def test_recompute_without_payments_is_unpaid():
    summary = recompute_payment_summary(Decimal("100.00"), [])

    assert summary.amount_paid == Decimal("0")
    assert summary.payment_status is PaymentStatus.UNPAID


def test_recompute_is_idempotent():
    amounts = [Decimal("40.00"), Decimal("25.50")]

    first = recompute_payment_summary(Decimal("100.00"), amounts)
    second = recompute_payment_summary(Decimal("100.00"), amounts)

    assert first == second
    assert first.amount_paid == Decimal("65.50")
    assert first.payment_status is PaymentStatus.PARTIALLY_PAID


def test_recompute_is_order_independent():
    """Payments summing to the total mark it paid in any order"""
    amounts = [Decimal("10.00"), Decimal("30.00"), Decimal("60.00")]

    for ordering in permutations(amounts):
        summary = recompute_payment_summary(Decimal("100.00"), ordering)
        assert summary.amount_paid == Decimal("100.00")
        assert summary.payment_status is PaymentStatus.PAID
