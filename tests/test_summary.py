from __future__ import annotations

from decimal import Decimal

import pytest

from debtsync.models.debt import Debt, DebtPriority
from debtsync.summary import currency_symbol, format_amount, summarize


def _debt(debt_id: str, amount: str, *, status: str = "PENDING", priority: str = "MEDIUM") -> Debt:
    return Debt.model_validate(
        {
            "id": debt_id,
            "user_id": "user-1",
            "creditor": f"Creditor {debt_id}",
            "amount": amount,
            "status": status,
            "priority": priority,
        }
    )


def test_summarize_splits_pending_and_paid() -> None:
    summary = summarize(
        [
            _debt("a", "100.00", priority="HIGH"),
            _debt("b", "50.25", priority="HIGH"),
            _debt("c", "10.00", priority="LOW"),
            _debt("d", "999.99", status="PAID", priority="HIGH"),
        ]
    )

    assert summary.count == 4
    assert summary.pending_count == 3
    assert summary.total == Decimal("1160.24")
    assert summary.pending_total == Decimal("160.25")
    assert summary.paid_total == Decimal("999.99")
    assert summary.by_priority == {
        DebtPriority.LOW: Decimal("10.00"),
        DebtPriority.MEDIUM: Decimal("0"),
        DebtPriority.HIGH: Decimal("150.25"),
    }


def test_summarize_empty_collection() -> None:
    summary = summarize(())
    assert summary.count == 0
    assert summary.total == Decimal("0")
    assert set(summary.by_priority) == set(DebtPriority)


@pytest.mark.parametrize(
    ("amount", "currency", "expected"),
    [
        (Decimal("1234.5"), "INR", "₹1,234.50"),
        ("1234567.891", "USD", "$1,234,567.89"),
        (0.005, "usd", "$0.01"),
        (12, "INR", "₹12.00"),
    ],
)
def test_format_amount(amount: object, currency: str, expected: str) -> None:
    assert format_amount(amount, currency) == expected  # type: ignore[arg-type]


def test_unknown_currency_is_rejected() -> None:
    assert currency_symbol() == "₹"
    with pytest.raises(ValueError):
        currency_symbol("EUR")
