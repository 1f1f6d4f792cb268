"""Aggregated totals and currency formatting for debt collections."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field

from debtsync.models.debt import Debt, DebtPriority, DebtStatus
from debtsync.models.preferences import Currency

_CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.INR: "₹",
    Currency.USD: "$",
}

_CENTS = Decimal("0.01")


def currency_symbol(currency: Currency | str = Currency.INR) -> str:
    return _CURRENCY_SYMBOLS[Currency(currency)]


def format_amount(amount: Decimal | int | float | str, currency: Currency | str = Currency.INR) -> str:
    """``format_amount(Decimal("1234.5"), "USD")`` -> ``"$1,234.50"``."""
    value = Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return f"{currency_symbol(currency)}{value:,.2f}"


class DebtSummary(BaseModel):
    """Totals over a collection of debts."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    total: Decimal = Decimal("0")
    pending_total: Decimal = Decimal("0")
    paid_total: Decimal = Decimal("0")
    pending_count: int = 0
    by_priority: dict[DebtPriority, Decimal] = Field(default_factory=dict)
    """Outstanding (pending) amount per priority."""


def summarize(debts: Iterable[Debt]) -> DebtSummary:
    count = pending_count = 0
    total = pending_total = paid_total = Decimal("0")
    by_priority: dict[DebtPriority, Decimal] = {priority: Decimal("0") for priority in DebtPriority}

    for debt in debts:
        count += 1
        total += debt.amount
        if debt.status == DebtStatus.PAID:
            paid_total += debt.amount
        else:
            pending_count += 1
            pending_total += debt.amount
            by_priority[debt.priority] += debt.amount

    return DebtSummary(
        count=count,
        total=total,
        pending_total=pending_total,
        paid_total=paid_total,
        pending_count=pending_count,
        by_priority=by_priority,
    )
