from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple


class AttributionMonth(NamedTuple):
    year: int
    month: int

    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def attribution_month(billing_type: str, created_on: date, effective_from: date | None) -> AttributionMonth:
    """Calendar month a seller's commission for an item is counted in.

    One-off items count in the month they were created. Recurring items count
    in the first full billing month: the month of ``effective_from`` when it
    falls on the 1st, otherwise the month after it.
    """
    if billing_type == "one_off" or effective_from is None:
        return AttributionMonth(created_on.year, created_on.month)
    if effective_from.day == 1:
        return AttributionMonth(effective_from.year, effective_from.month)
    if effective_from.month == 12:
        return AttributionMonth(effective_from.year + 1, 1)
    return AttributionMonth(effective_from.year, effective_from.month + 1)


def commission_base(price: Decimal, max_credits: int | None, price_per_credit: Decimal | None) -> Decimal:
    # Full price, never prorated; credit-based services are valued at their full credit allowance.
    if max_credits and price_per_credit:
        return Decimal(max_credits) * Decimal(price_per_credit)
    return Decimal(price)


def commission_amount(base: Decimal, commission_percent: Decimal) -> Decimal:
    return (Decimal(base) * Decimal(commission_percent) / Decimal("100")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
