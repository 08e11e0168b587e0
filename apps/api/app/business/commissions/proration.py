"""Partial-month scaling of fixed monthly amounts.

A start on the 1st of the target month is never partial; a start later in
the month earns ``days_in_month - start_day + 1`` days; a start after the
target month earns nothing yet. The prorated amount is rounded once, half up,
to whole currency units.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from app.core.errors import ValidationError


@dataclass(frozen=True, slots=True)
class ProrationResult:
    full_amount: Decimal
    prorated_amount: Decimal
    is_prorated: bool
    start_day: int | None
    days_in_month: int
    days_worked: int
    percent_of_month: int


def _round_whole(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def calculate_prorated_reward(
    monthly_amount: Decimal,
    start_date: date | None,
    year: int,
    month: int,
) -> ProrationResult:
    """Return the share of ``monthly_amount`` earned in ``year``/``month``.

    Args:
        monthly_amount: Amount for a full calendar month.
        start_date: First day the amount accrues, or None if always active.
        year: Target year.
        month: Target month, 1-12.
    """
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 1900 <= year <= 9999:
        raise ValidationError("year is out of range")

    amount = Decimal(monthly_amount)
    days_in_month = calendar.monthrange(year, month)[1]
    month_start = date(year, month, 1)

    if start_date is None or start_date < month_start:
        return ProrationResult(
            full_amount=amount,
            prorated_amount=amount,
            is_prorated=False,
            start_day=None,
            days_in_month=days_in_month,
            days_worked=days_in_month,
            percent_of_month=100,
        )

    if (start_date.year, start_date.month) == (year, month):
        start_day = start_date.day
        if start_day == 1:
            return ProrationResult(
                full_amount=amount,
                prorated_amount=amount,
                is_prorated=False,
                start_day=1,
                days_in_month=days_in_month,
                days_worked=days_in_month,
                percent_of_month=100,
            )

        days_worked = days_in_month - start_day + 1
        return ProrationResult(
            full_amount=amount,
            prorated_amount=_round_whole(amount / days_in_month * days_worked),
            is_prorated=True,
            start_day=start_day,
            days_in_month=days_in_month,
            days_worked=days_worked,
            percent_of_month=int(_round_whole(Decimal(days_worked) / days_in_month * 100)),
        )

    # Starts after the target month; nothing accrued yet.
    return ProrationResult(
        full_amount=amount,
        prorated_amount=Decimal("0"),
        is_prorated=True,
        start_day=None,
        days_in_month=days_in_month,
        days_worked=0,
        percent_of_month=0,
    )
