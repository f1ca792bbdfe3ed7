"""
Sales aggregation over nozzle readings and shift-sales records.

All sums use ``Decimal``; a missing payment amount counts as zero.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel

from fuelstation.config import settings
from fuelstation.dates import now_local, parse_clock
from fuelstation.errors import NotFound, ValidationFailure
from fuelstation.models import ShiftSales
from fuelstation.repository import OutletRepository

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class ShiftSalesSummary(BaseModel):
    id: str
    retail_outlet_id: int
    staff_id: int
    staff_name: Optional[str]
    shift_date: date
    shift_type: str
    start_time: datetime
    end_time: datetime
    cash_sales: Decimal
    credit_sales: Decimal
    upi_sales: Decimal
    card_sales: Decimal
    total_sales: Decimal
    notes: str = ""


class PaymentMethodBreakdown(BaseModel):
    cash: Decimal = ZERO
    credit: Decimal = ZERO
    upi: Decimal = ZERO
    card: Decimal = ZERO


class SalesStats(BaseModel):
    weekly_sales: Decimal = ZERO
    monthly_sales: Decimal = ZERO
    payment_method_breakdown: PaymentMethodBreakdown = PaymentMethodBreakdown()


class ShiftSalesInput(BaseModel):
    staff_id: int
    shift_date: date
    shift_type: Literal["morning", "evening", "night"]
    start_time: datetime
    end_time: datetime
    cash_sales: Decimal = ZERO
    credit_sales: Decimal = ZERO
    upi_sales: Decimal = ZERO
    card_sales: Decimal = ZERO
    notes: Optional[str] = None


def _amount(value: Optional[Decimal]) -> Decimal:
    return value if value is not None else ZERO


def summarize_shift_sales(
    repo: OutletRepository, outlet_id: int, limit: Optional[int] = None
) -> list[ShiftSalesSummary]:
    """
    Per-attendant shift totals synthesised from the outlet's nozzle readings.

    Readings are grouped by (shift date, shift type, attendant). Groups are
    returned newest shift date first, then by shift type, and cut to ``limit``.
    The start and end times are a display convention, not stored shift times.
    """
    limit = settings.shift_sales_default_limit if limit is None else limit
    if limit < 1:
        raise ValidationFailure("limit must be at least 1")
    if repo.get_outlet(outlet_id) is None:
        raise NotFound("retail outlet not found")

    groups: dict[tuple[date, str, int], dict[str, Decimal]] = defaultdict(
        lambda: {"cash": ZERO, "credit": ZERO, "upi": ZERO, "card": ZERO, "total": ZERO}
    )
    for reading in repo.list_nozzle_readings_by_outlet(outlet_id):
        totals = groups[(reading.shift_date, reading.shift_type, reading.attendant_id)]
        totals["cash"] += _amount(reading.cash_sales)
        totals["credit"] += _amount(reading.credit_sales)
        totals["upi"] += _amount(reading.upi_sales)
        totals["card"] += _amount(reading.card_sales)
        totals["total"] += _amount(reading.total_sale)

    # shift date descending, then shift type and attendant ascending
    keys = sorted(groups, key=lambda key: (-key[0].toordinal(), key[1], key[2]))[:limit]

    names = repo.staff_names(attendant_id for _, _, attendant_id in keys)
    start_clock = parse_clock(settings.shift_display_start)
    end_clock = parse_clock(settings.shift_display_end)
    summaries = []
    for shift_date, shift_type, attendant_id in keys:
        totals = groups[(shift_date, shift_type, attendant_id)]
        summaries.append(
            ShiftSalesSummary(
                id=f"{shift_date.isoformat()}-{shift_type}-{attendant_id}",
                retail_outlet_id=outlet_id,
                staff_id=attendant_id,
                staff_name=names.get(attendant_id),
                shift_date=shift_date,
                shift_type=shift_type,
                start_time=datetime.combine(shift_date, start_clock),
                end_time=datetime.combine(shift_date, end_clock),
                cash_sales=totals["cash"],
                credit_sales=totals["credit"],
                upi_sales=totals["upi"],
                card_sales=totals["card"],
                total_sales=totals["total"],
            )
        )
    logger.debug(
        "outlet %s: %d shift groups, returning %d", outlet_id, len(groups), len(summaries)
    )
    return summaries


def compute_sales_stats(
    repo: OutletRepository, outlet_id: int, now: Optional[datetime] = None
) -> SalesStats:
    """
    Trailing sales totals from the outlet's shift-sales records.

    ``weekly_sales`` covers shift dates from seven days before today,
    ``monthly_sales`` and the payment breakdown cover one calendar month.
    Windows are evaluated against ``now`` (the current local time by default).
    """
    if repo.get_outlet(outlet_id) is None:
        raise NotFound("retail outlet not found")
    today = (now or now_local()).date()
    week_start = today - relativedelta(days=7)
    month_start = today - relativedelta(months=1)

    stats = SalesStats()
    breakdown = PaymentMethodBreakdown()
    for record in repo.list_shift_sales_by_outlet(outlet_id, since=month_start):
        total = _amount(record.total_sales)
        stats.monthly_sales += total
        if record.shift_date >= week_start:
            stats.weekly_sales += total
        breakdown.cash += _amount(record.cash_sales)
        breakdown.credit += _amount(record.credit_sales)
        breakdown.upi += _amount(record.upi_sales)
        breakdown.card += _amount(record.card_sales)
    stats.payment_method_breakdown = breakdown
    logger.debug(
        "outlet %s stats since %s/%s: weekly=%s monthly=%s",
        outlet_id,
        week_start,
        month_start,
        stats.weekly_sales,
        stats.monthly_sales,
    )
    return stats


def record_shift_sales(
    repo: OutletRepository, outlet_id: int, payload: ShiftSalesInput
) -> ShiftSales:
    staff = repo.get_staff(payload.staff_id)
    if staff is None or staff.retail_outlet_id != outlet_id:
        raise NotFound("staff member not found")
    total = payload.cash_sales + payload.credit_sales + payload.upi_sales + payload.card_sales
    row = repo.add(
        ShiftSales(
            retail_outlet_id=outlet_id,
            staff_id=payload.staff_id,
            shift_date=payload.shift_date,
            shift_type=payload.shift_type,
            start_time=payload.start_time,
            end_time=payload.end_time,
            cash_sales=payload.cash_sales,
            credit_sales=payload.credit_sales,
            upi_sales=payload.upi_sales,
            card_sales=payload.card_sales,
            total_sales=total,
            notes=payload.notes,
        )
    )
    logger.info("recorded shift sales %s for outlet %s staff %s", row.id, outlet_id, staff.id)
    return row
