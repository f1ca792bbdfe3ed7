from datetime import date, datetime
from decimal import Decimal

import pytest

from fuelstation.errors import NotFound, ValidationFailure
from fuelstation.models import NozzleReading, RetailOutlet, ShiftSales, Staff
from fuelstation.sales import (
    ShiftSalesInput,
    compute_sales_stats,
    record_shift_sales,
    summarize_shift_sales,
)


def _sale(outlet, attendant, shift_date, shift_type, cash="0", credit="0", upi="0", card="0", nozzle=0):
    amounts = [Decimal(cash), Decimal(credit), Decimal(upi), Decimal(card)]
    return NozzleReading(
        retail_outlet_id=outlet["outlet"].id,
        nozzle_id=outlet["nozzles"][nozzle].id,
        attendant_id=attendant.id,
        shift_type=shift_type,
        shift_date=shift_date,
        previous_reading=Decimal("0"),
        current_reading=Decimal("10"),
        total_sale=sum(amounts),
        cash_sales=amounts[0],
        credit_sales=amounts[1],
        upi_sales=amounts[2],
        card_sales=amounts[3],
    )


def _shift_sales(outlet, shift_date, cash="0", credit="0", upi="0", card="0"):
    amounts = [Decimal(cash), Decimal(credit), Decimal(upi), Decimal(card)]
    return ShiftSales(
        retail_outlet_id=outlet["outlet"].id,
        staff_id=outlet["attendant"].id,
        shift_date=shift_date,
        shift_type="morning",
        start_time=datetime.combine(shift_date, datetime.min.time()),
        end_time=datetime.combine(shift_date, datetime.max.time()),
        cash_sales=amounts[0],
        credit_sales=amounts[1],
        upi_sales=amounts[2],
        card_sales=amounts[3],
        total_sales=sum(amounts),
    )


def test_group_totals_match_their_readings(repo, outlet) -> None:
    ravi = outlet["attendant"]
    asha = repo.add(Staff(retail_outlet_id=outlet["outlet"].id, name="Asha", role="attendant"))
    day = date(2024, 5, 1)
    repo.add(_sale(outlet, ravi, day, "morning", cash="100.10", upi="20"))
    repo.add(_sale(outlet, ravi, day, "morning", cash="0.20", card="5.05", nozzle=1))
    repo.add(_sale(outlet, asha, day, "morning", credit="300"))
    repo.add(_sale(outlet, ravi, day, "evening", cash="50"))

    summaries = summarize_shift_sales(repo, outlet["outlet"].id)
    by_id = {summary.id: summary for summary in summaries}
    assert len(summaries) == 3

    ravi_morning = by_id[f"2024-05-01-morning-{ravi.id}"]
    assert ravi_morning.cash_sales == Decimal("100.30")
    assert ravi_morning.upi_sales == Decimal("20")
    assert ravi_morning.card_sales == Decimal("5.05")
    assert ravi_morning.credit_sales == Decimal("0")
    assert ravi_morning.total_sales == Decimal("125.35")
    assert ravi_morning.staff_name == "Ravi"

    assert by_id[f"2024-05-01-morning-{asha.id}"].total_sales == Decimal("300")
    assert by_id[f"2024-05-01-evening-{ravi.id}"].total_sales == Decimal("50")
    assert sum(summary.total_sales for summary in summaries) == Decimal("475.35")


def test_cent_amounts_sum_exactly(repo, outlet) -> None:
    day = date(2024, 5, 1)
    for _ in range(10):
        repo.add(_sale(outlet, outlet["attendant"], day, "night", cash="0.10"))

    [summary] = summarize_shift_sales(repo, outlet["outlet"].id)
    assert summary.cash_sales == Decimal("1.00")
    assert summary.total_sales == Decimal("1.00")


def test_missing_payment_amounts_count_as_zero(repo, outlet) -> None:
    reading = _sale(outlet, outlet["attendant"], date(2024, 5, 1), "morning", cash="40")
    reading.upi_sales = None
    repo.add(reading)

    [summary] = summarize_shift_sales(repo, outlet["outlet"].id)
    assert summary.upi_sales == Decimal("0")
    assert summary.cash_sales == Decimal("40")


def test_summaries_are_ordered_and_limited(repo, outlet) -> None:
    attendant = outlet["attendant"]
    repo.add(_sale(outlet, attendant, date(2024, 5, 1), "night", cash="1"))
    repo.add(_sale(outlet, attendant, date(2024, 5, 3), "morning", cash="1"))
    repo.add(_sale(outlet, attendant, date(2024, 5, 2), "morning", cash="1"))
    repo.add(_sale(outlet, attendant, date(2024, 5, 3), "evening", cash="1"))

    summaries = summarize_shift_sales(repo, outlet["outlet"].id, limit=3)
    assert [(s.shift_date, s.shift_type) for s in summaries] == [
        (date(2024, 5, 3), "evening"),
        (date(2024, 5, 3), "morning"),
        (date(2024, 5, 2), "morning"),
    ]


def test_summary_display_window(repo, outlet) -> None:
    repo.add(_sale(outlet, outlet["attendant"], date(2024, 5, 1), "morning", cash="1"))

    [summary] = summarize_shift_sales(repo, outlet["outlet"].id)
    assert summary.start_time == datetime(2024, 5, 1, 6, 0)
    assert summary.end_time == datetime(2024, 5, 1, 18, 0)


def test_summaries_reject_bad_limit_and_unknown_outlet(repo, outlet) -> None:
    assert summarize_shift_sales(repo, outlet["outlet"].id) == []
    with pytest.raises(ValidationFailure):
        summarize_shift_sales(repo, outlet["outlet"].id, limit=0)
    with pytest.raises(NotFound):
        summarize_shift_sales(repo, 9999)


def test_stats_are_zero_without_records(repo, outlet) -> None:
    stats = compute_sales_stats(repo, outlet["outlet"].id, now=datetime(2024, 3, 31, 12, 0))

    assert stats.weekly_sales == Decimal("0")
    assert stats.monthly_sales == Decimal("0")
    breakdown = stats.payment_method_breakdown
    assert (breakdown.cash, breakdown.credit, breakdown.upi, breakdown.card) == (0, 0, 0, 0)


def test_stats_windows(repo, outlet) -> None:
    now = datetime(2024, 3, 31, 12, 0)
    repo.add(_shift_sales(outlet, date(2024, 3, 31), cash="100"))
    repo.add(_shift_sales(outlet, date(2024, 3, 24), upi="10"))
    repo.add(_shift_sales(outlet, date(2024, 3, 23), card="1"))
    repo.add(_shift_sales(outlet, date(2024, 2, 29), credit="1000"))
    repo.add(_shift_sales(outlet, date(2024, 2, 28), cash="5000"))

    stats = compute_sales_stats(repo, outlet["outlet"].id, now=now)

    assert stats.weekly_sales == Decimal("110")
    assert stats.monthly_sales == Decimal("1111")
    assert stats.payment_method_breakdown.cash == Decimal("100")
    assert stats.payment_method_breakdown.credit == Decimal("1000")
    assert stats.payment_method_breakdown.upi == Decimal("10")
    assert stats.payment_method_breakdown.card == Decimal("1")


def test_stats_for_unknown_outlet_is_not_found(repo, outlet) -> None:
    repo.add(_shift_sales(outlet, date(2024, 3, 30), cash="100"))

    with pytest.raises(NotFound):
        compute_sales_stats(repo, 9999, now=datetime(2024, 3, 31))


def _second_outlet(repo):
    site = repo.add(RetailOutlet(name="City Fuels"))
    staff = repo.add(Staff(retail_outlet_id=site.id, name="Kiran", role="attendant"))
    return site, staff


def test_stats_ignore_other_outlets(repo, outlet) -> None:
    other, kiran = _second_outlet(repo)
    repo.add(_shift_sales(outlet, date(2024, 3, 30), cash="100"))
    foreign = _shift_sales(outlet, date(2024, 3, 30), cash="5000", upi="7")
    foreign.retail_outlet_id = other.id
    foreign.staff_id = kiran.id
    repo.add(foreign)

    stats = compute_sales_stats(repo, outlet["outlet"].id, now=datetime(2024, 3, 31))
    assert stats.weekly_sales == Decimal("100")
    assert stats.monthly_sales == Decimal("100")
    assert stats.payment_method_breakdown.upi == Decimal("0")

    other_stats = compute_sales_stats(repo, other.id, now=datetime(2024, 3, 31))
    assert other_stats.weekly_sales == Decimal("5007")


def test_summaries_ignore_other_outlets(repo, outlet) -> None:
    other, kiran = _second_outlet(repo)
    repo.add(_sale(outlet, outlet["attendant"], date(2024, 5, 1), "morning", cash="10"))
    foreign = _sale(outlet, kiran, date(2024, 5, 1), "morning", cash="900")
    foreign.retail_outlet_id = other.id
    repo.add(foreign)

    [summary] = summarize_shift_sales(repo, outlet["outlet"].id)
    assert summary.staff_id == outlet["attendant"].id
    assert summary.total_sales == Decimal("10")

    [other_summary] = summarize_shift_sales(repo, other.id)
    assert other_summary.staff_name == "Kiran"
    assert other_summary.total_sales == Decimal("900")


def test_record_shift_sales_totals_payment_amounts(repo, outlet) -> None:
    payload = ShiftSalesInput(
        staff_id=outlet["attendant"].id,
        shift_date=date(2024, 5, 1),
        shift_type="morning",
        start_time=datetime(2024, 5, 1, 6, 0),
        end_time=datetime(2024, 5, 1, 14, 0),
        cash_sales=Decimal("1000.10"),
        credit_sales=Decimal("250"),
        upi_sales=Decimal("0.20"),
    )

    record = record_shift_sales(repo, outlet["outlet"].id, payload)
    assert record.total_sales == Decimal("1250.30")

    stats = compute_sales_stats(repo, outlet["outlet"].id, now=datetime(2024, 5, 2, 9, 0))
    assert stats.weekly_sales == Decimal("1250.30")


def test_record_shift_sales_requires_outlet_staff(repo, outlet) -> None:
    payload = ShiftSalesInput(
        staff_id=9999,
        shift_date=date(2024, 5, 1),
        shift_type="morning",
        start_time=datetime(2024, 5, 1, 6, 0),
        end_time=datetime(2024, 5, 1, 14, 0),
    )
    with pytest.raises(NotFound):
        record_shift_sales(repo, outlet["outlet"].id, payload)
