from datetime import date, datetime

import pytest

from fuelstation.config import settings
from fuelstation.errors import NotFound, ValidationFailure
from fuelstation.models import Shift
from fuelstation.shifts import (
    complete_shift,
    get_current_shift,
    is_shift_submitted,
    resolve_product_rates,
    save_product_rates,
    start_shift,
    submit_shift,
)

DIESEL = [{"productId": 1, "productName": "Diesel", "rate": "89.62"}]
PETROL = [{"productId": 2, "productName": "Petrol", "rate": "102.10"}]


def _shift(manager, shift_type, rates, created_at, status="not-started"):
    return Shift(
        manager_id=manager.id,
        shift_type=shift_type,
        shift_date=created_at.date(),
        status=status,
        product_rates=rates,
        created_at=created_at,
        updated_at=created_at,
    )


def test_no_shifts_resolves_to_empty(repo, outlet) -> None:
    manager = outlet["manager"]
    assert resolve_product_rates(repo, manager.id) == []
    assert resolve_product_rates(repo, manager.id, date(2024, 5, 1), "morning") == []


def test_unknown_manager_is_not_found(repo, outlet) -> None:
    with pytest.raises(NotFound):
        resolve_product_rates(repo, 9999)
    with pytest.raises(NotFound):
        resolve_product_rates(repo, outlet["attendant"].id)


def test_latest_shift_of_any_type_is_last_resort(repo, outlet) -> None:
    manager = outlet["manager"]
    repo.add(_shift(manager, "morning", DIESEL, datetime(2024, 5, 1, 6, 0)))
    repo.add(_shift(manager, "night", PETROL, datetime(2024, 5, 2, 22, 0)))

    assert resolve_product_rates(repo, manager.id) == PETROL
    assert resolve_product_rates(repo, manager.id, date(2024, 5, 3), "evening") == PETROL


def test_most_recent_shift_of_the_type_beats_latest_overall(repo, outlet) -> None:
    manager = outlet["manager"]
    repo.add(_shift(manager, "morning", DIESEL, datetime(2024, 5, 1, 6, 0)))
    repo.add(_shift(manager, "evening", PETROL, datetime(2024, 5, 1, 14, 0)))

    assert resolve_product_rates(repo, manager.id, date(2024, 5, 2), "morning") == DIESEL


def test_shift_created_on_the_date_wins(repo, outlet) -> None:
    manager = outlet["manager"]
    repo.add(_shift(manager, "morning", DIESEL, datetime(2024, 5, 1, 6, 0)))
    repo.add(_shift(manager, "morning", PETROL, datetime(2024, 5, 2, 6, 0)))

    assert resolve_product_rates(repo, manager.id, date(2024, 5, 1), "morning") == DIESEL
    assert resolve_product_rates(repo, manager.id, date(2024, 5, 2), "morning") == PETROL


def test_empty_rates_fall_through_to_next_tier(repo, outlet) -> None:
    manager = outlet["manager"]
    repo.add(_shift(manager, "morning", DIESEL, datetime(2024, 5, 1, 6, 0)))
    repo.add(_shift(manager, "morning", [], datetime(2024, 5, 2, 6, 0)))
    repo.add(_shift(manager, "night", PETROL, datetime(2024, 5, 2, 22, 0)))

    assert resolve_product_rates(repo, manager.id, date(2024, 5, 2), "morning") == PETROL


def test_save_creates_then_updates(repo, outlet) -> None:
    manager = outlet["manager"]

    created = save_product_rates(repo, manager.id, "morning", DIESEL, date(2024, 5, 1))
    assert created.status == "not-started"
    assert created.shift_date == date(2024, 5, 1)
    assert created.product_rates == DIESEL

    updated = save_product_rates(repo, manager.id, "morning", PETROL)
    assert updated.id == created.id
    assert resolve_product_rates(repo, manager.id) == PETROL


def test_saved_rates_keep_measurement_fields(repo, outlet) -> None:
    manager = outlet["manager"]
    rates = [
        {
            "productId": 1,
            "productName": "Diesel",
            "rate": "89.62",
            "observedDensity": "832.5",
            "observedTemperature": "31.2",
            "densityAt15C": "841.0",
        }
    ]

    shift = save_product_rates(repo, manager.id, "evening", rates)
    [stored] = shift.product_rates
    assert stored["rate"] == "89.62"
    assert stored["observedDensity"] == "832.5"
    assert stored["densityAt15C"] == "841.0"


def test_save_rejects_bad_rates_and_shift_types(repo, outlet) -> None:
    manager = outlet["manager"]
    with pytest.raises(ValidationFailure):
        save_product_rates(repo, manager.id, "morning", [{"productName": "Diesel"}])
    with pytest.raises(ValidationFailure):
        save_product_rates(repo, manager.id, "afternoon", DIESEL)


def test_lifecycle_moves_forward(repo, outlet) -> None:
    manager = outlet["manager"]
    day = date(2024, 5, 1)

    started = start_shift(repo, manager.id, "morning", day, DIESEL)
    assert started.status == "active"
    assert started.start_time is not None
    assert get_current_shift(repo, manager.id).id == started.id

    completed = complete_shift(repo, manager.id, "morning", day)
    assert completed.status == "completed"
    assert completed.end_time is not None
    assert get_current_shift(repo, manager.id) is None
    assert not is_shift_submitted(repo, manager.id, "morning", day)

    submitted = submit_shift(repo, manager.id, "morning", day)
    assert submitted.status == "submitted"
    assert submitted.submitted_at is not None
    assert is_shift_submitted(repo, manager.id, "morning", day)


def test_lifecycle_never_moves_backwards(repo, outlet) -> None:
    manager = outlet["manager"]
    day = date(2024, 5, 1)

    with pytest.raises(NotFound):
        complete_shift(repo, manager.id, "morning", day)

    save_product_rates(repo, manager.id, "morning", DIESEL, day)
    with pytest.raises(ValidationFailure):
        complete_shift(repo, manager.id, "morning", day)

    submit_shift(repo, manager.id, "morning", day)
    with pytest.raises(ValidationFailure):
        submit_shift(repo, manager.id, "morning", day)
    with pytest.raises(ValidationFailure):
        start_shift(repo, manager.id, "morning", day)


def test_submit_without_shift_creates_it(repo, outlet) -> None:
    manager = outlet["manager"]

    shift = submit_shift(repo, manager.id, "night", date(2024, 5, 1))
    assert shift.status == "submitted"
    assert shift.product_rates == []
    assert is_shift_submitted(repo, manager.id, "night", date(2024, 5, 1))
    assert not is_shift_submitted(repo, manager.id, "night", date(2024, 5, 2))


def test_start_seeds_rates_from_earlier_shifts(repo, outlet) -> None:
    manager = outlet["manager"]
    repo.add(_shift(manager, "morning", DIESEL, datetime(2024, 5, 1, 6, 0), status="submitted"))

    shift = start_shift(repo, manager.id, "morning", date(2024, 5, 2))
    assert shift.status == "active"
    assert shift.product_rates == DIESEL


def test_saving_twice_for_a_past_date_keeps_one_shift(repo, outlet) -> None:
    manager = outlet["manager"]
    day = date(2024, 5, 1)

    first = save_product_rates(repo, manager.id, "morning", DIESEL, day)
    second = save_product_rates(repo, manager.id, "morning", PETROL, day)

    assert second.id == first.id
    [shift] = repo.get_shifts_by_manager(manager.id, shift_type="morning", shift_date=day)
    assert shift.product_rates == PETROL


def test_undated_shift_matches_on_local_creation_date(repo, outlet, monkeypatch) -> None:
    monkeypatch.setattr(settings, "timezone", "Asia/Kolkata")
    manager = outlet["manager"]
    legacy = _shift(manager, "night", DIESEL, datetime(2024, 5, 1, 20, 0))
    legacy.shift_date = None
    repo.add(legacy)

    assert resolve_product_rates(repo, manager.id, date(2024, 5, 2), "night") == DIESEL

    updated = save_product_rates(repo, manager.id, "night", PETROL, date(2024, 5, 2))
    assert updated.id == legacy.id
    assert updated.shift_date is None
    assert updated.product_rates == PETROL
