"""
Manager shift records: product rates and the shift lifecycle.

A shift is identified by (manager, shift type, shift date) and only ever moves
forward through ``not-started -> active -> completed -> submitted``.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from fuelstation.dates import local_date, today_local
from fuelstation.errors import NotFound, ValidationFailure
from fuelstation.models import SHIFT_STATUSES, SHIFT_TYPES, Shift, Staff, utcnow
from fuelstation.repository import OutletRepository

logger = logging.getLogger(__name__)

STATUS_ORDER = {status: position for position, status in enumerate(SHIFT_STATUSES)}


class ProductRate(BaseModel):
    model_config = {"populate_by_name": True, "extra": "allow"}
    product_id: int = Field(alias="productId")
    product_name: Optional[str] = Field(default=None, alias="productName")
    rate: Decimal
    observed_density: Optional[Decimal] = Field(default=None, alias="observedDensity")
    observed_temperature: Optional[Decimal] = Field(default=None, alias="observedTemperature")
    density_at_15c: Optional[Decimal] = Field(default=None, alias="densityAt15C")


def normalize_rates(rates: list[Any]) -> list[dict]:
    try:
        parsed = [ProductRate.model_validate(rate) for rate in rates]
    except ValidationError as exc:
        raise ValidationFailure(f"invalid product rates: {exc.error_count()} error(s)") from exc
    return [rate.model_dump(mode="json", by_alias=True, exclude_none=True) for rate in parsed]


def _require_manager(repo: OutletRepository, manager_id: int) -> Staff:
    manager = repo.get_manager(manager_id)
    if manager is None:
        raise NotFound("manager not found")
    return manager


def _require_shift_type(shift_type: str) -> None:
    if shift_type not in SHIFT_TYPES:
        raise ValidationFailure(f"unknown shift type: {shift_type}")


def _created_on(shift: Shift, target_date: date) -> bool:
    return local_date(shift.created_at) == target_date


def _dated(shift: Shift, target_date: date) -> bool:
    if shift.shift_date is None:
        return _created_on(shift, target_date)
    return shift.shift_date == target_date


def resolve_product_rates(
    repo: OutletRepository,
    manager_id: int,
    target_date: Optional[date] = None,
    target_shift_type: Optional[str] = None,
) -> list[dict]:
    """
    Rates a manager should see for a shift, falling back to earlier shifts.

    Tried in order, first non-empty rate list wins:

    1. the shift of ``target_shift_type`` created on ``target_date`` (both given)
    2. the most recently updated shift of ``target_shift_type``
    3. the most recently updated shift of any type

    Returns an empty list when the manager has no shift records at all.
    """
    _require_manager(repo, manager_id)
    logger.debug(
        "resolving rates for manager %s, date=%s, shift=%s", manager_id, target_date, target_shift_type
    )

    if target_shift_type:
        same_type = repo.get_shifts_by_manager(manager_id, shift_type=target_shift_type)
        if target_date:
            exact = next((shift for shift in same_type if _created_on(shift, target_date)), None)
            if exact is not None and exact.product_rates:
                logger.debug("rates from shift %s created on %s", exact.id, target_date)
                return list(exact.product_rates)
        if same_type and same_type[0].product_rates:
            logger.debug("rates from most recent %s shift %s", target_shift_type, same_type[0].id)
            return list(same_type[0].product_rates)

    latest = repo.get_shifts_by_manager(manager_id)
    if latest and latest[0].product_rates:
        logger.debug("rates from latest shift %s", latest[0].id)
        return list(latest[0].product_rates)

    logger.debug("no rates found for manager %s", manager_id)
    return []


def save_product_rates(
    repo: OutletRepository,
    manager_id: int,
    shift_type: str,
    rates: list[Any],
    target_date: Optional[date] = None,
) -> Shift:
    """
    Store rates on the manager's shift of ``shift_type``.

    With ``target_date`` only the shift for that date is updated; rows without
    a shift date match on their local creation date. When nothing matches a new
    ``not-started`` shift is created for the date (today when omitted).
    """
    _require_manager(repo, manager_id)
    _require_shift_type(shift_type)
    stored = normalize_rates(rates)

    candidates = repo.get_shifts_by_manager(manager_id, shift_type=shift_type)
    if target_date:
        candidates = [shift for shift in candidates if _dated(shift, target_date)]
    if candidates:
        shift = candidates[0]
        shift.product_rates = stored
        shift.updated_at = utcnow()
        shift = repo.save(shift)
    else:
        shift = repo.add(
            Shift(
                manager_id=manager_id,
                shift_type=shift_type,
                shift_date=target_date or today_local(),
                status="not-started",
                product_rates=stored,
            )
        )
    logger.info(
        "saved %d rates on shift %s (manager %s, %s)", len(stored), shift.id, manager_id, shift_type
    )
    return shift


def _shift_for(
    repo: OutletRepository, manager_id: int, shift_type: str, shift_date: date
) -> Optional[Shift]:
    rows = repo.get_shifts_by_manager(manager_id, shift_type=shift_type, shift_date=shift_date)
    return rows[0] if rows else None


def _transition(shift: Shift, target: str) -> None:
    if STATUS_ORDER[target] <= STATUS_ORDER[shift.status]:
        raise ValidationFailure(f"shift is already {shift.status}, cannot move to {target}")
    logger.info(
        "shift %s (manager %s, %s %s): %s -> %s",
        shift.id,
        shift.manager_id,
        shift.shift_type,
        shift.shift_date,
        shift.status,
        target,
    )
    shift.status = target
    shift.updated_at = utcnow()


def start_shift(
    repo: OutletRepository,
    manager_id: int,
    shift_type: str,
    shift_date: date,
    product_rates: Optional[list[Any]] = None,
) -> Shift:
    """Activate a shift, seeding its rates from earlier shifts when none are given."""
    _require_manager(repo, manager_id)
    _require_shift_type(shift_type)
    stored = normalize_rates(product_rates) if product_rates is not None else None

    shift = _shift_for(repo, manager_id, shift_type, shift_date)
    if shift is None:
        if stored is None:
            stored = resolve_product_rates(repo, manager_id, shift_date, shift_type)
        shift = Shift(
            manager_id=manager_id,
            shift_type=shift_type,
            shift_date=shift_date,
            status="not-started",
            product_rates=stored,
        )
        _transition(shift, "active")
        shift.start_time = utcnow()
        return repo.add(shift)

    _transition(shift, "active")
    shift.start_time = utcnow()
    if stored is not None:
        shift.product_rates = stored
    return repo.save(shift)


def complete_shift(
    repo: OutletRepository, manager_id: int, shift_type: str, shift_date: date
) -> Shift:
    _require_manager(repo, manager_id)
    shift = _shift_for(repo, manager_id, shift_type, shift_date)
    if shift is None:
        raise NotFound("shift not found")
    if shift.status != "active":
        raise ValidationFailure(f"only an active shift can be completed, shift is {shift.status}")
    _transition(shift, "completed")
    shift.end_time = utcnow()
    return repo.save(shift)


def submit_shift(
    repo: OutletRepository, manager_id: int, shift_type: str, shift_date: date
) -> Shift:
    """Mark a shift's data as submitted, creating the shift record if needed."""
    _require_manager(repo, manager_id)
    _require_shift_type(shift_type)
    shift = _shift_for(repo, manager_id, shift_type, shift_date)
    now = utcnow()
    if shift is None:
        shift = Shift(
            manager_id=manager_id,
            shift_type=shift_type,
            shift_date=shift_date,
            status="not-started",
            product_rates=[],
        )
        _transition(shift, "submitted")
        shift.submitted_at = now
        return repo.add(shift)

    _transition(shift, "submitted")
    shift.submitted_at = now
    if shift.end_time is None:
        shift.end_time = now
    return repo.save(shift)


def get_current_shift(repo: OutletRepository, manager_id: int) -> Optional[Shift]:
    _require_manager(repo, manager_id)
    active = repo.get_shifts_by_manager(manager_id, status="active")
    return active[0] if active else None


def is_shift_submitted(
    repo: OutletRepository, manager_id: int, shift_type: str, shift_date: date
) -> bool:
    rows = repo.get_shifts_by_manager(
        manager_id, shift_type=shift_type, shift_date=shift_date, status="submitted"
    )
    return bool(rows)
