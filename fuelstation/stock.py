"""
Tank stock reconciliation.

Current stock of a tank is derived from its latest stock entry (opening stock
plus receipt) minus the volume dispensed through the tank's nozzles since that
entry's shift date. Readings dated on the entry's own shift date are deducted:
the entry is taken to describe the start of that day.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from fuelstation.dates import today_local
from fuelstation.errors import NotFound
from fuelstation.models import NozzleReading, StockEntry, Tank
from fuelstation.repository import OutletRepository

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class TankStock(BaseModel):
    id: int
    retail_outlet_id: int
    product_id: int
    product_name: str
    tank_number: str
    capacity: Decimal
    length: Decimal
    diameter: Decimal
    is_active: bool
    current_stock: Decimal


def dispensed_volume(reading: NozzleReading) -> Decimal:
    return reading.current_reading - reading.previous_reading - (reading.testing or ZERO)


def latest_stock_entry(entries: Iterable[StockEntry]) -> Optional[StockEntry]:
    """Entry with the greatest shift date, ties broken by the latest creation time."""
    return max(entries, key=lambda entry: (entry.shift_date, entry.created_at), default=None)


def _current_stock(repo: OutletRepository, tank: Tank, as_of: date) -> Decimal:
    entry = latest_stock_entry(repo.list_stock_entries_by_tank(tank.id, until=as_of))
    if entry is None:
        opening, receipt, cutoff = ZERO, ZERO, as_of
    else:
        opening, receipt, cutoff = entry.opening_stock, entry.receipt, entry.shift_date

    readings = repo.list_nozzle_readings_since(tank.id, cutoff, until=as_of)
    dispensed = sum((dispensed_volume(reading) for reading in readings), ZERO)
    current = max(ZERO, opening + receipt - dispensed)
    logger.debug(
        "tank %s as of %s: entry=%s cutoff=%s opening=%s receipt=%s dispensed=%s over %d readings -> %s",
        tank.id,
        as_of,
        entry.id if entry is not None else None,
        cutoff,
        opening,
        receipt,
        dispensed,
        len(readings),
        current,
    )
    return current


def compute_current_stock(
    repo: OutletRepository, tank_id: int, as_of: Optional[date] = None
) -> Decimal:
    """
    Reconciled volume of an active tank on ``as_of`` (defaults to today).

    Raises:
        NotFound: the tank does not exist or has been deactivated
    """
    tank = repo.get_tank(tank_id)
    if tank is None or not tank.is_active:
        raise NotFound("tank not found")
    return _current_stock(repo, tank, as_of or today_local())


def list_tanks_with_stock(
    repo: OutletRepository, outlet_id: int, as_of: Optional[date] = None
) -> list[TankStock]:
    if repo.get_outlet(outlet_id) is None:
        raise NotFound("retail outlet not found")
    as_of = as_of or today_local()
    return [
        TankStock(
            id=tank.id,
            retail_outlet_id=tank.retail_outlet_id,
            product_id=tank.product_id,
            product_name=product.name,
            tank_number=tank.tank_number,
            capacity=tank.capacity,
            length=tank.length,
            diameter=tank.diameter,
            is_active=tank.is_active,
            current_stock=_current_stock(repo, tank, as_of),
        )
        for tank, product in repo.list_active_tanks_with_product(outlet_id)
    ]
