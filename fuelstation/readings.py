from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel

from fuelstation.errors import NotFound, ValidationFailure
from fuelstation.models import NozzleReading, StockEntry, utcnow
from fuelstation.repository import OutletRepository

logger = logging.getLogger(__name__)

ShiftType = Literal["morning", "evening", "night"]


class NozzleReadingInput(BaseModel):
    nozzle_id: int
    attendant_id: int
    shift_type: ShiftType
    shift_date: date
    previous_reading: Decimal
    current_reading: Decimal
    testing: Decimal = Decimal("0")
    total_sale: Optional[Decimal] = None
    cash_sales: Decimal = Decimal("0")
    credit_sales: Decimal = Decimal("0")
    upi_sales: Decimal = Decimal("0")
    card_sales: Decimal = Decimal("0")


class NozzleReadingUpdate(BaseModel):
    attendant_id: Optional[int] = None
    previous_reading: Optional[Decimal] = None
    current_reading: Optional[Decimal] = None
    testing: Optional[Decimal] = None
    total_sale: Optional[Decimal] = None
    cash_sales: Optional[Decimal] = None
    credit_sales: Optional[Decimal] = None
    upi_sales: Optional[Decimal] = None
    card_sales: Optional[Decimal] = None


class StockEntryInput(BaseModel):
    tank_id: int
    shift_type: ShiftType
    shift_date: date
    opening_stock: Decimal
    receipt: Decimal
    invoice_value: Decimal


class StockEntryUpdate(BaseModel):
    opening_stock: Optional[Decimal] = None
    receipt: Optional[Decimal] = None
    invoice_value: Optional[Decimal] = None


def _require_attendant(repo: OutletRepository, outlet_id: int, attendant_id: int) -> None:
    attendant = repo.get_staff(attendant_id)
    if attendant is None or attendant.retail_outlet_id != outlet_id:
        raise NotFound("attendant not found")


def record_nozzle_reading(
    repo: OutletRepository, outlet_id: int, payload: NozzleReadingInput
) -> NozzleReading:
    if payload.total_sale is None:
        raise ValidationFailure("total_sale is required")
    if repo.get_nozzle_in_outlet(payload.nozzle_id, outlet_id) is None:
        raise NotFound("nozzle not found")
    _require_attendant(repo, outlet_id, payload.attendant_id)
    reading = repo.add(NozzleReading(retail_outlet_id=outlet_id, **payload.model_dump()))
    logger.info(
        "reading %s recorded for nozzle %s (%s %s)",
        reading.id,
        reading.nozzle_id,
        reading.shift_type,
        reading.shift_date,
    )
    return reading


def update_nozzle_reading(
    repo: OutletRepository, outlet_id: int, reading_id: int, changes: NozzleReadingUpdate
) -> NozzleReading:
    reading = repo.get(NozzleReading, reading_id)
    if reading is None or reading.retail_outlet_id != outlet_id:
        raise NotFound("nozzle reading not found")
    values = changes.model_dump(exclude_unset=True)
    if "total_sale" in values and values["total_sale"] is None:
        raise ValidationFailure("total_sale cannot be cleared")
    if values.get("attendant_id") is not None:
        _require_attendant(repo, outlet_id, values["attendant_id"])
    for field, value in values.items():
        setattr(reading, field, value)
    reading.updated_at = utcnow()
    return repo.save(reading)


def reading_to_dict(reading: NozzleReading) -> dict[str, Any]:
    return {
        "id": reading.id,
        "retail_outlet_id": reading.retail_outlet_id,
        "nozzle_id": reading.nozzle_id,
        "attendant_id": reading.attendant_id,
        "shift_type": reading.shift_type,
        "shift_date": reading.shift_date.isoformat(),
        "previous_reading": str(reading.previous_reading),
        "current_reading": str(reading.current_reading),
        "testing": str(reading.testing) if reading.testing is not None else None,
        "total_sale": str(reading.total_sale),
        "cash_sales": str(reading.cash_sales) if reading.cash_sales is not None else None,
        "credit_sales": str(reading.credit_sales) if reading.credit_sales is not None else None,
        "upi_sales": str(reading.upi_sales) if reading.upi_sales is not None else None,
        "card_sales": str(reading.card_sales) if reading.card_sales is not None else None,
        "created_at": reading.created_at.isoformat(),
        "updated_at": reading.updated_at.isoformat(),
    }


def list_enriched_readings(
    repo: OutletRepository,
    outlet_id: int,
    shift_type: Optional[str] = None,
    shift_date: Optional[date] = None,
) -> list[dict[str, Any]]:
    readings = repo.list_nozzle_readings_by_outlet(outlet_id, shift_type, shift_date)
    nozzles = repo.nozzle_details(reading.nozzle_id for reading in readings)
    names = repo.staff_names(reading.attendant_id for reading in readings)
    logger.debug(
        "outlet %s: %d readings for shift=%s date=%s", outlet_id, len(readings), shift_type, shift_date
    )
    enriched = []
    for reading in readings:
        row = reading_to_dict(reading)
        row["nozzle"] = nozzles.get(reading.nozzle_id)
        name = names.get(reading.attendant_id)
        row["attendant"] = {"id": reading.attendant_id, "name": name} if name is not None else None
        enriched.append(row)
    return enriched


def last_nozzle_reading(repo: OutletRepository, nozzle_id: int) -> Optional[NozzleReading]:
    return repo.last_nozzle_reading(nozzle_id)


def record_stock_entry(
    repo: OutletRepository, outlet_id: int, manager_id: int, payload: StockEntryInput
) -> StockEntry:
    manager = repo.get_manager(manager_id)
    if manager is None or manager.retail_outlet_id != outlet_id:
        raise NotFound("manager not found")
    tank = repo.get_tank(payload.tank_id)
    if tank is None or tank.retail_outlet_id != outlet_id:
        raise NotFound("tank not found")
    entry = repo.add(
        StockEntry(retail_outlet_id=outlet_id, manager_id=manager_id, **payload.model_dump())
    )
    logger.info(
        "stock entry %s recorded for tank %s (%s %s)",
        entry.id,
        entry.tank_id,
        entry.shift_type,
        entry.shift_date,
    )
    return entry


def update_stock_entry(
    repo: OutletRepository, outlet_id: int, entry_id: int, changes: StockEntryUpdate
) -> StockEntry:
    entry = repo.get(StockEntry, entry_id)
    if entry is None or entry.retail_outlet_id != outlet_id:
        raise NotFound("stock entry not found")
    values = changes.model_dump(exclude_unset=True)
    for field, value in values.items():
        if value is None:
            raise ValidationFailure(f"{field} cannot be cleared")
        setattr(entry, field, value)
    entry.updated_at = utcnow()
    return repo.save(entry)


def stock_entry_to_dict(entry: StockEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "retail_outlet_id": entry.retail_outlet_id,
        "tank_id": entry.tank_id,
        "manager_id": entry.manager_id,
        "shift_type": entry.shift_type,
        "shift_date": entry.shift_date.isoformat(),
        "opening_stock": str(entry.opening_stock),
        "receipt": str(entry.receipt),
        "invoice_value": str(entry.invoice_value),
        "created_at": entry.created_at.isoformat(),
        "updated_at": entry.updated_at.isoformat(),
    }


def list_stock_entries(
    repo: OutletRepository,
    outlet_id: int,
    shift_type: Optional[str] = None,
    shift_date: Optional[date] = None,
) -> list[dict[str, Any]]:
    rows = repo.list_stock_entries_by_outlet(outlet_id, shift_type, shift_date)
    data = []
    for entry, tank, product in rows:
        row = stock_entry_to_dict(entry)
        row.update(
            {
                "tank_number": tank.tank_number,
                "product_id": product.id,
                "product_name": product.name,
            }
        )
        data.append(row)
    return data
