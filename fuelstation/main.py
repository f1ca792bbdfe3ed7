from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Literal, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fuelstation.config import settings
from fuelstation.dates import today_local
from fuelstation.db import SessionLocal
from fuelstation.errors import DataAccessFailure, NotFound, ValidationFailure
from fuelstation.logging_config import setup_logging
from fuelstation.models import (
    DispensingUnit,
    Nozzle,
    Product,
    RetailOutlet,
    Shift,
    ShiftSales,
    Staff,
    Tank,
)
from fuelstation.readings import (
    NozzleReadingInput,
    NozzleReadingUpdate,
    ShiftType,
    StockEntryInput,
    StockEntryUpdate,
    last_nozzle_reading,
    list_enriched_readings,
    list_stock_entries,
    reading_to_dict,
    record_nozzle_reading,
    record_stock_entry,
    stock_entry_to_dict,
    update_nozzle_reading,
    update_stock_entry,
)
from fuelstation.repository import OutletRepository
from fuelstation.sales import (
    ShiftSalesInput,
    compute_sales_stats,
    record_shift_sales,
    summarize_shift_sales,
)
from fuelstation.shifts import (
    complete_shift,
    get_current_shift,
    is_shift_submitted,
    resolve_product_rates,
    save_product_rates,
    start_shift,
    submit_shift,
)
from fuelstation.stock import compute_current_stock, list_tanks_with_stock

setup_logging(settings.log_level)

app = FastAPI(title="Fuel Station Backend")


def _meta(request_id: Optional[str] = None, warnings: Optional[list[str]] = None) -> dict:
    return {
        "request_id": request_id or f"req_{uuid4().hex}",
        "warnings": warnings or [],
    }


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> OutletRepository:
    return OutletRepository(db)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _amount(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _list_meta(limit: int, cursor: Optional[int], next_cursor: Optional[int]) -> dict:
    meta = _meta()
    if next_cursor is not None:
        meta["page"] = {"limit": limit, "cursor": str(next_cursor)}
    elif cursor is not None:
        meta["page"] = {"limit": limit, "cursor": str(cursor)}
    else:
        meta["page"] = {"limit": limit, "cursor": None}
    return meta


def _require_outlet(repo: OutletRepository, outlet_id: int) -> RetailOutlet:
    outlet = repo.get_outlet(outlet_id)
    if not outlet:
        raise HTTPException(status_code=404, detail="retail outlet not found")
    return outlet


@app.exception_handler(NotFound)
async def handle_not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationFailure)
async def handle_validation_failure(request: Request, exc: ValidationFailure) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(DataAccessFailure)
async def handle_data_access_failure(request: Request, exc: DataAccessFailure) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get("/", tags=["root"])
def read_root() -> dict:
    return {"status": "ok"}


@app.get("/health", tags=["health"])
def health_check() -> dict:
    return {"status": "healthy"}


# -- retail outlets ---------------------------------------------------------


class RetailOutletCreate(BaseModel):
    model_config = {"json_schema_extra": {"example": {'name': 'Highway Fuels', 'sapcode': '102938', 'oil_company': 'IOCL', 'address': 'NH-44, Km 112', 'phone_number': '9800000001'}}}
    name: str
    sapcode: Optional[str] = None
    oil_company: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None


def _outlet_data(outlet: RetailOutlet) -> dict:
    return {
        "retail_outlet_id": outlet.id,
        "name": outlet.name,
        "sapcode": outlet.sapcode,
        "oil_company": outlet.oil_company,
        "address": outlet.address,
        "phone_number": outlet.phone_number,
    }


@app.post("/api/v1/outlets", tags=["Retail Outlets"])
def create_outlet(
    payload: RetailOutletCreate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    outlet = repo.add(RetailOutlet(**payload.model_dump(), created_at=_now(), updated_at=_now()))
    return {"data": _outlet_data(outlet), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}", tags=["Retail Outlets"])
def get_outlet(outlet_id: int, repo: OutletRepository = Depends(get_repository)) -> dict:
    outlet = _require_outlet(repo, outlet_id)
    return {"data": _outlet_data(outlet), "meta": _meta()}


# -- products ---------------------------------------------------------------


class ProductCreate(BaseModel):
    model_config = {"json_schema_extra": {"example": {'name': 'Diesel', 'price_per_liter': '89.62'}}}
    name: str
    price_per_liter: Decimal
    is_active: bool = True


def _product_data(product: Product) -> dict:
    return {
        "product_id": product.id,
        "retail_outlet_id": product.retail_outlet_id,
        "name": product.name,
        "price_per_liter": _amount(product.price_per_liter),
        "is_active": product.is_active,
    }


@app.post("/api/v1/outlets/{outlet_id}/products", tags=["Products"])
def create_product(
    outlet_id: int, payload: ProductCreate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    _require_outlet(repo, outlet_id)
    product = repo.add(Product(retail_outlet_id=outlet_id, **payload.model_dump()))
    return {"data": _product_data(product), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}/products", tags=["Products"])
def list_products(
    outlet_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    cursor: Optional[int] = Query(default=None),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    products, next_cursor = repo.list_products(outlet_id, limit, cursor)
    return {
        "data": [_product_data(product) for product in products],
        "meta": _list_meta(limit, cursor, next_cursor),
    }


# -- tanks ------------------------------------------------------------------


class TankCreate(BaseModel):
    model_config = {"json_schema_extra": {"example": {'product_id': 1, 'tank_number': 'T1', 'capacity': '20000', 'length': '6.5', 'diameter': '2.1'}}}
    product_id: int
    tank_number: str
    capacity: Decimal
    length: Decimal
    diameter: Decimal


class TankUpdate(BaseModel):
    product_id: Optional[int] = None
    tank_number: Optional[str] = None
    capacity: Optional[Decimal] = None
    length: Optional[Decimal] = None
    diameter: Optional[Decimal] = None


def _tank_data(tank: Tank) -> dict:
    return {
        "tank_id": tank.id,
        "retail_outlet_id": tank.retail_outlet_id,
        "product_id": tank.product_id,
        "tank_number": tank.tank_number,
        "capacity": _amount(tank.capacity),
        "length": _amount(tank.length),
        "diameter": _amount(tank.diameter),
        "is_active": tank.is_active,
    }


@app.post("/api/v1/outlets/{outlet_id}/tanks", tags=["Tanks"])
def create_tank(
    outlet_id: int, payload: TankCreate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    _require_outlet(repo, outlet_id)
    product = repo.get(Product, payload.product_id)
    if not product or product.retail_outlet_id != outlet_id:
        raise HTTPException(status_code=400, detail="invalid product_id")
    tank = repo.add(Tank(retail_outlet_id=outlet_id, **payload.model_dump()))
    return {"data": _tank_data(tank), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}/tanks", tags=["Tanks"])
def list_tanks(
    outlet_id: int,
    as_of: Optional[date] = Query(default=None),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    tanks = list_tanks_with_stock(repo, outlet_id, as_of)
    return {"data": [tank.model_dump(mode="json") for tank in tanks], "meta": _meta()}


@app.put("/api/v1/tanks/{tank_id}", tags=["Tanks"])
def update_tank(
    tank_id: int, payload: TankUpdate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    tank = repo.get_tank(tank_id)
    if not tank or not tank.is_active:
        raise HTTPException(status_code=404, detail="tank not found")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(tank, field, value)
    tank.updated_at = _now()
    tank = repo.save(tank)
    return {"data": _tank_data(tank), "meta": _meta()}


@app.delete("/api/v1/tanks/{tank_id}", tags=["Tanks"])
def delete_tank(tank_id: int, repo: OutletRepository = Depends(get_repository)) -> dict:
    tank = repo.get_tank(tank_id)
    if not tank:
        raise HTTPException(status_code=404, detail="tank not found")
    tank.is_active = False
    tank.updated_at = _now()
    repo.save(tank)
    return {"data": {"tank_id": tank_id, "is_active": False}, "meta": _meta()}


@app.get("/api/v1/tanks/{tank_id}/current-stock", tags=["Tanks"])
def get_current_stock(
    tank_id: int,
    as_of: Optional[date] = Query(default=None),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    as_of = as_of or today_local()
    current = compute_current_stock(repo, tank_id, as_of)
    return {
        "data": {
            "tank_id": tank_id,
            "as_of": as_of.isoformat(),
            "current_stock": str(current),
        },
        "meta": _meta(),
    }


# -- dispensing units and nozzles -------------------------------------------


class DispensingUnitCreate(BaseModel):
    model_config = {"json_schema_extra": {"example": {'name': 'DU-1', 'number_of_nozzles': 2}}}
    name: str
    number_of_nozzles: int


class NozzleCreate(BaseModel):
    model_config = {"json_schema_extra": {"example": {'tank_id': 1, 'nozzle_number': 1, 'calibration_valid_until': '2027-03-31T00:00:00+05:30'}}}
    tank_id: int
    nozzle_number: int
    calibration_valid_until: datetime


def _nozzle_data(nozzle: Nozzle) -> dict:
    return {
        "nozzle_id": nozzle.id,
        "dispensing_unit_id": nozzle.dispensing_unit_id,
        "tank_id": nozzle.tank_id,
        "nozzle_number": nozzle.nozzle_number,
        "calibration_valid_until": nozzle.calibration_valid_until.isoformat(),
        "is_active": nozzle.is_active,
    }


@app.post("/api/v1/outlets/{outlet_id}/dispensing-units", tags=["Dispensing Units"])
def create_dispensing_unit(
    outlet_id: int, payload: DispensingUnitCreate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    _require_outlet(repo, outlet_id)
    unit = repo.add(DispensingUnit(retail_outlet_id=outlet_id, **payload.model_dump()))
    return {
        "data": {
            "dispensing_unit_id": unit.id,
            "retail_outlet_id": unit.retail_outlet_id,
            "name": unit.name,
            "number_of_nozzles": unit.number_of_nozzles,
            "is_active": unit.is_active,
        },
        "meta": _meta(),
    }


@app.post("/api/v1/dispensing-units/{unit_id}/nozzles", tags=["Nozzles"])
def create_nozzle(
    unit_id: int, payload: NozzleCreate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    unit = repo.get(DispensingUnit, unit_id)
    if not unit or not unit.is_active:
        raise HTTPException(status_code=404, detail="dispensing unit not found")
    tank = repo.get_tank(payload.tank_id)
    if not tank or tank.retail_outlet_id != unit.retail_outlet_id:
        raise HTTPException(status_code=400, detail="invalid tank_id")
    nozzle = repo.add(Nozzle(dispensing_unit_id=unit_id, **payload.model_dump()))
    return {"data": _nozzle_data(nozzle), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}/nozzles", tags=["Nozzles"])
def list_nozzles(outlet_id: int, repo: OutletRepository = Depends(get_repository)) -> dict:
    rows = repo.list_nozzles_with_details(outlet_id)
    data = [
        {
            **_nozzle_data(nozzle),
            "dispensing_unit_name": unit.name,
            "tank_number": tank.tank_number,
            "product_id": product.id,
            "product_name": product.name,
        }
        for nozzle, unit, tank, product in rows
    ]
    return {"data": data, "meta": _meta()}


@app.get("/api/v1/nozzles/{nozzle_id}/last-reading", tags=["Nozzle Readings"])
def get_last_reading(nozzle_id: int, repo: OutletRepository = Depends(get_repository)) -> dict:
    reading = last_nozzle_reading(repo, nozzle_id)
    return {"data": reading_to_dict(reading) if reading else None, "meta": _meta()}


# -- staff ------------------------------------------------------------------


class StaffCreate(BaseModel):
    model_config = {"json_schema_extra": {"example": {'name': 'Ravi', 'phone_number': '9800000002', 'role': 'attendant', 'is_active': True}}}
    name: str
    phone_number: Optional[str] = None
    role: Literal["manager", "attendant"]
    is_active: bool = True


def _staff_data(member: Staff) -> dict:
    return {
        "staff_id": member.id,
        "retail_outlet_id": member.retail_outlet_id,
        "name": member.name,
        "phone_number": member.phone_number,
        "role": member.role,
        "is_active": member.is_active,
    }


@app.post("/api/v1/outlets/{outlet_id}/staff", tags=["Staff"])
def create_staff(
    outlet_id: int, payload: StaffCreate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    _require_outlet(repo, outlet_id)
    member = repo.add(Staff(retail_outlet_id=outlet_id, **payload.model_dump()))
    return {"data": _staff_data(member), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}/staff", tags=["Staff"])
def list_staff(
    outlet_id: int,
    role: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    cursor: Optional[int] = Query(default=None),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    members, next_cursor = repo.list_staff(outlet_id, limit, cursor, role=role, is_active=is_active)
    return {
        "data": [_staff_data(member) for member in members],
        "meta": _list_meta(limit, cursor, next_cursor),
    }


# -- nozzle readings --------------------------------------------------------


@app.post("/api/v1/outlets/{outlet_id}/nozzle-readings", status_code=201, tags=["Nozzle Readings"])
def create_nozzle_reading(
    outlet_id: int, payload: NozzleReadingInput, repo: OutletRepository = Depends(get_repository)
) -> dict:
    reading = record_nozzle_reading(repo, outlet_id, payload)
    return {"data": reading_to_dict(reading), "meta": _meta()}


@app.patch("/api/v1/outlets/{outlet_id}/nozzle-readings/{reading_id}", tags=["Nozzle Readings"])
def patch_nozzle_reading(
    outlet_id: int,
    reading_id: int,
    payload: NozzleReadingUpdate,
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    reading = update_nozzle_reading(repo, outlet_id, reading_id, payload)
    return {"data": reading_to_dict(reading), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}/nozzle-readings", tags=["Nozzle Readings"])
def list_nozzle_readings(
    outlet_id: int,
    shift_type: Optional[ShiftType] = Query(default=None),
    shift_date: Optional[date] = Query(default=None),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    return {
        "data": list_enriched_readings(repo, outlet_id, shift_type, shift_date),
        "meta": _meta(),
    }


# -- stock entries ----------------------------------------------------------


class StockEntryCreate(StockEntryInput):
    model_config = {"json_schema_extra": {"example": {'manager_id': 3, 'tank_id': 1, 'shift_type': 'morning', 'shift_date': '2026-01-15', 'opening_stock': '12000', 'receipt': '4000', 'invoice_value': '358480.00'}}}
    manager_id: int


@app.post("/api/v1/outlets/{outlet_id}/stock-entries", status_code=201, tags=["Stock Entries"])
def create_stock_entry(
    outlet_id: int, payload: StockEntryCreate, repo: OutletRepository = Depends(get_repository)
) -> dict:
    fields = StockEntryInput(**payload.model_dump(exclude={"manager_id"}))
    entry = record_stock_entry(repo, outlet_id, payload.manager_id, fields)
    return {"data": stock_entry_to_dict(entry), "meta": _meta()}


@app.patch("/api/v1/outlets/{outlet_id}/stock-entries/{entry_id}", tags=["Stock Entries"])
def patch_stock_entry(
    outlet_id: int,
    entry_id: int,
    payload: StockEntryUpdate,
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    entry = update_stock_entry(repo, outlet_id, entry_id, payload)
    return {"data": stock_entry_to_dict(entry), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}/stock-entries", tags=["Stock Entries"])
def get_stock_entries(
    outlet_id: int,
    shift_type: Optional[ShiftType] = Query(default=None),
    shift_date: Optional[date] = Query(default=None),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    return {
        "data": list_stock_entries(repo, outlet_id, shift_type, shift_date),
        "meta": _meta(),
    }


# -- sales ------------------------------------------------------------------


def _shift_sales_data(record: ShiftSales) -> dict:
    return {
        "shift_sales_id": record.id,
        "retail_outlet_id": record.retail_outlet_id,
        "staff_id": record.staff_id,
        "shift_date": record.shift_date.isoformat(),
        "shift_type": record.shift_type,
        "start_time": record.start_time.isoformat(),
        "end_time": record.end_time.isoformat(),
        "cash_sales": _amount(record.cash_sales),
        "credit_sales": _amount(record.credit_sales),
        "upi_sales": _amount(record.upi_sales),
        "card_sales": _amount(record.card_sales),
        "total_sales": _amount(record.total_sales),
        "notes": record.notes,
    }


@app.get("/api/v1/outlets/{outlet_id}/shift-sales", tags=["Sales"])
def get_shift_sales(
    outlet_id: int,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    summaries = summarize_shift_sales(repo, outlet_id, limit)
    return {"data": [summary.model_dump(mode="json") for summary in summaries], "meta": _meta()}


@app.post("/api/v1/outlets/{outlet_id}/shift-sales", tags=["Sales"])
def create_shift_sales(
    outlet_id: int, payload: ShiftSalesInput, repo: OutletRepository = Depends(get_repository)
) -> dict:
    record = record_shift_sales(repo, outlet_id, payload)
    return {"data": _shift_sales_data(record), "meta": _meta()}


@app.get("/api/v1/outlets/{outlet_id}/sales-stats", tags=["Sales"])
def get_sales_stats(outlet_id: int, repo: OutletRepository = Depends(get_repository)) -> dict:
    stats = compute_sales_stats(repo, outlet_id)
    return {"data": stats.model_dump(mode="json"), "meta": _meta()}


# -- manager shifts ---------------------------------------------------------


class ProductRatesSave(BaseModel):
    model_config = {"populate_by_name": True, "json_schema_extra": {"example": {'shift_type': 'morning', 'date': '2026-01-15', 'rates': [{'productId': 1, 'productName': 'Diesel', 'rate': '89.62', 'observedDensity': '832.5'}]}}}
    shift_type: ShiftType
    rates: list[dict]
    target_date: Optional[date] = Field(default=None, alias="date")


class ShiftKey(BaseModel):
    model_config = {"json_schema_extra": {"example": {'shift_type': 'morning', 'shift_date': '2026-01-15'}}}
    shift_type: ShiftType
    shift_date: date


class ShiftStart(ShiftKey):
    product_rates: Optional[list[dict]] = None


def _shift_data(shift: Shift) -> dict:
    return {
        "shift_id": shift.id,
        "manager_id": shift.manager_id,
        "shift_type": shift.shift_type,
        "shift_date": shift.shift_date.isoformat() if shift.shift_date else None,
        "status": shift.status,
        "start_time": shift.start_time.isoformat() if shift.start_time else None,
        "end_time": shift.end_time.isoformat() if shift.end_time else None,
        "submitted_at": shift.submitted_at.isoformat() if shift.submitted_at else None,
        "product_rates": shift.product_rates or [],
    }


@app.get("/api/v1/managers/{manager_id}/shifts/last-rates", tags=["Shifts"])
def get_last_rates(
    manager_id: int,
    target_date: Optional[date] = Query(default=None, alias="date"),
    shift_type: Optional[ShiftType] = Query(default=None),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    rates = resolve_product_rates(repo, manager_id, target_date, shift_type)
    return {"data": rates, "meta": _meta()}


@app.post("/api/v1/managers/{manager_id}/shifts/rates", tags=["Shifts"])
def post_rates(
    manager_id: int, payload: ProductRatesSave, repo: OutletRepository = Depends(get_repository)
) -> dict:
    shift = save_product_rates(repo, manager_id, payload.shift_type, payload.rates, payload.target_date)
    return {"data": _shift_data(shift), "meta": _meta()}


@app.post("/api/v1/managers/{manager_id}/shifts:start", tags=["Shifts"])
def post_start_shift(
    manager_id: int, payload: ShiftStart, repo: OutletRepository = Depends(get_repository)
) -> dict:
    shift = start_shift(
        repo, manager_id, payload.shift_type, payload.shift_date, payload.product_rates
    )
    return {"data": _shift_data(shift), "meta": _meta()}


@app.post("/api/v1/managers/{manager_id}/shifts:complete", tags=["Shifts"])
def post_complete_shift(
    manager_id: int, payload: ShiftKey, repo: OutletRepository = Depends(get_repository)
) -> dict:
    shift = complete_shift(repo, manager_id, payload.shift_type, payload.shift_date)
    return {"data": _shift_data(shift), "meta": _meta()}


@app.post("/api/v1/managers/{manager_id}/shifts:submit", tags=["Shifts"])
def post_submit_shift(
    manager_id: int, payload: ShiftKey, repo: OutletRepository = Depends(get_repository)
) -> dict:
    shift = submit_shift(repo, manager_id, payload.shift_type, payload.shift_date)
    return {"data": _shift_data(shift), "meta": _meta()}


@app.get("/api/v1/managers/{manager_id}/shifts/current", tags=["Shifts"])
def get_shift_current(manager_id: int, repo: OutletRepository = Depends(get_repository)) -> dict:
    shift = get_current_shift(repo, manager_id)
    return {"data": _shift_data(shift) if shift else None, "meta": _meta()}


@app.get("/api/v1/managers/{manager_id}/shifts/status", tags=["Shifts"])
def get_shift_status(
    manager_id: int,
    shift_type: ShiftType = Query(...),
    shift_date: date = Query(...),
    repo: OutletRepository = Depends(get_repository),
) -> dict:
    submitted = is_shift_submitted(repo, manager_id, shift_type, shift_date)
    return {
        "data": {
            "manager_id": manager_id,
            "shift_type": shift_type,
            "shift_date": shift_date.isoformat(),
            "is_submitted": submitted,
        },
        "meta": _meta(),
    }
