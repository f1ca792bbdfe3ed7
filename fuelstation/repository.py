"""
Read and write access to the outlet fact tables.

The engines in ``stock``, ``sales``, ``shifts`` and ``readings`` only talk to
the store through :class:`OutletRepository`. Store failures surface as
:class:`~fuelstation.errors.DataAccessFailure` (constraint violations as
:class:`~fuelstation.errors.ValidationFailure`) with the SQLAlchemy error
chained; nothing here retries.
"""
from __future__ import annotations

import functools
import logging
from datetime import date
from typing import Any, Iterable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fuelstation.errors import DataAccessFailure, ValidationFailure
from fuelstation.models import (
    DispensingUnit,
    Nozzle,
    NozzleReading,
    Product,
    RetailOutlet,
    Shift,
    ShiftSales,
    Staff,
    StockEntry,
    Tank,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def _guarded(func):
    @functools.wraps(func)
    def wrapper(self: "OutletRepository", *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("%s rejected by the store: %s", func.__name__, exc.orig)
            raise ValidationFailure(f"{func.__name__}: conflicting or invalid record") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("%s failed: %s", func.__name__, exc)
            raise DataAccessFailure(f"{func.__name__} failed") from exc

    return wrapper


class OutletRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    # -- writes ---------------------------------------------------------

    @_guarded
    def add(self, row: ModelT) -> ModelT:
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    @_guarded
    def save(self, row: ModelT) -> ModelT:
        self.db.commit()
        self.db.refresh(row)
        return row

    # -- single rows ----------------------------------------------------

    @_guarded
    def get(self, model: type[ModelT], row_id: int) -> Optional[ModelT]:
        return self.db.get(model, row_id)

    def get_outlet(self, outlet_id: int) -> Optional[RetailOutlet]:
        return self.get(RetailOutlet, outlet_id)

    def get_tank(self, tank_id: int) -> Optional[Tank]:
        return self.get(Tank, tank_id)

    def get_staff(self, staff_id: int) -> Optional[Staff]:
        return self.get(Staff, staff_id)

    @_guarded
    def get_manager(self, manager_id: int) -> Optional[Staff]:
        return self.db.query(Staff).filter(
            Staff.id == manager_id,
            Staff.role == "manager",
            Staff.is_active.is_(True),
        ).first()

    @_guarded
    def get_nozzle_in_outlet(self, nozzle_id: int, outlet_id: int) -> Optional[Nozzle]:
        return (
            self.db.query(Nozzle)
            .join(Tank, Nozzle.tank_id == Tank.id)
            .filter(Nozzle.id == nozzle_id, Tank.retail_outlet_id == outlet_id)
            .first()
        )

    @_guarded
    def last_nozzle_reading(self, nozzle_id: int) -> Optional[NozzleReading]:
        return (
            self.db.query(NozzleReading)
            .filter(NozzleReading.nozzle_id == nozzle_id)
            .order_by(NozzleReading.created_at.desc(), NozzleReading.id.desc())
            .first()
        )

    # -- tanks and stock ------------------------------------------------

    @_guarded
    def list_active_tanks_with_product(self, outlet_id: int) -> list[tuple[Tank, Product]]:
        rows = (
            self.db.query(Tank, Product)
            .join(Product, Tank.product_id == Product.id)
            .filter(Tank.retail_outlet_id == outlet_id, Tank.is_active.is_(True))
            .order_by(Tank.tank_number)
            .all()
        )
        return [(tank, product) for tank, product in rows]

    @_guarded
    def list_stock_entries_by_tank(
        self, tank_id: int, until: Optional[date] = None
    ) -> list[StockEntry]:
        query = self.db.query(StockEntry).filter(StockEntry.tank_id == tank_id)
        if until is not None:
            query = query.filter(StockEntry.shift_date <= until)
        return query.all()

    @_guarded
    def list_stock_entries_by_outlet(
        self,
        outlet_id: int,
        shift_type: Optional[str] = None,
        shift_date: Optional[date] = None,
    ) -> list[tuple[StockEntry, Tank, Product]]:
        query = (
            self.db.query(StockEntry, Tank, Product)
            .join(Tank, StockEntry.tank_id == Tank.id)
            .join(Product, Tank.product_id == Product.id)
            .filter(StockEntry.retail_outlet_id == outlet_id)
        )
        if shift_type is not None and shift_date is not None:
            query = query.filter(
                StockEntry.shift_type == shift_type,
                StockEntry.shift_date == shift_date,
            )
        rows = query.order_by(Tank.tank_number, StockEntry.id).all()
        return [(entry, tank, product) for entry, tank, product in rows]

    @_guarded
    def list_nozzle_readings_since(
        self, tank_id: int, since: date, until: Optional[date] = None
    ) -> list[NozzleReading]:
        query = (
            self.db.query(NozzleReading)
            .join(Nozzle, NozzleReading.nozzle_id == Nozzle.id)
            .join(Tank, Nozzle.tank_id == Tank.id)
            .filter(
                Nozzle.tank_id == tank_id,
                NozzleReading.retail_outlet_id == Tank.retail_outlet_id,
                NozzleReading.shift_date >= since,
            )
        )
        if until is not None:
            query = query.filter(NozzleReading.shift_date <= until)
        return query.all()

    # -- readings and sales ---------------------------------------------

    @_guarded
    def list_nozzle_readings_by_outlet(
        self,
        outlet_id: int,
        shift_type: Optional[str] = None,
        shift_date: Optional[date] = None,
    ) -> list[NozzleReading]:
        query = self.db.query(NozzleReading).filter(NozzleReading.retail_outlet_id == outlet_id)
        if shift_type is not None:
            query = query.filter(NozzleReading.shift_type == shift_type)
        if shift_date is not None:
            query = query.filter(NozzleReading.shift_date == shift_date)
        return query.order_by(NozzleReading.created_at.desc(), NozzleReading.id.desc()).all()

    @_guarded
    def list_shift_sales_by_outlet(self, outlet_id: int, since: date) -> list[ShiftSales]:
        return self.db.query(ShiftSales).filter(
            ShiftSales.retail_outlet_id == outlet_id,
            ShiftSales.shift_date >= since,
        ).all()

    @_guarded
    def staff_names(self, staff_ids: Iterable[int]) -> dict[int, str]:
        ids = set(staff_ids)
        if not ids:
            return {}
        rows = self.db.query(Staff.id, Staff.name).filter(Staff.id.in_(ids)).all()
        return {row.id: row.name for row in rows}

    @_guarded
    def nozzle_details(self, nozzle_ids: Iterable[int]) -> dict[int, dict[str, Any]]:
        ids = set(nozzle_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(Nozzle.id, Nozzle.nozzle_number, Product.id.label("product_id"), Product.name)
            .outerjoin(Tank, Nozzle.tank_id == Tank.id)
            .outerjoin(Product, Tank.product_id == Product.id)
            .filter(Nozzle.id.in_(ids))
            .all()
        )
        return {
            row.id: {
                "id": row.id,
                "nozzle_number": row.nozzle_number,
                "product_id": row.product_id,
                "product_name": row.name,
            }
            for row in rows
        }

    # -- shifts ---------------------------------------------------------

    @_guarded
    def get_shifts_by_manager(
        self,
        manager_id: int,
        shift_type: Optional[str] = None,
        shift_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[Shift]:
        query = self.db.query(Shift).filter(Shift.manager_id == manager_id)
        if shift_type is not None:
            query = query.filter(Shift.shift_type == shift_type)
        if shift_date is not None:
            query = query.filter(Shift.shift_date == shift_date)
        if status is not None:
            query = query.filter(Shift.status == status)
        return query.order_by(Shift.updated_at.desc(), Shift.id.desc()).all()

    # -- reference lists ------------------------------------------------

    def _paginate_by_id(self, query, model, limit: int, cursor: Optional[int]) -> tuple[list[Any], Optional[int]]:
        if cursor is not None:
            query = query.filter(model.id > cursor)
        rows = query.order_by(model.id).limit(limit + 1).all()
        next_cursor = None
        if len(rows) > limit:
            next_cursor = rows[limit - 1].id
            rows = rows[:limit]
        return rows, next_cursor

    @_guarded
    def list_products(
        self, outlet_id: int, limit: int, cursor: Optional[int] = None
    ) -> tuple[list[Product], Optional[int]]:
        query = self.db.query(Product).filter(
            Product.retail_outlet_id == outlet_id, Product.is_active.is_(True)
        )
        return self._paginate_by_id(query, Product, limit, cursor)

    @_guarded
    def list_staff(
        self,
        outlet_id: int,
        limit: int,
        cursor: Optional[int] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[list[Staff], Optional[int]]:
        query = self.db.query(Staff).filter(Staff.retail_outlet_id == outlet_id)
        if role is not None:
            query = query.filter(Staff.role == role)
        if is_active is not None:
            query = query.filter(Staff.is_active == is_active)
        return self._paginate_by_id(query, Staff, limit, cursor)

    @_guarded
    def list_nozzles_with_details(
        self, outlet_id: int
    ) -> list[tuple[Nozzle, DispensingUnit, Tank, Product]]:
        rows = (
            self.db.query(Nozzle, DispensingUnit, Tank, Product)
            .join(DispensingUnit, Nozzle.dispensing_unit_id == DispensingUnit.id)
            .join(Tank, Nozzle.tank_id == Tank.id)
            .join(Product, Tank.product_id == Product.id)
            .filter(DispensingUnit.retail_outlet_id == outlet_id, Nozzle.is_active.is_(True))
            .order_by(DispensingUnit.name, Nozzle.nozzle_number)
            .all()
        )
        return [(nozzle, unit, tank, product) for nozzle, unit, tank, product in rows]
