from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fuelstation.db import Base

ID_TYPE = BigInteger().with_variant(Integer, "sqlite")
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")
AMOUNT_TYPE = Numeric(10, 2)

SHIFT_TYPES = ("morning", "evening", "night")
SHIFT_STATUSES = ("not-started", "active", "completed", "submitted")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetailOutlet(Base):
    __tablename__ = "retail_outlet"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sapcode: Mapped[str | None] = mapped_column(Text)
    oil_company: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    phone_number: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Product(Base):
    __tablename__ = "product"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    retail_outlet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("retail_outlet.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_per_liter: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Tank(Base):
    __tablename__ = "tank"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    retail_outlet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("retail_outlet.id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id"), nullable=False
    )
    tank_number: Mapped[str] = mapped_column(Text, nullable=False)
    capacity: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    length: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    diameter: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class DispensingUnit(Base):
    __tablename__ = "dispensing_unit"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    retail_outlet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("retail_outlet.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    number_of_nozzles: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Nozzle(Base):
    __tablename__ = "nozzle"
    __table_args__ = (
        Index(
            "ix_nozzle_unit_number_unique",
            "dispensing_unit_id",
            "nozzle_number",
            unique=True,
        ),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    dispensing_unit_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("dispensing_unit.id"), nullable=False
    )
    tank_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tank.id"), nullable=False
    )
    nozzle_number: Mapped[int] = mapped_column(Integer, nullable=False)
    calibration_valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    retail_outlet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("retail_outlet.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone_number: Mapped[str | None] = mapped_column(Text)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class NozzleReading(Base):
    __tablename__ = "nozzle_reading"
    __table_args__ = (
        CheckConstraint("shift_type IN ('morning', 'evening', 'night')", name="reading_shift_type"),
        Index("ix_nozzle_reading_nozzle_date", "nozzle_id", "shift_date"),
        Index("ix_nozzle_reading_outlet_date", "retail_outlet_id", "shift_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    retail_outlet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("retail_outlet.id"), nullable=False
    )
    nozzle_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("nozzle.id"), nullable=False
    )
    attendant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("staff.id"), nullable=False
    )
    shift_type: Mapped[str] = mapped_column(Text, nullable=False)
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    previous_reading: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    current_reading: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    testing: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    total_sale: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    cash_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    credit_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    upi_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    card_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class StockEntry(Base):
    __tablename__ = "stock_entry"
    __table_args__ = (
        CheckConstraint("shift_type IN ('morning', 'evening', 'night')", name="stock_shift_type"),
        Index("ix_stock_entry_tank_date", "tank_id", "shift_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    retail_outlet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("retail_outlet.id"), nullable=False
    )
    tank_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tank.id"), nullable=False
    )
    manager_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("staff.id"), nullable=False
    )
    shift_type: Mapped[str] = mapped_column(Text, nullable=False)
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    opening_stock: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    receipt: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    invoice_value: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Shift(Base):
    __tablename__ = "shift"
    __table_args__ = (
        CheckConstraint("shift_type IN ('morning', 'evening', 'night')", name="shift_shift_type"),
        CheckConstraint(
            "status IN ('not-started', 'active', 'completed', 'submitted')", name="shift_status"
        ),
        Index("ix_shift_manager_type_date", "manager_id", "shift_type", "shift_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    manager_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("staff.id"), nullable=False
    )
    shift_type: Mapped[str] = mapped_column(Text, nullable=False)
    # Rows written before shift dates were tracked carry no date.
    shift_date: Mapped[date | None] = mapped_column(Date)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(Text, nullable=False, default="not-started")
    product_rates: Mapped[list | None] = mapped_column(JSON_TYPE, default=list)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ShiftSales(Base):
    __tablename__ = "shift_sales"
    __table_args__ = (
        Index("ix_shift_sales_outlet_date", "retail_outlet_id", "shift_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    retail_outlet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("retail_outlet.id"), nullable=False
    )
    staff_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("staff.id"), nullable=False
    )
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    shift_type: Mapped[str] = mapped_column(Text, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cash_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    credit_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    upi_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    card_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    total_sales: Mapped[Decimal | None] = mapped_column(AMOUNT_TYPE, default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
