from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fuelstation.db import Base
from fuelstation.models import (
    DispensingUnit,
    Nozzle,
    Product,
    RetailOutlet,
    Staff,
    Tank,
)
from fuelstation.repository import OutletRepository


def make_session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def repo():
    db = make_session_factory()()
    try:
        yield OutletRepository(db)
    finally:
        db.close()


@pytest.fixture
def outlet(repo):
    """One outlet with a diesel tank fed by two nozzles, an attendant and a manager."""
    site = repo.add(RetailOutlet(name="Highway Fuels"))
    diesel = repo.add(Product(retail_outlet_id=site.id, name="Diesel", price_per_liter=Decimal("89.62")))
    tank = repo.add(
        Tank(
            retail_outlet_id=site.id,
            product_id=diesel.id,
            tank_number="T1",
            capacity=Decimal("20000"),
            length=Decimal("6.5"),
            diameter=Decimal("2.1"),
        )
    )
    unit = repo.add(DispensingUnit(retail_outlet_id=site.id, name="DU-1", number_of_nozzles=2))
    calibrated = datetime(2030, 1, 1, tzinfo=timezone.utc)
    nozzle_a = repo.add(
        Nozzle(dispensing_unit_id=unit.id, tank_id=tank.id, nozzle_number=1, calibration_valid_until=calibrated)
    )
    nozzle_b = repo.add(
        Nozzle(dispensing_unit_id=unit.id, tank_id=tank.id, nozzle_number=2, calibration_valid_until=calibrated)
    )
    attendant = repo.add(Staff(retail_outlet_id=site.id, name="Ravi", role="attendant"))
    manager = repo.add(Staff(retail_outlet_id=site.id, name="Meena", role="manager"))
    return {
        "outlet": site,
        "product": diesel,
        "tank": tank,
        "unit": unit,
        "nozzles": [nozzle_a, nozzle_b],
        "attendant": attendant,
        "manager": manager,
    }
