from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from fuelstation.config import settings


class Base(DeclarativeBase):
    pass


engine = create_engine(settings.database_url, echo=settings.sql_echo, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
