from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from fuelstation.config import settings
from fuelstation.db import Base
import fuelstation.models  # noqa: F401


def main() -> None:
    database_url = settings.database_url
    print(f"DATABASE_URL={database_url}")
    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            existing = set(engine.dialect.get_table_names(conn))
        print("DB connection OK")
        missing = sorted(set(Base.metadata.tables) - existing)
        if missing:
            print("Missing tables: " + ", ".join(missing))
        else:
            print("All tables present")
    except SQLAlchemyError as exc:
        print("DB connection FAILED")
        print(exc)


if __name__ == "__main__":
    main()
