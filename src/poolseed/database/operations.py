import pathlib

from sqlalchemy import URL, Engine, create_engine, text
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from poolseed.database.models import Base
from poolseed.logging import logger


def get_sqlite_engine(database_path: pathlib.Path) -> Engine:
    return create_engine(
        URL.create(
            drivername="sqlite",
            database=str(database_path.absolute()),
        )
    )


def create_new_sqlite_database(db_path: pathlib.Path) -> None:
    engine = get_sqlite_engine(db_path)
    with engine.connect() as connection:
        assert (
            connection.execute(
                text("PRAGMA journal_mode=WAL;"),
            ).scalar()
            == "wal"
        )
        Base.metadata.create_all(bind=engine)
    logger.info(f"Initialized new SQLite database at {db_path}")


def get_scoped_sqlite_session(database_path: pathlib.Path) -> scoped_session[Session]:
    if not database_path.exists():
        create_new_sqlite_database(database_path)

    return scoped_session(
        session_factory=sessionmaker(
            bind=get_sqlite_engine(database_path),
        )
    )
