from collections.abc import Iterator

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from .config import settings

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def create_db_engine(database_url: str) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        },
    )

    # pysqlite's own BEGIN handling is disabled so every transaction starts
    # with BEGIN IMMEDIATE and takes the write lock up front.
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = create_db_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def acquire_fleet_lock(db: Session) -> None:
    """Serialize capacity changes for the rest of the current transaction.

    Bumping the single fleet_locks row takes a row lock on servers and the
    database write lock on SQLite, so two check-then-reserve sequences can
    never interleave.
    """
    result = db.execute(
        text("UPDATE fleet_locks SET version = version + 1 WHERE id = 1")
    )
    if result.rowcount == 0:
        db.execute(text("INSERT INTO fleet_locks (id, version) VALUES (1, 1)"))
