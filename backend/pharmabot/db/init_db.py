"""Create all tables and seed the medicine catalog. Run on app startup."""
import logging

from sqlalchemy import create_engine, func, insert, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session

from pharmabot.db.base import Base
from pharmabot.db.catalog import seed_rows
from pharmabot.models import conversation_state, medicine, order  # noqa: F401 - register models
from pharmabot.models.medicine import Medicine

logger = logging.getLogger(__name__)

CONFLICT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def seed_insert_statement(dialect_name: str):
    """INSERT of the catalog that skips names already present."""
    rows = seed_rows()
    dialect_insert = CONFLICT_INSERTS.get(dialect_name)
    if dialect_insert is None:
        return insert(Medicine.__table__).values(rows)
    return (
        dialect_insert(Medicine.__table__)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["name"])
    )


def seed_medicines(db: Session) -> int:
    """
    Insert the reference catalog idempotently.

    Returns the number of medicines actually added; a second run adds none.
    """
    dialect_name = db.get_bind().dialect.name
    before = db.query(func.count(Medicine.id)).scalar()

    if dialect_name in CONFLICT_INSERTS:
        db.execute(seed_insert_statement(dialect_name))
    else:
        existing = {name for (name,) in db.query(Medicine.name).all()}
        for row in seed_rows():
            if row["name"] in existing:
                continue
            db.add(Medicine(**row))

    db.commit()
    added = db.query(func.count(Medicine.id)).scalar() - before
    logger.info(f"[DB] Seeded medicines catalog: {added} added, {before} already present")
    return added


def ensure_database_exists(database_url: str) -> bool:
    """
    Create the target PostgreSQL database if the server lacks it.

    Connects to the server's `postgres` maintenance database. Other backends
    create their storage on first connect, so this is a no-op for them.
    Returns True when a database was created.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "postgresql" or not url.database:
        return False

    admin_engine = create_engine(url.set(database="postgres"), isolation_level="AUTOCOMMIT")
    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = :name)"),
                {"name": url.database},
            ).scalar()
            if exists:
                return False
            quoted = admin_engine.dialect.identifier_preparer.quote(url.database)
            conn.execute(text(f"CREATE DATABASE {quoted}"))
            logger.info(f"[DB] Created database {url.database}")
            return True
    finally:
        admin_engine.dispose()


def init_db(bind: Engine | None = None) -> None:
    if bind is None:
        from pharmabot.db.session import engine as bind

    ensure_database_exists(bind.url.render_as_string(hide_password=False))
    Base.metadata.create_all(bind=bind)

    db = Session(bind=bind)
    try:
        seed_medicines(db)
    finally:
        db.close()
