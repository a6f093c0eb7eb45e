"""
Render dialect-specific migration SQL from the one logical schema.

    pharmabot-ddl --dialect sqlite --output migrations/sqlite
    pharmabot-ddl --dialect postgresql --output migrations/postgresql

The output holds CREATE TABLE / CREATE INDEX statements for every model and
the idempotent catalog seed, so no hand-maintained SQL per engine exists.
"""
import argparse
import logging
import sys
from pathlib import Path

from sqlalchemy import literal
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.schema import CreateIndex, CreateTable

from pharmabot.db.base import Base
from pharmabot.db.catalog import SEED_MEDICINES
from pharmabot.db.init_db import CONFLICT_INSERTS
from pharmabot.models import conversation_state, medicine, order  # noqa: F401 - register models
from pharmabot.models.medicine import Medicine

logger = logging.getLogger(__name__)

DIALECTS = {
    "sqlite": sqlite.dialect,
    "postgresql": postgresql.dialect,
}

MIGRATION_FILENAME = "0001_create_tables.sql"


def _dialect(name: str):
    try:
        return DIALECTS[name]()
    except KeyError:
        raise ValueError(f"Unsupported dialect '{name}'. Choose from: {', '.join(sorted(DIALECTS))}")


def render_schema(dialect_name: str) -> str:
    dialect = _dialect(dialect_name)
    statements = []
    for table in Base.metadata.sorted_tables:
        create = str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip()
        statements.append(create + ";")
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip() + ";")
    return "\n\n".join(statements)


def render_seed(dialect_name: str) -> str:
    dialect = _dialect(dialect_name)
    # Dates go in as ISO strings: SQLite stores them as text, PostgreSQL coerces
    rows = [
        {"name": name, "stock": stock, "expiry_date": literal(expiry.isoformat())}
        for name, stock, expiry in SEED_MEDICINES
    ]
    stmt = (
        CONFLICT_INSERTS[dialect_name](Medicine.__table__)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["name"])
    )
    return str(stmt.compile(dialect=dialect, compile_kwargs={"literal_binds": True})).strip() + ";"


def render_migration(dialect_name: str) -> str:
    return (
        f"-- Generated by pharmabot-ddl for {dialect_name}. Do not edit by hand.\n\n"
        f"{render_schema(dialect_name)}\n\n"
        "-- Seed data for medicines table\n"
        f"{render_seed(dialect_name)}\n"
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate migration SQL for a database dialect.")
    parser.add_argument("--dialect", choices=sorted(DIALECTS), required=True)
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help=f"Directory to write {MIGRATION_FILENAME} into (stdout when omitted)",
    )
    args = parser.parse_args(argv)

    sql = render_migration(args.dialect)
    if args.output is None:
        sys.stdout.write(sql)
        return 0

    args.output.mkdir(parents=True, exist_ok=True)
    target = args.output / MIGRATION_FILENAME
    target.write_text(sql, encoding="utf-8")
    logger.info(f"[DDL] Wrote {target}")
    print(f"✓ Wrote {target}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
