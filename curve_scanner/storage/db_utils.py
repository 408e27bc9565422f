from sqlalchemy import inspect
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from curve_scanner.storage.base import Base
import logging
log = logging.getLogger(__name__)

# registers the tables on Base.metadata
from curve_scanner.storage.models.pool import Pool  # noqa: F401
from curve_scanner.storage.models.trade import Trade  # noqa: F401
from curve_scanner.storage.models.scanner_state import ScannerState  # noqa: F401

REQUIRED_TABLES = ("pools", "trades", "scanner_states")


def init_db(bind: Engine) -> list[str]:
    """Create any missing tables. Returns the names that were missing."""
    existing = set(inspect(bind).get_table_names())
    missing = [t for t in REQUIRED_TABLES if t not in existing]
    Base.metadata.create_all(bind)
    if missing:
        log.info(f"Created tables: {', '.join(missing)}")
    return missing


def dialect_insert(session: Session, table):
    """`INSERT` construct supporting `on_conflict_do_nothing` for the bound dialect."""
    name = session.get_bind().dialect.name
    match name:
        case "postgresql":
            return pg_insert(table)
        case "sqlite":
            return sqlite_insert(table)
        case _:
            raise ValueError(f"Unsupported dialect for create-if-absent: {name}")
