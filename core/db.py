"""
core/db.py -- SQLAlchemy engine construction shared by every store.

UserStore and TourStore each own an engine built here, so the SQLite
connection settings live in one place:
  check_same_thread=False  -- TestClient and uvicorn run sync handlers in a
                              thread pool, so a connection may be used from a
                              thread other than the one that opened it.
  journal_mode=WAL         -- readers do not block while a write commits.

Any other dialect gets a plain create_engine().

Layer rule: core/ is the kernel. No imports from api/, auth/, or tours/.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str) -> Engine:
    """Return an Engine for db_url with the SQLite pragmas applied."""
    if not db_url.startswith("sqlite"):
        return create_engine(db_url)
    engine = create_engine(db_url, connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _set_wal_mode)
    return engine
