"""
tours/store.py -- SQLAlchemy-backed persistence layer for the tour catalogue.

Uses SQLAlchemy Core (not ORM) so the Tour dataclass in tours/models.py
remains the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TourStore is the repository; _row_to_tour
is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TourStore("sqlite:///tours.db")
    tour_id = store.create_tour(tour)
    tours = store.list_tours()
    store.update_tour(tour_id, price=497.0)
    store.close()
"""

import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from core.db import create_store_engine
from tours.models import Tour

# Columns that update_tour() is allowed to write. Keys outside this set raise
# ValueError rather than being silently ignored.
_UPDATABLE = {
    "name",
    "duration",
    "max_group_size",
    "difficulty",
    "price",
    "summary",
    "image_cover",
    "ratings_average",
    "ratings_quantity",
    "price_discount",
    "description",
    "images",
    "start_dates",
}

_JSON_COLUMNS = {"images", "start_dates"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tours = Table(
    "tours",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("duration", Integer, nullable=False),
    Column("max_group_size", Integer, nullable=False),
    Column("difficulty", String(20), nullable=False),
    Column("price", Float, nullable=False),
    Column("price_discount", Float),
    Column("summary", Text, nullable=False),
    Column("description", Text),
    Column("image_cover", String(255), nullable=False),
    Column("images", Text),  # JSON array serialized as text
    Column("start_dates", Text),  # JSON array of ISO 8601 strings
    Column("ratings_average", Float, nullable=False, server_default="4.5"),
    Column("ratings_quantity", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TourStore:
    """Repository for Tour entities."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)
        metadata.create_all(self.engine)

    def create_tour(self, tour: Tour) -> int:
        """Insert a tour and return its ID.

        Raises sqlalchemy.exc.IntegrityError if a tour with the same name exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _tours.insert().values(
                    name=tour.name,
                    duration=tour.duration,
                    max_group_size=tour.max_group_size,
                    difficulty=tour.difficulty,
                    price=tour.price,
                    price_discount=tour.price_discount,
                    summary=tour.summary,
                    description=tour.description,
                    image_cover=tour.image_cover,
                    images=json.dumps(tour.images),
                    start_dates=json.dumps(tour.start_dates),
                    ratings_average=tour.ratings_average,
                    ratings_quantity=tour.ratings_quantity,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_tour(self, tour_id: int) -> Optional[Tour]:
        with self.engine.connect() as conn:
            row = conn.execute(_tours.select().where(_tours.c.id == tour_id)).fetchone()
        return _row_to_tour(row) if row is not None else None

    def list_tours(self) -> list[Tour]:
        with self.engine.connect() as conn:
            rows = conn.execute(_tours.select().order_by(_tours.c.id)).fetchall()
        return [_row_to_tour(r) for r in rows]

    def update_tour(self, tour_id: int, **fields) -> bool:
        """Update the given fields of a tour.

        Returns True if a row was updated, False if tour_id was not found.
        Raises sqlalchemy.exc.IntegrityError on a rename to an existing name.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown tour fields: {unknown!r}")
        if not fields:
            return self.get_tour(tour_id) is not None
        values = {k: (json.dumps(v) if k in _JSON_COLUMNS else v) for k, v in fields.items()}
        with self.engine.connect() as conn:
            result = conn.execute(_tours.update().where(_tours.c.id == tour_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_tour(self, tour_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_tours.delete().where(_tours.c.id == tour_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_tour(row) -> Tour:
    return Tour(
        id=row.id,
        name=row.name,
        duration=row.duration,
        max_group_size=row.max_group_size,
        difficulty=row.difficulty,
        price=row.price,
        price_discount=row.price_discount,
        summary=row.summary,
        description=row.description,
        image_cover=row.image_cover,
        images=json.loads(row.images) if row.images else [],
        start_dates=json.loads(row.start_dates) if row.start_dates else [],
        ratings_average=row.ratings_average,
        ratings_quantity=row.ratings_quantity,
        created_at=row.created_at,
    )
