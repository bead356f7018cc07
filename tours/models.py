"""
tours/models.py -- Domain dataclass for the tour catalogue.

Pure data container. Validation of incoming fields happens at the API
boundary (api/models.py); the store enforces the unique name.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    difficult = "difficult"


@dataclass
class Tour:
    """A bookable tour.

    id is None before the record is written to the database. created_at is
    set by the store on insert and kept out of API responses.
    """

    name: str
    duration: int  # days
    max_group_size: int
    difficulty: str  # "easy" | "medium" | "difficult"
    price: float
    summary: str
    image_cover: str
    ratings_average: float = 4.5
    ratings_quantity: int = 0
    price_discount: Optional[float] = None
    description: Optional[str] = None
    images: list[str] = field(default_factory=list)
    start_dates: list[str] = field(default_factory=list)  # ISO 8601
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
