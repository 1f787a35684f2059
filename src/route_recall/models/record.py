"""Address record model for route-recall.

An AddressRecord ties a street (or building) to the delivery zone that
serves it, together with the review state used to drill it.
"""

from __future__ import annotations

import time
from urllib.parse import quote
from uuid import uuid4

from pydantic import BaseModel, Field


def generate_record_id() -> str:
    """Generate a short unique record ID."""
    return uuid4().hex[:9]


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class AddressRecord(BaseModel):
    """A street and the delivery zone it belongs to.

    Review fields follow two independent tracks: the spaced-review stage
    with its due time, and the mistake pool with its correct-answer streak.
    The streak only means something while the record is in the pool.
    """

    id: str = Field(default_factory=generate_record_id)
    street_name: str  # Display text, also the upsert key for imports
    route_area: str  # The zone label, i.e. the quiz answer
    company_name: str = ""
    canonical_pinyin: str = ""  # Precomputed phonetic key; empty = derive on demand
    created_at: int = Field(default_factory=now_ms)

    # Geolocation
    lat: float | None = None
    lng: float | None = None

    # Spaced review
    failure_count: int = Field(default=0, ge=0)
    review_stage: int = Field(default=0, ge=0)
    next_review_time: int = 0  # Epoch ms, 0 = never scheduled
    last_review_time: int = 0

    # Mistake pool
    is_in_mistake_pool: bool = False
    mistake_streak: int = Field(default=0, ge=0)

    @property
    def has_location(self) -> bool:
        """Whether coordinates are known for this record."""
        return self.lat is not None and self.lng is not None

    @property
    def map_url(self) -> str:
        """AMap link: a marker when coordinates exist, else a keyword search."""
        keyword = quote(self.street_name)
        if self.has_location:
            return (
                f"https://uri.amap.com/marker?position={self.lng},{self.lat}"
                f"&name={keyword}&src=route_recall"
            )
        return f"https://uri.amap.com/search?keyword={keyword}&src=route_recall"

    @property
    def is_scheduled(self) -> bool:
        return self.next_review_time > 0
