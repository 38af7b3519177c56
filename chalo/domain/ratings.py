"""
Rolling rating aggregates.

* **Histogram mode** (vehicles): ``breakdown[star - 1] += 1`` and the
  average is recomputed from the histogram, so
  ``average == sum(star x n) / sum(n)`` always holds.
* **Single-entry mode** (bookings): one ``{rating, comment, rated_at}``
  slot per participant, overwritten on resubmission.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from .entities import ParticipantRating, RatingAggregate
from .errors import InvalidRating

MIN_STARS = 1
MAX_STARS = 5


class RatingAggregator:
    @staticmethod
    def validate(rating: int) -> int:
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidRating(f"Rating must be an integer, got {rating!r}")
        if not MIN_STARS <= rating <= MAX_STARS:
            raise InvalidRating(
                f"Rating must be between {MIN_STARS} and {MAX_STARS}, got {rating}"
            )
        return rating

    @staticmethod
    def average_of(breakdown: list[int]) -> float:
        count = sum(breakdown)
        if count == 0:
            return 0.0
        total = sum(star * n for star, n in enumerate(breakdown, start=MIN_STARS))
        return total / count

    def add(self, aggregate: RatingAggregate, rating: int) -> RatingAggregate:
        """Fold *rating* into *aggregate* in place and return it."""
        self.validate(rating)
        aggregate.breakdown[rating - 1] += 1
        aggregate.count += 1
        aggregate.average = self.average_of(aggregate.breakdown)
        return aggregate

    def replace(
        self, aggregate: RatingAggregate, previous: int, rating: int
    ) -> RatingAggregate:
        """Swap a resubmitted rating without changing the count."""
        self.validate(previous)
        self.validate(rating)
        if aggregate.breakdown[previous - 1] == 0:
            return self.add(aggregate, rating)
        aggregate.breakdown[previous - 1] -= 1
        aggregate.breakdown[rating - 1] += 1
        aggregate.average = self.average_of(aggregate.breakdown)
        return aggregate

    def single(
        self,
        rating: int,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ParticipantRating:
        self.validate(rating)
        return ParticipantRating(
            rating=rating,
            comment=comment,
            rated_at=now or datetime.now(timezone.utc),
        )
