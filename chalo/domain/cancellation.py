"""
Cancellation fee policy.

The fee rate depends on how long before pickup the booking is cancelled
(first matching tier wins):

  hours until pickup  > 24      ->  5 %
  2  < hours <= 24              -> 15 %
  0  < hours <= 2               -> 25 %
  hours <= 0 (pickup passed)    -> 50 %

  Fee    = round(Total x Rate)
  Refund = Total - Fee

Pure and stateless; callers must check that the booking may be cancelled
before asking for a quote.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .pricing import round_currency

# (exclusive lower bound in hours, fee rate), evaluated top-down
FEE_TIERS: tuple[tuple[float, float], ...] = (
    (24.0, 0.05),
    (2.0, 0.15),
    (0.0, 0.25),
)
PICKUP_PASSED_RATE = 0.50


@dataclass(frozen=True)
class CancellationQuote:
    hours_until_pickup: float
    fee_rate: float
    cancellation_fee: int
    refund_amount: int


class CancellationPolicy:
    @staticmethod
    def fee_rate(hours_until_pickup: float) -> float:
        for lower_bound, rate in FEE_TIERS:
            if hours_until_pickup > lower_bound:
                return rate
        return PICKUP_PASSED_RATE

    def quote(
        self, pickup_at: datetime, now: datetime, total: int
    ) -> CancellationQuote:
        hours = (pickup_at - now).total_seconds() / 3600
        rate = self.fee_rate(hours)
        fee = round_currency(total * rate)
        return CancellationQuote(
            hours_until_pickup=hours,
            fee_rate=rate,
            cancellation_fee=fee,
            refund_amount=total - fee,
        )
