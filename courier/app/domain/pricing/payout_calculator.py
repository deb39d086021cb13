"""
Payout Calculator.

Estimates driving distance and time for a job and prices it:

    payout = base_fare + distance_km * per_km + duration_min * per_minute

Distance is the great-circle length of the ordered stop path; time assumes
a flat average speed. Defaults are 25 ZMW base, 5 ZMW/km, 0.5 ZMW/min.
"""

from dataclasses import dataclass
from typing import Iterable

from courier.app.core.config import settings
from courier.app.core.geo import LatLng, path_length_km


def distance_label(distance_km: float) -> str:
    return f"{distance_km:.1f} km"


def duration_label(duration_min: float) -> str:
    return f"{round(duration_min)} mins"


@dataclass
class PayoutQuote:
    payout: float
    currency: str
    distance_km: float
    duration_min: float


class PayoutCalculator:

    def __init__(
        self,
        base_fare: float = None,
        per_km: float = None,
        per_minute: float = None,
        average_speed_kmh: float = None,
        currency: str = None,
    ):
        self.base_fare = settings.payout_base_fare if base_fare is None else base_fare
        self.per_km = settings.payout_per_km if per_km is None else per_km
        self.per_minute = settings.payout_per_minute if per_minute is None else per_minute
        self.average_speed_kmh = average_speed_kmh or settings.average_speed_kmh
        self.currency = currency or settings.payout_currency

    def quote(self, path: Iterable[LatLng]) -> PayoutQuote:
        """
        Price an ordered path of stop coordinates.

        Raises:
            ValueError: If the path has fewer than two points.
        """
        points = list(path)
        if len(points) < 2:
            raise ValueError("A payout quote needs at least a pickup and a destination")

        distance_km = path_length_km(points)
        duration_min = distance_km / self.average_speed_kmh * 60
        payout = self.base_fare + distance_km * self.per_km + duration_min * self.per_minute

        return PayoutQuote(
            payout=round(payout, 2),
            currency=self.currency,
            distance_km=round(distance_km, 2),
            duration_min=round(duration_min, 1),
        )
