#Purpose: Time-of-day demand factor, computed upstream of the fare model.
#The fare model never reads the clock; callers that know the departure time
#multiply this factor into the surge they pass in.
#Weekday rush hours and Friday/Saturday late evenings are priced up.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class TimeOfDayPolicy:
    # (start_hour, end_hour) inclusive, local time of `when`
    weekday_peaks: Tuple[Tuple[int, int], ...] = ((7, 9), (16, 19))
    weekday_peak_factor: float = 1.25

    # Friday/Saturday from this hour, running past midnight until weekend_night_end_hour
    weekend_night_start_hour: int = 20
    weekend_night_end_hour: int = 2
    weekend_night_factor: float = 1.35

    def validate(self) -> None:
        if self.weekday_peak_factor < 1.0 or self.weekend_night_factor < 1.0:
            raise ValueError("time-of-day factors must be >= 1.0")
        for start, end in self.weekday_peaks:
            if not (0 <= start <= end <= 23):
                raise ValueError("weekday peak hours must satisfy 0 <= start <= end <= 23")


def time_of_day_factor(when: datetime, policy: Optional[TimeOfDayPolicy] = None) -> float:
    """
    Multiplicative demand factor for a departure at `when`.
    Monday=0 ... Sunday=6 (datetime.weekday()).
    """
    policy = policy or TimeOfDayPolicy()
    hour = when.hour
    dow = when.weekday()
    factor = 1.0

    if dow <= 4 and any(start <= hour <= end for start, end in policy.weekday_peaks):
        factor *= policy.weekday_peak_factor

    # Friday (4) / Saturday (5) evenings; the small hours belong to the evening before
    if dow in (4, 5) and hour >= policy.weekend_night_start_hour:
        factor *= policy.weekend_night_factor
    elif dow in (5, 6) and hour <= policy.weekend_night_end_hour:
        factor *= policy.weekend_night_factor

    return factor
