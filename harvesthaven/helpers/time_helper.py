import time
from datetime import datetime, timedelta

import pytz


class TimeHelper:
    """A static helper class for standardized time and date operations."""
    EST = pytz.timezone('US/Eastern')

    @staticmethod
    def get_current_timestamp() -> float:
        """Returns the current Unix timestamp."""
        return time.time()

    @staticmethod
    def get_timezone(tz_name: str) -> pytz.BaseTzInfo:
        try:
            return pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            return TimeHelper.EST

    @staticmethod
    def get_local_date(timestamp: float, tz_name: str = "US/Eastern") -> str:
        tz = TimeHelper.get_timezone(tz_name)
        return datetime.fromtimestamp(timestamp, tz).strftime('%Y-%m-%d')

    @staticmethod
    def next_daily_boundary(timestamp: float, tz_name: str = "US/Eastern") -> float:
        """
        Returns the Unix timestamp of the first local midnight strictly after the given instant.
        Midnight is resolved through localize() so DST transitions land on the real wall-clock boundary.
        """

        tz = TimeHelper.get_timezone(tz_name)
        local_now = datetime.fromtimestamp(timestamp, tz)
        next_date = local_now.date() + timedelta(days=1)
        boundary = tz.localize(datetime(next_date.year, next_date.month, next_date.day))
        return boundary.timestamp()
