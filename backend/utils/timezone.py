from datetime import datetime
from datetime import timezone as dt_timezone


class TimeZone:
    """UTC-only time helpers used by the billing store and mappers"""

    def __init__(self, tz: dt_timezone = dt_timezone.utc) -> None:
        self.tz_info = tz

    def now(self) -> datetime:
        """Current timezone-aware time"""
        return datetime.now(self.tz_info)

    def from_timestamp(self, seconds: int | float | None) -> datetime | None:
        """
        Convert provider epoch seconds to an aware datetime

        :param seconds: seconds since epoch, or None
        :return:
        """
        if seconds is None:
            return None
        return datetime.fromtimestamp(seconds, tz=self.tz_info)

    def to_aware(self, dt: datetime | None) -> datetime | None:
        """
        Attach the timezone to naive datetimes read back from drivers that drop it (SQLite)

        :param dt: datetime or None
        :return:
        """
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.tz_info)
        return dt.astimezone(self.tz_info)

    def to_str(self, dt: datetime, format_str: str = '%Y-%m-%d %H:%M:%S') -> str:
        return dt.astimezone(self.tz_info).strftime(format_str)


timezone = TimeZone()
