"""Shared Pydantic schemas."""

from datetime import date, datetime, time, timedelta, timezone

from pydantic import BaseModel, ConfigDict, model_validator


class DateRange(BaseModel):
    """Calendar date range used for cost queries and metric windows."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def validate_order(self) -> "DateRange":
        """Start must not be after end."""
        if self.start > self.end:
            raise ValueError(f"start ({self.start}) must not be after end ({self.end})")
        return self

    @property
    def start_datetime(self) -> datetime:
        """Start of the range at midnight UTC."""
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    @property
    def end_datetime(self) -> datetime:
        """End of the range at midnight UTC."""
        return datetime.combine(self.end, time.min, tzinfo=timezone.utc)

    @property
    def days(self) -> int:
        """Number of days between start and end (at least 1)."""
        return max(1, (self.end - self.start).days)

    def extended(self, days: int = 1) -> "DateRange":
        """Return a copy whose end is pushed forward by ``days``."""
        return DateRange(start=self.start, end=self.end + timedelta(days=days))
