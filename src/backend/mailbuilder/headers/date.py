"""RFC 5322 Date header value."""

import datetime
from email.utils import format_datetime

from django.utils import timezone

from .base import Header


class Date(Header):
    """A point in time, written in RFC 5322 date-time format."""

    def __init__(self, value: datetime.datetime):
        # Ensure the datetime is timezone-aware
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            value = timezone.make_aware(value, datetime.timezone.utc)
        self.value = value

    @classmethod
    def now(cls) -> "Date":
        """Date header for the current time."""
        return cls(datetime.datetime.now(datetime.timezone.utc))

    def __repr__(self):
        return f"Date({self.value!r})"

    def write_header(self, output, bytes_written: int) -> int:
        output.write(format_datetime(self.value).encode("ascii"))
        output.write(b"\r\n")
        return 0
