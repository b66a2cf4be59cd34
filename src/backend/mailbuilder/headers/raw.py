"""Header values written verbatim."""

from .base import Header


class Raw(Header):
    """An opaque header value, written as is."""

    def __init__(self, raw: str):
        self.raw = raw

    def __repr__(self):
        return f"Raw({self.raw!r})"

    def write_header(self, output, bytes_written: int) -> int:
        output.write(self.raw.encode("utf-8"))
        output.write(b"\r\n")
        return 0
