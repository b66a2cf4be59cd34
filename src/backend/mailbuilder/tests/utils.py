"""Helpers shared by the mail builder tests."""

from email.header import decode_header, make_header

LINE_LENGTH = 76


def decode_header_string(header_value):
    """Decode an RFC 2047 encoded header string."""
    if not header_value:
        return ""
    if isinstance(header_value, bytes):
        header_value = header_value.decode("ascii")
    # make_header handles joining decoded parts
    return str(make_header(decode_header(header_value)))


def long_lines(data: bytes, limit: int = LINE_LENGTH):
    """Return the lines of data (split on CRLF) longer than limit."""
    return [line for line in data.split(b"\r\n") if len(line) > limit]
