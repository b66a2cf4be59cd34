"""
Content-Type and Content-Disposition header values.

Both headers share the ``value; key="value"`` shape, so one class is used
for them. ``is_text()`` and ``is_attachment()`` let the MIME writer pick a
transfer encoding without knowing which header a value came from.
"""

from typing import Dict, Optional
from urllib.parse import quote

from .base import Header

LINE_LENGTH = 76

# RFC 2231 attribute-char, minus alphanumerics which quote() never escapes
RFC2231_SAFE = "!#$&+-.^_`|~"


def _format_parameter(key: str, value: str) -> str:
    if value.isascii() and value.isprintable():
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'{key}="{escaped}"'
    # RFC 2231 extended value for non-ASCII (e.g. attachment file names)
    return f"{key}*=utf-8''{quote(value, safe=RFC2231_SAFE, encoding='utf-8')}"


class ContentType(Header):
    """A MIME type (or disposition) with its attributes."""

    def __init__(self, c_type: str, attributes: Optional[Dict[str, str]] = None):
        self.c_type = c_type
        self.attributes = dict(attributes or {})

    def __repr__(self):
        return f"ContentType({self.c_type!r}, {self.attributes!r})"

    def attribute(self, key: str, value: str) -> "ContentType":
        """Set an attribute and return self, so calls can be chained."""
        self.attributes[key] = value
        return self

    def get_attribute(self, key: str) -> Optional[str]:
        return self.attributes.get(key)

    def remove_attribute(self, key: str) -> Optional[str]:
        return self.attributes.pop(key, None)

    def is_text(self) -> bool:
        return self.c_type.lower().startswith("text/")

    def is_attachment(self) -> bool:
        return self.c_type.lower() == "attachment"

    def as_content_type(self):
        return self

    def write_header(self, output, bytes_written: int) -> int:
        output.write(self.c_type.encode("ascii"))
        bytes_written += len(self.c_type)

        for key, value in self.attributes.items():
            parameter = _format_parameter(key, value)
            output.write(b";")
            bytes_written += 1
            if bytes_written + 1 + len(parameter) >= LINE_LENGTH:
                output.write(b"\r\n\t")
                bytes_written = 1
            else:
                output.write(b" ")
                bytes_written += 1
            output.write(parameter.encode("ascii"))
            bytes_written += len(parameter)

        output.write(b"\r\n")
        return 0
