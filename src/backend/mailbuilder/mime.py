"""
MIME part tree and its serialization (RFC 2045 / RFC 2046).

A ``MimePart`` holds an ordered mapping of header values and a body. The
body is text (``str``), binary data (``bytes``) or a list of child parts
for multipart/* types. ``MimePart.write_part`` walks the tree without
recursion, so arbitrarily deep nesting cannot exhaust the call stack.
"""

import hashlib
import io
import itertools
import logging
import re
import threading
import time
from typing import Dict, List, Optional, Tuple, Union

from mailbuilder.conf import get_setting
from mailbuilder.encoders import (
    EncodingType,
    base64_encode,
    get_encoding_type,
    quoted_printable_encode,
)
from mailbuilder.errors import InvariantError
from mailbuilder.headers import ContentType, Header, MessageId, Raw, Text

logger = logging.getLogger(__name__)

BodyPart = Union[str, bytes, List["MimePart"]]

# Odd 64-bit multiplier (2^64 / golden ratio) used to spread counter values
BOUNDARY_MIX = 11400714819323198485
MASK_64 = (1 << 64) - 1

_boundary_counter = itertools.count()

# Quoted boundaries may contain spaces (RFC 2046 bchars), unquoted ones are tokens
RAW_BOUNDARY_RE = re.compile(
    r'(?:^|;)\s*boundary\s*=\s*(?:"([^"]+)"|([^";\s]+))', re.IGNORECASE
)


def make_boundary() -> str:
    """
    Generate a multipart boundary.

    The token mixes a nanosecond timestamp, a process-wide counter and a
    hash of the host name and current thread, so boundaries generated in
    the same nanosecond or from concurrent threads still differ.
    """
    identity = f"{get_setting('MAILBUILDER_HOSTNAME')}:{threading.get_ident()}"
    host_hash = int.from_bytes(
        hashlib.sha256(identity.encode("utf-8")).digest()[:8], "big"
    )
    mixed = ((host_hash + next(_boundary_counter)) * BOUNDARY_MIX) & MASK_64
    return f"{time.time_ns():x}_{mixed:x}_{host_hash:x}"


def _write_transfer_encoding(output, encoding_type: EncodingType) -> None:
    output.write(b"Content-Transfer-Encoding: ")
    output.write(encoding_type.value.encode("ascii"))
    output.write(b"\r\n\r\n")


def _write_body(data: bytes, output, is_body: bool) -> None:
    """Pick a transfer encoding for data and write the header and body."""
    encoding_type = get_encoding_type(data, False, is_body)
    _write_transfer_encoding(output, encoding_type)

    if encoding_type is EncodingType.BASE64:
        base64_encode(data, output)
    elif encoding_type is EncodingType.QUOTED_PRINTABLE:
        quoted_printable_encode(data, output, is_body)
    elif is_body:
        # Normalize bare LF to CRLF
        output.write(re.sub(rb"(?<!\r)\n", b"\r\n", data))
    else:
        output.write(data)


class MimePart:
    """A MIME entity: headers plus a text, binary or multipart body."""

    def __init__(
        self,
        content_type: Optional[ContentType] = None,
        contents: BodyPart = "",
        headers: Optional[Dict[str, Header]] = None,
    ):
        self.headers: Dict[str, Header] = {}
        if content_type is not None:
            self.headers["Content-Type"] = content_type
        if headers:
            self.headers.update(headers)
        self.contents = contents

    def __repr__(self):
        return f"MimePart(headers={list(self.headers)!r}, contents={type(self.contents).__name__})"

    @classmethod
    def new_multipart(cls, content_type: str, parts: Optional[List["MimePart"]] = None):
        """Create a multipart/* part."""
        return cls(ContentType(content_type), list(parts or []))

    @classmethod
    def new_text(cls, contents: str, subtype: str = "plain"):
        """Create a text/* part encoded as UTF-8."""
        return cls(
            ContentType(f"text/{subtype}").attribute("charset", "utf-8"), contents
        )

    @classmethod
    def new_html(cls, contents: str):
        """Create a text/html part encoded as UTF-8."""
        return cls.new_text(contents, "html")

    @classmethod
    def new_binary(cls, content_type: str, contents: bytes):
        """Create a part holding binary data."""
        return cls(ContentType(content_type), bytes(contents))

    def attachment(self, filename: str) -> "MimePart":
        """Mark the part as an attachment with the given file name."""
        self.headers["Content-Disposition"] = ContentType("attachment").attribute(
            "filename", filename
        )
        return self

    def inline(self) -> "MimePart":
        """Mark the part as displayed inline."""
        self.headers["Content-Disposition"] = ContentType("inline")
        return self

    def cid(self, content_id: str) -> "MimePart":
        """Set the Content-ID, used to reference inline parts from HTML."""
        self.headers["Content-ID"] = MessageId(content_id)
        return self

    def language(self, value: str) -> "MimePart":
        self.headers["Content-Language"] = Text(value)
        return self

    def location(self, value: str) -> "MimePart":
        self.headers["Content-Location"] = Raw(value)
        return self

    def header(self, name: str, value: Header) -> "MimePart":
        """Set a header, replacing any existing value with the same name."""
        self.headers[name] = value
        return self

    def add_part(self, part: "MimePart") -> None:
        """Append a child to a multipart part."""
        if not isinstance(self.contents, list):
            raise InvariantError("Cannot add a child part to a non-multipart part")
        self.contents.append(part)

    def _write_headers(self, output, skip: str) -> Tuple[bool, bool]:
        """Write the headers, returning whether they declare text and an attachment."""
        is_text = False
        is_attachment = False
        for name, value in self.headers.items():
            if name.lower() == skip.lower():
                continue
            output.write(name.encode("ascii"))
            output.write(b": ")
            content_type = value.as_content_type()
            if content_type is not None:
                if name == "Content-Type" and content_type.is_text():
                    is_text = True
                elif name == "Content-Disposition" and content_type.is_attachment():
                    is_attachment = True
            value.write_header(output, len(name) + 2)
        return is_text, is_attachment

    def _write_multipart_content_type(self, output) -> str:
        """Write the Content-Type of a multipart part and return its boundary."""
        output.write(b"Content-Type: ")
        value = self.headers.get("Content-Type")

        if value is None:
            boundary = make_boundary()
            value = ContentType("multipart/mixed").attribute("boundary", boundary)
            self.headers["Content-Type"] = value
            value.write_header(output, 14)
            return boundary

        if isinstance(value, ContentType):
            boundary = value.get_attribute("boundary")
            if not boundary:
                boundary = make_boundary()
                value.attribute("boundary", boundary)
                logger.debug("Synthesized boundary %s for %s", boundary, value.c_type)
            value.write_header(output, 14)
            return boundary

        if isinstance(value, Raw):
            match = RAW_BOUNDARY_RE.search(value.raw)
            if match:
                boundary = match.group(1) or match.group(2)
            else:
                boundary = make_boundary()
                value = Raw(f'{value.raw}; boundary="{boundary}"')
                self.headers["Content-Type"] = value
            value.write_header(output, 14)
            return boundary

        raise InvariantError(
            f"Unsupported Content-Type header value for a multipart part: {value!r}"
        )

    def write_part(self, output) -> None:
        """
        Write the part and all its children to output.

        Boundaries synthesized while writing are recorded on the parts'
        Content-Type headers, so writing the same tree again gives the same
        bytes. Errors raised by output propagate unchanged and leave a
        partially written stream.

        Args:
            output: Binary sink with a ``write`` method
        """
        stack = []
        parts = iter([self])
        boundary: Optional[str] = None

        while True:
            for part in parts:
                if boundary is not None:
                    output.write(b"\r\n--" + boundary.encode("ascii") + b"\r\n")

                contents = part.contents
                if isinstance(contents, list):
                    if boundary is not None:
                        stack.append((parts, boundary))
                    boundary = part._write_multipart_content_type(output)
                    part._write_headers(output, skip="Content-Type")
                    output.write(b"\r\n")
                    logger.debug("Entering multipart level %d", len(stack) + 1)
                    # Descend: the outer loop picks up the children
                    parts = iter(contents)
                    break

                # The transfer encoding is chosen here, never taken from the caller
                is_text, is_attachment = part._write_headers(
                    output, skip="Content-Transfer-Encoding"
                )
                if isinstance(contents, str):
                    _write_body(
                        contents.encode("utf-8"), output, not is_attachment
                    )
                elif isinstance(contents, (bytes, bytearray)):
                    if not is_text:
                        _write_transfer_encoding(output, EncodingType.BASE64)
                        base64_encode(bytes(contents), output)
                    else:
                        _write_body(bytes(contents), output, not is_attachment)
                else:
                    raise InvariantError(
                        f"Unsupported body type: {type(contents).__name__}"
                    )
            else:
                # Siblings exhausted
                if boundary is not None:
                    output.write(b"\r\n--" + boundary.encode("ascii") + b"--\r\n")
                if not stack:
                    return
                parts, boundary = stack.pop()

    def to_bytes(self) -> bytes:
        """Return the serialized part."""
        output = io.BytesIO()
        self.write_part(output)
        return output.getvalue()
