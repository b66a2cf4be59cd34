"""Transfer encodings (RFC 2045) and encoded-words (RFC 2047)."""

from .base64_encoder import base64_encode
from .encode import (
    EncodingType,
    get_encoding_type,
    get_header_encoding_type,
    rfc2047_encode,
    rfc2047_width,
)
from .quoted_printable import q_encode_word, quoted_printable_encode

__all__ = [
    "EncodingType",
    "get_encoding_type",
    "get_header_encoding_type",
    "rfc2047_encode",
    "rfc2047_width",
    "base64_encode",
    "quoted_printable_encode",
    "q_encode_word",
]
