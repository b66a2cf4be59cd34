"""
Transfer encoding selection and RFC 2047 encoded-words.

``get_encoding_type`` scans a byte string once and decides whether it can
travel as 7-bit text or needs quoted-printable or base64.
``rfc2047_encode`` uses the same decision to write header text, splitting
it into encoded-words that respect the line length limit.
"""

import enum
import io
import math
from typing import Iterator

from mailbuilder.conf import get_setting

from .base64_encoder import base64_encode
from .quoted_printable import Q_WORD_SAFE, q_encode_word

LINE_LENGTH = 76
ENCODED_WORD_MAX_LENGTH = 75
FOLD = b"\r\n\t"

CR = 0x0D
LF = 0x0A
TAB = 0x09
SPACE = 0x20
EQUALS = 0x3D

# RFC 5322 specials that force a display name into a quoted-string
PHRASE_SPECIALS = frozenset('()<>[]:;@\\,."')


class EncodingType(enum.Enum):
    """Content-Transfer-Encoding values the builder can produce."""

    SEVEN_BIT = "7bit"
    QUOTED_PRINTABLE = "quoted-printable"
    BASE64 = "base64"


def get_encoding_type(data: bytes, is_inline: bool, is_body: bool) -> EncodingType:
    """
    Choose a transfer encoding for data.

    Args:
        data: The raw bytes
        is_inline: Whether data is header text (encoded-word context)
        is_body: Whether data is a message body, where bare LF line
            breaks are normalized to CRLF on output

    Returns:
        SEVEN_BIT when data can be written unchanged, otherwise
        QUOTED_PRINTABLE or BASE64 depending on how many bytes would
        need escaping.
    """
    if not data:
        return EncodingType.SEVEN_BIT

    needs_encoding = False
    escaped = 0
    line_len = 0
    length = len(data)

    for pos, ch in enumerate(data):
        if ch == LF:
            if is_inline or (not is_body and (pos == 0 or data[pos - 1] != CR)):
                needs_encoding = True
            if not is_body:
                escaped += 1
            if line_len > LINE_LENGTH:
                needs_encoding = True
            line_len = 0
            continue

        if ch == CR:
            is_crlf = pos + 1 < length and data[pos + 1] == LF
            if is_inline or not is_crlf:
                needs_encoding = True
            if not is_body or not is_crlf:
                escaped += 1
            continue

        line_len += 1
        if ch >= 127 or (ch < SPACE and ch != TAB) or (is_inline and ch == TAB):
            needs_encoding = True
            escaped += 1
        elif ch == EQUALS or (is_inline and ch != SPACE and ch not in Q_WORD_SAFE):
            escaped += 1

    if not is_inline and line_len > LINE_LENGTH:
        needs_encoding = True

    if not needs_encoding:
        return EncodingType.SEVEN_BIT
    if escaped / length < get_setting("MAILBUILDER_QP_ESCAPE_THRESHOLD"):
        return EncodingType.QUOTED_PRINTABLE
    return EncodingType.BASE64


def get_header_encoding_type(text: str) -> EncodingType:
    """
    Choose how header text is written.

    Like ``get_encoding_type`` in inline mode, except that ASCII text
    containing ``=?`` is encoded too, so readers do not decode it as an
    encoded-word.
    """
    encoding_type = get_encoding_type(text.encode("utf-8"), True, False)
    if encoding_type is EncodingType.SEVEN_BIT and "=?" in text:
        return EncodingType.QUOTED_PRINTABLE
    return encoding_type


def _quote_phrase(text: str) -> str:
    """Return text as an RFC 5322 quoted-string if it contains specials."""
    if not any(ch in PHRASE_SPECIALS for ch in text):
        return text
    if len(text) > 1 and text.startswith('"') and text.endswith('"'):
        return text
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _encoded_length(data: bytes, encoding: bytes) -> int:
    if encoding == b"B":
        return 4 * math.ceil(len(data) / 3)
    return len(q_encode_word(data))


def _encode_word(data: bytes, encoding: bytes) -> bytes:
    if encoding == b"B":
        buf = io.BytesIO()
        base64_encode(data, buf, is_inline=True)
        text = buf.getvalue()
    else:
        text = q_encode_word(data)
    return b"=?utf-8?" + encoding + b"?" + text + b"?="


def _encoded_words(
    text: str, encoding: bytes, first_budget: int, budget: int
) -> Iterator[bytes]:
    """
    Split text into encoded-words.

    The first word fits in first_budget characters, the following ones in
    budget. Words are only cut between characters, never inside a UTF-8
    sequence.
    """
    overhead = len(b"=?utf-8?Q??=")
    limit = first_budget
    chunk = b""
    for char in text:
        char_bytes = char.encode("utf-8")
        candidate = chunk + char_bytes
        if chunk and overhead + _encoded_length(candidate, encoding) > limit:
            yield _encode_word(chunk, encoding)
            chunk = char_bytes
            limit = budget
        else:
            chunk = candidate
    if chunk:
        yield _encode_word(chunk, encoding)


def _word_encoding(encoding_type: EncodingType) -> bytes:
    return b"B" if encoding_type is EncodingType.BASE64 else b"Q"


def rfc2047_encode(text: str, output, bytes_written: int = 0, phrase: bool = True) -> int:
    """
    Write header text, using encoded-words when it is not plain ASCII.

    Args:
        text: The text to write (e.g. a display name)
        output: Binary sink with a ``write`` method
        bytes_written: Column the text starts at on the current line
        phrase: Whether text is an RFC 5322 phrase, in which case ASCII
            text containing specials is written as a quoted-string

    Returns:
        The column reached on the current line
    """
    encoding_type = get_header_encoding_type(text)

    if encoding_type is EncodingType.SEVEN_BIT:
        rendered = _quote_phrase(text) if phrase else text
        output.write(rendered.encode("ascii"))
        return bytes_written + len(rendered)

    encoding = _word_encoding(encoding_type)
    overhead = len(b"=?utf-8?Q??=")
    first_budget = min(ENCODED_WORD_MAX_LENGTH, LINE_LENGTH - bytes_written)
    first_char = text[0].encode("utf-8")
    if bytes_written > 1 and first_budget < overhead + _encoded_length(first_char, encoding):
        output.write(FOLD)
        bytes_written = 1
        first_budget = ENCODED_WORD_MAX_LENGTH

    words = _encoded_words(
        text, encoding, first_budget, min(ENCODED_WORD_MAX_LENGTH, LINE_LENGTH - 1)
    )
    for pos, word in enumerate(words):
        if pos:
            output.write(FOLD)
            bytes_written = 1
        output.write(word)
        bytes_written += len(word)

    return bytes_written


def rfc2047_width(text: str, phrase: bool = True) -> int:
    """Width text takes when written by rfc2047_encode on a single line."""
    encoding_type = get_header_encoding_type(text)

    if encoding_type is EncodingType.SEVEN_BIT:
        return len(_quote_phrase(text) if phrase else text)

    words = list(
        _encoded_words(
            text,
            _word_encoding(encoding_type),
            ENCODED_WORD_MAX_LENGTH,
            ENCODED_WORD_MAX_LENGTH,
        )
    )
    return sum(len(word) for word in words) + len(words) - 1
