"""Quoted-printable transfer encoding (RFC 2045 section 6.7)."""

LINE_LENGTH = 76

CR = 0x0D
LF = 0x0A
SPACE = 0x20
TAB = 0x09
EQUALS = 0x3D

# Characters allowed verbatim in an RFC 2047 "Q" encoded-word used as a phrase
Q_WORD_SAFE = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789!*+-/"
)


def _line_break_length(data: bytes, pos: int) -> int:
    """Length of the body line break starting at pos (0 if there is none)."""
    ch = data[pos]
    if ch == LF:
        return 1
    if ch == CR and pos + 1 < len(data) and data[pos + 1] == LF:
        return 2
    return 0


def quoted_printable_encode(data: bytes, output, is_body: bool = True) -> int:
    """
    Write the quoted-printable encoding of data to output.

    In body mode CRLF and bare LF become hard CRLF line breaks. Otherwise
    every CR and LF is escaped so binary content survives unchanged.
    Lines are soft-wrapped with ``=\\r\\n`` before they reach 76 characters.

    Args:
        data: The bytes to encode
        output: Binary sink with a ``write`` method
        is_body: Whether data is message body text

    Returns:
        Number of bytes written
    """
    buf = bytearray()
    line_len = 0
    length = len(data)
    pos = 0

    while pos < length:
        ch = data[pos]

        if is_body:
            break_len = _line_break_length(data, pos)
            if break_len:
                buf += b"\r\n"
                line_len = 0
                pos += break_len
                continue

        if ch in (SPACE, TAB):
            # Trailing whitespace would be stripped in transit
            at_line_end = pos + 1 == length or (
                is_body and _line_break_length(data, pos + 1) > 0
            )
            encoded = b"=%02X" % ch if at_line_end else bytes((ch,))
        elif 33 <= ch <= 126 and ch != EQUALS:
            encoded = bytes((ch,))
        else:
            encoded = b"=%02X" % ch

        # Leave room for the soft break "="
        if line_len + len(encoded) > LINE_LENGTH - 1:
            buf += b"=\r\n"
            line_len = 0

        buf += encoded
        line_len += len(encoded)
        pos += 1

    output.write(bytes(buf))
    return len(buf)


def q_encode_word(data: bytes) -> bytes:
    """Encode data for the text of a "Q" encoded-word (RFC 2047 section 4.2)."""
    buf = bytearray()
    for ch in data:
        if ch == SPACE:
            buf += b"_"
        elif ch in Q_WORD_SAFE:
            buf.append(ch)
        else:
            buf += b"=%02X" % ch
    return bytes(buf)
