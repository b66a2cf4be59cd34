"""Base64 transfer encoding (RFC 2045 section 6.8)."""

import base64

LINE_LENGTH = 76


def base64_encode(data: bytes, output, is_inline: bool = False) -> int:
    """
    Write the base64 encoding of data to output.

    Args:
        data: The bytes to encode
        output: Binary sink with a ``write`` method
        is_inline: When True (encoded-words) no line breaks are written,
            folding is then up to the caller

    Returns:
        Number of bytes written
    """
    encoded = base64.b64encode(data)
    if is_inline or len(encoded) <= LINE_LENGTH:
        output.write(encoded)
        return len(encoded)

    bytes_written = 0
    for pos in range(0, len(encoded), LINE_LENGTH):
        if pos:
            output.write(b"\r\n")
            bytes_written += 2
        line = encoded[pos : pos + LINE_LENGTH]
        output.write(line)
        bytes_written += len(line)
    return bytes_written
