"""Unstructured text header values (Subject, Comments, ...)."""

from mailbuilder.encoders import EncodingType, get_header_encoding_type, rfc2047_encode

from .base import Header

LINE_LENGTH = 76


class Text(Header):
    """Free text. Plain ASCII folds at spaces, anything else is encoded."""

    def __init__(self, text: str):
        self.text = text

    def __repr__(self):
        return f"Text({self.text!r})"

    def write_header(self, output, bytes_written: int) -> int:
        if get_header_encoding_type(self.text) is not EncodingType.SEVEN_BIT:
            rfc2047_encode(self.text, output, bytes_written, phrase=False)
        else:
            for pos, word in enumerate(self.text.split(" ")):
                if pos:
                    if (
                        word
                        and bytes_written > 1
                        and bytes_written + 1 + len(word) > LINE_LENGTH
                    ):
                        # Fold in front of the existing space
                        output.write(b"\r\n")
                        bytes_written = 0
                    output.write(b" ")
                    bytes_written += 1
                output.write(word.encode("ascii"))
                bytes_written += len(word)

        output.write(b"\r\n")
        return 0
