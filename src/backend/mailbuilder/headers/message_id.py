"""Message-ID, In-Reply-To, References and Content-ID values."""

from typing import Iterable, Union

from .base import Header

LINE_LENGTH = 76


class MessageId(Header):
    """One or more message identifiers, written as ``<id>`` tokens."""

    def __init__(self, ids: Union[str, Iterable[str]]):
        if isinstance(ids, str):
            ids = [ids]
        self.ids = [message_id.strip().lstrip("<").rstrip(">") for message_id in ids]

    def __repr__(self):
        return f"MessageId({self.ids!r})"

    def write_header(self, output, bytes_written: int) -> int:
        for pos, message_id in enumerate(self.ids):
            token = f"<{message_id}>".encode("ascii")
            if pos:
                if bytes_written + 1 + len(token) >= LINE_LENGTH:
                    output.write(b"\r\n\t")
                    bytes_written = 1
                else:
                    output.write(b" ")
                    bytes_written += 1
            output.write(token)
            bytes_written += len(token)
        output.write(b"\r\n")
        return 0
