"""Common interface of header values."""

from abc import ABC, abstractmethod


class Header(ABC):
    """A header value that knows how to render itself."""

    @abstractmethod
    def write_header(self, output, bytes_written: int) -> int:
        """
        Write the header value followed by CRLF.

        Args:
            output: Binary sink with a ``write`` method
            bytes_written: Column the value starts at, i.e. the length of
                the ``Name: `` prefix already on the line

        Returns:
            The column after the value, 0 once the line is terminated
        """

    def as_content_type(self):
        """Return self if this value is a ContentType, None otherwise."""
        return None
