"""Exceptions raised by the mail builder."""


class MailBuilderError(Exception):
    """Base class for mail builder errors."""


class InvariantError(MailBuilderError):
    """Raised when a part tree or header value breaks the caller contract.

    These are programming errors (e.g. a multipart whose Content-Type is a
    free text value) and are never recovered from.
    """
