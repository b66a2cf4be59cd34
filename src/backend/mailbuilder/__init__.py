"""
Mail builder: renders address, header and MIME part trees into RFC 5322
messages, ready to be handed to a mail transfer agent.
"""

from .errors import InvariantError, MailBuilderError
from .headers import (
    Address,
    AddressList,
    ContentType,
    Date,
    EmailAddress,
    GroupedAddresses,
    Header,
    MessageId,
    Raw,
    Text,
)
from .mime import MimePart, make_boundary

__all__ = [
    "MimePart",
    "make_boundary",
    "Header",
    "Address",
    "AddressList",
    "EmailAddress",
    "GroupedAddresses",
    "ContentType",
    "Date",
    "MessageId",
    "Raw",
    "Text",
    "MailBuilderError",
    "InvariantError",
]
