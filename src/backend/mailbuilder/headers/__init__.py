"""Header values that can render themselves into a message."""

from .address import Address, AddressList, EmailAddress, GroupedAddresses, write_address
from .base import Header
from .content_type import ContentType
from .date import Date
from .message_id import MessageId
from .raw import Raw
from .text import Text

__all__ = [
    "Header",
    "Address",
    "AddressList",
    "EmailAddress",
    "GroupedAddresses",
    "write_address",
    "ContentType",
    "Date",
    "MessageId",
    "Raw",
    "Text",
]
