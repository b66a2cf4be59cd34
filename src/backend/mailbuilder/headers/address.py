"""
RFC 5322 address header values (From, To, Cc, Reply-To, ...).

An address is one of three variants: a single ``EmailAddress``, a
``GroupedAddresses`` group, or an ``AddressList`` of the former two.
Rendering keeps lines under 76 columns by folding with CRLF + TAB in front
of any item that would not fit. Fold decisions are made from the unfolded
width of each item, computed before it is written.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from mailbuilder.encoders import rfc2047_encode, rfc2047_width
from mailbuilder.errors import InvariantError

from .base import Header

logger = logging.getLogger(__name__)

LINE_LENGTH = 76
FOLD = b"\r\n\t"


@dataclass(frozen=True)
class EmailAddress(Header):
    """A mailbox: an e-mail address with an optional display name."""

    email: str
    name: Optional[str] = None

    def __post_init__(self):
        for value in (self.email, self.name or ""):
            if "\r" in value or "\n" in value:
                raise InvariantError(
                    f"Line breaks are not allowed in an e-mail address: {value!r}"
                )

    def write_header(self, output, bytes_written: int) -> int:
        return write_address(self, output, bytes_written)


@dataclass(frozen=True)
class GroupedAddresses(Header):
    """A named group of mailboxes, e.g. ``Team: <a@example.com>, <b@example.com>;``."""

    name: Optional[str]
    addresses: Tuple[EmailAddress, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "addresses", tuple(self.addresses))

    def write_header(self, output, bytes_written: int) -> int:
        return write_address(self, output, bytes_written)


@dataclass(frozen=True)
class AddressList(Header):
    """An ordered list of mailboxes and groups."""

    items: Tuple[Union[EmailAddress, GroupedAddresses], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def __len__(self):
        return len(self.items)

    def write_header(self, output, bytes_written: int) -> int:
        return write_address(self, output, bytes_written)


Address = Union[EmailAddress, GroupedAddresses, AddressList]


def _separate(output, bytes_written: int, width: int) -> int:
    """Write the whitespace in front of an item, folding if it does not fit."""
    if bytes_written > 1 and bytes_written + 1 + width >= LINE_LENGTH:
        output.write(FOLD)
        return 1
    output.write(b" ")
    return bytes_written + 1


def _mailbox_width(address: EmailAddress) -> int:
    if address.name:
        return rfc2047_width(address.name) + len(address.email) + 3
    return len(address.email) + 2


def _estimate_width(address: Address) -> int:
    if isinstance(address, EmailAddress):
        return _mailbox_width(address)
    if isinstance(address, GroupedAddresses):
        if address.name:
            return rfc2047_width(address.name) + 1
        # A nameless group starts with its first member
        if address.addresses and isinstance(address.addresses[0], EmailAddress):
            trailing = 1 if len(address.addresses) > 1 else 0
            return _mailbox_width(address.addresses[0]) + trailing
    return 0


def _write_mailbox(
    address: EmailAddress, output, bytes_written: int, reserve: int = 0
) -> int:
    email = address.email.encode("utf-8")
    if not address.name:
        output.write(b"<" + email + b">")
        return bytes_written + len(email) + 2

    bytes_written = rfc2047_encode(address.name, output, bytes_written)
    bytes_written = _separate(output, bytes_written, len(email) + 2 + reserve)
    output.write(b"<" + email + b">")
    return bytes_written + len(email) + 2


def _write_group(
    group: GroupedAddresses, output, bytes_written: int, reserve: int = 0
) -> int:
    if group.name:
        bytes_written = rfc2047_encode(group.name, output, bytes_written)
        output.write(b":")
        bytes_written += 1

    count = len(group.addresses)
    for pos, member in enumerate(group.addresses):
        if not isinstance(member, EmailAddress):
            raise InvariantError(
                f"Group members must be e-mail addresses, got {type(member).__name__}"
            )
        last = pos == count - 1
        # "," after a member, ";" closing a named group, plus what follows
        if not last:
            trailing = 1
        else:
            trailing = reserve + (1 if group.name else 0)

        if pos or group.name:
            bytes_written = _separate(
                output, bytes_written, _mailbox_width(member) + trailing
            )
        bytes_written = _write_mailbox(member, output, bytes_written, trailing)
        if not last:
            output.write(b",")
            bytes_written += 1

    if group.name:
        output.write(b";")
        bytes_written += 1
    return bytes_written


def _write_list(address_list: AddressList, output, bytes_written: int) -> int:
    items = []
    for item in address_list.items:
        if isinstance(item, AddressList):
            logger.warning("Skipping address list nested in an address list")
            continue
        items.append(item)

    count = len(items)
    for pos, item in enumerate(items):
        trailing = 0 if pos == count - 1 else 1
        if pos:
            bytes_written = _separate(
                output, bytes_written, _estimate_width(item) + trailing
            )

        if isinstance(item, EmailAddress):
            bytes_written = _write_mailbox(item, output, bytes_written, trailing)
        elif isinstance(item, GroupedAddresses):
            # The group writes its own closing ";" before the list comma
            bytes_written = _write_group(item, output, bytes_written, trailing)
        else:
            raise InvariantError(f"Unsupported address type: {type(item).__name__}")

        if trailing:
            output.write(b",")
            bytes_written += 1

    return bytes_written


def write_address(address: Address, output, bytes_written: int) -> int:
    """
    Write an address header value followed by CRLF.

    Args:
        address: The address, group or list to render
        output: Binary sink with a ``write`` method
        bytes_written: Column the value starts at (e.g. 4 after ``To: ``)

    Returns:
        0, the column after the terminating CRLF
    """
    if isinstance(address, EmailAddress):
        _write_mailbox(address, output, bytes_written)
    elif isinstance(address, GroupedAddresses):
        _write_group(address, output, bytes_written)
    elif isinstance(address, AddressList):
        _write_list(address, output, bytes_written)
    else:
        raise InvariantError(f"Unsupported address type: {type(address).__name__}")

    output.write(b"\r\n")
    return 0
