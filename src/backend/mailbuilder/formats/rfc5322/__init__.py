"""
RFC5322 email format package.

This package provides functionality for composing email messages
according to RFC5322 standards.
"""

from .composer import (
    EmailComposeError,
    compose_email,
    create_attachment_part,
    create_multipart_message,
    format_address,
    format_address_list,
    make_message_id,
    parse_address,
)

__all__ = [
    "format_address",
    "format_address_list",
    "parse_address",
    "make_message_id",
    "create_attachment_part",
    "create_multipart_message",
    "compose_email",
    "EmailComposeError",
]
