"""
RFC5322 email composer.

This module provides functions for composing email messages in RFC5322 format
from JMAP-style data structures. It builds a ``MimePart`` tree (text, HTML,
multipart/alternative, multipart/related and multipart/mixed as needed) and
serializes it with the mail builder's MIME writer.
"""

import base64
import binascii
import datetime
import itertools
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Union

from flanker.addresslib import address as flanker_address

from mailbuilder.conf import get_setting
from mailbuilder.errors import MailBuilderError
from mailbuilder.headers import (
    AddressList,
    Date,
    EmailAddress,
    MessageId,
    Raw,
    Text,
)
from mailbuilder.mime import MimePart

# Setup logger
logger = logging.getLogger(__name__)

_message_id_counter = itertools.count()

# Headers set from dedicated JMAP fields or by the MIME writer, never from the
# custom "headers" map
RESERVED_HEADERS = {
    "from",
    "to",
    "cc",
    "bcc",
    "subject",
    "date",
    "message-id",
    "mime-version",
    "content-type",
    "content-transfer-encoding",
}


class EmailComposeError(MailBuilderError):
    """Exception raised for errors during email composition."""


def make_message_id() -> str:
    """
    Generate a unique Message-ID (without angle brackets).

    Returns:
        A string like ``17a4c3b2e1f00000.2a@mail.example.com``
    """
    return (
        f"{time.time_ns():x}.{next(_message_id_counter):x}"
        f"@{get_setting('MAILBUILDER_HOSTNAME')}"
    )


def format_address(name: str, email: str) -> Optional[EmailAddress]:
    """
    Build an address header value from a name and an email address.

    Args:
        name: The display name (can be empty)
        email: The email address

    Returns:
        EmailAddress, or None when no email address is given

    Examples:
        >>> format_address('', 'user@example.com')
        EmailAddress(email='user@example.com', name=None)
        >>> format_address('John Doe', 'john@example.com')
        EmailAddress(email='john@example.com', name='John Doe')
    """
    if not email or not email.strip():
        return None
    return EmailAddress(email=email.strip(), name=(name or "").strip() or None)


def parse_address(value: Union[str, Dict[str, str]]) -> Optional[EmailAddress]:
    """
    Convert a JMAP address object or an address string to an EmailAddress.

    Strings such as ``"Jane Doe <jane@example.com>"`` are parsed with flanker.
    """
    if isinstance(value, dict):
        return format_address(value.get("name", ""), value.get("email", ""))

    if not value:
        return None

    parsed = flanker_address.parse(value)
    if parsed is None:
        logger.warning("Could not parse email address '%s'", value)
        return None
    # pylint: disable=no-member
    return format_address(parsed.display_name or "", parsed.address)


def format_address_list(addresses: Iterable[Union[str, Dict[str, str]]]) -> AddressList:
    """
    Build an address list header value.

    Args:
        addresses: Dicts with 'name' and 'email' keys, or address strings

    Returns:
        AddressList holding the entries that have an email address
    """
    formatted = []
    for addr in addresses:
        parsed = parse_address(addr)
        if parsed is not None:
            formatted.append(parsed)
    return AddressList(formatted)


def _as_message_id(value: str) -> str:
    return value.strip().lstrip("<").rstrip(">")


def set_basic_headers(message_part: MimePart, jmap_data, in_reply_to=None):
    """
    Set the basic email headers on a message part.

    Args:
        message_part: The MimePart object to set headers on
        jmap_data: Dictionary containing email data in JMAP format
        in_reply_to: Optional message ID being replied to
    """
    # From
    from_data = jmap_data.get("from", {})
    # Handle if from_data is a list (normalize to the expected dictionary)
    if isinstance(from_data, list) and from_data:
        from_data = from_data[0]
    sender = parse_address(from_data) if from_data else None
    if sender is not None:
        message_part.headers["From"] = sender

    # To, CC, BCC recipients
    for key, header_name in (("to", "To"), ("cc", "Cc"), ("bcc", "Bcc")):
        recipients = jmap_data.get(key)
        if not recipients:
            continue
        if not isinstance(recipients, list):
            recipients = [recipients]
        address_list = format_address_list(recipients)
        if address_list.items:
            message_part.headers[header_name] = address_list

    subject = jmap_data.get("subject", "")
    if subject:
        message_part.headers["Subject"] = Text(subject)

    # Date (use current time if not provided)
    date = jmap_data.get("date")
    if isinstance(date, str):
        try:
            date = datetime.datetime.fromisoformat(date.replace("Z", "+00:00"))
        except (ValueError, TypeError):
            # Default to current time if parsing fails
            logger.warning("Could not parse date '%s', using current time", date)
            date = None
    if isinstance(date, datetime.datetime):
        message_part.headers["Date"] = Date(date)
    else:
        message_part.headers["Date"] = Date.now()

    message_id = jmap_data.get("messageId", jmap_data.get("message_id"))
    message_part.headers["Message-ID"] = MessageId(
        _as_message_id(message_id) if message_id else make_message_id()
    )

    # Set In-Reply-To and References headers for replies
    if in_reply_to:
        in_reply_to = _as_message_id(in_reply_to)
        message_part.headers["In-Reply-To"] = MessageId(in_reply_to)

        # Append In-Reply-To to existing references
        existing_references = jmap_data.get("headers", {}).get(
            "References", ""
        ) or jmap_data.get("references", "")
        references = [
            _as_message_id(ref) for ref in existing_references.split() if ref.strip()
        ]
        references.append(in_reply_to)
        message_part.headers["References"] = MessageId(references)

    # Add any custom headers provided in JMAP data
    custom_headers = jmap_data.get("headers", {})
    for header_name, header_value in custom_headers.items():
        lower_header_name = header_name.lower()
        if lower_header_name in RESERVED_HEADERS:
            continue
        if in_reply_to and lower_header_name in ("in-reply-to", "references"):
            continue
        message_part.headers[header_name] = Text(str(header_value))


def create_attachment_part(attachment: Dict[str, Any]) -> Optional[MimePart]:
    """
    Create a MIME part for an attachment from JMAP data.

    Args:
        attachment: Dictionary containing attachment data with keys:
            - content: Base64 encoded content, or raw bytes
            - type: MIME type (e.g., 'image/jpeg')
            - name: Filename
            - disposition: 'attachment' or 'inline'
            - cid: Content-ID for inline images (optional)

    Returns:
        MimePart or None if the data is invalid
    """
    if not attachment or not isinstance(attachment, dict):
        logger.warning("Invalid attachment data provided")
        return None

    content = attachment.get("content")
    content_type = attachment.get("type") or "application/octet-stream"
    filename = attachment.get("name", "")
    disposition = attachment.get("disposition", "attachment")
    content_id = attachment.get("cid")

    if not content:
        logger.warning("No content provided for attachment")
        return None

    if isinstance(content, str):
        try:
            decoded_content = base64.b64decode(content, validate=True)
        except binascii.Error as e:
            logger.error("Failed to decode base64 content: %s", str(e))
            return None
    else:
        # Assume it's already decoded binary data
        decoded_content = bytes(content)

    part = MimePart.new_binary(content_type, decoded_content)
    if disposition == "inline":
        part.inline()
        if filename:
            part.headers["Content-Disposition"].attribute("filename", filename)
    else:
        part.attachment(filename or "attachment")

    if disposition == "inline" and content_id:
        part.cid(_as_message_id(content_id))

    return part


def _body_contents(jmap_data: Dict[str, Any], key: str) -> List[str]:
    contents = []
    for part_data in jmap_data.get(key, []):
        if isinstance(part_data, dict):
            contents.append(part_data.get("content", ""))
        else:
            contents.append(part_data)
    return contents


def _attachment_parts(attachments: List[Dict[str, Any]]) -> List[MimePart]:
    parts = []
    for attachment in attachments:
        part = create_attachment_part(attachment)
        if part is not None:
            parts.append(part)
    return parts


def create_multipart_message(
    jmap_data: Dict[str, Any], in_reply_to: Optional[str] = None
) -> MimePart:
    """
    Create the top-level MIME part (message structure) from JMAP data.

    Args:
        jmap_data: Dictionary with JMAP email data
        in_reply_to: Optional message ID being replied to

    Returns:
        The top-level MimePart object representing the email.
    """
    has_text = bool(jmap_data.get("textBody"))
    has_html = bool(jmap_data.get("htmlBody"))
    attachments = jmap_data.get("attachments", [])

    inline_attachments = [
        att
        for att in attachments
        if isinstance(att, dict)
        and att.get("disposition") == "inline"
        and att.get("cid")
    ]
    regular_attachments = [att for att in attachments if att not in inline_attachments]

    # Main content: a single text part, or alternative text/html
    if has_text and has_html:
        main_part = MimePart.new_multipart(
            "multipart/alternative",
            [
                MimePart.new_text(_body_contents(jmap_data, "textBody")[0]),
                MimePart.new_html(
                    _body_contents(jmap_data, "htmlBody")[0].replace("&rsquo;", "'")
                ),
            ],
        )
    elif has_html:
        main_part = MimePart.new_html(
            _body_contents(jmap_data, "htmlBody")[0].replace("&rsquo;", "'")
        )
    elif has_text:
        # Only the first text body is used
        main_part = MimePart.new_text(_body_contents(jmap_data, "textBody")[0])
    else:
        main_part = None

    # HTML referencing inline images goes into multipart/related
    if has_html and inline_attachments:
        main_part = MimePart.new_multipart(
            "multipart/related", [main_part] + _attachment_parts(inline_attachments)
        )
    elif inline_attachments:
        # No HTML to reference them, send them as regular attachments
        regular_attachments = regular_attachments + inline_attachments

    if regular_attachments:
        top_level_part = MimePart.new_multipart("multipart/mixed")
        if main_part is not None:
            top_level_part.add_part(main_part)
        for part in _attachment_parts(regular_attachments):
            top_level_part.add_part(part)
    elif main_part is not None:
        top_level_part = main_part
    else:
        top_level_part = MimePart.new_text("")

    top_level_part.headers["MIME-Version"] = Raw("1.0")
    set_basic_headers(top_level_part, jmap_data, in_reply_to)

    # Headers read best with the structural ones last
    for name in ("Content-Type", "Content-Disposition"):
        if name in top_level_part.headers:
            top_level_part.headers[name] = top_level_part.headers.pop(name)

    return top_level_part


def compose_email(
    jmap_data: Dict[str, Any], in_reply_to: Optional[str] = None
) -> bytes:
    """
    Convert a JMAP email object to RFC5322 format.

    Args:
        jmap_data: Dictionary with JMAP email data
        in_reply_to: Optional message ID being replied to

    Returns:
        RFC5322 formatted email as bytes

    Raises:
        EmailComposeError: If composition fails
    """
    if not jmap_data:
        raise EmailComposeError("Empty JMAP data provided")

    # Validate and normalize 'from' field
    from_data = jmap_data.get("from", {})
    if isinstance(from_data, list):
        if not from_data:
            raise EmailComposeError("Empty 'from' list in JMAP data")
        from_data = from_data[0]

    if isinstance(from_data, dict):
        has_sender = bool(from_data.get("email"))
    else:
        has_sender = isinstance(from_data, str) and parse_address(from_data) is not None
    if not has_sender:
        raise EmailComposeError("Missing or invalid 'from' field in JMAP data")

    jmap_data = dict(jmap_data, **{"from": from_data})

    # Ensure textBody and htmlBody are lists if present
    for key in ("textBody", "htmlBody"):
        if key in jmap_data and not isinstance(jmap_data[key], list):
            jmap_data[key] = [jmap_data[key]]

    try:
        msg_part = create_multipart_message(jmap_data, in_reply_to)
        return msg_part.to_bytes()
    except MailBuilderError as e:
        logger.error("MIME composition error: %s", str(e), exc_info=True)
        raise EmailComposeError(f"MIME composition error: {str(e)}") from e
    except (TypeError, ValueError, UnicodeError) as e:
        logger.exception("Unexpected error during email composition: %s", str(e))
        raise EmailComposeError(f"Failed to compose email: {str(e)}") from e
