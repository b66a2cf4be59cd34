"""
Settings for the mail builder.

Values are read from the Django settings when they are configured, so a
project can tune them with e.g. ``MAILBUILDER_QP_ESCAPE_THRESHOLD = 0.2``.
Without configured settings the defaults below apply.
"""

import socket
from typing import Any

from django.conf import settings

DEFAULTS = {
    # Share of bytes needing =XX escaping above which base64 is preferred
    # over quoted-printable. 1/6 is the point where base64 gets smaller.
    "MAILBUILDER_QP_ESCAPE_THRESHOLD": 0.15,
    # Host name mixed into boundaries and used as Message-ID domain.
    "MAILBUILDER_HOSTNAME": None,
}


def get_setting(name: str) -> Any:
    """Return the configured value of a mail builder setting."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown mail builder setting: {name}")

    value = DEFAULTS[name]
    if settings.configured:
        value = getattr(settings, name, value)

    if name == "MAILBUILDER_HOSTNAME" and not value:
        value = socket.gethostname()
    return value
