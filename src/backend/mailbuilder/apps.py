"""Mail builder application"""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class MailBuilderConfig(AppConfig):
    """Configuration class for the mail builder app."""

    name = "mailbuilder"
    app_label = "mailbuilder"
    verbose_name = _("mail builder application")
