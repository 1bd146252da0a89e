"""
RBAC app configuration.
"""
import logging

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class RbacConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.rbac'
    verbose_name = 'RBAC (Role-Based Access Control)'

    def ready(self):
        """Refuse to start with a developer bypass that could reach production."""
        self._validate_dev_auth_configuration()

    def _validate_dev_auth_configuration(self):
        if not getattr(settings, 'DEV_AUTH_ENABLED', False):
            return

        if not settings.DEBUG:
            raise ImproperlyConfigured("DEV_AUTH_ENABLED requires DEBUG=True.")

        if not getattr(settings, 'DEV_API_TOKEN', ''):
            raise ImproperlyConfigured("DEV_AUTH_ENABLED requires DEV_API_TOKEN to be set.")

        logger.warning(
            "Developer token authentication is enabled",
            extra={'dev_user_email': settings.DEV_AUTH_USER_EMAIL}
        )
