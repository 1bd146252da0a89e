from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import sys

logger = logging.getLogger(__name__)

KEY_HINT = "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Critical security configuration must be in place before the
        application starts accepting requests.
        """
        # Skip validation for management commands other than runserver/test
        if 'gunicorn' not in sys.argv[0] and len(sys.argv) > 1 and sys.argv[1] not in ['runserver', 'test']:
            return

        self._validate_jwt_configuration()
        self._validate_security_settings()
        self._validate_impersonation_settings()

        logger.info("All startup security validations passed")

    def _validate_jwt_configuration(self):
        """Validate JWT secret key configuration."""
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {KEY_HINT}")

        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(jwt_secret)}. {KEY_HINT}"
            )

        if jwt_secret == secret_key:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {KEY_HINT}")

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy. "
                f"Found only {unique_chars} unique characters, need at least 16. {KEY_HINT}"
            )

        logger.info("JWT configuration validated")

    def _validate_security_settings(self):
        """Validate general security settings."""
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not secret_key:
            raise ImproperlyConfigured("SECRET_KEY must be set in environment variables.")

        if not settings.DEBUG:
            weak_patterns = ['change-me', 'insecure', 'django-insecure', '12345', 'password']
            secret_lower = secret_key.lower()
            for pattern in weak_patterns:
                if pattern in secret_lower:
                    raise ImproperlyConfigured(
                        f"SECRET_KEY appears to be a default or weak value (contains '{pattern}')."
                    )

            if not getattr(settings, 'SECURE_SSL_REDIRECT', False):
                logger.warning(
                    "SECURE_SSL_REDIRECT is not enabled in production. "
                    "HTTPS should be enforced for security."
                )

        logger.info("Security settings validated")

    def _validate_impersonation_settings(self):
        """Session lifetime and limits must describe a session that can exist."""
        expiry = settings.IMPERSONATION_TOKEN_EXPIRY_SECONDS
        inactivity = settings.IMPERSONATION_INACTIVITY_TIMEOUT_SECONDS
        max_sessions = settings.IMPERSONATION_MAX_ACTIVE_SESSIONS

        if expiry <= 0 or inactivity <= 0:
            raise ImproperlyConfigured(
                "IMPERSONATION_TOKEN_EXPIRY_SECONDS and IMPERSONATION_INACTIVITY_TIMEOUT_SECONDS must be positive."
            )

        if max_sessions < 1:
            raise ImproperlyConfigured("IMPERSONATION_MAX_ACTIVE_SESSIONS must be at least 1.")

        if inactivity > expiry:
            logger.warning(
                "Impersonation inactivity timeout exceeds session expiry and will never apply",
                extra={'expiry_seconds': expiry, 'inactivity_seconds': inactivity}
            )
