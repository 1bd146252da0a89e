"""
Structured JSON logging, PII masking and security event logging.
"""
import json
import logging
import re
import traceback
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive data in logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|bearer)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE
    )
    BEARER_PATTERN = re.compile(r'(Bearer\s+)[A-Za-z0-9\-_.=]+')

    # Sensitive field names that should be masked
    SENSITIVE_FIELDS = {
        'email', 'email_address',
        'password', 'password_hash',
        'token', 'access_token', 'bearer_token', 'impersonation_token',
        'authorization', 'dev_api_token',
        'secret', 'secret_key', 'jwt_secret_key',
        'national_id', 'id_number',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        """Mask tokens, keys and passwords in text."""
        if not isinstance(text, str):
            return text
        text = cls.BEARER_PATTERN.sub(r'\1********', text)
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        return cls.mask_secrets(cls.mask_email(text))

    @classmethod
    def is_sensitive(cls, key):
        key = key.lower()
        return any(sensitive in key for sensitive in cls.SENSITIVE_FIELDS)

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if cls.is_sensitive(key) and value and not isinstance(value, (dict, list)):
                masked[key] = '********'
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value
        return masked


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Includes request_id and actor_user_id when the logging filter has set them,
    and masks sensitive data everywhere.
    """

    RESERVED = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id', 'actor_user_id',
    }

    def format(self, record):
        log_data = {
            'timestamp': timezone.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if hasattr(record, 'actor_user_id'):
            log_data['actor_user_id'] = str(record.actor_user_id)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED or key.startswith('_'):
                continue
            if PIIMasker.is_sensitive(key) and value:
                log_data[key] = '********'
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized security event logging.

    Every event goes to the 'security' logger with structured, masked data.
    Critical events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'impersonation_overlay_rejected',
        'impersonation_revoked',
        'dev_auth_bypass_used',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'access_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (actor_user_id, ip_address, ...)

        Example:
            >>> SecurityLogger.log_event(
            ...     'access_denied',
            ...     actor_user_id='123',
            ...     resource_kind='LEARNER'
            ... )
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'event_timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
                extras=log_data
            )

    @staticmethod
    def log_access_denied(ctx, reason: str, **context):
        """
        Log an authorization denial against the effective identity.

        The original identity is recorded separately for audit attribution.
        """
        SecurityLogger.log_event(
            'access_denied',
            level='warning',
            reason=reason,
            effective_user_id=str(ctx.effective_user_id) if ctx else None,
            effective_role=str(ctx.effective_role) if ctx else None,
            original_user_id=str(ctx.original_user_id) if ctx and ctx.original_user_id else None,
            **context
        )

    @staticmethod
    def log_impersonation_started(session, ip_address: str = None):
        SecurityLogger.log_event(
            'impersonation_started',
            level='info',
            session_id=str(session.id),
            impersonator_user_id=str(session.impersonator_id),
            target_user_id=str(session.target_id),
            expires_at=session.expires_at.isoformat(),
            ip_address=ip_address,
        )

    @staticmethod
    def log_impersonation_ended(session, ended_by_user_id: str, outcome: str):
        """
        Log the end of an impersonation session.

        Args:
            session: ImpersonationSession instance
            ended_by_user_id: User who ended the session (None when it lapsed)
            outcome: Final status ('COMPLETED', 'REVOKED' or 'EXPIRED')
        """
        event_type = 'impersonation_revoked' if outcome == 'REVOKED' else 'impersonation_ended'
        SecurityLogger.log_event(
            event_type,
            level='info' if outcome != 'REVOKED' else 'warning',
            session_id=str(session.id),
            impersonator_user_id=str(session.impersonator_id),
            target_user_id=str(session.target_id),
            ended_by_user_id=ended_by_user_id,
            outcome=outcome,
        )

    @staticmethod
    def log_impersonation_overlay_rejected(session_user_id: str, impersonator_user_id: str, ip_address: str = None):
        """
        Log an impersonation overlay presented by a session that did not create it.

        This is a critical event: it means a token leaked or was replayed.
        """
        SecurityLogger.log_event(
            'impersonation_overlay_rejected',
            level='error',
            session_user_id=session_user_id,
            impersonator_user_id=impersonator_user_id,
            ip_address=ip_address,
        )

    @staticmethod
    def log_dev_bypass_used(user_email: str, path: str, ip_address: str = None):
        SecurityLogger.log_event(
            'dev_auth_bypass_used',
            level='warning',
            user_email=user_email,
            path=path,
            ip_address=ip_address,
        )
