"""
RBAC and Authentication services.

Implements:
- AuthService: JWT issue and validation (the verified session)
- ImpersonationService: server-side "view as" session lifecycle
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import jwt
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import (
    AuthenticationError,
    ImpersonationLimitExceeded,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from apps.core.logging import SecurityLogger
from apps.rbac.assertions import AuthzResult, same_id
from apps.rbac.models import ImpersonationSession, User
from apps.rbac.roles import Role, unhandled_role

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service for JWT operations.

    Credential verification (login) happens upstream; this service only
    issues and checks the signed token that carries the verified user id.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """
        Generate JWT token for a user.

        Args:
            user: User instance

        Returns:
            JWT token string
        """
        now = timezone.now()
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Returns:
            Decoded payload dict or None if invalid
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            logger.info("Expired JWT presented")
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        """
        Extract and return the active user from a JWT token.

        Role and institution are read from the database, never from the token.
        """
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        try:
            return User.objects.active().select_related('institution').get(id=user_id)
        except (User.DoesNotExist, DjangoValidationError, ValueError):
            return None


class ImpersonationService:
    """
    Service for "view as" sessions.

    A session binds an impersonator to a target user behind an opaque token.
    Sessions end by completion, revocation, absolute expiry or inactivity.
    """

    @classmethod
    def can_impersonate(cls, impersonator: User, target: User) -> AuthzResult:
        """
        Decide whether impersonator may view as target.

        - Nobody impersonates themselves or an inactive or deleted account
        - Platform administrators may view as anyone else
        - Institution administrators may view as staff and students of their
          own institution
        - Every other role is refused
        """
        if same_id(impersonator.id, target.id):
            return AuthzResult(False, 'You cannot impersonate yourself')

        if target.is_deleted or not target.is_active:
            return AuthzResult(False, 'Target user is not active')

        role = Role(impersonator.role)

        if role == Role.PLATFORM_ADMIN:
            return AuthzResult(True, None)

        if role == Role.INSTITUTION_ADMIN:
            if target.role not in (Role.INSTITUTION_STAFF, Role.STUDENT):
                return AuthzResult(False, 'Institution administrators may only view as staff or students')
            if not same_id(impersonator.institution_id, target.institution_id):
                return AuthzResult(False, 'Target user belongs to another institution')
            return AuthzResult(True, None)

        if role in (Role.QCTO_USER, Role.INSTITUTION_STAFF, Role.STUDENT):
            return AuthzResult(False, 'Your role cannot impersonate other users')

        unhandled_role(role)

    @classmethod
    @transaction.atomic
    def start_session(cls, impersonator: User, target: User, reason: str = '',
                      ip_address: str = None, user_agent: str = '') -> ImpersonationSession:
        """
        Start a session and return it; the caller hands session.token to the client.

        Raises:
            PermissionDeniedError: if impersonator may not view as target
            ImpersonationLimitExceeded: if impersonator already holds the maximum
                number of active sessions
        """
        allowed, reason_denied = cls.can_impersonate(impersonator, target)
        if not allowed:
            SecurityLogger.log_event(
                'impersonation_denied',
                level='warning',
                impersonator_user_id=str(impersonator.id),
                target_user_id=str(target.id),
                reason=reason_denied,
            )
            raise PermissionDeniedError(reason_denied)

        # Serializes concurrent starts by the same impersonator until commit
        User.objects.select_for_update().get(pk=impersonator.pk)

        now = timezone.now()
        cls.expire_stale_sessions(now=now)

        active_count = ImpersonationSession.objects.active_for_impersonator(impersonator).count()
        max_sessions = settings.IMPERSONATION_MAX_ACTIVE_SESSIONS
        if active_count >= max_sessions:
            raise ImpersonationLimitExceeded(
                f'You already have {active_count} active impersonation sessions',
                details={'max_active_sessions': max_sessions}
            )

        session = ImpersonationSession.objects.create(
            impersonator=impersonator,
            target=target,
            token=secrets.token_hex(32),
            reason=reason or '',
            expires_at=now + timedelta(seconds=settings.IMPERSONATION_TOKEN_EXPIRY_SECONDS),
            last_activity_at=now,
            ip_address=ip_address,
            user_agent=user_agent or '',
        )

        SecurityLogger.log_impersonation_started(session, ip_address=ip_address)
        return session

    @classmethod
    def validate_session(cls, token: str, impersonator: Optional[User] = None,
                         now: datetime = None) -> ImpersonationSession:
        """
        Look up an active, unexpired, non-idle session by token.

        When impersonator is given the session must belong to them; a token
        presented by anyone else is rejected before the session is touched.
        A session found past its expiry or inactivity limit is marked EXPIRED.

        Raises:
            AuthenticationError: if the token does not name a usable session
        """
        now = now or timezone.now()

        session = (
            ImpersonationSession.objects
            .select_related('target', 'impersonator')
            .filter(token=token)
            .first()
        )
        if session is None:
            raise AuthenticationError('Invalid impersonation token')

        if impersonator is not None and not same_id(session.impersonator_id, impersonator.id):
            SecurityLogger.log_impersonation_overlay_rejected(
                session_user_id=str(impersonator.id),
                impersonator_user_id=str(session.impersonator_id),
            )
            raise AuthenticationError('Invalid impersonation token')

        if session.status != ImpersonationSession.STATUS_ACTIVE:
            raise AuthenticationError(
                f'Impersonation session is {session.status.lower()}',
                details={'status': session.status}
            )

        if session.is_expired(now) or session.is_idle(now):
            cls._end(session, ImpersonationSession.STATUS_EXPIRED, ended_by=None, now=now)
            raise AuthenticationError(
                'Impersonation session has expired',
                details={'status': ImpersonationSession.STATUS_EXPIRED}
            )

        if session.target.is_deleted or not session.target.is_active:
            cls._end(session, ImpersonationSession.STATUS_EXPIRED, ended_by=None, now=now)
            raise AuthenticationError('Impersonated user is no longer active')

        return session

    @classmethod
    def touch(cls, session: ImpersonationSession, now: datetime = None) -> None:
        """Record activity so the inactivity timeout restarts."""
        session.last_activity_at = now or timezone.now()
        ImpersonationSession.objects.filter(pk=session.pk).update(last_activity_at=session.last_activity_at)

    @classmethod
    def complete_session(cls, session_id, user: User) -> ImpersonationSession:
        """End a session normally. Only the impersonator may complete it."""
        session = cls._get(session_id)

        if not same_id(session.impersonator_id, user.id):
            raise PermissionDeniedError('Only the impersonator can end this session')

        if session.status != ImpersonationSession.STATUS_ACTIVE:
            raise ValidationError(
                f'Impersonation session is already {session.status.lower()}',
                details={'status': session.status}
            )

        return cls._end(session, ImpersonationSession.STATUS_COMPLETED, ended_by=user)

    @classmethod
    def revoke_session(cls, session_id, user: User) -> ImpersonationSession:
        """Revoke a session. Allowed for the impersonator and platform administrators."""
        session = cls._get(session_id)

        if not (same_id(session.impersonator_id, user.id) or user.role == Role.PLATFORM_ADMIN):
            raise PermissionDeniedError('You cannot revoke this impersonation session')

        if session.status != ImpersonationSession.STATUS_ACTIVE:
            raise ValidationError(
                f'Impersonation session is already {session.status.lower()}',
                details={'status': session.status}
            )

        return cls._end(session, ImpersonationSession.STATUS_REVOKED, ended_by=user)

    @classmethod
    def active_sessions_for(cls, user: User) -> List[ImpersonationSession]:
        cls.expire_stale_sessions()
        return list(
            ImpersonationSession.objects
            .active_for_impersonator(user)
            .select_related('target')
        )

    @classmethod
    def expire_stale_sessions(cls, now: datetime = None) -> int:
        """Mark every active session past its limits as EXPIRED. Returns the count."""
        now = now or timezone.now()
        count = ImpersonationSession.objects.stale(now=now).update(
            status=ImpersonationSession.STATUS_EXPIRED,
            ended_at=now,
        )
        if count:
            logger.info(f"Expired {count} stale impersonation sessions")
        return count

    @classmethod
    def _get(cls, session_id) -> ImpersonationSession:
        session = ImpersonationSession.objects.filter(pk=session_id).first()
        if session is None:
            raise NotFoundError('Impersonation session not found')
        return session

    @classmethod
    def _end(cls, session, status, ended_by=None, now=None) -> ImpersonationSession:
        session.status = status
        session.ended_at = now or timezone.now()
        session.ended_by = ended_by
        session.save(update_fields=['status', 'ended_at', 'ended_by', 'updated_at'])
        SecurityLogger.log_impersonation_ended(
            session,
            ended_by_user_id=str(ended_by.id) if ended_by else None,
            outcome=status,
        )
        return session
