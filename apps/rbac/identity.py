"""
Identity resolution.

IdentityResolver turns a verified session plus an optional impersonation
overlay into an ActorContext. The identity strategies extract those inputs
from an HTTP request:

- JWTIdentityStrategy: Authorization: Bearer <jwt>, plus an optional
  X-Impersonation-Token naming a server-side ImpersonationSession
- DevTokenIdentityStrategy: X-DEV-TOKEN shared secret, for local development

The strategy is chosen once, when the middleware is constructed. The
developer strategy is only ever returned when DEV_AUTH_ENABLED is true, and
settings force that flag off whenever DEBUG is off.
"""
import hmac
import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from django.conf import settings

from apps.core.exceptions import AuthenticationError
from apps.core.logging import SecurityLogger
from apps.rbac.context import ActorContext, Impersonation, ImpersonationToken, VerifiedSession
from apps.rbac.assertions import same_id

logger = logging.getLogger(__name__)

IMPERSONATION_HEADER = 'X-Impersonation-Token'
DEV_TOKEN_HEADER = 'X-DEV-TOKEN'


class IdentityResolver:
    """
    Builds the immutable ActorContext for one request.
    """

    @classmethod
    def resolve(cls, session: Optional[VerifiedSession],
                overlay: Optional[ImpersonationToken] = None, now=None) -> ActorContext:
        """
        Resolve the actor for a verified session and optional overlay.

        With an overlay, the context's identity is the impersonated user and
        original_user_id/original_role record the verified session.

        Raises:
            AuthenticationError: if there is no verified session, or the overlay
                was not issued to this session or has expired
        """
        if session is None:
            raise AuthenticationError('Authentication required')

        if overlay is None:
            return ActorContext(
                user_id=session.user_id,
                role=session.role,
                institution_id=session.institution_id,
                oversight_org_id=session.oversight_org_id,
            )

        if not same_id(overlay.impersonator_user_id, session.user_id):
            SecurityLogger.log_impersonation_overlay_rejected(
                session_user_id=str(session.user_id),
                impersonator_user_id=str(overlay.impersonator_user_id),
            )
            raise AuthenticationError('Impersonation token was not issued to this session')

        if overlay.is_expired(now):
            raise AuthenticationError('Impersonation session has expired')

        return ActorContext(
            user_id=overlay.effective_user_id,
            role=overlay.effective_role,
            institution_id=overlay.effective_institution_id,
            oversight_org_id=overlay.effective_oversight_org_id,
            impersonation=Impersonation(
                effective_user_id=overlay.effective_user_id,
                effective_role=overlay.effective_role,
                effective_institution_id=overlay.effective_institution_id,
                effective_oversight_org_id=overlay.effective_oversight_org_id,
            ),
            original_user_id=session.user_id,
            original_role=session.role,
            impersonation_session_id=overlay.session_id,
        )


class IdentityStrategy(ABC):
    """
    Extracts the verified user and actor context from a request.

    authenticate() returns (None, None) for anonymous requests and raises
    AuthenticationError for credentials that are present but invalid.
    """

    @abstractmethod
    def authenticate(self, request) -> Tuple[Optional[object], Optional[ActorContext]]:
        """Return (user, actor context) for the request, or (None, None) when anonymous."""


class JWTIdentityStrategy(IdentityStrategy):

    def authenticate(self, request):
        from apps.rbac.services import AuthService, ImpersonationService

        token = self._bearer_token(request)
        if not token:
            if request.headers.get(IMPERSONATION_HEADER):
                # An overlay never stands on its own
                raise AuthenticationError('Impersonation requires an authenticated session')
            return None, None

        user = AuthService.get_user_from_jwt(token)
        if user is None:
            raise AuthenticationError('Invalid or expired token')

        session = None
        overlay = None
        impersonation_token = request.headers.get(IMPERSONATION_HEADER)
        if impersonation_token:
            session = ImpersonationService.validate_session(impersonation_token, impersonator=user)
            overlay = session.to_token()

        actor = IdentityResolver.resolve(user.to_verified_session(), overlay)

        # Only activity by the impersonator keeps the session alive
        if session is not None:
            ImpersonationService.touch(session)

        return user, actor

    @staticmethod
    def _bearer_token(request):
        auth_header = request.headers.get('Authorization', '')
        scheme, _, credentials = auth_header.partition(' ')
        if scheme.lower() != 'bearer' or not credentials.strip():
            return None
        return credentials.strip()


class DevTokenIdentityStrategy(IdentityStrategy):
    """
    Developer bypass: a shared secret header stands in for a login.

    The fixed identity is the user named by DEV_AUTH_USER_EMAIL. Requests
    without the header fall through to the wrapped strategy.
    """

    def __init__(self, fallback: IdentityStrategy):
        self.fallback = fallback

    def authenticate(self, request):
        from apps.rbac.models import User

        supplied = request.headers.get(DEV_TOKEN_HEADER)
        if supplied is None:
            return self.fallback.authenticate(request)

        expected = getattr(settings, 'DEV_API_TOKEN', '') or ''
        if not expected or not hmac.compare_digest(supplied.encode('utf-8'), expected.encode('utf-8')):
            raise AuthenticationError('Invalid developer token')

        email = settings.DEV_AUTH_USER_EMAIL
        user = User.objects.active().filter(email=email).first()
        if user is None:
            raise AuthenticationError('Developer identity is not configured')

        SecurityLogger.log_dev_bypass_used(
            user_email=email,
            path=request.path,
            ip_address=request.META.get('REMOTE_ADDR'),
        )
        return user, IdentityResolver.resolve(user.to_verified_session())


def get_identity_strategy() -> IdentityStrategy:
    """Choose the identity strategy for this process."""
    strategy = JWTIdentityStrategy()
    if getattr(settings, 'DEV_AUTH_ENABLED', False):
        logger.warning("Developer token authentication is enabled")
        return DevTokenIdentityStrategy(fallback=strategy)
    return strategy
