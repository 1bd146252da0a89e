"""
Actor context middleware.

Resolves the request's identity once, before any view runs, and attaches:
- request.user: the verified (original) user
- request.actor: the immutable ActorContext every authorization check reads
"""
import logging
import threading

from django.utils.deprecation import MiddlewareMixin

from apps.core.exceptions import AuthenticationError, error_response
from apps.rbac.identity import get_identity_strategy

logger = logging.getLogger(__name__)


class ActorContextMiddleware(MiddlewareMixin):
    """
    Run the process-wide identity strategy and attach the actor context.

    Anonymous requests pass through with request.actor = None; views decide
    whether they need an actor. Present-but-invalid credentials are rejected
    here with a 401.
    """

    PUBLIC_PATHS = [
        '/v1/health',
        '/schema',
        '/admin/',
    ]

    def __init__(self, get_response=None):
        super().__init__(get_response)
        self.strategy = get_identity_strategy()

    def process_request(self, request):
        request.actor = None

        if self._is_public_path(request.path):
            return None

        request_id = getattr(request, 'request_id', None)

        try:
            user, actor = self.strategy.authenticate(request)
        except AuthenticationError as e:
            logger.warning(
                f"Authentication failed: {e.message}",
                extra={'request_id': request_id, 'path': request.path}
            )
            return error_response(e, request_id)

        if actor is None:
            return None

        request.actor = actor
        if user is not None:
            request.user = user

        threading.current_thread().actor_user_id = actor.audit_user_id

        logger.debug(
            f"Actor context set: {actor.effective_role}",
            extra={
                'request_id': request_id,
                'effective_user_id': actor.effective_user_id,
                'is_impersonating': actor.is_impersonating,
            }
        )
        return None

    def _is_public_path(self, path):
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)
