"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the identity set by ActorContextMiddleware.

    The middleware resolves the verified user and the actor context once per
    request. This class hands both to DRF: request.user is the verified
    (original) user and request.auth is the ActorContext that every
    authorization decision reads.
    """

    def authenticate(self, request):
        """
        Return the user and actor context from the middleware if present.

        Returns:
            tuple: (user, actor) if an actor was resolved, None otherwise
        """
        django_request = request._request

        actor = getattr(django_request, 'actor', None)
        if actor is None:
            return None

        return (django_request.user, actor)

    def authenticate_header(self, request):
        # Makes DRF answer 401 rather than 403 for anonymous callers
        return 'Bearer'
