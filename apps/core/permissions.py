"""
DRF permission classes and decorators for capability enforcement.

This module provides:
- HasCapability: DRF permission class that enforces capability requirements
- @requires_capabilities: Decorator to declare required capabilities on views
"""
import logging
from functools import wraps
from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


class HasCapability(BasePermission):
    """
    DRF permission class that enforces capability requirements on API endpoints.

    This permission class:
    1. Requires an actor context (set by ActorContextMiddleware)
    2. Checks if view has required_capabilities attribute
    3. Verifies the effective role holds every required capability
    4. Logs denials with the missing capabilities

    The capability table is a coarse pre-check. Views touching tenant-owned or
    self-owned entities still run the scope assertions on the entity itself.

    Usage in views:
        class MyView(APIView):
            permission_classes = [HasCapability]
            required_capabilities = [Capability.LEARNER_VIEW]

    Or use with decorator:
        @requires_capabilities(Capability.LEARNER_VIEW)
        class MyView(APIView):
            ...
    """

    def has_permission(self, request, view):
        """
        Check if the actor's effective role has all required capabilities.

        Args:
            request: DRF request object with auth set to the ActorContext
            view: DRF view instance with optional required_capabilities attribute

        Returns:
            bool: True if all required capabilities are present, False otherwise
        """
        from apps.rbac.capabilities import has_capability

        actor = getattr(request, 'actor', None)
        if actor is None:
            return False

        required = getattr(view, 'required_capabilities', None)
        if not required:
            return True

        if isinstance(required, str):
            required = {required}
        else:
            required = set(required)

        missing = {cap for cap in required if not has_capability(actor.effective_role, cap)}

        if missing:
            logger.warning(
                f"Permission denied: role {actor.effective_role} missing capabilities: {sorted(missing)}",
                extra={
                    'required_capabilities': sorted(str(cap) for cap in required),
                    'missing_capabilities': sorted(str(cap) for cap in missing),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            SecurityLogger.log_access_denied(
                actor,
                'missing_capability',
                missing_capabilities=sorted(str(cap) for cap in missing),
                path=request.path,
            )
            return False

        return True


def requires_capabilities(*capabilities):
    """
    Decorator to declare required capabilities on view classes or methods.

    Sets the required_capabilities attribute on the view, which is then
    checked by the HasCapability permission class.

    Usage:
        @requires_capabilities(Capability.REPORTS_VIEW)
        class ReportView(APIView):
            permission_classes = [HasCapability]

    Or on individual methods:
        class LearnerView(APIView):
            permission_classes = [HasCapability]

            @requires_capabilities(Capability.LEARNER_EDIT)
            def post(self, request):
                pass
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_capabilities = set(capabilities)
            return view_or_method

        # DRF runs permission checks in initial(), before the handler is
        # dispatched, so method-level declarations are checked here.
        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            self.required_capabilities = set(capabilities)
            self.check_permissions(request)
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_capabilities = set(capabilities)
        return wrapped

    return decorator
