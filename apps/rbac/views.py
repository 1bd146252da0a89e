"""
RBAC REST API views.

Implements endpoints for:
- The current actor context
- Impersonation sessions (start, list, end, revoke)
- Oversight access checks backed by the resource-sharing gate
"""
import logging

from asgiref.sync import async_to_sync
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import NotFoundError, PermissionDeniedError
from apps.core.permissions import HasCapability, requires_capabilities
from apps.rbac.capabilities import Capability
from apps.rbac.models import User
from apps.rbac.serializers import (
    ActorContextSerializer,
    ImpersonationSessionCreatedSerializer,
    ImpersonationSessionSerializer,
    ResourceIdsSerializer,
    StartImpersonationSerializer,
    UserSummarySerializer,
    validate_resource_kind,
)
from apps.rbac.services import ImpersonationService
from apps.rbac.sharing import get_sharing_gate

logger = logging.getLogger(__name__)


class ActorProfileView(APIView):
    """
    GET /v1/auth/me

    Return the resolved actor context and the verified user behind it.
    """
    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Authentication'],
        summary='Get current actor',
        description='''
Return the identity that authorization decisions use for this request.

When an `X-Impersonation-Token` header is present, `actor` describes the
impersonated user and `actor.original_user_id` / `actor.original_role` the
administrator behind the session. `user` is always the verified caller.
        ''',
        responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        return Response({
            'actor': ActorContextSerializer(request.actor).data,
            'user': UserSummarySerializer(request.user).data,
        })


@requires_capabilities(Capability.IMPERSONATE)
class ImpersonationSessionListCreateView(APIView):
    """
    GET  /v1/impersonation/sessions
    POST /v1/impersonation/sessions

    List the caller's active sessions or start a new one.
    """
    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Impersonation'],
        summary='List active impersonation sessions',
        responses={200: ImpersonationSessionSerializer(many=True)},
    )
    def get(self, request):
        sessions = ImpersonationService.active_sessions_for(request.user)
        return Response(ImpersonationSessionSerializer(sessions, many=True).data)

    @extend_schema(
        tags=['Impersonation'],
        summary='Start impersonation session',
        description='''
Start viewing the platform as another user.

Platform administrators may view as any active user. Institution
administrators may view as staff and students of their own institution.
Send the returned `token` as the `X-Impersonation-Token` header together
with your own bearer token. Sessions lapse after the absolute expiry or
after a period of inactivity.
        ''',
        request=StartImpersonationSerializer,
        responses={
            201: ImpersonationSessionCreatedSerializer,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Start Request',
                value={'target_user_id': '6f1c2f9e-6a55-4b8e-9a51-2c8f1f0b7d11', 'reason': 'Support ticket 4411'},
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        if request.actor.is_impersonating:
            raise PermissionDeniedError('End the current impersonation session before starting another')

        serializer = StartImpersonationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        target = User.objects.filter(id=serializer.validated_data['target_user_id']).first()
        if target is None:
            raise NotFoundError('User not found')

        session = ImpersonationService.start_session(
            impersonator=request.user,
            target=target,
            reason=serializer.validated_data.get('reason', ''),
            ip_address=request.META.get('REMOTE_ADDR'),
            user_agent=request.META.get('HTTP_USER_AGENT', ''),
        )
        return Response(ImpersonationSessionCreatedSerializer(session).data, status=status.HTTP_201_CREATED)


class ImpersonationSessionEndView(APIView):
    """
    POST /v1/impersonation/sessions/{session_id}/end

    Complete a session. Acts on the verified caller, so it works while the
    session is in use.
    """
    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Impersonation'],
        summary='End impersonation session',
        request=None,
        responses={200: ImpersonationSessionSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def post(self, request, session_id):
        session = ImpersonationService.complete_session(session_id, request.user)
        return Response(ImpersonationSessionSerializer(session).data)


class ImpersonationSessionRevokeView(APIView):
    """
    POST /v1/impersonation/sessions/{session_id}/revoke

    Revoke a session. Allowed for the impersonator and platform administrators.
    """
    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Impersonation'],
        summary='Revoke impersonation session',
        request=None,
        responses={200: ImpersonationSessionSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def post(self, request, session_id):
        session = ImpersonationService.revoke_session(session_id, request.user)
        return Response(ImpersonationSessionSerializer(session).data)


class OversightResourceAccessView(APIView):
    """
    GET /v1/oversight/resources/{resource_kind}/{resource_id}/access

    200 if the actor may read the resource, 403 otherwise.
    """
    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Oversight'],
        summary='Check access to a shared resource',
        description='''
Check whether the current actor may read a resource through the
resource-sharing rules.

The oversight role sees a resource while it is linked to an approved,
submitted or under-review Submission, or to an approved, unexpired Request.
Platform administrators see everything. Institution roles and students
are refused here: they read their own data directly.
        ''',
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def get(self, request, resource_kind, resource_id):
        kind = validate_resource_kind(resource_kind)
        async_to_sync(get_sharing_gate().assert_can_read)(request.actor, kind, resource_id)
        return Response({
            'resource_kind': str(kind),
            'resource_id': resource_id,
            'readable': True,
        })


class OversightReadableResourcesView(APIView):
    """
    POST /v1/oversight/resources/{resource_kind}/readable

    Filter a list of resource ids down to those the actor may read.
    """
    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Oversight'],
        summary='Filter readable resources',
        request=ResourceIdsSerializer,
        responses={200: OpenApiTypes.OBJECT},
    )
    def post(self, request, resource_kind):
        kind = validate_resource_kind(resource_kind)
        serializer = ResourceIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        readable = async_to_sync(get_sharing_gate().filter_readable)(
            request.actor, kind, serializer.validated_data['resource_ids']
        )
        return Response({'resource_kind': str(kind), 'resource_ids': readable})


class OversightInstitutionAccessView(APIView):
    """
    GET /v1/oversight/institutions/{institution_id}/access

    Whether the actor has any foothold in the institution.
    """
    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Oversight'],
        summary='Check access to an institution',
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request, institution_id):
        readable = async_to_sync(get_sharing_gate().can_read_institution)(request.actor, institution_id)
        return Response({'institution_id': str(institution_id), 'readable': readable})
