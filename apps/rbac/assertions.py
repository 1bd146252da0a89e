"""
Scope assertions.

Three independent predicates over the actor context and an entity's
attributes. Each returns None when the action is allowed and raises
otherwise. None of them perform I/O; a handler composes the ones relevant to
the entity it touches.

Entities may be model instances, plain objects or mappings. Only the
attribute each assertion needs is read: institution_id, owner_user_id or
kind.
"""
from collections import namedtuple
from typing import Any

from apps.core.exceptions import (
    AuthenticationError,
    InstitutionScopeViolation,
    PermissionDeniedError,
    ReviewOnlyViolation,
)
from apps.core.logging import SecurityLogger
from apps.rbac.capabilities import Capability, has_capability
from apps.rbac.roles import Role, unhandled_role

REVIEW_ARTIFACT_KINDS = frozenset({'flag', 'comment', 'recommendation'})

REVIEW_ARTIFACT_CAPABILITIES = {
    'flag': Capability.REVIEW_FLAG,
    'comment': Capability.REVIEW_COMMENT,
    'recommendation': Capability.REVIEW_RECOMMEND,
}

AuthzResult = namedtuple('AuthzResult', ['allowed', 'reason'])

_MISSING = object()


def entity_attr(entity, name) -> Any:
    """Read an attribute from a model instance, object or mapping."""
    if isinstance(entity, dict):
        return entity.get(name)
    value = getattr(entity, name, _MISSING)
    if value is _MISSING:
        return None
    return value


def same_id(left, right) -> bool:
    """Compare identifiers that may be UUIDs or strings."""
    if left is None or right is None:
        return False
    return str(left) == str(right)


def assert_institution_scope(ctx, entity) -> None:
    """
    Allow direct access to a tenant-owned entity.

    Platform operators always pass. Tenant admins and staff must carry an
    institution and it must match the entity's. The oversight role and
    students never pass; the oversight role reads tenant data only through
    the resource-sharing gate.
    """
    role = ctx.effective_role

    if role == Role.PLATFORM_ADMIN:
        return None

    if role == Role.INSTITUTION_ADMIN or role == Role.INSTITUTION_STAFF:
        institution_id = ctx.effective_institution_id
        if not institution_id:
            raise AuthenticationError(
                'Your account is not linked to an institution',
                details={'role': str(role)}
            )
        entity_institution_id = entity_attr(entity, 'institution_id')
        if not same_id(entity_institution_id, institution_id):
            SecurityLogger.log_access_denied(
                ctx,
                'institution_scope_violation',
                entity_institution_id=str(entity_institution_id) if entity_institution_id else None,
            )
            raise InstitutionScopeViolation(
                'Access denied: this record belongs to another institution'
            )
        return None

    if role == Role.QCTO_USER or role == Role.STUDENT:
        raise PermissionDeniedError('Access denied: this action requires an institution role')

    unhandled_role(role)


def assert_student_self_scope(ctx, entity) -> None:
    """
    Restrict students to records they own. A no-op for every other role.
    """
    role = ctx.effective_role

    if role == Role.STUDENT:
        if not same_id(entity_attr(entity, 'owner_user_id'), ctx.effective_user_id):
            SecurityLogger.log_access_denied(ctx, 'self_scope_violation')
            raise PermissionDeniedError('Access denied: you can only access your own records')
        return None

    if role in (Role.PLATFORM_ADMIN, Role.QCTO_USER, Role.INSTITUTION_ADMIN, Role.INSTITUTION_STAFF):
        return None

    unhandled_role(role)


def assert_not_qcto_edit(ctx, entity) -> None:
    """
    Restrict oversight writes to review artifacts. A no-op for every other role.
    """
    role = ctx.effective_role

    if role == Role.QCTO_USER:
        kind = entity_attr(entity, 'kind')
        if not isinstance(kind, str) or kind not in REVIEW_ARTIFACT_KINDS:
            SecurityLogger.log_access_denied(ctx, 'review_only_violation', entity_kind=str(kind))
            raise ReviewOnlyViolation(
                'Oversight users may only create flags, comments and recommendations',
                details={'allowed_kinds': sorted(REVIEW_ARTIFACT_KINDS)}
            )
        return None

    if role in (Role.PLATFORM_ADMIN, Role.INSTITUTION_ADMIN, Role.INSTITUTION_STAFF, Role.STUDENT):
        return None

    unhandled_role(role)


def can_perform_review(ctx, artifact_kind) -> AuthzResult:
    """
    Whether the actor may create a review artifact of the given kind.

    Only the oversight role creates review artifacts, and only the kinds its
    capabilities cover.
    """
    role = ctx.effective_role

    if role == Role.QCTO_USER:
        capability = None
        if isinstance(artifact_kind, str):
            capability = REVIEW_ARTIFACT_CAPABILITIES.get(artifact_kind)
        if capability is None:
            return AuthzResult(False, f'Unknown review artifact kind: {artifact_kind}')
        if not has_capability(role, capability):
            return AuthzResult(False, f'Missing capability {capability}')
        return AuthzResult(True, None)

    if role in (Role.PLATFORM_ADMIN, Role.INSTITUTION_ADMIN, Role.INSTITUTION_STAFF, Role.STUDENT):
        return AuthzResult(False, 'Only oversight reviewers create review artifacts')

    unhandled_role(role)


def check(assertion, ctx, entity) -> AuthzResult:
    """
    Run an assertion and report the outcome instead of raising.

    For listing code that must filter rather than fail. AuthenticationError
    still propagates: a misconfigured account is not a per-record decision.
    """
    try:
        assertion(ctx, entity)
    except PermissionDeniedError as e:
        return AuthzResult(False, e.message)
    return AuthzResult(True, None)
