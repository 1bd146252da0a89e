"""
Static role to capability table.

has_capability() is a coarse pre-check: it says what a role may do in
general, never which record it may do it to. Tenant- and self-owned records
still go through apps.rbac.assertions, and oversight reads through
apps.rbac.sharing.
"""
from django.db import models

from apps.core.exceptions import PermissionDeniedError
from apps.rbac.roles import Role


class Capability(models.TextChoices):
    INSTITUTION_PROFILE_EDIT = 'institution:profile:edit', 'Edit institution profile'
    STAFF_INVITE = 'staff:invite', 'Invite staff'
    STAFF_ASSIGN_ROLES = 'staff:assign_roles', 'Assign staff roles'
    STAFF_DEACTIVATE = 'staff:deactivate', 'Deactivate staff'
    FORM5_VIEW = 'form5:view', 'View readiness (Form 5)'
    FORM5_EDIT = 'form5:edit', 'Edit readiness (Form 5)'
    FORM5_SUBMIT = 'form5:submit', 'Submit readiness (Form 5)'
    EVIDENCE_VIEW = 'evidence:view', 'View evidence'
    EVIDENCE_UPLOAD = 'evidence:upload', 'Upload evidence'
    EVIDENCE_REPLACE = 'evidence:replace', 'Replace evidence'
    LEARNER_VIEW = 'learner:view', 'View learners'
    LEARNER_CREATE = 'learner:create', 'Create learners'
    LEARNER_EDIT = 'learner:edit', 'Edit learners'
    LEARNER_ARCHIVE = 'learner:archive', 'Archive learners'
    ENROLMENT_CREATE = 'enrolment:create', 'Create enrolments'
    ENROLMENT_EDIT_STATUS = 'enrolment:edit_status', 'Change enrolment status'
    ATTENDANCE_CAPTURE = 'attendance:capture', 'Capture attendance'
    ATTENDANCE_VIEW = 'attendance:view', 'View attendance'
    AUDIT_VIEW = 'audit:view', 'View audit logs'
    AUDIT_EXPORT = 'audit:export', 'Export audit logs'
    REPORTS_VIEW = 'reports:view', 'View reports'
    REPORTS_EXPORT = 'reports:export', 'Export reports'
    FEATURE_APPROVE = 'feature:approve', 'Approve featured listings'
    FEATURE_ALERTS = 'feature:alerts', 'Manage feature alerts'
    REVIEW_FLAG = 'review:flag', 'Raise review flags'
    REVIEW_COMMENT = 'review:comment', 'Comment on reviews'
    REVIEW_RECOMMEND = 'review:recommend', 'Record review recommendations'
    OVERSIGHT_AUDIT_READ = 'oversight:audit_read', 'Read oversight audit trail'
    OVERSIGHT_EXPORT = 'oversight:export', 'Export oversight data'
    OVERSIGHT_TEAM_MANAGE = 'oversight:team_manage', 'Manage oversight team'
    LEADS_VIEW = 'leads:view', 'View leads'
    PUBLIC_PROFILE_MANAGE = 'public_profile:manage', 'Manage public profile'
    IMPERSONATE = 'users:impersonate', 'View as another user'


CAPABILITY_TABLE = {
    Role.PLATFORM_ADMIN: frozenset({
        Capability.INSTITUTION_PROFILE_EDIT,
        Capability.STAFF_INVITE,
        Capability.STAFF_ASSIGN_ROLES,
        Capability.STAFF_DEACTIVATE,
        Capability.FORM5_VIEW,
        Capability.FORM5_EDIT,
        Capability.FORM5_SUBMIT,
        Capability.EVIDENCE_VIEW,
        Capability.EVIDENCE_UPLOAD,
        Capability.EVIDENCE_REPLACE,
        Capability.LEARNER_VIEW,
        Capability.LEARNER_CREATE,
        Capability.LEARNER_EDIT,
        Capability.LEARNER_ARCHIVE,
        Capability.ENROLMENT_CREATE,
        Capability.ENROLMENT_EDIT_STATUS,
        Capability.ATTENDANCE_CAPTURE,
        Capability.ATTENDANCE_VIEW,
        Capability.AUDIT_VIEW,
        Capability.AUDIT_EXPORT,
        Capability.REPORTS_VIEW,
        Capability.REPORTS_EXPORT,
        Capability.FEATURE_APPROVE,
        Capability.FEATURE_ALERTS,
        Capability.OVERSIGHT_TEAM_MANAGE,
        Capability.LEADS_VIEW,
        Capability.PUBLIC_PROFILE_MANAGE,
        Capability.IMPERSONATE,
    }),
    Role.QCTO_USER: frozenset({
        Capability.FORM5_VIEW,
        Capability.EVIDENCE_VIEW,
        Capability.REVIEW_FLAG,
        Capability.REVIEW_COMMENT,
        Capability.REVIEW_RECOMMEND,
        Capability.OVERSIGHT_AUDIT_READ,
        Capability.OVERSIGHT_EXPORT,
        Capability.LEARNER_VIEW,
        Capability.ATTENDANCE_VIEW,
        Capability.AUDIT_VIEW,
        Capability.AUDIT_EXPORT,
        Capability.REPORTS_VIEW,
        Capability.REPORTS_EXPORT,
    }),
    Role.INSTITUTION_ADMIN: frozenset({
        Capability.INSTITUTION_PROFILE_EDIT,
        Capability.STAFF_INVITE,
        Capability.STAFF_ASSIGN_ROLES,
        Capability.STAFF_DEACTIVATE,
        Capability.FORM5_VIEW,
        Capability.FORM5_EDIT,
        Capability.FORM5_SUBMIT,
        Capability.EVIDENCE_VIEW,
        Capability.EVIDENCE_UPLOAD,
        Capability.EVIDENCE_REPLACE,
        Capability.LEARNER_VIEW,
        Capability.LEARNER_CREATE,
        Capability.LEARNER_EDIT,
        Capability.LEARNER_ARCHIVE,
        Capability.ENROLMENT_CREATE,
        Capability.ENROLMENT_EDIT_STATUS,
        Capability.ATTENDANCE_CAPTURE,
        Capability.ATTENDANCE_VIEW,
        Capability.AUDIT_VIEW,
        Capability.REPORTS_VIEW,
        Capability.REPORTS_EXPORT,
        Capability.LEADS_VIEW,
        Capability.PUBLIC_PROFILE_MANAGE,
        Capability.IMPERSONATE,
    }),
    Role.INSTITUTION_STAFF: frozenset({
        Capability.FORM5_VIEW,
        Capability.FORM5_EDIT,
        Capability.EVIDENCE_VIEW,
        Capability.EVIDENCE_UPLOAD,
        Capability.EVIDENCE_REPLACE,
        Capability.LEARNER_VIEW,
        Capability.LEARNER_CREATE,
        Capability.LEARNER_EDIT,
        Capability.ENROLMENT_CREATE,
        Capability.ATTENDANCE_CAPTURE,
        Capability.ATTENDANCE_VIEW,
        Capability.AUDIT_VIEW,
        Capability.REPORTS_VIEW,
        Capability.LEADS_VIEW,
    }),
    # Self-only: the record itself is checked by assert_student_self_scope
    Role.STUDENT: frozenset({
        Capability.LEARNER_VIEW,
        Capability.ATTENDANCE_VIEW,
    }),
}


def capabilities_for(role) -> frozenset:
    """Return the capability set of a role; empty for unknown roles."""
    try:
        role = Role(role)
    except ValueError:
        return frozenset()
    return CAPABILITY_TABLE.get(role, frozenset())


def has_capability(role, capability) -> bool:
    """
    Return whether a role holds a capability.

    Total: unknown roles and unknown capabilities both yield False.
    """
    try:
        capability = Capability(capability)
    except ValueError:
        return False
    return capability in capabilities_for(role)


def require_capability(ctx, capability):
    """
    Raise PermissionDeniedError unless the actor's effective role holds capability.
    """
    if not has_capability(ctx.effective_role, capability):
        raise PermissionDeniedError(
            'You do not have permission to perform this action',
            details={'required_capability': str(capability)}
        )
