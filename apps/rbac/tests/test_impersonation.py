"""
Tests for the impersonation session lifecycle.
"""
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.test import override_settings
from django.utils import timezone

from apps.core.exceptions import (
    AuthenticationError,
    ImpersonationLimitExceeded,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from apps.rbac.models import ImpersonationSession, User
from apps.rbac.roles import Role
from apps.rbac.services import ImpersonationService


@pytest.mark.django_db
class TestCanImpersonate:

    def test_platform_admin_may_view_as_anyone(self, platform_admin, qcto_user, institution_admin, student):
        for target in (qcto_user, institution_admin, student):
            assert ImpersonationService.can_impersonate(platform_admin, target).allowed is True

    def test_nobody_impersonates_themselves(self, platform_admin):
        allowed, reason = ImpersonationService.can_impersonate(platform_admin, platform_admin)

        assert allowed is False
        assert 'yourself' in reason

    def test_inactive_target_refused(self, platform_admin, student):
        student.is_active = False
        student.save()

        assert ImpersonationService.can_impersonate(platform_admin, student).allowed is False

    def test_institution_admin_may_view_as_own_staff_and_students(self, institution_admin, institution_staff, student):
        assert ImpersonationService.can_impersonate(institution_admin, institution_staff).allowed is True
        assert ImpersonationService.can_impersonate(institution_admin, student).allowed is True

    def test_institution_admin_cannot_cross_institutions(self, institution_admin, other_institution):
        outsider = User.objects.create_user(
            email='staff@other.example',
            role=Role.INSTITUTION_STAFF,
            institution=other_institution,
        )

        allowed, reason = ImpersonationService.can_impersonate(institution_admin, outsider)

        assert allowed is False
        assert 'another institution' in reason

    def test_institution_admin_cannot_view_as_admins_or_oversight(self, institution_admin, institution,
                                                                  platform_admin, qcto_user):
        peer = User.objects.create_user(
            email='deputy@academy.example',
            role=Role.INSTITUTION_ADMIN,
            institution=institution,
        )

        for target in (peer, platform_admin, qcto_user):
            assert ImpersonationService.can_impersonate(institution_admin, target).allowed is False

    @pytest.mark.parametrize('impersonator_fixture', ['qcto_user', 'institution_staff', 'student'])
    def test_other_roles_refused(self, request, impersonator_fixture, platform_admin):
        impersonator = request.getfixturevalue(impersonator_fixture)

        assert ImpersonationService.can_impersonate(impersonator, platform_admin).allowed is False


@pytest.mark.django_db
class TestStartSession:

    def test_creates_active_session(self, platform_admin, student):
        session = ImpersonationService.start_session(
            platform_admin, student, reason='Ticket 12', ip_address='10.0.0.1', user_agent='pytest'
        )

        assert session.status == ImpersonationSession.STATUS_ACTIVE
        assert session.impersonator == platform_admin
        assert session.target == student
        assert len(session.token) == 64
        assert session.expires_at > timezone.now()
        assert session.reason == 'Ticket 12'

    def test_tokens_are_unique(self, platform_admin, student, institution_staff):
        first = ImpersonationService.start_session(platform_admin, student)
        second = ImpersonationService.start_session(platform_admin, institution_staff)

        assert first.token != second.token

    def test_denied_pairs_raise(self, institution_staff, student):
        with pytest.raises(PermissionDeniedError):
            ImpersonationService.start_session(institution_staff, student)

        assert ImpersonationSession.objects.count() == 0

    @override_settings(IMPERSONATION_MAX_ACTIVE_SESSIONS=2)
    def test_active_session_limit(self, platform_admin, student, institution_staff, qcto_user):
        ImpersonationService.start_session(platform_admin, student)
        ImpersonationService.start_session(platform_admin, institution_staff)

        with pytest.raises(ImpersonationLimitExceeded) as exc_info:
            ImpersonationService.start_session(platform_admin, qcto_user)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {'max_active_sessions': 2}

    @override_settings(IMPERSONATION_MAX_ACTIVE_SESSIONS=1)
    def test_stale_sessions_do_not_count_towards_limit(self, platform_admin, student, institution_staff):
        old = ImpersonationService.start_session(platform_admin, student)
        ImpersonationSession.objects.filter(pk=old.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

        ImpersonationService.start_session(platform_admin, institution_staff)

        old.refresh_from_db()
        assert old.status == ImpersonationSession.STATUS_EXPIRED

    def test_impersonator_row_locked_before_counting(self, platform_admin, student):
        calls = MagicMock()
        calls.select_for_update.side_effect = User.objects.select_for_update
        calls.active_for_impersonator.side_effect = ImpersonationSession.objects.active_for_impersonator

        with patch.object(User.objects, 'select_for_update', calls.select_for_update), \
                patch.object(ImpersonationSession.objects, 'active_for_impersonator',
                             calls.active_for_impersonator):
            ImpersonationService.start_session(platform_admin, student)

        assert [name for name, _, _ in calls.mock_calls][:2] == ['select_for_update', 'active_for_impersonator']


@pytest.mark.django_db
class TestValidateSession:

    def test_valid_token(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)

        assert ImpersonationService.validate_session(session.token) == session

    def test_unknown_token(self):
        with pytest.raises(AuthenticationError):
            ImpersonationService.validate_session('0' * 64)

    def test_expired_session_is_marked_expired(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)

        with pytest.raises(AuthenticationError):
            ImpersonationService.validate_session(session.token, now=session.expires_at + timedelta(seconds=1))

        session.refresh_from_db()
        assert session.status == ImpersonationSession.STATUS_EXPIRED
        assert session.ended_at is not None

    @override_settings(IMPERSONATION_INACTIVITY_TIMEOUT_SECONDS=60)
    def test_idle_session_is_marked_expired(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)

        with pytest.raises(AuthenticationError):
            ImpersonationService.validate_session(
                session.token, now=session.last_activity_at + timedelta(seconds=61)
            )

        session.refresh_from_db()
        assert session.status == ImpersonationSession.STATUS_EXPIRED

    def test_ended_session_rejected(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)
        ImpersonationService.complete_session(session.id, platform_admin)

        with pytest.raises(AuthenticationError) as exc_info:
            ImpersonationService.validate_session(session.token)

        assert exc_info.value.details == {'status': ImpersonationSession.STATUS_COMPLETED}

    def test_deactivated_target_ends_session(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)
        User.objects.filter(pk=student.pk).update(is_active=False)

        with pytest.raises(AuthenticationError):
            ImpersonationService.validate_session(session.token)

        session.refresh_from_db()
        assert session.status == ImpersonationSession.STATUS_EXPIRED

    def test_token_built_from_target_row(self, platform_admin, student):
        session = ImpersonationService.validate_session(
            ImpersonationService.start_session(platform_admin, student).token
        )

        token = session.to_token()

        assert token.impersonator_user_id == str(platform_admin.id)
        assert token.effective_user_id == str(student.id)
        assert token.effective_role == Role.STUDENT
        assert token.effective_institution_id == str(student.institution_id)

    def test_owner_passes_binding(self, platform_admin, student):
        session = ImpersonationService.validate_session(
            ImpersonationService.start_session(platform_admin, student).token, impersonator=platform_admin
        )

        assert session.impersonator == platform_admin

    def test_expired_token_from_another_user_leaves_session_active(self, platform_admin, student, qcto_user):
        session = ImpersonationService.start_session(platform_admin, student)

        with patch('apps.rbac.services.SecurityLogger.log_impersonation_overlay_rejected') as mock_log:
            with pytest.raises(AuthenticationError) as exc_info:
                ImpersonationService.validate_session(
                    session.token, impersonator=qcto_user, now=session.expires_at + timedelta(seconds=1)
                )

        session.refresh_from_db()
        assert session.status == ImpersonationSession.STATUS_ACTIVE
        assert session.ended_at is None
        assert exc_info.value.details == {}
        mock_log.assert_called_once_with(
            session_user_id=str(qcto_user.id), impersonator_user_id=str(platform_admin.id)
        )

    def test_ended_status_not_revealed_to_another_user(self, platform_admin, student, qcto_user):
        session = ImpersonationService.start_session(platform_admin, student)
        ImpersonationService.complete_session(session.id, platform_admin)

        with pytest.raises(AuthenticationError) as exc_info:
            ImpersonationService.validate_session(session.token, impersonator=qcto_user)

        assert 'status' not in exc_info.value.details


@pytest.mark.django_db
class TestEndingSessions:

    def test_impersonator_completes(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)

        ended = ImpersonationService.complete_session(session.id, platform_admin)

        assert ended.status == ImpersonationSession.STATUS_COMPLETED
        assert ended.ended_by == platform_admin

    def test_only_impersonator_completes(self, institution_admin, student, platform_admin):
        session = ImpersonationService.start_session(institution_admin, student)

        with pytest.raises(PermissionDeniedError):
            ImpersonationService.complete_session(session.id, platform_admin)

    def test_platform_admin_revokes_any_session(self, institution_admin, student, platform_admin):
        session = ImpersonationService.start_session(institution_admin, student)

        revoked = ImpersonationService.revoke_session(session.id, platform_admin)

        assert revoked.status == ImpersonationSession.STATUS_REVOKED
        assert revoked.ended_by == platform_admin

    def test_others_cannot_revoke(self, institution_admin, student, institution_staff):
        session = ImpersonationService.start_session(institution_admin, student)

        with pytest.raises(PermissionDeniedError):
            ImpersonationService.revoke_session(session.id, institution_staff)

    def test_cannot_end_twice(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)
        ImpersonationService.revoke_session(session.id, platform_admin)

        with pytest.raises(ValidationError):
            ImpersonationService.complete_session(session.id, platform_admin)

    def test_unknown_session(self, platform_admin):
        import uuid

        with pytest.raises(NotFoundError):
            ImpersonationService.revoke_session(uuid.uuid4(), platform_admin)

    def test_active_sessions_for(self, platform_admin, student, institution_staff):
        kept = ImpersonationService.start_session(platform_admin, student)
        ended = ImpersonationService.start_session(platform_admin, institution_staff)
        ImpersonationService.complete_session(ended.id, platform_admin)

        assert ImpersonationService.active_sessions_for(platform_admin) == [kept]

    def test_expire_stale_sessions(self, platform_admin, student):
        session = ImpersonationService.start_session(platform_admin, student)

        count = ImpersonationService.expire_stale_sessions(now=session.expires_at + timedelta(seconds=1))

        assert count == 1
        session.refresh_from_db()
        assert session.status == ImpersonationSession.STATUS_EXPIRED
