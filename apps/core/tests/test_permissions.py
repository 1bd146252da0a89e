"""
Tests for capability-based permission enforcement.
"""
from unittest.mock import Mock, patch

import pytest
from rest_framework.test import APIRequestFactory

from apps.core.permissions import HasCapability, requires_capabilities
from apps.rbac.capabilities import Capability
from apps.rbac.roles import Role
from apps.rbac.tests.fakes import make_actor, make_impersonating_actor


@pytest.fixture
def request_factory():
    return APIRequestFactory()


def make_request(request_factory, actor):
    request = request_factory.get('/v1/learners')
    request.actor = actor
    return request


def make_view(*capabilities):
    view = Mock()
    view.required_capabilities = set(capabilities) if capabilities else None
    return view


class TestHasCapability:

    def test_no_actor_denied(self, request_factory):
        request = request_factory.get('/v1/learners')

        assert HasCapability().has_permission(request, make_view()) is False

    def test_no_requirements_allows_any_actor(self, request_factory):
        request = make_request(request_factory, make_actor(Role.STUDENT))

        assert HasCapability().has_permission(request, make_view()) is True

    def test_all_capabilities_present(self, request_factory):
        request = make_request(request_factory, make_actor(Role.INSTITUTION_ADMIN))
        view = make_view(Capability.LEARNER_VIEW, Capability.LEARNER_ARCHIVE)

        assert HasCapability().has_permission(request, view) is True

    @patch('apps.core.permissions.SecurityLogger.log_access_denied')
    def test_missing_capability_denied_and_logged(self, log_access_denied, request_factory):
        actor = make_actor(Role.INSTITUTION_STAFF)
        request = make_request(request_factory, actor)
        view = make_view(Capability.LEARNER_VIEW, Capability.LEARNER_ARCHIVE)

        assert HasCapability().has_permission(request, view) is False

        log_access_denied.assert_called_once()
        args, kwargs = log_access_denied.call_args
        assert args == (actor, 'missing_capability')
        assert kwargs['missing_capabilities'] == [str(Capability.LEARNER_ARCHIVE)]

    def test_single_string_requirement(self, request_factory):
        request = make_request(request_factory, make_actor(Role.QCTO_USER))
        view = make_view()
        view.required_capabilities = Capability.REVIEW_FLAG

        assert HasCapability().has_permission(request, view) is True

    def test_effective_role_is_checked(self, request_factory):
        # A platform admin viewing as a student has only student capabilities
        actor = make_impersonating_actor(Role.PLATFORM_ADMIN, Role.STUDENT)
        request = make_request(request_factory, actor)

        assert HasCapability().has_permission(request, make_view(Capability.IMPERSONATE)) is False
        assert HasCapability().has_permission(request, make_view(Capability.LEARNER_VIEW)) is True


class TestRequiresCapabilities:

    def test_class_decorator_sets_attribute(self):
        @requires_capabilities(Capability.REPORTS_VIEW, Capability.REPORTS_EXPORT)
        class ReportView:
            pass

        assert ReportView.required_capabilities == {Capability.REPORTS_VIEW, Capability.REPORTS_EXPORT}

    def test_method_decorator_checks_before_handler(self):
        calls = []

        class LearnerView:
            def check_permissions(self, request):
                calls.append(('check', set(self.required_capabilities)))

            @requires_capabilities(Capability.LEARNER_EDIT)
            def post(self, request):
                calls.append(('handler', request))
                return 'ok'

        assert LearnerView.post.required_capabilities == {Capability.LEARNER_EDIT}
        assert LearnerView().post('req') == 'ok'
        assert calls == [('check', {Capability.LEARNER_EDIT}), ('handler', 'req')]
