"""
Pytest configuration and fixtures.
"""
import uuid

import pytest


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def institution(db):
    """Create a test institution."""
    from apps.tenants.models import Institution
    return Institution.objects.create(
        name='Test Skills Academy',
        slug='test-skills-academy',
        registration_number='REG-0001',
        province='Gauteng',
    )


@pytest.fixture
def other_institution(db):
    """Create a second institution for isolation tests."""
    from apps.tenants.models import Institution
    return Institution.objects.create(
        name='Other Training College',
        slug='other-training-college',
        registration_number='REG-0002',
        province='Western Cape',
    )


@pytest.fixture
def oversight_org_id():
    return uuid.uuid4()


@pytest.fixture
def platform_admin(db):
    from apps.rbac.models import User
    from apps.rbac.roles import Role
    return User.objects.create_user(
        email='admin@accredit.local',
        role=Role.PLATFORM_ADMIN,
        first_name='Platform',
        last_name='Admin',
    )


@pytest.fixture
def qcto_user(db, oversight_org_id):
    from apps.rbac.models import User
    from apps.rbac.roles import Role
    return User.objects.create_user(
        email='reviewer@oversight.example',
        role=Role.QCTO_USER,
        oversight_org_id=oversight_org_id,
    )


@pytest.fixture
def institution_admin(db, institution):
    from apps.rbac.models import User
    from apps.rbac.roles import Role
    return User.objects.create_user(
        email='principal@academy.example',
        role=Role.INSTITUTION_ADMIN,
        institution=institution,
    )


@pytest.fixture
def institution_staff(db, institution):
    from apps.rbac.models import User
    from apps.rbac.roles import Role
    return User.objects.create_user(
        email='staff@academy.example',
        role=Role.INSTITUTION_STAFF,
        institution=institution,
    )


@pytest.fixture
def student(db, institution):
    from apps.rbac.models import User
    from apps.rbac.roles import Role
    return User.objects.create_user(
        email='learner@academy.example',
        role=Role.STUDENT,
        institution=institution,
    )


@pytest.fixture
def auth_headers():
    """
    Build request headers for a user.

    Usage: api_client.get(url, **auth_headers(user))
    """
    from apps.rbac.services import AuthService

    def make_headers(user, impersonation_token=None):
        headers = {'HTTP_AUTHORIZATION': f'Bearer {AuthService.generate_jwt(user)}'}
        if impersonation_token:
            headers['HTTP_X_IMPERSONATION_TOKEN'] = impersonation_token
        return headers

    return make_headers
