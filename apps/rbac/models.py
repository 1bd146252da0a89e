"""
RBAC models.

User carries the single role and home institution (or oversight
organisation) that identity resolution reads. ImpersonationSession is the
server-side record behind every impersonation overlay.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.exceptions import ValidationError
from apps.core.models import BaseModel, SoftDeleteManager
from apps.rbac.context import ImpersonationToken, VerifiedSession
from apps.rbac.roles import Role, TENANT_ROLES

logger = logging.getLogger(__name__)


class UserManager(SoftDeleteManager):
    """Manager for User queries."""

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def by_email(self, email):
        """Find user by email."""
        return self.filter(email=self.normalize_email(email)).first()

    @staticmethod
    def normalize_email(email):
        """
        Normalize the email address by lowercasing the domain part.
        """
        email = (email or '').strip()
        email_name, sep, domain_part = email.rpartition('@')
        if not sep:
            return email
        return email_name + '@' + domain_part.lower()

    def create_user(self, email, role, **extra_fields):
        if not email:
            raise ValueError('Email address is required')
        user = self.model(email=self.normalize_email(email), role=role, **extra_fields)
        user.clean()
        user.save(using=self._db)
        return user


class User(BaseModel):
    """
    Platform user with exactly one role.

    Institution admins, staff and students belong to one institution.
    Oversight users belong to an oversight organisation. Platform
    administrators belong to neither.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique globally)"
    )
    first_name = models.CharField(max_length=150, blank=True, default='')
    last_name = models.CharField(max_length=150, blank=True, default='')
    role = models.CharField(
        max_length=32,
        choices=Role.choices,
        db_index=True,
        help_text="Role that drives capabilities and scope checks"
    )
    institution = models.ForeignKey(
        'tenants.Institution',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='users',
        help_text="Home institution for institution roles and students"
    )
    oversight_org_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Oversight organisation for oversight users"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    last_login_at = models.DateTimeField(null=True, blank=True)

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role', 'institution']),
        ]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.email

    @property
    def is_authenticated(self):
        """
        Always return True for User instances.
        This is required for Django and DRF authentication compatibility.
        """
        return True

    @property
    def is_anonymous(self):
        return False

    def clean(self):
        super().clean()
        role = Role(self.role)
        if (role in TENANT_ROLES or role == Role.STUDENT) and not self.institution_id:
            raise ValidationError(
                f"{role.label} accounts must belong to an institution",
                details={'field': 'institution'}
            )
        if role == Role.PLATFORM_ADMIN and self.institution_id:
            raise ValidationError(
                'Platform administrators cannot belong to an institution',
                details={'field': 'institution'}
            )

    def to_verified_session(self) -> VerifiedSession:
        return VerifiedSession(
            user_id=str(self.id),
            role=Role(self.role),
            institution_id=str(self.institution_id) if self.institution_id else None,
            oversight_org_id=str(self.oversight_org_id) if self.oversight_org_id else None,
            email=self.email,
        )


class ImpersonationSessionManager(SoftDeleteManager):
    """Manager for impersonation session queries."""

    def active(self):
        return self.filter(status=ImpersonationSession.STATUS_ACTIVE)

    def active_for_impersonator(self, user):
        return self.active().filter(impersonator=user)

    def stale(self, now=None):
        """Active sessions that have passed their expiry or inactivity limit."""
        now = now or timezone.now()
        idle_cutoff = now - timedelta(seconds=settings.IMPERSONATION_INACTIVITY_TIMEOUT_SECONDS)
        return self.active().filter(
            models.Q(expires_at__lte=now) | models.Q(last_activity_at__lte=idle_cutoff)
        )


class ImpersonationSession(BaseModel):
    """
    Server-side record of one "view as" session.

    The opaque token is what the client presents. Every field the overlay
    needs is read from this row and from the target user, never from the
    client.
    """

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_EXPIRED = 'EXPIRED'
    STATUS_REVOKED = 'REVOKED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_EXPIRED, 'Expired'),
        (STATUS_REVOKED, 'Revoked'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    impersonator = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='impersonation_sessions_started',
        help_text="User who is viewing as someone else"
    )
    target = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='impersonation_sessions_received',
        help_text="User being viewed as"
    )
    token = models.CharField(
        max_length=64,
        unique=True,
        db_index=True,
        help_text="Opaque session token (hex)"
    )
    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True
    )
    reason = models.CharField(max_length=255, blank=True, default='')
    expires_at = models.DateTimeField(db_index=True)
    last_activity_at = models.DateTimeField()
    ended_at = models.DateTimeField(null=True, blank=True)
    ended_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text="User who completed or revoked the session"
    )
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default='')

    objects = ImpersonationSessionManager()

    class Meta:
        db_table = 'impersonation_sessions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['impersonator', 'status']),
            models.Index(fields=['status', 'expires_at']),
        ]

    def __str__(self):
        return f"{self.impersonator_id} as {self.target_id} ({self.status})"

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    def is_expired(self, now=None):
        return (now or timezone.now()) >= self.expires_at

    def is_idle(self, now=None):
        timeout = timedelta(seconds=settings.IMPERSONATION_INACTIVITY_TIMEOUT_SECONDS)
        return (now or timezone.now()) - self.last_activity_at >= timeout

    def to_token(self) -> ImpersonationToken:
        target = self.target
        return ImpersonationToken(
            session_id=str(self.id),
            impersonator_user_id=str(self.impersonator_id),
            effective_user_id=str(target.id),
            effective_role=Role(target.role),
            effective_institution_id=str(target.institution_id) if target.institution_id else None,
            effective_oversight_org_id=str(target.oversight_org_id) if target.oversight_org_id else None,
            expires_at=self.expires_at,
        )
