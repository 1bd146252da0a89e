"""
Tenant models.

An Institution is the tenant boundary: every tenant-owned record belongs to
exactly one institution, and tenant-scoped roles may act only inside their
own institution.
"""
from django.db import models
from apps.core.models import BaseModel, SoftDeleteManager


class InstitutionManager(SoftDeleteManager):
    """Manager for institution queries."""

    def active(self):
        """Return only active institutions."""
        return self.filter(status=Institution.STATUS_ACTIVE)

    def by_slug(self, slug):
        return self.filter(slug=slug).first()


class Institution(BaseModel):
    """
    A training institution (tenant).

    Institutions own learners, enrolments, readiness records and documents.
    The oversight body sees them only through approved workflow aggregates.
    """

    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Registered institution name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    registration_number = models.CharField(
        max_length=64,
        blank=True,
        default='',
        help_text="Accreditation or registration number"
    )
    province = models.CharField(
        max_length=64,
        blank=True,
        default='',
        help_text="Province the institution operates in"
    )
    contact_email = models.EmailField(
        blank=True,
        default='',
        help_text="Primary contact email"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True,
        help_text="Current institution status"
    )

    objects = InstitutionManager()

    class Meta:
        db_table = 'institutions'
        ordering = ['name']
        indexes = [
            models.Index(fields=['status', 'name']),
        ]

    def __str__(self):
        return self.name

    def is_active(self):
        return self.status == self.STATUS_ACTIVE and not self.is_deleted
