"""
Workflow aggregate models.

A Submission is material an institution sends to the oversight body. An
OversightRequest is material the oversight body asks an institution for.
Each aggregate owns a set of resource links. A link never grants visibility
by itself: the parent aggregate's status and deleted_at decide.
"""
from django.db import models
from django.utils import timezone

from apps.core.exceptions import ValidationError
from apps.core.models import BaseModel, SoftDeleteManager, SoftDeleteQuerySet
from apps.workflows.choices import ResourceKind, WorkflowStatus


class SubmissionQuerySet(SoftDeleteQuerySet):

    def for_institution(self, institution):
        return self.filter(institution=institution)

    def with_status(self, *statuses):
        return self.filter(status__in=statuses)


class SubmissionManager(SoftDeleteManager.from_queryset(SubmissionQuerySet)):
    pass


class Submission(BaseModel):
    """
    Material an institution submits to the oversight body for review.
    """

    institution = models.ForeignKey(
        'tenants.Institution',
        on_delete=models.PROTECT,
        related_name='submissions',
        help_text="Institution that owns this submission"
    )
    title = models.CharField(
        max_length=255,
        help_text="Short description of the submission"
    )
    status = models.CharField(
        max_length=32,
        choices=WorkflowStatus.choices,
        default=WorkflowStatus.DRAFT,
        db_index=True,
        help_text="Current workflow status"
    )
    submitted_by = models.ForeignKey(
        'rbac.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='submissions',
        help_text="User who submitted"
    )
    submitted_at = models.DateTimeField(null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)

    objects = SubmissionManager()

    class Meta:
        db_table = 'submissions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['institution', 'status']),
            models.Index(fields=['status', 'deleted_at']),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"


def unexpired_q(now=None, prefix=''):
    """
    Filter for OversightRequests whose expires_at has not passed.

    prefix reaches the request through a relation, e.g. 'request__'.
    """
    now = now or timezone.now()
    return models.Q(**{f'{prefix}expires_at__isnull': True}) | models.Q(**{f'{prefix}expires_at__gt': now})


class OversightRequestQuerySet(SoftDeleteQuerySet):

    def unexpired(self, now=None):
        return self.filter(unexpired_q(now))


class OversightRequestManager(SoftDeleteManager.from_queryset(OversightRequestQuerySet)):
    pass


class OversightRequest(BaseModel):
    """
    A request from the oversight body for access to institution material.

    Linked resources become visible once the institution approves the
    request, until expires_at passes.
    """

    institution = models.ForeignKey(
        'tenants.Institution',
        on_delete=models.PROTECT,
        related_name='oversight_requests',
        help_text="Institution the request is addressed to"
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    status = models.CharField(
        max_length=32,
        choices=WorkflowStatus.choices,
        default=WorkflowStatus.PENDING,
        db_index=True,
        help_text="Current workflow status"
    )
    requested_by = models.ForeignKey(
        'rbac.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='oversight_requests',
        help_text="Oversight user who raised the request"
    )
    responded_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Access granted by this request lapses after this time"
    )

    objects = OversightRequestManager()
    objects_with_deleted = models.Manager.from_queryset(OversightRequestQuerySet)()

    class Meta:
        db_table = 'oversight_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['institution', 'status']),
            models.Index(fields=['status', 'expires_at']),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    def is_expired(self, now=None):
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())


class ResourceLink(BaseModel):
    """
    Abstract (aggregate, resource_kind, resource_id) association.

    Links are immutable once created: they can be soft deleted but never
    moved to another aggregate or re-pointed at another resource.
    """

    IMMUTABLE_FIELDS = ('resource_kind', 'resource_id')
    aggregate_field = None

    resource_kind = models.CharField(
        max_length=32,
        choices=ResourceKind.choices,
        db_index=True,
        help_text="Kind of linked resource"
    )
    resource_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Identifier of the linked resource"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            self._check_immutable()
        super().save(*args, **kwargs)

    def _check_immutable(self):
        fields = self.IMMUTABLE_FIELDS + (f'{self.aggregate_field}_id',)
        stored = type(self).objects_with_deleted.filter(pk=self.pk).values(*fields).first()
        if stored is None:
            return
        changed = [name for name in fields if str(stored[name]) != str(getattr(self, name))]
        if changed:
            raise ValidationError(
                'Resource links cannot be modified once created',
                details={'fields': changed}
            )


class SubmissionResource(ResourceLink):
    aggregate_field = 'submission'

    submission = models.ForeignKey(
        Submission,
        on_delete=models.CASCADE,
        related_name='resources'
    )

    class Meta:
        db_table = 'submission_resources'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['submission', 'resource_kind', 'resource_id'],
                name='uniq_submission_resource',
            ),
        ]
        indexes = [
            models.Index(fields=['resource_kind', 'resource_id']),
        ]

    def __str__(self):
        return f"{self.resource_kind}:{self.resource_id} in submission {self.submission_id}"


class OversightRequestResource(ResourceLink):
    aggregate_field = 'request'

    request = models.ForeignKey(
        OversightRequest,
        on_delete=models.CASCADE,
        related_name='resources'
    )

    class Meta:
        db_table = 'oversight_request_resources'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['request', 'resource_kind', 'resource_id'],
                name='uniq_oversight_request_resource',
            ),
        ]
        indexes = [
            models.Index(fields=['resource_kind', 'resource_id']),
        ]

    def __str__(self):
        return f"{self.resource_kind}:{self.resource_id} in request {self.request_id}"
