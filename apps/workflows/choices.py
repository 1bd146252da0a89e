"""
Enumerations shared by the workflow models and the resource-sharing gate.
"""
from django.db import models


class WorkflowStatus(models.TextChoices):
    DRAFT = 'DRAFT', 'Draft'
    PENDING = 'PENDING', 'Pending'
    SUBMITTED = 'SUBMITTED', 'Submitted'
    UNDER_REVIEW = 'UNDER_REVIEW', 'Under review'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'
    RETURNED_FOR_CORRECTION = 'RETURNED_FOR_CORRECTION', 'Returned for correction'
    CANCELLED = 'CANCELLED', 'Cancelled'


class AggregateKind(models.TextChoices):
    SUBMISSION = 'SUBMISSION', 'Submission'
    REQUEST = 'REQUEST', 'Request'


class ResourceKind(models.TextChoices):
    READINESS = 'READINESS', 'Readiness'
    LEARNER = 'LEARNER', 'Learner'
    ENROLMENT = 'ENROLMENT', 'Enrolment'
    DOCUMENT = 'DOCUMENT', 'Document'
    INSTITUTION = 'INSTITUTION', 'Institution'
    FACILITATOR = 'FACILITATOR', 'Facilitator'
