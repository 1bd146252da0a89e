"""
Database-backed aggregate store for the resource-sharing gate.
"""
import logging
from typing import Optional

from apps.rbac.sharing import AggregateStore
from apps.workflows.choices import AggregateKind
from apps.workflows.models import (
    OversightRequest,
    OversightRequestResource,
    Submission,
    SubmissionResource,
    unexpired_q,
)

logger = logging.getLogger(__name__)


class DjangoAggregateStore(AggregateStore):
    """
    AggregateStore over the workflow tables.

    Plain non-locking reads through the async ORM. Soft-deleted links are
    always ignored; exclude_deleted controls the parent aggregate. An
    OversightRequest past its expires_at never matches.
    """

    async def find_linked_aggregate(self, resource_kind, resource_id, aggregate_kind,
                                    status_in, exclude_deleted=True) -> Optional[str]:
        statuses = [str(status) for status in status_in]

        if aggregate_kind == AggregateKind.SUBMISSION:
            queryset = SubmissionResource.objects.filter(
                resource_kind=str(resource_kind),
                resource_id=str(resource_id),
                submission__status__in=statuses,
            )
            if exclude_deleted:
                queryset = queryset.filter(submission__deleted_at__isnull=True)
            aggregate_id = await queryset.values_list('submission_id', flat=True).afirst()

        elif aggregate_kind == AggregateKind.REQUEST:
            queryset = OversightRequestResource.objects.filter(
                unexpired_q(prefix='request__'),
                resource_kind=str(resource_kind),
                resource_id=str(resource_id),
                request__status__in=statuses,
            )
            if exclude_deleted:
                queryset = queryset.filter(request__deleted_at__isnull=True)
            aggregate_id = await queryset.values_list('request_id', flat=True).afirst()

        else:
            raise ValueError(f"Unknown aggregate kind: {aggregate_kind!r}")

        return str(aggregate_id) if aggregate_id is not None else None

    async def find_aggregate_for_institution(self, institution_id, aggregate_kind, status,
                                             exclude_deleted=True) -> Optional[str]:
        if aggregate_kind == AggregateKind.SUBMISSION:
            manager = Submission.objects if exclude_deleted else Submission.objects_with_deleted
            queryset = manager.filter(institution_id=institution_id, status=str(status))

        elif aggregate_kind == AggregateKind.REQUEST:
            manager = OversightRequest.objects if exclude_deleted else OversightRequest.objects_with_deleted
            queryset = manager.filter(institution_id=institution_id, status=str(status)).unexpired()

        else:
            raise ValueError(f"Unknown aggregate kind: {aggregate_kind!r}")

        aggregate_id = await queryset.values_list('id', flat=True).afirst()
        return str(aggregate_id) if aggregate_id is not None else None
