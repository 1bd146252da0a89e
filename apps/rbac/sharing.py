"""
Resource-sharing gate.

Decides whether the oversight role may read an institution's resources. The
oversight role has no tenant of its own: it sees a resource only while a
live workflow aggregate links to it.

Read order for a single resource, short-circuiting on the first hit:
  1. an APPROVED Submission
  2. a SUBMITTED or UNDER_REVIEW Submission (material under active review)
  3. an APPROVED Request

Platform operators are allowed and every other role is refused before any
query runs. The gate returns booleans so listing code can filter without
exceptions; assert_can_read is the raising form for single-record fetches.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from apps.core.exceptions import PermissionDeniedError
from apps.core.logging import SecurityLogger
from apps.rbac.roles import Role, unhandled_role
from apps.workflows.choices import AggregateKind, ResourceKind, WorkflowStatus

logger = logging.getLogger(__name__)

RESOURCE_READ_CHAIN = (
    (AggregateKind.SUBMISSION, frozenset({WorkflowStatus.APPROVED})),
    (AggregateKind.SUBMISSION, frozenset({WorkflowStatus.SUBMITTED, WorkflowStatus.UNDER_REVIEW})),
    (AggregateKind.REQUEST, frozenset({WorkflowStatus.APPROVED})),
)

INSTITUTION_READ_CHAIN = (
    (AggregateKind.SUBMISSION, WorkflowStatus.APPROVED),
    (AggregateKind.REQUEST, WorkflowStatus.APPROVED),
)


class AggregateStore(ABC):
    """
    Read-only view of workflow aggregates and their resource links.

    Implementations return the id of any matching aggregate, or None.
    """

    @abstractmethod
    async def find_linked_aggregate(
        self,
        resource_kind: ResourceKind,
        resource_id: str,
        aggregate_kind: AggregateKind,
        status_in: frozenset,
        exclude_deleted: bool = True,
    ) -> Optional[str]:
        """Find an aggregate of the given kind and status that links to the resource."""

    @abstractmethod
    async def find_aggregate_for_institution(
        self,
        institution_id: str,
        aggregate_kind: AggregateKind,
        status: WorkflowStatus,
        exclude_deleted: bool = True,
    ) -> Optional[str]:
        """Find any aggregate of the given kind and status owned by the institution."""


class ResourceSharingGate:
    """
    Workflow-gated visibility for the oversight role.

    Holds no state besides the store, so one instance can serve concurrent
    requests.
    """

    def __init__(self, store: AggregateStore):
        self.store = store

    @staticmethod
    def _role_decision(ctx) -> Optional[bool]:
        """
        Decide without I/O where the role alone settles it.

        Returns None when the aggregate store must be consulted.
        """
        role = ctx.effective_role

        if role == Role.PLATFORM_ADMIN:
            return True
        if role == Role.QCTO_USER:
            return None
        if role in (Role.INSTITUTION_ADMIN, Role.INSTITUTION_STAFF, Role.STUDENT):
            return False

        unhandled_role(role)

    async def can_read(self, ctx, resource_kind, resource_id) -> bool:
        """
        Whether ctx may read the resource.

        Raises:
            ValueError: if resource_kind is not a ResourceKind, whatever the role
        """
        resource_kind = ResourceKind(resource_kind)

        decision = self._role_decision(ctx)
        if decision is not None:
            return decision

        resource_id = str(resource_id)

        for aggregate_kind, statuses in RESOURCE_READ_CHAIN:
            aggregate_id = await self.store.find_linked_aggregate(
                resource_kind,
                resource_id,
                aggregate_kind,
                statuses,
                exclude_deleted=True,
            )
            if aggregate_id is not None:
                logger.debug(
                    f"Oversight read granted for {resource_kind} via {aggregate_kind}",
                    extra={
                        'resource_kind': str(resource_kind),
                        'aggregate_kind': str(aggregate_kind),
                        'aggregate_id': str(aggregate_id),
                    }
                )
                return True

        return False

    async def can_read_institution(self, ctx, institution_id) -> bool:
        """
        Whether the oversight role has any foothold in the institution.

        Coarser than can_read: any live APPROVED Submission or Request
        qualifies, whatever it links to. Used for listing and enumeration.
        """
        decision = self._role_decision(ctx)
        if decision is not None:
            return decision

        for aggregate_kind, status in INSTITUTION_READ_CHAIN:
            aggregate_id = await self.store.find_aggregate_for_institution(
                str(institution_id),
                aggregate_kind,
                status,
                exclude_deleted=True,
            )
            if aggregate_id is not None:
                return True

        return False

    async def assert_can_read(self, ctx, resource_kind, resource_id) -> None:
        """
        Raise PermissionDeniedError unless can_read allows the resource.

        The message names the resource kind only, never the id.
        """
        if await self.can_read(ctx, resource_kind, resource_id):
            return None

        kind = ResourceKind(resource_kind)
        SecurityLogger.log_access_denied(ctx, 'resource_not_shared', resource_kind=str(kind))
        raise PermissionDeniedError(
            f"Access denied: this {kind.label.lower()} is not accessible to your role",
            details={'resource_kind': str(kind)}
        )

    async def filter_readable(self, ctx, resource_kind, resource_ids: Iterable) -> List[str]:
        """Return the readable subset of resource_ids, keeping input order."""
        resource_kind = ResourceKind(resource_kind)
        resource_ids = [str(resource_id) for resource_id in resource_ids]

        decision = self._role_decision(ctx)
        if decision is True:
            return resource_ids
        if decision is False:
            return []

        results = await asyncio.gather(*(
            self.can_read(ctx, resource_kind, resource_id) for resource_id in resource_ids
        ))
        return [resource_id for resource_id, readable in zip(resource_ids, results) if readable]


def get_sharing_gate() -> ResourceSharingGate:
    """Return a gate backed by the database."""
    from apps.workflows.repositories import DjangoAggregateStore

    return ResourceSharingGate(DjangoAggregateStore())
