"""
Immutable identity value objects.

An ActorContext is built once per request by the IdentityResolver and never
mutated afterwards, so it may be shared freely between concurrent checks.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone

from apps.rbac.roles import Role


@dataclass(frozen=True)
class VerifiedSession:
    """Identity asserted by an already-verified credential."""
    user_id: str
    role: Role
    institution_id: Optional[str] = None
    oversight_org_id: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class ImpersonationToken:
    """
    Server-constructed impersonation overlay.

    Built only from an ImpersonationSession row, never from client-supplied
    role or institution values.
    """
    session_id: str
    impersonator_user_id: str
    effective_user_id: str
    effective_role: Role
    expires_at: datetime
    effective_institution_id: Optional[str] = None
    effective_oversight_org_id: Optional[str] = None

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) >= self.expires_at


@dataclass(frozen=True)
class Impersonation:
    effective_user_id: str
    effective_role: Role
    effective_institution_id: Optional[str] = None
    effective_oversight_org_id: Optional[str] = None


@dataclass(frozen=True)
class ActorContext:
    """
    The identity every authorization decision reads.

    When impersonation is present, the effective_* properties return the
    impersonated identity. original_user_id and original_role record who is
    really acting, for audit attribution only; nothing grants access from them.
    """
    user_id: str
    role: Role
    institution_id: Optional[str] = None
    oversight_org_id: Optional[str] = None
    impersonation: Optional[Impersonation] = None
    original_user_id: Optional[str] = None
    original_role: Optional[Role] = None
    impersonation_session_id: Optional[str] = None

    @property
    def is_impersonating(self) -> bool:
        return self.impersonation is not None

    @property
    def effective_user_id(self) -> str:
        if self.impersonation is not None:
            return self.impersonation.effective_user_id
        return self.user_id

    @property
    def effective_role(self) -> Role:
        if self.impersonation is not None:
            return self.impersonation.effective_role
        return self.role

    @property
    def effective_institution_id(self) -> Optional[str]:
        if self.impersonation is not None:
            return self.impersonation.effective_institution_id
        return self.institution_id

    @property
    def effective_oversight_org_id(self) -> Optional[str]:
        if self.impersonation is not None:
            return self.impersonation.effective_oversight_org_id
        return self.oversight_org_id

    @property
    def audit_user_id(self) -> str:
        """User to attribute actions to in audit records."""
        return self.original_user_id or self.user_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.effective_user_id,
            'role': str(self.effective_role),
            'institution_id': self.effective_institution_id,
            'oversight_org_id': self.effective_oversight_org_id,
            'is_impersonating': self.is_impersonating,
            'original_user_id': self.original_user_id,
            'original_role': str(self.original_role) if self.original_role else None,
            'impersonation_session_id': self.impersonation_session_id,
        }
