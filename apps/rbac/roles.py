"""
Closed role enumeration.

Every decision site branches over every Role explicitly and ends with
unhandled_role(), so adding a member here fails loudly at each site that has
not been revisited instead of silently falling through to a default.
"""
from typing import NoReturn

from django.db import models


class Role(models.TextChoices):
    PLATFORM_ADMIN = 'PLATFORM_ADMIN', 'Platform administrator'
    QCTO_USER = 'QCTO_USER', 'Oversight reviewer'
    INSTITUTION_ADMIN = 'INSTITUTION_ADMIN', 'Institution administrator'
    INSTITUTION_STAFF = 'INSTITUTION_STAFF', 'Institution staff'
    STUDENT = 'STUDENT', 'Student'


TENANT_ROLES = frozenset({Role.INSTITUTION_ADMIN, Role.INSTITUTION_STAFF})


def unhandled_role(role) -> NoReturn:
    raise TypeError(f"Unhandled role: {role!r}")
