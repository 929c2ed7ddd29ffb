"""
Role policies and ownership checks.

A policy is a frozen set of roles.  Evaluation is plain set membership: there
is no role hierarchy, so an admin-only policy does not admit moderators and
vice versa.
"""
from __future__ import annotations

import dataclasses
from typing import FrozenSet, Optional

from resolve.errors import Forbidden, Unauthorized
from resolve.models.database_models import Role

Policy = FrozenSet[Role]

ADMIN_ONLY: Policy = frozenset({Role.ADMIN})
ADMIN_OR_MODERATOR: Policy = frozenset({Role.ADMIN, Role.MODERATOR})


@dataclasses.dataclass(frozen=True)
class RequestContext:
    """Identity resolved for the current request."""

    user_id: str
    role: Role = Role.USER
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def is_permitted(policy: Policy, role: Role) -> bool:
    return role in policy


def authorize(policy: Policy, context: Optional[RequestContext]) -> RequestContext:
    """
    Gate *context* through *policy*.

    No identity raises ``Unauthorized``; an identity whose role is outside the
    policy raises ``Forbidden``.
    """
    if context is None:
        raise Unauthorized("Authentication required")
    if not is_permitted(policy, context.role):
        raise Forbidden("Insufficient permissions")
    return context


def can_access(owner_id: str, context: RequestContext) -> bool:
    """True when the caller owns the record or is an admin."""
    return context.user_id == owner_id or context.is_admin


def ensure_owner_or_admin(owner_id: str, context: RequestContext) -> None:
    if not can_access(owner_id, context):
        raise Forbidden("Access denied")
