"""Role and approval gating for protected operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.logging_safety import safe_log_identifier
from app.domain.leader_fsm import AccessState, access_state
from app.errors import ForbiddenError, UnauthenticatedError
from app.schemas.auth import TokenClaims
from app.schemas.user import LEADER_ROLES, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccessPolicy:
    """Declares who may call a route.

    An empty ``required_roles`` admits any authenticated caller. A leader role
    in ``required_roles`` is satisfied by that leader variant, and only once it
    is approved when ``require_approved_leader`` is set.
    """

    required_roles: frozenset[Role] = frozenset()
    require_approved_leader: bool = True

    @classmethod
    def of(cls, *roles: Role, require_approved_leader: bool = True) -> AccessPolicy:
        return cls(required_roles=frozenset(roles), require_approved_leader=require_approved_leader)


AUTHENTICATED = AccessPolicy()
ADMIN_ONLY = AccessPolicy.of(Role.ADMIN)
APPLICANT_ONLY = AccessPolicy.of(Role.APPLICANT)
ANY_LEADER = AccessPolicy(required_roles=LEADER_ROLES, require_approved_leader=False)
APPROVED_LEADER = AccessPolicy(required_roles=LEADER_ROLES)
ADMIN_OR_APPROVED_LEADER = AccessPolicy(required_roles=LEADER_ROLES | {Role.ADMIN})


def _satisfies(claims: TokenClaims, required: Role, policy: AccessPolicy) -> bool:
    if claims.role is not required:
        return False
    if required not in LEADER_ROLES or not policy.require_approved_leader:
        return True
    return access_state(claims.role, claims.leader_status) is AccessState.LEADER_APPROVED


def can_access(claims: TokenClaims, policy: AccessPolicy) -> bool:
    if not policy.required_roles:
        return True
    return any(_satisfies(claims, required, policy) for required in policy.required_roles)


def authorize(claims: TokenClaims | None, policy: AccessPolicy) -> TokenClaims:
    """Return the caller's claims when the policy admits them.

    Raises ``UnauthenticatedError`` without an identity and ``ForbiddenError``
    for a valid identity lacking the required role or approval.
    """
    if claims is None:
        raise UnauthenticatedError()

    if not can_access(claims, policy):
        logger.info(
            "access.denied principal_id=%s role=%s state=%s required=%s approved_leader_required=%s",
            safe_log_identifier(claims.sub, prefix="pid"),
            claims.role.value if claims.role else None,
            access_state(claims.role, claims.leader_status).value,
            sorted(role.value for role in policy.required_roles),
            policy.require_approved_leader,
        )
        raise ForbiddenError()
    return claims


__all__ = [
    "ADMIN_ONLY",
    "ADMIN_OR_APPROVED_LEADER",
    "ANY_LEADER",
    "APPLICANT_ONLY",
    "APPROVED_LEADER",
    "AUTHENTICATED",
    "AccessPolicy",
    "authorize",
    "can_access",
]
