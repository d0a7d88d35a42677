"""Role and leader-approval lifecycle rules."""

from enum import Enum

from app.errors import LeaderStatusNotApplicableError
from app.schemas.user import LeaderStatus, Role, is_leader_role


class AccessState(str, Enum):
    UNASSIGNED = "UNASSIGNED"
    APPLICANT = "APPLICANT"
    ADMIN = "ADMIN"
    LEADER_PENDING = "LEADER_PENDING"
    LEADER_APPROVED = "LEADER_APPROVED"


def access_state(role: Role | None, leader_status: LeaderStatus | None) -> AccessState:
    """Collapse a ``(role, leader_status)`` pair into its lifecycle state."""
    if role is None:
        return AccessState.UNASSIGNED
    if role is Role.ADMIN:
        return AccessState.ADMIN
    if role is Role.APPLICANT:
        return AccessState.APPLICANT
    if leader_status is LeaderStatus.APPROVED:
        return AccessState.LEADER_APPROVED
    # A leader record without a status predates approval gating; treat it as unapproved.
    return AccessState.LEADER_PENDING


def leader_status_for_role(role: Role | None, *, approved: bool = False) -> LeaderStatus | None:
    """Leader status that accompanies a freshly assigned role."""
    if not is_leader_role(role):
        return None
    return LeaderStatus.APPROVED if approved else LeaderStatus.PENDING


def role_assignment_fields(role: Role, *, approved: bool = False) -> dict[str, Role | LeaderStatus | None]:
    """Fields written when a role is (re)assigned. Any earlier approval is reset unless ``approved``."""
    return {"role": role, "leader_status": leader_status_for_role(role, approved=approved)}


def ensure_leader_status_change(role: Role | None, new_status: LeaderStatus) -> None:
    """Only leader roles carry a leader status."""
    if not is_leader_role(role):
        raise LeaderStatusNotApplicableError(
            details={
                "role": role.value if role is not None else None,
                "attempted_status": new_status.value,
            }
        )
