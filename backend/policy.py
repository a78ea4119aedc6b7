# policy.py — Team role rules, checked before every consumer mutation
from typing import Optional

from errors import AuthorizationError
from models import PUBLIC_CHANNEL, TeamRole
from schemas import Team


# ============================================================
# ROLE HIERARCHY & PERMISSIONS
# ============================================================

ROLE_HIERARCHY = {
    TeamRole.OWNER: 3,
    TeamRole.SUB_ADMIN: 2,
    TeamRole.MEMBER: 1,
}

ROLE_PERMISSIONS = {
    TeamRole.OWNER: [
        "team:view", "team:delete",
        "content:write", "chat:write",
        "members:add", "members:remove", "members:role",
    ],
    TeamRole.SUB_ADMIN: [
        "team:view",
        "content:write", "chat:write",
        "members:add", "members:remove",
    ],
    TeamRole.MEMBER: [
        "team:view",
        "content:write", "chat:write",
    ],
}

# Roles the owner may hand out
ASSIGNABLE_ROLES = (TeamRole.SUB_ADMIN, TeamRole.MEMBER)


def parse_role(value) -> Optional[TeamRole]:
    """TeamRole for a role value, or None when it names no role"""
    try:
        return TeamRole(value)
    except ValueError:
        return None


def role_of(team: Optional[Team], user_id: str) -> Optional[TeamRole]:
    if team is None:
        return None
    member = team.member(user_id)
    return member.role if member else None


def has_permission(role: Optional[TeamRole], permission: str) -> bool:
    return role is not None and permission in ROLE_PERMISSIONS.get(role, [])


def require_permission(team: Optional[Team], user_id: str, permission: str) -> TeamRole:
    """Actor's role in the team, or AuthorizationError"""
    role = role_of(team, user_id)
    if role is None:
        raise AuthorizationError("You are not a member of this team.")
    if not has_permission(role, permission):
        raise AuthorizationError(f"Role '{role.value}' cannot perform '{permission}'.")
    return role


def can_remove(actor_role: Optional[TeamRole], target_role: Optional[TeamRole]) -> bool:
    if target_role is None or target_role == TeamRole.OWNER:
        return False
    if not has_permission(actor_role, "members:remove"):
        return False
    # Sub-admins only outrank plain members
    return ROLE_HIERARCHY[actor_role] > ROLE_HIERARCHY[target_role]


def check_remove_member(team: Optional[Team], actor_id: str, target_id: str) -> None:
    target_role = role_of(team, target_id)
    if target_role == TeamRole.OWNER:
        raise AuthorizationError("The team owner cannot be removed.", code="CX-TEAM-005")
    actor_role = require_permission(team, actor_id, "members:remove")
    if target_role is None:
        raise AuthorizationError("User is not a member of this team.", code="CX-TEAM-004")
    if not can_remove(actor_role, target_role):
        raise AuthorizationError(f"A {actor_role.value} cannot remove a {target_role.value}.")


def check_change_role(team: Optional[Team], actor_id: str, target_id: str, new_role: TeamRole) -> None:
    require_permission(team, actor_id, "members:role")
    target_role = role_of(team, target_id)
    if target_role is None:
        raise AuthorizationError("User is not a member of this team.", code="CX-TEAM-004")
    if target_role == TeamRole.OWNER or parse_role(new_role) not in ASSIGNABLE_ROLES:
        raise AuthorizationError(code="CX-TEAM-006")


def check_delete_team(team: Optional[Team], actor_id: str) -> None:
    require_permission(team, actor_id, "team:delete")


def check_channel(team: Optional[Team], actor_id: str, channel_id: str) -> None:
    """Sender must be a member; a direct channel must name another member"""
    require_permission(team, actor_id, "chat:write")
    if channel_id == PUBLIC_CHANNEL:
        return
    if channel_id == actor_id or role_of(team, channel_id) is None:
        raise AuthorizationError("Direct messages must target another team member.")
