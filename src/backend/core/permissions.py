"""
Role and ownership policy.

All role checks of the issue and survey engines go through ``is_allowed``
so that no service method compares role literals on its own.
"""

from enum import Enum

import structlog

from core.exceptions import ForbiddenError

logger = structlog.get_logger(__name__)


class Role(str, Enum):
    """Caller roles issued by the identity service."""

    CITIZEN = "citizen"
    OFFICIAL = "official"
    ADMIN = "admin"


class Action(str, Enum):
    """Guarded operations."""

    RESOLVE_ISSUE = "resolve_issue"
    WITHDRAW_ISSUE = "withdraw_issue"
    DELETE_ISSUE = "delete_issue"
    COMMENT_ON_ISSUE = "comment_on_issue"
    MANAGE_ISSUE_STATUS = "manage_issue_status"
    MANAGE_SURVEYS = "manage_surveys"
    VOTE = "vote"


# The identity service labels citizens "user" in its tokens
ROLE_ALIASES: dict[str, Role] = {"user": Role.CITIZEN}

STAFF_ROLES = frozenset({Role.ADMIN, Role.OFFICIAL})
ALL_ROLES = frozenset(Role)

# action -> (roles allowed regardless of ownership, whether ownership alone grants it)
_POLICY: dict[Action, tuple[frozenset[Role], bool]] = {
    Action.RESOLVE_ISSUE: (STAFF_ROLES, False),
    Action.WITHDRAW_ISSUE: (frozenset(), True),
    Action.DELETE_ISSUE: (frozenset({Role.ADMIN}), True),
    Action.COMMENT_ON_ISSUE: (STAFF_ROLES, False),
    Action.MANAGE_ISSUE_STATUS: (STAFF_ROLES, False),
    Action.MANAGE_SURVEYS: (STAFF_ROLES, False),
    Action.VOTE: (ALL_ROLES, False),
}

_DENIAL_MESSAGES: dict[Action, str] = {
    Action.RESOLVE_ISSUE: "Only Admin or Official can mark an issue as Resolved",
    Action.WITHDRAW_ISSUE: "You can only withdraw your own reports",
    Action.DELETE_ISSUE: "You are not authorized to delete this issue",
}


def normalize_role(role: "Role | str | None") -> Role | None:
    """Map a raw role label to a ``Role``; unknown labels yield None."""
    if role is None or isinstance(role, Role):
        return role
    label = role.strip().lower()
    if label in ROLE_ALIASES:
        return ROLE_ALIASES[label]
    try:
        return Role(label)
    except ValueError:
        return None


def is_allowed(action: Action, role: "Role | str | None", is_owner: bool = False) -> bool:
    """Evaluate the policy for an action, a caller role and resource ownership."""
    roles, owner_allowed = _POLICY[action]
    if owner_allowed and is_owner:
        return True
    resolved = normalize_role(role)
    return resolved is not None and resolved in roles


def authorize(action: Action, role: "Role | str | None", is_owner: bool = False) -> None:
    """Raise ``ForbiddenError`` unless the policy allows the action."""
    if not is_allowed(action, role, is_owner):
        logger.warning("policy_denied", action=action.value, role=str(role), is_owner=is_owner)
        raise ForbiddenError(_DENIAL_MESSAGES.get(action, "You are not allowed to perform this action"))
