"""
Shared dependencies for API endpoints.

Includes:
- Caller identity decoded from the identity service's JWT
- Role gating through the action policy
- Service providers (overridable in tests)
"""

from typing import Annotated, Callable, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from core.permissions import Action, Role, is_allowed, normalize_role
from core.security import decode_token
from repositories.provider import (
    IssueRepositoryProtocol,
    SurveyRepositoryProtocol,
    UserRepositoryProtocol,
    get_issue_repository,
    get_survey_repository,
    get_user_repository,
)
from services.email_service import EmailService, get_email_service
from services.issue_service import IssueService
from services.media_service import MediaService, get_media_service
from services.survey_service import SurveyService

logger = structlog.get_logger(__name__)

# Tokens may also arrive in the httpOnly cookie set by the identity service
security_optional = HTTPBearer(auto_error=False)
TOKEN_COOKIE = "token"

NOT_AUTHORIZED = "Not authorized to access this route"


class CurrentUser(BaseModel):
    """Authenticated caller."""

    id: str
    role: Role
    email: Optional[str] = None


def _unauthorized(detail: str = NOT_AUTHORIZED) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# User Authentication (JWT-based)
# =============================================================================


async def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security_optional)],
) -> CurrentUser:
    """
    Decode the caller's identity from the bearer token or the token cookie.

    Raises:
        HTTPException: 401 if no token is present, or it is invalid, expired
            or lacks the identity claims.
    """
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise _unauthorized()

    payload = decode_token(token)
    if payload is None:
        raise _unauthorized()

    role = normalize_role(str(payload["role"]))
    if role is None:
        logger.warning("unknown_token_role", role=str(payload["role"]))
        raise _unauthorized("Invalid token structure")

    return CurrentUser(id=str(payload["id"]), role=role, email=payload.get("email"))


def require_action(action: Action) -> Callable:
    """
    Build a dependency that admits only callers whose role the policy allows ``action`` for.

    Usage:
        @router.post("/", dependencies=[Depends(require_action(Action.MANAGE_SURVEYS))])
    """

    async def _check_action(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if not is_allowed(action, current_user.role):
            logger.warning(
                "role_access_denied",
                user_id=current_user.id,
                role=current_user.role.value,
                action=action.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role '{current_user.role.value}' is not authorized to access this route",
            )
        return current_user

    return _check_action


# =============================================================================
# Services
# =============================================================================


async def get_issue_service(
    issue_repo: Annotated[IssueRepositoryProtocol, Depends(get_issue_repository)],
    user_repo: Annotated[UserRepositoryProtocol, Depends(get_user_repository)],
    media_service: Annotated[MediaService, Depends(get_media_service)],
) -> IssueService:
    return IssueService(issue_repo, user_repo, media_service)


async def get_survey_service(
    survey_repo: Annotated[SurveyRepositoryProtocol, Depends(get_survey_repository)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
) -> SurveyService:
    return SurveyService(survey_repo, email_service)
