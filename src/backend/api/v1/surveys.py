"""
Community survey endpoints.

Authenticated:
- GET /surveys/active, GET /surveys/{id}, GET /surveys/{id}/results,
  PATCH /surveys/{id}/vote

Staff (admin, official):
- POST /surveys, PUT /surveys/{id}, DELETE /surveys/{id}
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from api.deps import CurrentUser, get_current_user, get_survey_service, require_action
from core.permissions import Action
from schemas.common import SuccessResponse
from schemas.converters import survey_to_schema
from schemas.survey import Survey, SurveyCreate, SurveyResults, SurveyUpdate, VoteRequest
from services.survey_service import SurveyService

router = APIRouter()

SurveyServiceDep = Annotated[SurveyService, Depends(get_survey_service)]


@router.post("", response_model=SuccessResponse[Survey], status_code=status.HTTP_201_CREATED)
async def create_survey(
    body: SurveyCreate,
    current_user: Annotated[CurrentUser, Depends(require_action(Action.MANAGE_SURVEYS))],
    service: SurveyServiceDep,
):
    survey = await service.create_survey(body, current_user.id)
    return SuccessResponse(message="Survey created successfully", data=survey_to_schema(survey))


@router.get("/active", response_model=SuccessResponse[list[Survey]])
async def get_active_surveys(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: SurveyServiceDep,
):
    """Votable surveys aimed at everyone or at the caller's role."""
    surveys = await service.get_active_surveys(current_user.role.value)
    return SuccessResponse(message="Active surveys fetched", data=[survey_to_schema(s) for s in surveys])


@router.get("/{survey_id}", response_model=SuccessResponse[Survey])
async def get_survey(
    survey_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: SurveyServiceDep,
):
    survey = await service.get_survey_by_id(survey_id)
    return SuccessResponse(message="Survey fetched", data=survey_to_schema(survey))


@router.get("/{survey_id}/results", response_model=SuccessResponse[SurveyResults])
async def get_survey_results(
    survey_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: SurveyServiceDep,
):
    results = await service.get_survey_results(survey_id)
    return SuccessResponse(message="Survey results fetched", data=results)


@router.patch("/{survey_id}/vote", response_model=SuccessResponse[Survey])
async def vote_on_survey(
    survey_id: str,
    body: VoteRequest,
    current_user: Annotated[CurrentUser, Depends(require_action(Action.VOTE))],
    service: SurveyServiceDep,
):
    """Cast or change the caller's vote."""
    survey = await service.vote_on_survey(survey_id, current_user.id, body.selected_option_index)
    return SuccessResponse(message="Vote recorded successfully", data=survey_to_schema(survey))


@router.put("/{survey_id}", response_model=SuccessResponse[Survey])
async def update_survey(
    survey_id: str,
    body: SurveyUpdate,
    current_user: Annotated[CurrentUser, Depends(require_action(Action.MANAGE_SURVEYS))],
    service: SurveyServiceDep,
):
    survey = await service.update_survey(survey_id, body)
    return SuccessResponse(message="Survey updated successfully", data=survey_to_schema(survey))


@router.delete("/{survey_id}", response_model=SuccessResponse[Survey])
async def delete_survey(
    survey_id: str,
    current_user: Annotated[CurrentUser, Depends(require_action(Action.MANAGE_SURVEYS))],
    service: SurveyServiceDep,
):
    """Close a survey. Votes are kept."""
    survey = await service.delete_survey(survey_id)
    return SuccessResponse(message="Survey closed successfully", data=survey_to_schema(survey))
