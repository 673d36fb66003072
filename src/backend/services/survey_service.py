"""
Survey Service.

Runs community surveys: creation with optional notification, audience-aware
listing, one vote per user with vote changes, admin edits and results.

Expiry is explicit: ``expire_overdue_surveys`` is an idempotent sweep run
before listing, and a vote that finds a passed deadline materializes the
expiry of that one survey. Single-survey reads report the effective status
without writing.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

from core.exceptions import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from core.permissions import normalize_role
from models.cosmos_documents import SurveyDocument, SurveyStatus, TargetAudience, utc_now
from repositories.provider import SurveyRepositoryProtocol
from schemas.converters import survey_to_results
from schemas.survey import SurveyCreate, SurveyResults, SurveyUpdate
from services.email_service import EmailService

logger = structlog.get_logger(__name__)

SURVEY_NOT_FOUND = "Survey not found"
INACTIVE_MESSAGE = "This survey is no longer active"
DEADLINE_PASSED_MESSAGE = "Survey deadline has passed"
INVALID_OPTION_MESSAGE = "Invalid option selected"


def _effective(survey: SurveyDocument, now: datetime) -> SurveyDocument:
    """Report an active survey past its deadline as expired."""
    if survey.status == SurveyStatus.ACTIVE.value and survey.is_past_deadline(now):
        return survey.model_copy(update={"status": SurveyStatus.EXPIRED.value})
    return survey


class SurveyService:
    """Survey engine operating on an injected repository and notifier."""

    def __init__(self, survey_repo: SurveyRepositoryProtocol, email_service: EmailService):
        self.survey_repo = survey_repo
        self.email_service = email_service

    async def _get_or_404(self, survey_id: str) -> SurveyDocument:
        survey = await self.survey_repo.get_by_id(survey_id)
        if survey is None:
            raise NotFoundError(SURVEY_NOT_FOUND)
        return survey

    # =========================================================================
    # Creation & Retrieval
    # =========================================================================

    async def create_survey(self, fields: SurveyCreate, creator_id: str) -> SurveyDocument:
        """
        Create an active survey with zero votes.

        Important surveys with a notification address trigger an email.
        Notification failures are logged and never fail the creation.
        """
        survey = await self.survey_repo.create(
            title=fields.title,
            description=fields.description,
            options=[option.text for option in fields.options],
            deadline=fields.deadline,
            created_by=creator_id,
            target_audience=fields.target_audience.value,
            is_important=fields.is_important,
        )
        logger.info(
            "survey_created",
            survey_id=survey.id,
            created_by=creator_id,
            options=len(survey.options),
            is_important=survey.is_important,
        )

        if fields.is_important and fields.notify_email:
            await self._notify_new_survey(str(fields.notify_email), survey)

        return survey

    async def _notify_new_survey(self, to_email: str, survey: SurveyDocument) -> None:
        try:
            sent = await self.email_service.send_new_survey_notification(
                to_email=to_email,
                survey_title=survey.title,
                survey_id=survey.id,
            )
        except Exception as e:
            logger.error("survey_notification_failed", survey_id=survey.id, error=str(e))
            return

        if not sent:
            logger.warning("survey_notification_not_sent", survey_id=survey.id)

    async def expire_overdue_surveys(self, now: Optional[datetime] = None) -> int:
        """Move every active survey past its deadline to expired. Idempotent."""
        expired = await self.survey_repo.expire_overdue(now or utc_now())
        if expired:
            logger.info("surveys_expired", count=expired)
        return expired

    async def get_active_surveys(self, role: Optional[str]) -> list[SurveyDocument]:
        """
        List votable surveys for a caller role, newest first.

        Surveys aimed at everyone are always included; role-targeted surveys
        only for callers with that role.
        """
        now = utc_now()
        await self.expire_overdue_surveys(now)

        audiences = [TargetAudience.ALL.value]
        resolved = normalize_role(role)
        if resolved is not None and resolved.value in {a.value for a in TargetAudience}:
            audiences.append(resolved.value)

        return await self.survey_repo.list_active(audiences, now)

    async def get_survey_by_id(self, survey_id: str) -> SurveyDocument:
        survey = await self._get_or_404(survey_id)
        return _effective(survey, utc_now())

    async def get_survey_results(self, survey_id: str) -> SurveyResults:
        """Per-option counts and percentages, shaped for charting."""
        survey = await self.get_survey_by_id(survey_id)
        return survey_to_results(survey)

    # =========================================================================
    # Voting
    # =========================================================================

    async def vote_on_survey(self, survey_id: str, user_id: str, selected_option_index: int) -> SurveyDocument:
        """
        Record or change a user's vote.

        A first vote adds one to the option and to the total. Choosing a
        different option moves the user's single count; choosing the same
        option again changes nothing.

        Raises:
            NotFoundError: The survey does not exist
            InvalidStateError: The survey is not active or its deadline passed
            InvalidArgumentError: The option index is out of range
            ConflictError: A concurrent vote by the same user won the race
        """
        survey = await self._get_or_404(survey_id)
        now = utc_now()

        if survey.status != SurveyStatus.ACTIVE.value:
            raise InvalidStateError(INACTIVE_MESSAGE)

        if survey.is_past_deadline(now):
            await self.survey_repo.mark_expired(survey_id)
            logger.info("survey_expired_on_vote", survey_id=survey_id)
            raise InvalidStateError(DEADLINE_PASSED_MESSAGE)

        if not 0 <= selected_option_index < len(survey.options):
            raise InvalidArgumentError(INVALID_OPTION_MESSAGE)

        existing = await self.survey_repo.get_response(survey_id, user_id)

        if existing is None:
            updated = await self.survey_repo.record_first_vote(survey_id, user_id, selected_option_index, now)
            logger.info("survey_vote_recorded", survey_id=survey_id, option=selected_option_index)
            return updated

        if existing.selected_option_index == selected_option_index:
            return survey

        updated = await self.survey_repo.change_vote(survey_id, existing, selected_option_index, now)
        logger.info(
            "survey_vote_changed",
            survey_id=survey_id,
            from_option=existing.selected_option_index,
            to_option=selected_option_index,
        )
        return updated

    # =========================================================================
    # Administration
    # =========================================================================

    async def update_survey(self, survey_id: str, patch: SurveyUpdate) -> SurveyDocument:
        """
        Apply an admin edit.

        Options may be replaced freely until the first vote. After that the
        number of options is fixed and only their texts can change, so every
        stored vote keeps pointing at the option it was cast for.

        Raises:
            NotFoundError: The survey does not exist
            InvalidStateError: Options were added or removed after voting began
        """
        survey = await self._get_or_404(survey_id)

        fields: dict[str, Any] = {}
        for name, value in patch.model_dump(exclude_unset=True, exclude={"options"}).items():
            if value is None:
                continue
            fields[name] = value.value if isinstance(value, Enum) else value

        option_texts = None
        replacement_options = None
        if patch.options is not None:
            texts = [option.text for option in patch.options]
            if survey.total_votes == 0:
                replacement_options = texts
            elif len(texts) != len(survey.options):
                raise InvalidStateError("Options cannot be added or removed after voting has started")
            else:
                option_texts = texts

        if not fields and option_texts is None and replacement_options is None:
            return survey

        updated = await self.survey_repo.update(
            survey_id,
            fields,
            option_texts=option_texts,
            replacement_options=replacement_options,
        )
        if updated is None:
            raise NotFoundError(SURVEY_NOT_FOUND)

        logger.info(
            "survey_updated",
            survey_id=survey_id,
            fields=sorted(fields),
            options_changed=patch.options is not None,
        )
        return updated

    async def delete_survey(self, survey_id: str) -> SurveyDocument:
        """Close a survey. Its votes are kept."""
        closed = await self.survey_repo.set_status(survey_id, SurveyStatus.CLOSED.value)
        if closed is None:
            raise NotFoundError(SURVEY_NOT_FOUND)

        logger.info("survey_closed", survey_id=survey_id)
        return closed
