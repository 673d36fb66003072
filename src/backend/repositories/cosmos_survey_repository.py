"""
Cosmos DB Survey repository.

Surveys and survey responses share the 'surveys' container and the
/survey_id partition. A vote writes the response and adjusts the survey's
counters in one transactional batch, so the counters always equal the
number of stored responses per option.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosBatchOperationError,
    CosmosResourceNotFoundError,
)
from fastapi import status

from core.exceptions import ConflictError, InvalidStateError
from db.cosmos_session import (
    SURVEYS_CONTAINER,
    create_item,
    execute_batch,
    patch_item,
    query_items,
    read_item,
)
from models.cosmos_documents import (
    SurveyDocument,
    SurveyOptionDocument,
    SurveyResponseDocument,
    SurveyStatus,
    format_utc,
    to_document_body,
    utc_now,
)

logger = logging.getLogger(__name__)

ACTIVE_PREDICATE = f"FROM c WHERE c.status = '{SurveyStatus.ACTIVE.value}'"
NO_VOTES_PREDICATE = "FROM c WHERE c.total_votes = 0"
PATCH_OPERATION_LIMIT = 10

INACTIVE_MESSAGE = "This survey is no longer active"


def _votable_predicate(now: datetime) -> str:
    """Filter matching a survey that is active and whose deadline is not before ``now``."""
    return f"{ACTIVE_PREDICATE} AND c.deadline >= '{format_utc(now)}'"


def _batch_failure_status(error: CosmosBatchOperationError) -> tuple[int, int]:
    """Return (failing operation index, its status code) for a failed batch."""
    index = error.error_index
    responses = error.operation_responses or []
    code = responses[index].get("statusCode", 0) if 0 <= index < len(responses) else 0
    return index, int(code)


class CosmosSurveyRepository:
    """Repository for survey and survey response operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, survey_id: str) -> Optional[SurveyDocument]:
        """Get a survey by ID (point read in its own partition)."""
        data = await read_item(SURVEYS_CONTAINER, survey_id, partition_key=survey_id)
        if data is None or data.get("document_type") != "survey":
            return None
        return SurveyDocument(**data)

    async def list_active(self, audiences: list[str], now: Optional[datetime] = None) -> list[SurveyDocument]:
        """
        Get active, unexpired surveys aimed at one of ``audiences``, newest first.

        This is a cross-partition query.
        """
        query = """
            SELECT * FROM c
            WHERE c.document_type = 'survey'
              AND c.status = @active
              AND c.deadline >= @now
              AND ARRAY_CONTAINS(@audiences, c.target_audience)
            ORDER BY c.created_at DESC
        """
        results = await query_items(
            SURVEYS_CONTAINER,
            query,
            parameters=[
                {"name": "@active", "value": SurveyStatus.ACTIVE.value},
                {"name": "@now", "value": format_utc(now or utc_now())},
                {"name": "@audiences", "value": audiences},
            ],
        )
        return [SurveyDocument(**r) for r in results]

    async def get_response(self, survey_id: str, user_id: str) -> Optional[SurveyResponseDocument]:
        """Get a user's response to a survey, if any."""
        data = await read_item(
            SURVEYS_CONTAINER,
            SurveyResponseDocument.response_id(survey_id, user_id),
            partition_key=survey_id,
        )
        if data is None:
            return None
        return SurveyResponseDocument(**data)

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(
        self,
        title: str,
        description: str,
        options: list[str],
        deadline: datetime,
        created_by: str,
        target_audience: str = "all",
        is_important: bool = False,
    ) -> SurveyDocument:
        """Create an active survey with zeroed counters."""
        now = utc_now()
        survey = SurveyDocument(
            title=title,
            description=description,
            options=[SurveyOptionDocument(text=text) for text in options],
            deadline=deadline,
            target_audience=target_audience,
            status=SurveyStatus.ACTIVE,
            is_important=is_important,
            created_by=created_by,
            total_votes=0,
            created_at=now,
            updated_at=now,
        )

        created = await create_item(SURVEYS_CONTAINER, to_document_body(survey))
        logger.info(f"Created survey {survey.id}")
        return SurveyDocument(**created)

    async def record_first_vote(
        self,
        survey_id: str,
        user_id: str,
        option_index: int,
        now: Optional[datetime] = None,
    ) -> SurveyDocument:
        """
        Store a user's first response and count it, in one transaction.

        The count update only applies while the survey is still votable at
        ``now``.

        Raises:
            ConflictError: A response for this user was stored concurrently
            InvalidStateError: The survey stopped being votable
        """
        now = now or utc_now()
        response = SurveyResponseDocument.for_vote(survey_id, user_id, option_index)
        response.created_at = response.updated_at = now
        operations: list[tuple] = [
            ("create", (to_document_body(response),)),
            (
                "patch",
                (
                    survey_id,
                    [
                        {"op": "incr", "path": f"/options/{option_index}/vote_count", "value": 1},
                        {"op": "incr", "path": "/total_votes", "value": 1},
                        {"op": "set", "path": "/updated_at", "value": format_utc(response.created_at)},
                    ],
                ),
                {"filter_predicate": _votable_predicate(now)},
            ),
        ]

        try:
            results = await execute_batch(SURVEYS_CONTAINER, survey_id, operations)
        except CosmosBatchOperationError as e:
            index, code = _batch_failure_status(e)
            if index == 0 and code == status.HTTP_409_CONFLICT:
                raise ConflictError("Your vote was recorded by another request; please retry") from e
            if index == 1 and code == status.HTTP_412_PRECONDITION_FAILED:
                raise InvalidStateError(INACTIVE_MESSAGE) from e
            raise

        logger.debug(f"Recorded first vote on survey {survey_id}")
        return SurveyDocument(**results[1]["resourceBody"])

    async def change_vote(
        self,
        survey_id: str,
        response: SurveyResponseDocument,
        new_index: int,
        now: Optional[datetime] = None,
    ) -> SurveyDocument:
        """
        Move an existing response to another option, in one transaction.

        The response replace is guarded by its etag so that two concurrent
        changes cannot both decrement the same old option.

        Raises:
            ConflictError: The response changed since it was read
            InvalidStateError: The survey stopped being votable
        """
        now = now or utc_now()
        old_index = response.selected_option_index
        updated = response.model_copy(update={"selected_option_index": new_index, "updated_at": now})

        replace_kwargs: dict[str, Any] = {}
        if response.etag:
            replace_kwargs["if_match_etag"] = response.etag

        operations: list[tuple] = [
            ("replace", (response.id, to_document_body(updated)), replace_kwargs),
            (
                "patch",
                (
                    survey_id,
                    [
                        {"op": "incr", "path": f"/options/{old_index}/vote_count", "value": -1},
                        {"op": "incr", "path": f"/options/{new_index}/vote_count", "value": 1},
                        {"op": "set", "path": "/updated_at", "value": format_utc(now)},
                    ],
                ),
                {"filter_predicate": _votable_predicate(now)},
            ),
        ]

        try:
            results = await execute_batch(SURVEYS_CONTAINER, survey_id, operations)
        except CosmosBatchOperationError as e:
            index, code = _batch_failure_status(e)
            if index == 0 and code in (status.HTTP_412_PRECONDITION_FAILED, status.HTTP_404_NOT_FOUND):
                raise ConflictError("Your vote was changed by another request; please retry") from e
            if index == 1 and code == status.HTTP_412_PRECONDITION_FAILED:
                raise InvalidStateError(INACTIVE_MESSAGE) from e
            raise

        logger.debug(f"Changed vote on survey {survey_id}: option {old_index} -> {new_index}")
        return SurveyDocument(**results[1]["resourceBody"])

    async def update(
        self,
        survey_id: str,
        fields: dict[str, Any],
        option_texts: Optional[list[str]] = None,
        replacement_options: Optional[list[str]] = None,
    ) -> Optional[SurveyDocument]:
        """
        Patch editable survey fields.

        ``option_texts`` renames options in place and keeps their counts.
        ``replacement_options`` swaps the whole option list; it only applies
        while the survey has no votes.

        Returns:
            The updated survey, or None if it does not exist

        Raises:
            ConflictError: A vote arrived before the options could be replaced
        """
        operations: list[dict[str, Any]] = []
        for field, value in fields.items():
            if isinstance(value, datetime):
                value = format_utc(value)
            operations.append({"op": "set", "path": f"/{field}", "value": value})

        if option_texts is not None:
            for index, text in enumerate(option_texts):
                operations.append({"op": "set", "path": f"/options/{index}/text", "value": text})

        filter_predicate = None
        if replacement_options is not None:
            operations.append(
                {
                    "op": "set",
                    "path": "/options",
                    "value": [SurveyOptionDocument(text=text).model_dump() for text in replacement_options],
                }
            )
            filter_predicate = NO_VOTES_PREDICATE

        operations.append({"op": "set", "path": "/updated_at", "value": format_utc(utc_now())})

        # One patch accepts at most 10 operations; the batch keeps the chunks all-or-nothing
        patch_kwargs: dict[str, Any] = {"filter_predicate": filter_predicate} if filter_predicate else {}
        batch: list[tuple] = [
            ("patch", (survey_id, operations[start : start + PATCH_OPERATION_LIMIT]), patch_kwargs)
            for start in range(0, len(operations), PATCH_OPERATION_LIMIT)
        ]

        try:
            results = await execute_batch(SURVEYS_CONTAINER, survey_id, batch)
        except CosmosBatchOperationError as e:
            _, code = _batch_failure_status(e)
            if code == status.HTTP_404_NOT_FOUND:
                return None
            if code == status.HTTP_412_PRECONDITION_FAILED:
                raise ConflictError("Survey received votes while its options were being replaced") from e
            raise

        logger.info(f"Updated survey {survey_id}")
        return SurveyDocument(**results[-1]["resourceBody"])

    async def set_status(self, survey_id: str, new_status: str) -> Optional[SurveyDocument]:
        """Set a survey's status. Returns None if it does not exist."""
        try:
            updated = await patch_item(
                SURVEYS_CONTAINER,
                survey_id,
                partition_key=survey_id,
                operations=[
                    {"op": "set", "path": "/status", "value": SurveyStatus(new_status).value},
                    {"op": "set", "path": "/updated_at", "value": format_utc(utc_now())},
                ],
            )
        except CosmosResourceNotFoundError:
            return None
        return SurveyDocument(**updated)

    # ========================================================================
    # Expiry
    # ========================================================================

    async def mark_expired(self, survey_id: str) -> bool:
        """
        Move one survey from active to expired.

        Returns:
            True if this call changed the status
        """
        try:
            await patch_item(
                SURVEYS_CONTAINER,
                survey_id,
                partition_key=survey_id,
                operations=[
                    {"op": "set", "path": "/status", "value": SurveyStatus.EXPIRED.value},
                    {"op": "set", "path": "/updated_at", "value": format_utc(utc_now())},
                ],
                filter_predicate=ACTIVE_PREDICATE,
            )
        except (CosmosAccessConditionFailedError, CosmosResourceNotFoundError):
            return False
        return True

    async def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """
        Expire every active survey whose deadline has passed.

        Safe to run concurrently with itself and with votes: each survey is
        only moved while it is still active.

        Returns:
            Number of surveys this call expired
        """
        query = """
            SELECT c.id FROM c
            WHERE c.document_type = 'survey'
              AND c.status = @active
              AND c.deadline < @now
        """
        overdue = await query_items(
            SURVEYS_CONTAINER,
            query,
            parameters=[
                {"name": "@active", "value": SurveyStatus.ACTIVE.value},
                {"name": "@now", "value": format_utc(now or utc_now())},
            ],
        )

        expired = 0
        for row in overdue:
            if await self.mark_expired(row["id"]):
                expired += 1

        if expired:
            logger.info(f"Expired {expired} overdue surveys")
        return expired
