"""
In-memory repository doubles for engine tests.

They mirror the conditional-write behaviour of the Cosmos DB repositories:
status transitions only apply while the stored status matches, a user's
first vote is unique, and a vote change is rejected if the response moved
since it was read. Every method yields to the event loop first so that
concurrent calls interleave like real I/O.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Iterable, Optional

from core.exceptions import ConflictError, InvalidStateError
from core.geo import haversine_distance
from models.cosmos_documents import (
    GeoLocation,
    ImageRef,
    IssueComment,
    IssueDocument,
    IssueStatus,
    IssueSummaryDocument,
    StatusHistoryEntry,
    SurveyDocument,
    SurveyOptionDocument,
    SurveyResponseDocument,
    SurveyStatus,
    UserDocument,
    utc_now,
)
from models.issue_workflow import INITIAL_COMMENT, INITIAL_STATUS
from services.media_service import MediaDeletionOutcome


class FakeUserRepository:
    def __init__(self, users: Iterable[UserDocument] = ()):
        self.users = {user.id: user for user in users}

    async def get_by_id(self, user_id: str) -> Optional[UserDocument]:
        await asyncio.sleep(0)
        return self.users.get(user_id)

    async def get_many(self, user_ids) -> dict[str, UserDocument]:
        await asyncio.sleep(0)
        return {uid: self.users[uid] for uid in user_ids if uid in self.users}


class FakeIssueRepository:
    def __init__(self):
        self.issues: dict[str, IssueDocument] = {}
        self.transition_attempts = 0

    async def get_by_id(self, issue_id: str) -> Optional[IssueDocument]:
        await asyncio.sleep(0)
        issue = self.issues.get(issue_id)
        return issue.model_copy(deep=True) if issue else None

    async def list_by_reporter(self, reporter_id, page=1, per_page=10, status=None, category=None):
        await asyncio.sleep(0)
        matches = [
            i
            for i in self.issues.values()
            if i.reporter_id == reporter_id
            and (status is None or i.status == status)
            and (category is None or i.category == category)
        ]
        matches.sort(key=lambda i: i.created_at, reverse=True)
        start = (page - 1) * per_page
        return [i.model_copy(deep=True) for i in matches[start : start + per_page]], len(matches)

    async def list_public(self, page=1, per_page=10, category=None, near=None):
        await asyncio.sleep(0)
        matches = [
            i
            for i in self.issues.values()
            if i.status != IssueStatus.WITHDRAWN.value and (category is None or i.category == category)
        ]
        if near is None:
            matches.sort(key=lambda i: i.created_at, reverse=True)
        else:
            lng, lat, radius = near

            def distance(issue):
                return haversine_distance(lng, lat, issue.location.longitude, issue.location.latitude)

            matches = sorted((i for i in matches if distance(i) <= radius), key=distance)

        start = (page - 1) * per_page
        summaries = [
            IssueSummaryDocument(**i.model_dump(exclude={"status_history"}))
            for i in matches[start : start + per_page]
        ]
        return summaries, len(matches)

    async def create(
        self,
        title: str,
        description: str,
        category: str,
        location: GeoLocation,
        reporter_id: str,
        images: Optional[list[ImageRef]] = None,
        created_at: Optional[datetime] = None,
    ) -> IssueDocument:
        await asyncio.sleep(0)
        now = created_at or utc_now()
        issue = IssueDocument(
            title=title,
            description=description,
            category=category,
            status=INITIAL_STATUS,
            location=location,
            images=images or [],
            reporter_id=reporter_id,
            status_history=[
                StatusHistoryEntry(status=INITIAL_STATUS, changed_by=reporter_id, comment=INITIAL_COMMENT, timestamp=now)
            ],
            created_at=now,
            updated_at=now,
        )
        self.issues[issue.id] = issue
        return issue.model_copy(deep=True)

    async def apply_status_transition(self, issue_id, expected_status, entry: StatusHistoryEntry):
        await asyncio.sleep(0)
        self.transition_attempts += 1
        issue = self.issues.get(issue_id)
        if issue is None or issue.status != IssueStatus(expected_status).value:
            return None
        issue.status = IssueStatus(entry.status).value
        issue.status_history.append(entry)
        issue.updated_at = entry.timestamp
        return issue.model_copy(deep=True)

    async def append_comment(self, issue_id, comment: IssueComment):
        await asyncio.sleep(0)
        issue = self.issues.get(issue_id)
        if issue is None:
            return None
        issue.comments.append(comment)
        issue.updated_at = comment.timestamp
        return issue.model_copy(deep=True)

    async def delete(self, issue_id: str) -> bool:
        await asyncio.sleep(0)
        return self.issues.pop(issue_id, None) is not None


class FakeSurveyRepository:
    def __init__(self):
        self.surveys: dict[str, SurveyDocument] = {}
        self.responses: dict[tuple[str, str], SurveyResponseDocument] = {}

    @staticmethod
    def _votable(survey: SurveyDocument, now: datetime) -> bool:
        return survey.status == SurveyStatus.ACTIVE.value and survey.deadline >= now

    async def get_by_id(self, survey_id: str) -> Optional[SurveyDocument]:
        await asyncio.sleep(0)
        survey = self.surveys.get(survey_id)
        return survey.model_copy(deep=True) if survey else None

    async def list_active(self, audiences, now=None):
        await asyncio.sleep(0)
        now = now or utc_now()
        matches = [
            s
            for s in self.surveys.values()
            if s.status == SurveyStatus.ACTIVE.value and s.deadline >= now and s.target_audience in audiences
        ]
        matches.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in matches]

    async def get_response(self, survey_id, user_id):
        await asyncio.sleep(0)
        response = self.responses.get((survey_id, user_id))
        return response.model_copy(deep=True) if response else None

    async def create(self, title, description, options, deadline, created_by, target_audience="all", is_important=False, created_at=None):
        await asyncio.sleep(0)
        now = created_at or utc_now()
        survey = SurveyDocument(
            title=title,
            description=description,
            options=[SurveyOptionDocument(text=text) for text in options],
            deadline=deadline,
            target_audience=target_audience,
            is_important=is_important,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.surveys[survey.id] = survey
        return survey.model_copy(deep=True)

    async def record_first_vote(self, survey_id, user_id, option_index, now=None):
        await asyncio.sleep(0)
        now = now or utc_now()
        if (survey_id, user_id) in self.responses:
            raise ConflictError("Your vote was recorded by another request; please retry")
        survey = self.surveys[survey_id]
        if not self._votable(survey, now):
            raise InvalidStateError("This survey is no longer active")

        self.responses[(survey_id, user_id)] = SurveyResponseDocument.for_vote(survey_id, user_id, option_index)
        survey.options[option_index].vote_count += 1
        survey.total_votes += 1
        return survey.model_copy(deep=True)

    async def change_vote(self, survey_id, response, new_index, now=None):
        await asyncio.sleep(0)
        now = now or utc_now()
        key = (survey_id, response.user_id)
        stored = self.responses.get(key)
        if stored is None or (stored.selected_option_index, stored.updated_at) != (
            response.selected_option_index,
            response.updated_at,
        ):
            raise ConflictError("Your vote was changed by another request; please retry")
        survey = self.surveys[survey_id]
        if not self._votable(survey, now):
            raise InvalidStateError("This survey is no longer active")

        survey.options[stored.selected_option_index].vote_count -= 1
        survey.options[new_index].vote_count += 1
        self.responses[key] = stored.model_copy(update={"selected_option_index": new_index, "updated_at": utc_now()})
        return survey.model_copy(deep=True)

    async def update(self, survey_id, fields, option_texts=None, replacement_options=None):
        await asyncio.sleep(0)
        survey = self.surveys.get(survey_id)
        if survey is None:
            return None
        if replacement_options is not None and survey.total_votes > 0:
            raise ConflictError("Survey received votes while its options were being replaced")

        for name, value in fields.items():
            setattr(survey, name, value)
        if option_texts is not None:
            for option, text in zip(survey.options, option_texts):
                option.text = text
        if replacement_options is not None:
            survey.options = [SurveyOptionDocument(text=text) for text in replacement_options]
        survey.updated_at = utc_now()
        return survey.model_copy(deep=True)

    async def set_status(self, survey_id, new_status):
        await asyncio.sleep(0)
        survey = self.surveys.get(survey_id)
        if survey is None:
            return None
        survey.status = SurveyStatus(new_status).value
        return survey.model_copy(deep=True)

    async def mark_expired(self, survey_id) -> bool:
        await asyncio.sleep(0)
        survey = self.surveys.get(survey_id)
        if survey is None or survey.status != SurveyStatus.ACTIVE.value:
            return False
        survey.status = SurveyStatus.EXPIRED.value
        return True

    async def expire_overdue(self, now=None) -> int:
        now = now or utc_now()
        overdue = [
            s.id for s in self.surveys.values() if s.status == SurveyStatus.ACTIVE.value and s.deadline < now
        ]
        expired = 0
        for survey_id in overdue:
            if await self.mark_expired(survey_id):
                expired += 1
        return expired

    def response_count(self, survey_id: str) -> int:
        return sum(1 for (sid, _uid) in self.responses if sid == survey_id)


class FakeMediaService:
    """Media store double; keys listed in ``failing_keys`` fail to delete."""

    def __init__(self, failing_keys: Iterable[str] = ()):
        self.failing_keys = set(failing_keys)
        self.deleted: list[str] = []

    async def store_uploaded_images(self, files) -> list[ImageRef]:
        return [
            ImageRef(url=f"https://media.test/issues/{i}.jpg", storage_key=f"issues/{i}.jpg")
            for i, _ in enumerate(files)
        ]

    async def delete_image(self, storage_key: str) -> None:
        await asyncio.sleep(0)
        if storage_key in self.failing_keys:
            raise RuntimeError(f"storage unavailable for {storage_key}")
        self.deleted.append(storage_key)

    async def delete_images(self, storage_keys) -> list[MediaDeletionOutcome]:
        results = await asyncio.gather(*(self.delete_image(k) for k in storage_keys), return_exceptions=True)
        return [
            MediaDeletionOutcome(storage_key=k, deleted=False, error=str(r))
            if isinstance(r, BaseException)
            else MediaDeletionOutcome(storage_key=k, deleted=True)
            for k, r in zip(storage_keys, results)
        ]


# ============================================================================
# Seeding helpers
# ============================================================================


def add_issue(
    repo: FakeIssueRepository,
    reporter_id: str = "citizen-1",
    path: Iterable[IssueStatus] = (IssueStatus.PENDING,),
    actor_id: str = "official-1",
    images: Iterable[ImageRef] = (),
    category: str = "Pothole",
    coordinates: tuple[float, float] = (-122.4194, 37.7749),
    created_at: Optional[datetime] = None,
) -> IssueDocument:
    """Store an issue whose history walks through ``path``."""
    statuses = [IssueStatus(s) for s in path]
    now = created_at or utc_now()
    history = [
        StatusHistoryEntry(
            status=status,
            changed_by=reporter_id if i == 0 else actor_id,
            comment=INITIAL_COMMENT if i == 0 else "",
            timestamp=now,
        )
        for i, status in enumerate(statuses)
    ]
    issue = IssueDocument(
        title="Deep pothole on Main St",
        description="Large pothole near the crosswalk",
        category=category,
        status=statuses[-1],
        location=GeoLocation(coordinates=list(coordinates), address="Main St"),
        images=list(images),
        reporter_id=reporter_id,
        status_history=history,
        created_at=now,
        updated_at=now,
    )
    repo.issues[issue.id] = issue
    return issue.model_copy(deep=True)


def add_survey(
    repo: FakeSurveyRepository,
    options: Iterable[str] = ("Yes", "No"),
    votes: Optional[Iterable[int]] = None,
    deadline: Optional[datetime] = None,
    status: SurveyStatus = SurveyStatus.ACTIVE,
    target_audience: str = "all",
    created_by: str = "admin-1",
    created_at: Optional[datetime] = None,
) -> SurveyDocument:
    """Store a survey; ``votes`` gives per-option counts (no responses are stored)."""
    texts = list(options)
    counts = list(votes) if votes is not None else [0] * len(texts)
    now = created_at or utc_now()
    survey = SurveyDocument(
        title="New park location",
        description="Where should the new park go?",
        options=[SurveyOptionDocument(text=t, vote_count=c) for t, c in zip(texts, counts)],
        deadline=deadline or now + timedelta(days=7),
        status=status,
        target_audience=target_audience,
        created_by=created_by,
        total_votes=sum(counts),
        created_at=now,
        updated_at=now,
    )
    repo.surveys[survey.id] = survey
    return survey.model_copy(deep=True)
