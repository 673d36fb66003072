"""
Schema converter functions.

Centralized helper functions for converting Cosmos DB documents to Pydantic
schemas. These are the single source of truth for document-to-schema
conversions.
"""

from typing import Mapping

from models.cosmos_documents import (
    IssueDocument,
    IssueSummaryDocument,
    SurveyDocument,
    UserDocument,
)
from schemas.issue import (
    CommentDetail,
    CommentItem,
    Issue,
    IssueDetail,
    IssueSummary,
    StatusHistoryDetail,
    StatusHistoryItem,
    UserIdentity,
)
from schemas.survey import (
    CHART_COLORS,
    ChartData,
    ChartDataset,
    OptionPercentage,
    Survey,
    SurveyOption,
    SurveyResults,
)

UNKNOWN_USER_NAME = "Unknown user"


def _summary_fields(issue: IssueSummaryDocument) -> dict:
    return {
        "id": issue.id,
        "title": issue.title,
        "description": issue.description,
        "category": issue.category,
        "status": issue.status,
        "location": issue.location,
        "images": issue.images,
        "created_at": issue.created_at,
        "updated_at": issue.updated_at,
    }


def issue_to_summary(issue: IssueSummaryDocument) -> IssueSummary:
    """Convert an issue to its public projection (no status history)."""
    return IssueSummary(
        **_summary_fields(issue),
        reporter_id=issue.reporter_id,
        comments=[CommentItem(**c.model_dump()) for c in issue.comments],
    )


def issue_to_schema(issue: IssueDocument) -> Issue:
    """Convert an issue document to the full Issue schema."""
    return Issue(
        **_summary_fields(issue),
        reporter_id=issue.reporter_id,
        comments=[CommentItem(**c.model_dump()) for c in issue.comments],
        status_history=[StatusHistoryItem(**h.model_dump()) for h in issue.status_history],
    )


def user_identity(user_id: str, users: Mapping[str, UserDocument]) -> UserIdentity:
    """Resolve a user reference, falling back to a placeholder for unknown users."""
    user = users.get(user_id)
    if user is None:
        return UserIdentity(id=user_id, name=UNKNOWN_USER_NAME)
    return UserIdentity(id=user.id, name=user.name, email=user.email)


def referenced_user_ids(issue: IssueDocument) -> set[str]:
    """Every user an issue refers to: reporter, history actors and comment authors."""
    ids = {issue.reporter_id}
    ids.update(h.changed_by for h in issue.status_history)
    ids.update(c.author_id for c in issue.comments)
    return ids


def issue_to_detail(issue: IssueDocument, users: Mapping[str, UserDocument]) -> IssueDetail:
    """Convert an issue document, resolving user references to display identities."""
    return IssueDetail(
        **_summary_fields(issue),
        reporter=user_identity(issue.reporter_id, users),
        status_history=[
            StatusHistoryDetail(
                status=h.status,
                changed_by=user_identity(h.changed_by, users),
                comment=h.comment,
                timestamp=h.timestamp,
            )
            for h in issue.status_history
        ],
        comments=[
            CommentDetail(
                id=c.id,
                author=user_identity(c.author_id, users),
                text=c.text,
                timestamp=c.timestamp,
            )
            for c in issue.comments
        ],
    )


def survey_to_schema(survey: SurveyDocument) -> Survey:
    """Convert a survey document to the Survey schema."""
    return Survey(
        id=survey.id,
        title=survey.title,
        description=survey.description,
        options=[SurveyOption(text=o.text, vote_count=o.vote_count) for o in survey.options],
        deadline=survey.deadline,
        target_audience=survey.target_audience,
        status=survey.status,
        is_important=survey.is_important,
        created_by=survey.created_by,
        total_votes=survey.total_votes,
        created_at=survey.created_at,
        updated_at=survey.updated_at,
    )


def survey_to_results(survey: SurveyDocument) -> SurveyResults:
    """
    Aggregate a survey's counters for charting.

    Percentages are rounded to one decimal place; a survey without votes
    reports 0.0 for every option.
    """
    divisor = max(survey.total_votes, 1)
    colors = [CHART_COLORS[i % len(CHART_COLORS)] for i in range(len(survey.options))]

    return SurveyResults(
        survey_id=survey.id,
        title=survey.title,
        status=survey.status,
        total_votes=survey.total_votes,
        chart_data=ChartData(
            labels=[o.text for o in survey.options],
            datasets=[
                ChartDataset(
                    label="Votes",
                    data=[o.vote_count for o in survey.options],
                    background_color=colors,
                )
            ],
        ),
        percentages=[
            OptionPercentage(
                option=o.text,
                votes=o.vote_count,
                percentage=round(o.vote_count / divisor * 100, 1),
            )
            for o in survey.options
        ],
    )
