"""
Survey-related Pydantic schemas.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models.cosmos_documents import SurveyStatus, TargetAudience

# Chart colours, cycled when a survey has more options
CHART_COLORS = ["#4caf50", "#2196f3", "#ff9800", "#e91e63", "#9c27b0", "#00bcd4"]


def _future(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value <= datetime.now(timezone.utc):
        raise ValueError("Deadline must be in the future")
    return value


# ============================================================================
# Requests
# ============================================================================


class SurveyOptionCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=200)


class SurveyCreate(BaseModel):
    """Fields of a new survey."""

    title: str = Field(..., min_length=1, max_length=150)
    description: str = Field(..., min_length=1)
    options: list[SurveyOptionCreate] = Field(..., min_length=2)
    deadline: datetime
    target_audience: TargetAudience = TargetAudience.ALL
    is_important: bool = False
    notify_email: Optional[EmailStr] = Field(None, description="Address to notify when the survey is important")

    @field_validator("deadline")
    @classmethod
    def _deadline_in_future(cls, value: datetime) -> datetime:
        return _future(value)


class SurveyUpdate(BaseModel):
    """
    Partial survey update.

    Vote counters and the creator are not editable; unknown fields are
    rejected rather than ignored.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, min_length=1)
    options: Optional[list[SurveyOptionCreate]] = Field(None, min_length=2)
    deadline: Optional[datetime] = None
    target_audience: Optional[TargetAudience] = None
    is_important: Optional[bool] = None
    status: Optional[SurveyStatus] = None

    @field_validator("deadline")
    @classmethod
    def _deadline_in_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        return None if value is None else _future(value)


class VoteRequest(BaseModel):
    selected_option_index: int = Field(..., ge=0)


# ============================================================================
# Responses
# ============================================================================


class SurveyOption(BaseModel):
    text: str
    vote_count: int = 0


class Survey(BaseModel):
    """Schema for survey responses."""

    id: str
    title: str
    description: str
    options: list[SurveyOption]
    deadline: datetime
    target_audience: TargetAudience
    status: SurveyStatus
    is_important: bool = False
    created_by: str
    total_votes: int = 0
    created_at: datetime
    updated_at: datetime


class ChartDataset(BaseModel):
    label: str = "Votes"
    data: list[int]
    background_color: list[str]


class ChartData(BaseModel):
    labels: list[str]
    datasets: list[ChartDataset]


class OptionPercentage(BaseModel):
    option: str
    votes: int
    percentage: float


class SurveyResults(BaseModel):
    """Aggregated results, shaped for charting."""

    survey_id: str
    title: str
    status: SurveyStatus
    total_votes: int
    chart_data: ChartData
    percentages: list[OptionPercentage]
