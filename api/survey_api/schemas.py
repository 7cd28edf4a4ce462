from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SurveyStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    LIVE = "live"
    CLOSED = "closed"
    ARCHIVED = "archived"


class QuestionType(str, Enum):
    SINGLE_CHOICE = "singleChoice"
    MULTI_CHOICE = "multiChoice"
    DROPDOWN = "dropdown"
    SLIDER = "slider"
    RATING_STAR = "ratingStar"
    RATING_SMILEY = "ratingSmiley"
    RATING_NUMBER = "ratingNumber"
    TEXT_SHORT = "textShort"
    TEXT_LONG = "textLong"
    DATE_PICKER = "datePicker"
    FILE_UPLOAD = "fileUpload"
    EMAIL = "email"


class ResponseStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class QuestionOption(CamelModel):
    id: str
    text: str = ""
    value: str | None = None


class Question(CamelModel):
    id: str
    # Kept as a plain string so questions of unknown type still load.
    type: str
    title: str = ""
    description: str | None = None
    required: bool = False
    options: list[QuestionOption] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)


class Page(CamelModel):
    questions: list[Question] = Field(default_factory=list)
    branching: list[dict[str, Any]] = Field(default_factory=list)


class Survey(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    description: str | None = None
    slug: str | None = None
    status: SurveyStatus = SurveyStatus.DRAFT
    start_date: datetime | None = None
    end_date: datetime | None = None
    close_date: datetime | None = None
    locked: bool = False
    pages: list[Page] = Field(default_factory=list)
    allowed_respondents: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("start_date", "end_date", "close_date", "created_at", "updated_at")
    @classmethod
    def _dates_are_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    def has_questions(self) -> bool:
        return any(page.questions for page in self.pages)


def flatten_questions(survey: Survey) -> list[Question]:
    return [q for page in survey.pages for q in page.questions]


class SurveyCreate(CamelModel):
    title: str
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    pages: list[Page] = Field(default_factory=list)
    allowed_respondents: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required")
        return value.strip()


class SurveyUpdate(CamelModel):
    """Partial update; use ``model_fields_set`` to tell omitted from null."""

    title: str | None = None
    description: str | None = None
    pages: list[Page] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    status: SurveyStatus | None = None

    @field_validator("title")
    @classmethod
    def _title_not_empty(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("Title cannot be empty")
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def _dates_are_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class TransitionRequest(CamelModel):
    status: SurveyStatus


class Answer(CamelModel):
    question_id: str
    value: Any = None
    page_index: int = 0


class ResponseMetadata(CamelModel):
    time_spent: float = 0
    pages_visited: list[int] = Field(default_factory=list)
    last_page_index: int = 0


class SurveyResponse(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    survey_id: str
    respondent_email: str
    status: ResponseStatus = ResponseStatus.NOT_STARTED
    answers: list[Answer] = Field(default_factory=list)
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

    @field_validator("respondent_email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ResponsePayload(CamelModel):
    answers: list[Answer] = Field(default_factory=list)
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


# Analytics report


class WordCount(CamelModel):
    word: str
    count: int


class ChoiceStats(CamelModel):
    kind: Literal["choice"] = "choice"
    counts: dict[str, int] = Field(default_factory=dict)


class NumericStats(CamelModel):
    kind: Literal["numeric"] = "numeric"
    avg: float | None = None
    min: int | float | None = None
    max: int | float | None = None
    distribution: dict[int | float, int] = Field(default_factory=dict)


class TextStats(CamelModel):
    kind: Literal["text"] = "text"
    top_words: list[WordCount] = Field(default_factory=list)


class BasicStats(CamelModel):
    kind: Literal["basic"] = "basic"
    response_count: int = 0


QuestionStats = Annotated[Union[ChoiceStats, NumericStats, TextStats, BasicStats], Field(discriminator="kind")]


class QuestionAnalytics(CamelModel):
    question_id: str
    type: str
    title: str
    total_responses: int = 0
    analytics: QuestionStats


class DataAnomaly(CamelModel):
    question_id: str | None = None
    response_index: int
    reason: str
    value: str | None = None


class AnalyticsReport(CamelModel):
    survey_id: str | None = None
    total_responses: int = 0
    questions: list[QuestionAnalytics] = Field(default_factory=list)
    anomalies: list[DataAnomaly] = Field(default_factory=list)
