import uuid
from datetime import datetime, timezone

from fastapi import Header, HTTPException

from .http_helpers import validate_respondent_email


def get_now() -> datetime:
    """Request clock; tests override it through ``app.dependency_overrides``."""
    return datetime.now(timezone.utc)


def parse_survey_id(raw_survey_id: str) -> str:
    value = (raw_survey_id or "").strip()
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(status_code=400, detail="survey_id must be a valid UUID")


def respondent_email(x_respondent_email: str | None = Header(default=None)) -> str:
    if not x_respondent_email:
        raise HTTPException(status_code=401, detail="X-Respondent-Email header required")
    return validate_respondent_email(x_respondent_email)
