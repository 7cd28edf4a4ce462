from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends

from ..config import RL_ANALYTICS_LIMIT, RL_WINDOW_SECONDS
from ..database import SessionLocal
from ..deps import get_now, parse_survey_id
from ..http_helpers import domain_errors
from ..services import surveys as survey_service
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_ANALYTICS = rate_limit_dependency("analytics", RL_ANALYTICS_LIMIT, RL_WINDOW_SECONDS)


@router.get("/analytics/{survey_id}")
def survey_analytics(survey_id: str, now: datetime = Depends(get_now), _: None = RL_ANALYTICS) -> dict[str, Any]:
    sid = parse_survey_id(survey_id)
    with SessionLocal() as db, domain_errors():
        report = survey_service.survey_analytics(db, sid, now)
    return report.model_dump(mode="json", by_alias=True)
