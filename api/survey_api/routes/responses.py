from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends

from ..config import RL_RESPONSES_LIMIT, RL_WINDOW_SECONDS
from ..database import SessionLocal
from ..deps import get_now, parse_survey_id, respondent_email
from ..http_helpers import domain_errors
from ..schemas import ResponsePayload
from ..services import responses as response_service
from ..services import surveys as survey_service
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_RESPONSES = rate_limit_dependency("responses", RL_RESPONSES_LIMIT, RL_WINDOW_SECONDS)


@router.post("/responses/{survey_id}/autosave")
def autosave(
    survey_id: str,
    payload: ResponsePayload,
    email: str = Depends(respondent_email),
    now: datetime = Depends(get_now),
    _: None = RL_RESPONSES,
) -> dict[str, Any]:
    sid = parse_survey_id(survey_id)
    with SessionLocal() as db, domain_errors():
        survey = survey_service.load_survey(db, sid, now)
        response_service.autosave_response(db, survey, email, payload, now)
    return {"message": "Progress auto-saved"}


@router.post("/responses/{survey_id}/submit")
def submit(
    survey_id: str,
    payload: ResponsePayload,
    email: str = Depends(respondent_email),
    now: datetime = Depends(get_now),
    _: None = RL_RESPONSES,
) -> dict[str, Any]:
    sid = parse_survey_id(survey_id)
    with SessionLocal() as db, domain_errors():
        survey = survey_service.load_survey(db, sid, now)
        response = response_service.submit_response(db, survey, email, payload, now)
    return {"message": "Response submitted", "response": response.model_dump(mode="json", by_alias=True)}
