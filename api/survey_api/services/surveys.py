from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .. import repo
from ..errors import InvalidStateError, SurveyNotFoundError
from ..schemas import AnalyticsReport, Survey, SurveyCreate, SurveyStatus, SurveyUpdate
from .analytics import build_survey_report
from .lifecycle import apply_survey_update, ensure_just_in_time_transitions, request_transition

logger = logging.getLogger(__name__)


def _fetch(db, survey_id: str) -> Survey:
    survey = repo.get_survey(db, survey_id)
    if survey is None:
        raise SurveyNotFoundError(survey_id)
    return survey


def _persist(db, survey: Survey, expected_status: SurveyStatus, now: datetime, *, strict: bool) -> Survey:
    survey.updated_at = now
    if repo.save_survey(db, survey, expected_status=expected_status):
        db.commit()
        return survey

    db.rollback()
    logger.info(
        "[LIFECYCLE] survey=%s stored status no longer %s; lost the write race",
        survey.id,
        expected_status.value,
    )
    if strict:
        raise InvalidStateError("Survey status changed while the update was in progress")
    # Lazy reconcile: whoever won already wrote the converged state.
    return _fetch(db, survey.id)


def load_survey(db, survey_id: str, now: datetime) -> Survey:
    survey = _fetch(db, survey_id)
    result = ensure_just_in_time_transitions(survey, now)
    if result.changed:
        return _persist(db, survey, result.previous_status, now, strict=False)
    return survey


def create_survey(db, payload: SurveyCreate, now: datetime) -> Survey:
    survey = Survey(
        title=payload.title,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        pages=payload.pages,
        allowed_respondents=[e.strip().lower() for e in payload.allowed_respondents if e.strip()],
        status=SurveyStatus.DRAFT,
        locked=False,
        created_at=now,
        updated_at=now,
    )
    repo.insert_survey(db, survey)
    db.commit()
    logger.info("[LIFECYCLE] survey=%s created as draft", survey.id)
    return survey


def _explicit_change(db, survey_id: str, now: datetime, apply: Callable[[Survey], bool]) -> Survey:
    survey = _fetch(db, survey_id)
    expected = survey.status
    caught_up = ensure_just_in_time_transitions(survey, now)

    candidate = survey.model_copy(deep=True)
    try:
        changed = apply(candidate)
    except InvalidStateError:
        # The rejected request must not lose the catch-up transitions.
        if caught_up.changed:
            _persist(db, survey, expected, now, strict=False)
        raise

    if changed or caught_up.changed or candidate.status != expected:
        return _persist(db, candidate, expected, now, strict=True)
    return candidate


def update_survey(db, survey_id: str, update: SurveyUpdate, now: datetime) -> Survey:
    return _explicit_change(db, survey_id, now, lambda s: apply_survey_update(s, update, now).changed)


def transition_survey(db, survey_id: str, target_status: SurveyStatus, now: datetime) -> Survey:
    def _apply(survey: Survey) -> bool:
        before = survey.status
        request_transition(survey, target_status, now)
        return survey.status != before

    return _explicit_change(db, survey_id, now, _apply)


def survey_analytics(db, survey_id: str, now: datetime) -> AnalyticsReport:
    survey = load_survey(db, survey_id, now)
    responses = repo.list_responses(db, survey.id)
    return build_survey_report(survey, responses)
