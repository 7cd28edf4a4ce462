from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from zoneinfo import ZoneInfo

from ..config import SURVEY_TIMEZONE
from ..errors import InvalidStateError
from ..schemas import Survey, SurveyStatus, SurveyUpdate, as_utc

logger = logging.getLogger(__name__)

DRAFT = SurveyStatus.DRAFT
PUBLISHED = SurveyStatus.PUBLISHED
LIVE = SurveyStatus.LIVE
CLOSED = SurveyStatus.CLOSED
ARCHIVED = SurveyStatus.ARCHIVED

ALLOWED_TRANSITIONS: dict[SurveyStatus, frozenset[SurveyStatus]] = {
    DRAFT: frozenset({PUBLISHED, LIVE, CLOSED, ARCHIVED}),
    PUBLISHED: frozenset({DRAFT, LIVE, CLOSED, ARCHIVED}),
    LIVE: frozenset({CLOSED, ARCHIVED}),
    CLOSED: frozenset({LIVE, ARCHIVED}),
    ARCHIVED: frozenset(),
}

_PLAIN_FIELDS = ("title", "description", "pages", "start_date", "end_date")


@dataclass
class ReconcileResult:
    survey: Survey
    previous_status: SurveyStatus
    changed: bool = False
    steps: list[tuple[SurveyStatus, SurveyStatus]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def record(self, before: SurveyStatus, after: SurveyStatus) -> None:
        self.changed = True
        if before != after:
            self.steps.append((before, after))

    def merge(self, other: ReconcileResult) -> None:
        self.changed = self.changed or other.changed
        self.steps.extend(other.steps)
        for reason in other.skipped:
            if reason not in self.skipped:
                self.skipped.append(reason)


def _local_day(value: datetime) -> date:
    return value.astimezone(ZoneInfo(SURVEY_TIMEZONE)).date()


def _structural_gate(survey: Survey) -> str | None:
    if not survey.has_questions():
        return "Cannot go live: Survey must have at least one question"
    if survey.start_date is None:
        return "Cannot go live: start date is required"
    if survey.end_date is None:
        return "Cannot go live: end date is required"
    return None


def validate_can_go_live(survey: Survey, now: datetime) -> None:
    """Raise ``InvalidStateError`` unless the survey may enter live at ``now``.

    The start date is compared by calendar day, so a survey scheduled for
    today may go live before the scheduled time. The end date is compared
    by instant.
    """
    now = as_utc(now)
    reason = _structural_gate(survey)
    if reason:
        raise InvalidStateError(reason)

    start_day = _local_day(survey.start_date)
    if start_day > _local_day(now):
        raise InvalidStateError(f"Cannot go live before the start date ({start_day.isoformat()})")
    if survey.end_date <= now:
        raise InvalidStateError("Cannot go live - survey end date has already passed")


def _enter_live(survey: Survey) -> None:
    survey.status = LIVE
    survey.locked = True


def request_transition(survey: Survey, target: SurveyStatus | str, now: datetime) -> Survey:
    now = as_utc(now)
    target = SurveyStatus(target)
    current = survey.status
    if target == current:
        return survey
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateError(f"Cannot move survey from {current.value} to {target.value}")

    if target == LIVE:
        validate_can_go_live(survey, now)
        _enter_live(survey)
    elif target == PUBLISHED:
        survey.status = PUBLISHED
        survey.locked = True
        survey.close_date = None
    elif target == DRAFT:
        survey.status = DRAFT
        survey.close_date = now
    else:
        # closed keeps whatever closeDate the caller set; archived has no side effects
        survey.status = target

    logger.info("[LIFECYCLE] survey=%s transition %s -> %s", survey.id, current.value, target.value)
    return survey


def ensure_just_in_time_transitions(survey: Survey, now: datetime) -> ReconcileResult:
    """Apply the date-driven transitions that should already have happened.

    Rules are re-applied until none fires, so a published survey whose whole
    window lies in the past settles on closed in a single call. Calling this
    again on the result changes nothing.
    """
    now = as_utc(now)
    result = ReconcileResult(survey=survey, previous_status=survey.status)

    while True:
        before = survey.status
        if survey.end_date is not None and survey.end_date <= now and before in (PUBLISHED, LIVE):
            survey.status = CLOSED
            survey.close_date = survey.end_date
        elif before == PUBLISHED and survey.start_date is not None and survey.start_date <= now:
            reason = _structural_gate(survey)
            if reason:
                if reason not in result.skipped:
                    result.skipped.append(reason)
                logger.warning("[LIFECYCLE] survey=%s auto-live skipped: %s", survey.id, reason)
                break
            _enter_live(survey)
        else:
            break
        result.record(before, survey.status)
        logger.info("[LIFECYCLE] survey=%s auto %s -> %s", survey.id, before.value, survey.status.value)

    return result


def apply_survey_update(survey: Survey, update: SurveyUpdate, now: datetime) -> ReconcileResult:
    now = as_utc(now)
    if survey.status == ARCHIVED:
        raise InvalidStateError("Archived surveys cannot be modified")

    result = ensure_just_in_time_transitions(survey, now)
    supplied = update.model_fields_set

    # A past end date closes the survey and nothing else in the request applies.
    if "end_date" in supplied and update.end_date is not None and update.end_date <= now:
        before = survey.status
        survey.end_date = update.end_date
        survey.close_date = update.end_date
        survey.status = CLOSED
        result.record(before, CLOSED)
        logger.info("[LIFECYCLE] survey=%s closed by end date update (%s)", survey.id, update.end_date.isoformat())
        return result

    if "pages" in supplied and update.pages is not None and survey.locked and update.pages != survey.pages:
        raise InvalidStateError("Survey locked after first publish")

    if survey.status == LIVE:
        for name in ("start_date", "end_date"):
            if name in supplied and getattr(update, name) is None:
                raise InvalidStateError("Live surveys require both a start date and an end date")

    for name in _PLAIN_FIELDS:
        if name not in supplied:
            continue
        value = getattr(update, name)
        if value is None and name in ("title", "pages"):
            continue
        if getattr(survey, name) != value:
            setattr(survey, name, value)
            result.changed = True

    if update.status is not None and update.status != survey.status:
        before = survey.status
        request_transition(survey, update.status, now)
        result.record(before, survey.status)
    else:
        result.merge(ensure_just_in_time_transitions(survey, now))

    return result
