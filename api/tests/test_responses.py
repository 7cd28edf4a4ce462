from datetime import datetime, timedelta, timezone

import pytest

from survey_api import repo
from survey_api.errors import RespondentNotAllowedError, ResponseRejectedError
from survey_api.schemas import (
    Answer,
    Page,
    Question,
    ResponseMetadata,
    ResponsePayload,
    ResponseStatus,
    Survey,
    SurveyResponse,
)
from survey_api.services import responses as svc

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class FakeSession:
    def __init__(self):
        self.commits = 0

    def commit(self):
        self.commits += 1


def _survey(status="live", allowed=None, end=NOW + timedelta(days=2), pages=3) -> Survey:
    return Survey(
        title="Pulse",
        status=status,
        start_date=NOW - timedelta(days=2),
        end_date=end,
        locked=True,
        allowed_respondents=allowed or [],
        pages=[Page(questions=[Question(id=f"q{i}", type="textShort", title="t")]) for i in range(pages)],
    )


@pytest.fixture
def store(monkeypatch):
    saved = {}
    monkeypatch.setattr(repo, "get_response", lambda db, survey_id, email: saved.get((survey_id, email)))

    def _upsert(db, response):
        saved[(response.survey_id, response.respondent_email)] = response.model_copy(deep=True)

    monkeypatch.setattr(repo, "upsert_response", _upsert)
    return saved


def test_respondent_outside_invite_list_is_rejected():
    survey = _survey(allowed=["a@example.com"])

    svc.check_respondent_allowed(survey, " A@Example.com ")
    with pytest.raises(RespondentNotAllowedError, match="Email not authorized for this survey"):
        svc.check_respondent_allowed(survey, "b@example.com")


def test_empty_invite_list_accepts_anyone():
    svc.check_respondent_allowed(_survey(), "anyone@example.com")


@pytest.mark.parametrize("status", ["draft", "closed", "archived"])
def test_submit_requires_published_or_live(status):
    with pytest.raises(ResponseRejectedError, match="Survey is not available for responses"):
        svc.check_can_submit(_survey(status=status), None, NOW)


def test_submit_rejected_once_end_date_reached_even_before_reconcile():
    with pytest.raises(ResponseRejectedError, match="Survey has closed"):
        svc.check_can_submit(_survey(end=NOW), None, NOW)


def test_completed_response_cannot_be_saved_again():
    done = SurveyResponse(survey_id="s", respondent_email="a@example.com", status="Completed")

    with pytest.raises(ResponseRejectedError, match="Survey already submitted"):
        svc.check_can_autosave(done)
    with pytest.raises(ResponseRejectedError, match="Survey already submitted"):
        svc.check_can_submit(_survey(), done, NOW)


def test_autosave_then_submit_keeps_started_at(store):
    db = FakeSession()
    survey = _survey()
    first = ResponsePayload(answers=[Answer(question_id="q0", value="hi")], metadata=ResponseMetadata(last_page_index=0))

    saved = svc.autosave_response(db, survey, "a@example.com", first, NOW)
    assert saved.status == ResponseStatus.IN_PROGRESS
    assert saved.started_at == NOW
    assert saved.submitted_at is None

    later = NOW + timedelta(minutes=5)
    final = ResponsePayload(answers=[Answer(question_id="q0", value="hello"), Answer(question_id="q1", value="x", page_index=1)])
    submitted = svc.submit_response(db, survey, "a@example.com", final, later)

    assert submitted.status == ResponseStatus.COMPLETED
    assert submitted.started_at == NOW
    assert submitted.submitted_at == later
    assert [a.value for a in submitted.answers] == ["hello", "x"]
    assert db.commits == 2
    assert store[(survey.id, "a@example.com")].status == ResponseStatus.COMPLETED


def test_autosave_after_submit_is_rejected(store):
    db = FakeSession()
    survey = _survey()
    svc.submit_response(db, survey, "a@example.com", ResponsePayload(), NOW)

    with pytest.raises(ResponseRejectedError):
        svc.autosave_response(db, survey, "a@example.com", ResponsePayload(), NOW)
    assert db.commits == 1


def test_uninvited_respondent_never_reaches_storage(store):
    db = FakeSession()

    with pytest.raises(RespondentNotAllowedError):
        svc.submit_response(db, _survey(allowed=["a@example.com"]), "b@example.com", ResponsePayload(), NOW)
    assert store == {}
    assert db.commits == 0


def test_email_hash_is_stable_and_case_insensitive():
    assert svc.email_hash("A@Example.com") == svc.email_hash("a@example.com ")
    assert len(svc.email_hash("a@example.com")) == 12


def test_progress_orders_completed_then_most_recent():
    survey = _survey(allowed=["idle@example.com", "old@example.com", "done@example.com", "new@example.com"], pages=4)
    rows = svc.respondent_progress(
        survey,
        [
            SurveyResponse(
                survey_id=survey.id,
                respondent_email="old@example.com",
                status="InProgress",
                started_at=NOW - timedelta(days=2),
                metadata=ResponseMetadata(last_page_index=0, time_spent=30, pages_visited=[0]),
            ),
            SurveyResponse(
                survey_id=survey.id,
                respondent_email="new@example.com",
                status="InProgress",
                started_at=NOW - timedelta(hours=1),
                metadata=ResponseMetadata(last_page_index=1, pages_visited=[0, 1]),
            ),
            SurveyResponse(
                survey_id=survey.id,
                respondent_email="done@example.com",
                status="Completed",
                started_at=NOW - timedelta(days=3),
                submitted_at=NOW - timedelta(days=3),
            ),
        ],
    )

    assert [r["email"] for r in rows] == ["done@example.com", "new@example.com", "old@example.com", "idle@example.com"]
    done, new, old, idle = rows
    assert done["completionPercentage"] == 100
    assert done["progress"] == 4
    assert new["progress"] == 2
    assert new["completionPercentage"] == 50
    assert old["timeSpent"] == 30
    assert old["pagesVisited"] == [0]
    assert idle["status"] == "NotStarted"
    assert idle["lastUpdated"] is None
    assert idle["totalPages"] == 4


def test_progress_never_exceeds_the_page_count():
    survey = _survey(allowed=["ahead@example.com", "odd@example.com"], pages=2)
    rows = svc.respondent_progress(
        survey,
        [
            SurveyResponse(
                survey_id=survey.id,
                respondent_email="ahead@example.com",
                status="InProgress",
                started_at=NOW,
                metadata=ResponseMetadata(last_page_index=5),
            ),
            SurveyResponse(
                survey_id=survey.id,
                respondent_email="odd@example.com",
                status="InProgress",
                started_at=NOW - timedelta(hours=1),
                metadata=ResponseMetadata(last_page_index=-3),
            ),
        ],
    )

    ahead, odd = rows
    assert ahead["progress"] == 2
    assert ahead["completionPercentage"] == 100
    assert odd["progress"] == 0
    assert odd["completionPercentage"] == 0
