from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from statistics import fmean
from typing import Any, Callable, Union

from ..config import ANALYTICS_EXTRA_STOP_WORDS, TEXT_TOP_WORDS_LIMIT
from ..schemas import (
    AnalyticsReport,
    BasicStats,
    ChoiceStats,
    DataAnomaly,
    NumericStats,
    Question,
    QuestionAnalytics,
    QuestionType,
    Survey,
    TextStats,
    WordCount,
    flatten_questions,
)

logger = logging.getLogger(__name__)

CHOICE = "choice"
NUMERIC = "numeric"
TEXT = "text"
BASIC = "basic"

QUESTION_KINDS: dict[QuestionType, str] = {
    QuestionType.SINGLE_CHOICE: CHOICE,
    QuestionType.MULTI_CHOICE: CHOICE,
    QuestionType.DROPDOWN: CHOICE,
    QuestionType.SLIDER: NUMERIC,
    QuestionType.RATING_STAR: NUMERIC,
    QuestionType.RATING_SMILEY: NUMERIC,
    QuestionType.RATING_NUMBER: NUMERIC,
    QuestionType.TEXT_SHORT: TEXT,
    QuestionType.TEXT_LONG: TEXT,
    QuestionType.DATE_PICKER: BASIC,
    QuestionType.FILE_UPLOAD: BASIC,
    QuestionType.EMAIL: BASIC,
}

_unmapped = set(QuestionType) - set(QUESTION_KINDS)
if _unmapped:
    raise RuntimeError(f"No analytics kind for question types: {sorted(t.value for t in _unmapped)}")

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "must", "can", "cannot",
        "this", "that", "these", "those", "i", "you", "he", "she", "it", "we", "they",
        "me", "him", "her", "us", "them", "my", "your", "his", "its", "our", "their",
    }
) | ANALYTICS_EXTRA_STOP_WORDS

_TOKEN_RE = re.compile(r"[^\W_]+")


@dataclass(frozen=True)
class Accepted:
    response_index: int
    value: Any


@dataclass(frozen=True)
class Excluded:
    response_index: int
    value: Any
    reason: str


Outcome = Union[Accepted, Excluded]
# (response index, raw answer value)
GatheredAnswer = tuple[int, Any]


def question_kind(question_type: str) -> str:
    try:
        return QUESTION_KINDS[QuestionType(question_type)]
    except ValueError:
        return BASIC


def _as_text(value: Any, render: Callable[[Any], str] = str) -> str | None:
    # str() refuses ints past the interpreter's digit limit
    try:
        return render(value)
    except ValueError:
        return None


def _preview(value: Any) -> str | None:
    if value is None:
        return None
    text = _as_text(value, repr) or f"<{type(value).__name__} too large to display>"
    return text if len(text) <= 80 else text[:77] + "..."


def _answers_of(response: Any) -> Any:
    if isinstance(response, Mapping):
        answers = response.get("answers")
        if answers is None:
            # older documents keep answers under "responses"
            answers = response.get("responses")
        return [] if answers is None else answers
    if hasattr(response, "answers"):
        return response.answers or []
    return None


def _answer_fields(answer: Any) -> tuple[Any, Any]:
    if isinstance(answer, Mapping):
        qid = answer.get("questionId", answer.get("question_id"))
        return qid, answer.get("value")
    return getattr(answer, "question_id", None), getattr(answer, "value", None)


def _gather(
    responses: list[Any], question_ids: set[str], anomalies: list[DataAnomaly]
) -> dict[str, list[GatheredAnswer]]:
    by_question: dict[str, list[GatheredAnswer]] = {qid: [] for qid in question_ids}
    for idx, response in enumerate(responses):
        answers = _answers_of(response)
        if not isinstance(answers, (list, tuple)):
            anomalies.append(DataAnomaly(response_index=idx, reason="response has no answer list", value=_preview(answers)))
            continue
        for answer in answers:
            qid, value = _answer_fields(answer)
            if qid is None or qid == "":
                anomalies.append(DataAnomaly(response_index=idx, reason="answer is missing questionId", value=_preview(answer)))
                continue
            if not isinstance(qid, str):
                anomalies.append(DataAnomaly(response_index=idx, reason="questionId is not a string", value=_preview(answer)))
                continue
            bucket = by_question.get(qid)
            if bucket is None:
                continue
            bucket.append((idx, value))
    return by_question


# Choice


def _option_labels(question: Question) -> dict[str, str]:
    labels: dict[str, str] = {}
    for opt in question.options:
        label = opt.text or opt.value or opt.id
        labels.setdefault(opt.id, label)
        if opt.value:
            labels.setdefault(opt.value, label)
    return labels


def _choice_outcome(labels: dict[str, str], idx: int, value: Any) -> Outcome:
    if value is None or (isinstance(value, str) and not value.strip()):
        return Excluded(idx, value, "empty choice")
    if not isinstance(value, (str, int, float, bool)):
        return Excluded(idx, value, "unsupported choice value")
    key = _as_text(value)
    if key is None:
        return Excluded(idx, value, "unsupported choice value")
    return Accepted(idx, labels.get(key, key))


def _aggregate_choice(question: Question, answers: list[GatheredAnswer]) -> tuple[ChoiceStats, list[Excluded]]:
    labels = _option_labels(question)
    outcomes: list[Outcome] = []
    for idx, value in answers:
        # multi-choice answers hold a list; each element counts on its own
        items = value if isinstance(value, (list, tuple)) else [value]
        outcomes.extend(_choice_outcome(labels, idx, item) for item in items)

    counts: dict[str, int] = {}
    for outcome in outcomes:
        if isinstance(outcome, Accepted):
            counts[outcome.value] = counts.get(outcome.value, 0) + 1
    return ChoiceStats(counts=counts), [o for o in outcomes if isinstance(o, Excluded)]


# Numeric


def _numeric_outcome(idx: int, value: Any) -> Outcome:
    if isinstance(value, bool):
        return Excluded(idx, value, "boolean is not numeric")
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return Excluded(idx, value, "not a number")
    elif value is None:
        return Excluded(idx, value, "missing value")
    else:
        return Excluded(idx, value, "unsupported numeric value")

    # ints of any size arrive from JSON; they must survive the float maths below
    try:
        as_float = float(number)
    except OverflowError:
        return Excluded(idx, value, "not a finite number")
    if not math.isfinite(as_float):
        return Excluded(idx, value, "not a finite number")
    if isinstance(number, float) and number.is_integer():
        number = int(number)
    return Accepted(idx, number)


def _mean(values: list[int | float]) -> float:
    try:
        mean = fmean(values)
    except OverflowError:
        mean = math.inf
    if math.isfinite(mean):
        return mean
    # the running sum left float range; scale each term down first
    return math.fsum(v / len(values) for v in values)


def _aggregate_numeric(question: Question, answers: list[GatheredAnswer]) -> tuple[NumericStats, list[Excluded]]:
    outcomes = [_numeric_outcome(idx, value) for idx, value in answers]
    values = [o.value for o in outcomes if isinstance(o, Accepted)]
    excluded = [o for o in outcomes if isinstance(o, Excluded)]
    if not values:
        return NumericStats(), excluded

    distribution: dict[int | float, int] = {}
    for v in values:
        distribution[v] = distribution.get(v, 0) + 1
    return NumericStats(avg=_mean(values), min=min(values), max=max(values), distribution=distribution), excluded


# Text


def tokenize(text: str) -> list[str]:
    return [tok for tok in _TOKEN_RE.findall(text.lower()) if len(tok) > 1 and tok not in STOP_WORDS]


def top_words(texts: Iterable[str], limit: int = TEXT_TOP_WORDS_LIMIT) -> list[WordCount]:
    counter: Counter[str] = Counter()
    for text in texts:
        counter.update(tokenize(text))
    # most_common is stable, so equal counts keep first-seen order
    return [WordCount(word=word, count=count) for word, count in counter.most_common(limit)]


def _text_outcome(idx: int, value: Any) -> Outcome:
    if value is None:
        return Accepted(idx, "")
    if isinstance(value, str):
        return Accepted(idx, value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        text = _as_text(value)
        if text is not None:
            return Accepted(idx, text)
    return Excluded(idx, value, "unsupported text value")


def _aggregate_text(question: Question, answers: list[GatheredAnswer]) -> tuple[TextStats, list[Excluded]]:
    outcomes = [_text_outcome(idx, value) for idx, value in answers]
    texts = [o.value for o in outcomes if isinstance(o, Accepted)]
    return TextStats(top_words=top_words(texts)), [o for o in outcomes if isinstance(o, Excluded)]


def _aggregate_basic(question: Question, answers: list[GatheredAnswer]) -> tuple[BasicStats, list[Excluded]]:
    return BasicStats(response_count=len(answers)), []


_AGGREGATORS: dict[str, Callable[[Question, list[GatheredAnswer]], tuple[Any, list[Excluded]]]] = {
    CHOICE: _aggregate_choice,
    NUMERIC: _aggregate_numeric,
    TEXT: _aggregate_text,
    BASIC: _aggregate_basic,
}


def compute_report(
    questions: Iterable[Question],
    responses: Iterable[Any],
    survey_id: str | None = None,
) -> AnalyticsReport:
    """Aggregate every response into per-question statistics.

    ``responses`` may hold ``SurveyResponse`` models or raw stored documents.
    Bad answers never raise: each one is dropped from the statistic it would
    have fed and listed in ``report.anomalies``.
    """
    questions = list(questions)
    responses = list(responses)
    anomalies: list[DataAnomaly] = []
    gathered = _gather(responses, {q.id for q in questions}, anomalies)

    entries: list[QuestionAnalytics] = []
    for question in questions:
        answers = gathered[question.id]
        stats, excluded = _AGGREGATORS[question_kind(question.type)](question, answers)
        for item in excluded:
            anomalies.append(
                DataAnomaly(
                    question_id=question.id,
                    response_index=item.response_index,
                    reason=item.reason,
                    value=_preview(item.value),
                )
            )
        entries.append(
            QuestionAnalytics(
                question_id=question.id,
                type=question.type,
                title=question.title,
                total_responses=len({idx for idx, _ in answers}),
                analytics=stats,
            )
        )

    for anomaly in anomalies:
        logger.debug(
            "[ANALYTICS] survey=%s excluded question=%s response=%d reason=%s",
            survey_id,
            anomaly.question_id,
            anomaly.response_index,
            anomaly.reason,
        )
    logger.info(
        "[ANALYTICS] survey=%s responses=%d questions=%d excluded=%d",
        survey_id,
        len(responses),
        len(entries),
        len(anomalies),
    )
    return AnalyticsReport(
        survey_id=survey_id,
        total_responses=len(responses),
        questions=entries,
        anomalies=anomalies,
    )


def build_survey_report(survey: Survey, responses: Iterable[Any]) -> AnalyticsReport:
    return compute_report(flatten_questions(survey), responses, survey_id=survey.id)
