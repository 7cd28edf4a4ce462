import re
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import HTTPException

from .errors import InvalidStateError, RespondentNotAllowedError, ResponseRejectedError, SurveyNotFoundError

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_respondent_email(email: str) -> str:
    e = normalize_email(email)
    if len(e) > 254:
        raise HTTPException(status_code=400, detail="Email too long")
    if not _EMAIL_RE.match(e):
        raise HTTPException(status_code=400, detail="Invalid email format")
    return e


def detail(*, message: str, hint: str | None = None, errors: list[dict[str, Any]] | None = None, trace_id: str | None = None) -> dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "hint": hint,
        "errors": errors or [],
        "trace_id": trace_id or str(uuid.uuid4()),
    }


@contextmanager
def domain_errors() -> Iterator[None]:
    """Translate lifecycle and respondent errors into structured HTTP errors."""
    try:
        yield
    except SurveyNotFoundError as exc:
        raise HTTPException(status_code=404, detail=detail(message="Survey not found", hint=str(exc))) from exc
    except InvalidStateError as exc:
        raise HTTPException(status_code=409, detail=detail(message=exc.reason)) from exc
    except RespondentNotAllowedError as exc:
        raise HTTPException(status_code=403, detail=detail(message=exc.reason)) from exc
    except ResponseRejectedError as exc:
        raise HTTPException(status_code=409, detail=detail(message=exc.reason)) from exc
