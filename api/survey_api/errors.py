class InvalidStateError(Exception):
    """A requested lifecycle change violates a precondition."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ResponseRejectedError(Exception):
    """A respondent write is not allowed in the survey's current state."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SurveyNotFoundError(LookupError):
    def __init__(self, survey_id: str) -> None:
        super().__init__(f"Survey {survey_id} not found")
        self.survey_id = survey_id


class RespondentNotAllowedError(ResponseRejectedError):
    pass
