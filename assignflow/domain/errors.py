from __future__ import annotations


class EngineError(Exception):
    code = "ENGINE_ERROR"


class ValidationError(EngineError):
    """A recurrence rule or request is malformed. Raised before any expansion."""

    code = "VALIDATION_ERROR"

    def __init__(self, parameter: str, message: str) -> None:
        super().__init__(f"{parameter}: {message}")
        self.parameter = parameter
        self.message = message


class PreconditionError(EngineError):
    code = "INVALID_PRECONDITION"


class SeriesNotFoundError(PreconditionError):
    code = "SERIES_NOT_FOUND"

    def __init__(self, series_id: str) -> None:
        super().__init__(f"series {series_id} not found")
        self.series_id = series_id


class NotForeverError(PreconditionError):
    code = "NOT_FOREVER"

    def __init__(self, series_id: str) -> None:
        super().__init__(f"series {series_id} is not a forever series")
        self.series_id = series_id


class PartialPersistenceFailure(EngineError):
    """Some items of an unordered bulk write failed; the rest were written."""

    code = "PARTIAL_PERSISTENCE_FAILURE"

    def __init__(self, succeeded: int, failed: int) -> None:
        super().__init__(f"{succeeded} written, {failed} failed")
        self.succeeded = succeeded
        self.failed = failed
