"""Error taxonomy for job processing.

Every error a handler can raise carries a ``kind``. The job processor writes
``"<kind>: <message>"`` into a failed operation and stores the kind on its own
so status queries can report an error category.
"""


class JobError(Exception):
    """Base class for classified job errors."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def classified(self) -> str:
        """Human-readable message prefixed with the error category."""
        return f"{self.kind}: {self.message}"


class ValidationError(JobError):
    """Malformed input to a handler. Never retried."""

    kind = "validation"


class DuplicateError(JobError):
    """An operation or draft already exists for the target week."""

    kind = "duplicate"

    def __init__(self, message: str, existing_operation_id: str | None = None):
        super().__init__(message)
        self.existing_operation_id = existing_operation_id


class TransientSourceError(JobError):
    """One integration source failed. Consolidation continues without it."""

    kind = "source_unavailable"

    def __init__(self, source_id: str, message: str, retryable: bool = True):
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id
        self.retryable = retryable


class LLMError(JobError):
    """Text generation failed."""

    kind = "llm"

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class JobTimeoutError(JobError):
    """Operation exceeded its maximum processing duration."""

    kind = "timeout"


class PersistenceError(JobError):
    """A database read or write failed. Always fatal to the operation."""

    kind = "persistence"


class UnknownJobTypeError(ValidationError):
    """No handler is registered for the requested job type."""
