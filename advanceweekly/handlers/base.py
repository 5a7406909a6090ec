"""Handler contract and the job-type registry."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from advanceweekly.errors import UnknownJobTypeError, ValidationError
from advanceweekly.models.operation import JobType

PayloadT = TypeVar("PayloadT", bound=BaseModel)

# Persists (progress, step message) for the running operation
ProgressReporter = Callable[[int, str | None], Awaitable[None]]


@dataclass
class JobContext:
    """What a handler knows about the operation it is running."""

    operation_id: UUID
    user_id: str
    reporter: ProgressReporter
    metadata: dict[str, Any] = field(default_factory=dict)

    async def report(self, progress: int, step: str | None = None) -> None:
        await self.reporter(progress, step)


class JobHandler(ABC, Generic[PayloadT]):
    """Domain logic for one job type.

    The processor only ever passes opaque ``input_data`` to ``decode``; the
    handler owns the payload shape from there on.
    """

    job_type: JobType
    input_model: type[PayloadT]

    def decode(self, raw: dict[str, Any] | None) -> PayloadT:
        """Parse raw ``input_data`` into this handler's payload model.

        Raises:
            ValidationError: The payload does not match ``input_model``.
        """
        try:
            return self.input_model.model_validate(raw or {})
        except PydanticValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'input'}: {error['msg']}"
                for error in exc.errors()
            )
            raise ValidationError(f"invalid {self.job_type.value} input: {errors}") from exc

    def validate(self, payload: PayloadT) -> None:
        """Check semantic constraints the model cannot express. Raises ValidationError."""

    @abstractmethod
    async def process(self, payload: PayloadT, context: JobContext) -> dict[str, Any]:
        """Run the job and return its result payload."""

    def dedup_key(self, payload: PayloadT) -> str | None:
        """Identity of the job's target. ``None`` disables deduplication."""
        return None

    async def already_done(self, session: AsyncSession, user_id: str, payload: PayloadT) -> bool:
        """Whether the job's output already exists, making a new operation redundant."""
        return False


class IncompleteRegistryError(RuntimeError):
    """A job type has no registered handler."""


class HandlerRegistry:
    """Maps every ``JobType`` to exactly one handler."""

    def __init__(self, handlers: Iterable[JobHandler]):
        self._handlers: dict[JobType, JobHandler] = {}
        for handler in handlers:
            self.register(handler)
        self.verify_complete()

    def register(self, handler: JobHandler) -> None:
        if handler.job_type in self._handlers:
            raise ValueError(f"handler already registered for {handler.job_type.value}")
        self._handlers[handler.job_type] = handler

    def verify_complete(self) -> None:
        missing = [job_type.value for job_type in JobType if job_type not in self._handlers]
        if missing:
            raise IncompleteRegistryError(f"no handler registered for: {', '.join(missing)}")

    def get(self, job_type: JobType | str) -> JobHandler:
        """Resolve the handler for ``job_type``.

        Raises:
            UnknownJobTypeError: ``job_type`` is not a known job type.
        """
        try:
            return self._handlers[JobType(job_type)]
        except (ValueError, KeyError):
            raise UnknownJobTypeError(f"unknown job type: {job_type}") from None

    @property
    def job_types(self) -> list[JobType]:
        return list(self._handlers)
