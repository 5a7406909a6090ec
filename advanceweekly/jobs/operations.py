"""Operation persistence and the conditional writes of its state machine."""

import logging
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from advanceweekly.db import SessionFactory, get_session
from advanceweekly.errors import DuplicateError, PersistenceError, ValidationError
from advanceweekly.handlers import HandlerRegistry, handler_registry
from advanceweekly.models.operation import JobType, Operation, OperationStatus
from advanceweekly.weeks import IsoWeek, utc_now

logger = logging.getLogger(__name__)


class OperationService:
    """Creates operations and moves them through queued -> processing -> completed/failed.

    Every status change is a single UPDATE guarded by the expected current
    status, so a record that has left a state can never be written back into it.
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        registry: HandlerRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._registry = registry or handler_registry

    async def enqueue(
        self,
        user_id: str,
        job_type: JobType | str,
        input_data: dict[str, Any] | None,
        metadata: dict[str, Any] | None = None,
    ) -> Operation:
        """Validate ``input_data`` with the job type's handler and queue a new operation.

        Raises:
            UnknownJobTypeError: No handler for ``job_type``.
            ValidationError: Blank ``user_id`` or the handler rejected the payload.
            DuplicateError: A non-failed operation or finished output already exists
                for the same target.
            PersistenceError: The operation could not be written.
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id must not be blank")
        handler = self._registry.get(job_type)
        payload = handler.decode(input_data)
        handler.validate(payload)
        dedup_key = handler.dedup_key(payload)

        try:
            async with self._session_factory() as session:
                if dedup_key is not None:
                    await self._check_duplicate(session, user_id, handler.job_type, dedup_key)
                    if await handler.already_done(session, user_id, payload):
                        raise DuplicateError(f"{handler.job_type.value} output already exists for {dedup_key}")

                operation = Operation(
                    user_id=user_id,
                    job_type=handler.job_type,
                    status=OperationStatus.QUEUED,
                    dedup_key=dedup_key,
                    input_data=payload.model_dump(mode="json"),
                    extra_metadata=dict(metadata or {}),
                )
                session.add(operation)
                await session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent enqueue for the same target
            existing = await self.find_active(user_id, handler.job_type, dedup_key)
            raise DuplicateError(
                f"{handler.job_type.value} already queued for {dedup_key}",
                existing_operation_id=str(existing.id) if existing else None,
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not enqueue operation: {exc}") from exc

        logger.info(
            "Enqueued %s operation %s for user %s (%s)",
            handler.job_type.value,
            operation.id,
            user_id,
            dedup_key or "no dedup key",
        )
        return operation

    async def enqueue_weekly_reflection(
        self,
        user_id: str,
        week: IsoWeek,
        include_integrations: Iterable[str],
        metadata: dict[str, Any] | None = None,
    ) -> Operation:
        return await self.enqueue(
            user_id,
            JobType.WEEKLY_REFLECTION_GENERATION,
            {
                "week_start": week.start.isoformat(),
                "week_end": week.end.isoformat(),
                "include_integrations": list(include_integrations),
            },
            metadata,
        )

    async def _check_duplicate(
        self, session: AsyncSession, user_id: str, job_type: JobType, dedup_key: str
    ) -> None:
        existing = (
            await session.execute(
                select(Operation)
                .where(
                    Operation.user_id == user_id,
                    Operation.job_type == job_type,
                    Operation.dedup_key == dedup_key,
                    Operation.status != OperationStatus.FAILED,
                )
                .order_by(Operation.created_at)
                .limit(1)
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateError(
                f"{job_type.value} already {existing.status.value} for {dedup_key}",
                existing_operation_id=str(existing.id),
            )

    async def find_active(self, user_id: str, job_type: JobType, dedup_key: str | None) -> Operation | None:
        """The non-failed operation holding ``dedup_key``, if any."""
        if dedup_key is None:
            return None
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Operation).where(
                        Operation.user_id == user_id,
                        Operation.job_type == job_type,
                        Operation.dedup_key == dedup_key,
                        Operation.status != OperationStatus.FAILED,
                    )
                )
                return result.scalars().first()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not look up operations: {exc}") from exc

    async def get(self, operation_id: UUID) -> Operation | None:
        try:
            async with self._session_factory() as session:
                return await session.get(Operation, operation_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not load operation {operation_id}: {exc}") from exc

    async def get_status(self, operation_id: UUID) -> dict[str, Any]:
        """Status query payload, or ``{"status": "not_found"}``."""
        operation = await self.get(operation_id)
        if operation is None:
            return {"operation_id": str(operation_id), "status": "not_found"}
        return operation.to_status()

    async def next_queued(self, limit: int) -> list[UUID]:
        """Oldest queued operation ids."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Operation.id)
                    .where(Operation.status == OperationStatus.QUEUED)
                    .order_by(Operation.created_at)
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not poll queued operations: {exc}") from exc

    async def claim(self, operation_id: UUID) -> bool:
        """Move a queued operation to processing. Only one caller can ever win."""
        return await self._transition(
            operation_id,
            OperationStatus.QUEUED,
            status=OperationStatus.PROCESSING,
            started_at=utc_now(),
        )

    async def report_progress(self, operation_id: UUID, progress: int, step: str | None = None) -> int | None:
        """Persist progress for a processing operation.

        Progress is clamped to ``[current, 100]`` so reads never go backwards.
        Returns the stored value, or ``None`` when the operation is no longer
        processing.
        """
        try:
            async with self._session_factory() as session:
                operation = await session.get(Operation, operation_id)
                if operation is None or operation.status != OperationStatus.PROCESSING:
                    return None

                value = min(100, max(operation.progress, int(progress)))
                metadata = dict(operation.extra_metadata or {})
                if step is not None:
                    metadata["current_step"] = step

                result = await session.execute(
                    update(Operation)
                    .where(
                        Operation.id == operation_id,
                        Operation.status == OperationStatus.PROCESSING,
                        Operation.progress <= value,
                    )
                    .values(progress=value, extra_metadata=metadata)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not record progress for {operation_id}: {exc}") from exc

        return value if result.rowcount == 1 else None

    async def complete(self, operation_id: UUID, result_data: dict[str, Any]) -> bool:
        return await self._transition(
            operation_id,
            OperationStatus.PROCESSING,
            status=OperationStatus.COMPLETED,
            result_data=result_data,
            progress=100,
            completed_at=utc_now(),
        )

    async def fail(self, operation_id: UUID, error_kind: str, error_message: str) -> bool:
        return await self._transition(
            operation_id,
            OperationStatus.PROCESSING,
            status=OperationStatus.FAILED,
            error_kind=error_kind,
            error_message=error_message,
            completed_at=utc_now(),
        )

    async def _transition(self, operation_id: UUID, expected: OperationStatus, **values: Any) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(Operation)
                    .where(Operation.id == operation_id, Operation.status == expected)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"could not move operation {operation_id} to {values['status'].value}: {exc}"
            ) from exc

        changed = result.rowcount == 1
        if not changed:
            logger.debug(
                "Operation %s not %s, skipped transition to %s", operation_id, expected.value, values["status"].value
            )
        return changed


# Global singleton instance
operation_service = OperationService()
