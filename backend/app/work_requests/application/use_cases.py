import logging
from datetime import datetime
from typing import Callable, Sequence

from app.work_requests.application.ports import WorkRequestRepository
from app.work_requests.domain.errors import DomainError, NotFound, PersistenceError
from app.work_requests.domain.models import (
    NewWorkRequest,
    StatusChange,
    StatusHistoryEntry,
    WorkflowState,
    WorkRequest,
)
from app.work_requests.domain.workflow import apply_status_change, history_entry_for

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

REQUEST_NOT_FOUND = "Request not found"
SAVE_FAILED = "Failed to save request"
STATUS_UPDATE_FAILED = "Failed to update request status"
READ_FAILED = "Failed to load request"


def local_clock() -> datetime:
    """Local wall-clock time at second precision."""
    return datetime.now().replace(microsecond=0)


async def _rollback(repository: WorkRequestRepository) -> None:
    try:
        await repository.rollback()
    except Exception:
        logger.exception("Rollback failed")


class CreateWorkRequestUseCase:
    def __init__(self, repository: WorkRequestRepository, clock: Clock = local_clock) -> None:
        self._repository = repository
        self._clock = clock

    async def execute(self, request: NewWorkRequest) -> int:
        now = self._clock()
        try:
            request_id = await self._repository.add_request(request, now)
            await self._repository.commit()
        except Exception as exc:
            await _rollback(self._repository)
            logger.exception(f"Failed to persist {request.kind.value} for {request.username}")
            raise PersistenceError(SAVE_FAILED) from exc

        logger.info(
            f"Created {request.kind.value} #{request_id} "
            f"with {len(request.line_items)} line item(s) for {request.username}"
        )
        return request_id


class UpdateRequestStatusUseCase:
    def __init__(self, repository: WorkRequestRepository, clock: Clock = local_clock) -> None:
        self._repository = repository
        self._clock = clock

    async def execute(self, request_id: int, change: StatusChange) -> WorkflowState:
        try:
            state = await self._repository.get_workflow_state(request_id, for_update=True)
            if state is None:
                raise NotFound(REQUEST_NOT_FOUND)

            now = self._clock()
            updated = apply_status_change(state, change, now)
            await self._repository.save_workflow_state(updated, now)
            await self._repository.add_history_entry(
                history_entry_for(state, updated, change, now)
            )
            await self._repository.commit()
        except DomainError:
            await _rollback(self._repository)
            raise
        except Exception as exc:
            await _rollback(self._repository)
            logger.exception(f"Failed to update status of request #{request_id}")
            raise PersistenceError(STATUS_UPDATE_FAILED) from exc

        logger.info(
            f"Request #{request_id}: {state.status.value} -> {updated.status.value}"
            + (f" by {updated.executor}" if updated.executor else "")
        )
        return updated


class GetWorkRequestUseCase:
    def __init__(self, repository: WorkRequestRepository) -> None:
        self._repository = repository

    async def execute(self, request_id: int) -> WorkRequest:
        try:
            request = await self._repository.get_request(request_id)
        except Exception as exc:
            logger.exception(f"Failed to load request #{request_id}")
            raise PersistenceError(READ_FAILED) from exc
        if request is None:
            raise NotFound(REQUEST_NOT_FOUND)
        return request


class ListStatusHistoryUseCase:
    def __init__(self, repository: WorkRequestRepository) -> None:
        self._repository = repository

    async def execute(self, request_id: int) -> Sequence[StatusHistoryEntry]:
        try:
            state = await self._repository.get_workflow_state(request_id)
            history = await self._repository.list_history(request_id) if state else []
        except Exception as exc:
            logger.exception(f"Failed to load history of request #{request_id}")
            raise PersistenceError(READ_FAILED) from exc
        if state is None:
            raise NotFound(REQUEST_NOT_FOUND)
        return history
