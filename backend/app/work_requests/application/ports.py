from datetime import datetime
from typing import Optional, Protocol, Sequence

from app.work_requests.domain.models import (
    NewWorkRequest,
    StatusHistoryEntry,
    WorkflowState,
    WorkRequest,
)


class WorkRequestRepository(Protocol):
    async def add_request(self, request: NewWorkRequest, created_at: datetime) -> int:
        ...

    async def get_request(self, request_id: int) -> Optional[WorkRequest]:
        ...

    async def get_workflow_state(
        self, request_id: int, for_update: bool = False
    ) -> Optional[WorkflowState]:
        ...

    async def save_workflow_state(self, state: WorkflowState, updated_at: datetime) -> None:
        ...

    async def add_history_entry(self, entry: StatusHistoryEntry) -> None:
        ...

    async def list_history(self, request_id: int) -> Sequence[StatusHistoryEntry]:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
