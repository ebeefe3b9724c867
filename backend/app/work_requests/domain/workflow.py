from dataclasses import replace
from datetime import datetime

from app.work_requests.domain.models import (
    RequestStatus,
    StatusChange,
    StatusHistoryEntry,
    WorkflowState,
)


def apply_status_change(
    state: WorkflowState,
    change: StatusChange,
    now: datetime,
) -> WorkflowState:
    """Return the workflow fields after ``change`` is applied at ``now``.

    Any status may follow any other. started_at and completed_at are only
    ever set once; the issue note always reflects the latest Issue entry.
    """
    updated = replace(state, status=change.status)

    if change.executor is not None:
        updated = replace(updated, executor=change.executor)

    if change.status == RequestStatus.IN_PROGRESS and updated.started_at is None:
        updated = replace(updated, started_at=now)
    elif change.status == RequestStatus.COMPLETED and updated.completed_at is None:
        updated = replace(updated, completed_at=now)
    elif change.status == RequestStatus.ISSUE:
        updated = replace(updated, issue_note=change.note)

    return updated


def history_entry_for(
    previous: WorkflowState,
    updated: WorkflowState,
    change: StatusChange,
    now: datetime,
) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        request_id=previous.request_id,
        old_status=previous.status,
        new_status=updated.status,
        executor=updated.executor,
        note=change.note,
        created_at=now,
    )
