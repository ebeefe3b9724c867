"""
Work Request Routes
Intake of new requests and status workflow updates
"""
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from typing import Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_postgres_session
from app.work_requests.application.use_cases import (
    CreateWorkRequestUseCase,
    GetWorkRequestUseCase,
    ListStatusHistoryUseCase,
    UpdateRequestStatusUseCase,
)
from app.work_requests.application.validation import (
    validate_request_payload,
    validate_status_update,
)
from app.work_requests.domain.errors import (
    NotFound,
    PersistenceError,
    RequestValidationError,
)
from app.work_requests.infrastructure.sqlalchemy_repository import (
    SqlAlchemyWorkRequestRepository,
)
from app.work_requests.presentation.response_mapper import (
    history_entry_to_response,
    validation_error_to_response,
    work_request_to_response,
)

# Create router
requests_router = APIRouter(prefix="/api", tags=["Work Requests"])

INVALID_REQUEST_ID = "Invalid request id"

# Upper bound of the integer primary key column
MAX_REQUEST_ID = 2**31 - 1


# ==================== HELPER FUNCTIONS ====================

def parse_request_id(raw: str) -> Optional[int]:
    """Request ids are positive integers; anything else is malformed."""
    if not (raw.isascii() and raw.isdigit()):
        return None
    request_id = int(raw)
    return request_id if 0 < request_id <= MAX_REQUEST_ID else None


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def validation_response(exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=validation_error_to_response(exc.message, exc.issues),
    )


# ==================== WORK REQUEST ROUTES ====================

@requests_router.post("/requests", status_code=201)
async def create_work_request(
    payload: Any = Body(...),
    session: AsyncSession = Depends(get_postgres_session)
):
    """Validate and store a new work request with its line items"""
    try:
        request = validate_request_payload(payload)
    except RequestValidationError as exc:
        return validation_response(exc)

    use_case = CreateWorkRequestUseCase(SqlAlchemyWorkRequestRepository(session))
    try:
        request_id = await use_case.execute(request)
    except PersistenceError as exc:
        return error_response(500, exc.message)

    return {"id": request_id}


@requests_router.patch("/requests/{request_id}/status")
async def update_request_status(
    request_id: str,
    payload: Any = Body(...),
    session: AsyncSession = Depends(get_postgres_session)
):
    """Move a request to a new status and record the transition"""
    parsed_id = parse_request_id(request_id)
    if parsed_id is None:
        return error_response(400, INVALID_REQUEST_ID)

    try:
        change = validate_status_update(payload)
    except RequestValidationError as exc:
        return validation_response(exc)

    use_case = UpdateRequestStatusUseCase(SqlAlchemyWorkRequestRepository(session))
    try:
        await use_case.execute(parsed_id, change)
    except NotFound as exc:
        return error_response(404, exc.message)
    except PersistenceError as exc:
        return error_response(500, exc.message)

    return {"ok": True}


@requests_router.get("/requests/{request_id}")
async def get_work_request(
    request_id: str,
    session: AsyncSession = Depends(get_postgres_session)
):
    """Get a single request with its line items"""
    parsed_id = parse_request_id(request_id)
    if parsed_id is None:
        return error_response(400, INVALID_REQUEST_ID)

    use_case = GetWorkRequestUseCase(SqlAlchemyWorkRequestRepository(session))
    try:
        request = await use_case.execute(parsed_id)
    except NotFound as exc:
        return error_response(404, exc.message)
    except PersistenceError as exc:
        return error_response(500, exc.message)

    return work_request_to_response(request)


@requests_router.get("/requests/{request_id}/history")
async def get_request_status_history(
    request_id: str,
    session: AsyncSession = Depends(get_postgres_session)
):
    """Get the status history of a request, oldest first"""
    parsed_id = parse_request_id(request_id)
    if parsed_id is None:
        return error_response(400, INVALID_REQUEST_ID)

    use_case = ListStatusHistoryUseCase(SqlAlchemyWorkRequestRepository(session))
    try:
        history = await use_case.execute(parsed_id)
    except NotFound as exc:
        return error_response(404, exc.message)
    except PersistenceError as exc:
        return error_response(500, exc.message)

    return [history_entry_to_response(entry) for entry in history]
