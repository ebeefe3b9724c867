import asyncio
from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from app.work_requests.application.use_cases import (
    CreateWorkRequestUseCase,
    UpdateRequestStatusUseCase,
)
from app.work_requests.domain.errors import PersistenceError
from app.work_requests.domain.models import (
    Lot,
    NewWorkRequest,
    Priority,
    RequestDetails,
    RequestKind,
    RequestStatus,
    SamplingDetails,
    SamplingLot,
    ShippingScope,
    StatusChange,
)
from app.work_requests.infrastructure.sqlalchemy_repository import (
    SqlAlchemyWorkRequestRepository,
)
from database import Lot as LotModel
from database import RequestStatusHistory, SamplingLot as SamplingLotModel
from database import WorkRequest as WorkRequestModel


CREATED_AT = datetime(2026, 10, 18, 10, 0, 0)


def run(coro):
    return asyncio.run(coro)


def lot_transfer(lots=None):
    return NewWorkRequest(
        kind=RequestKind.SHIPMENT_REQUEST,
        username="alice",
        priority=Priority.P1,
        date_of_request=datetime(2026, 10, 18, 9, 15, 30, 123456),
        details=RequestDetails(
            attention_to="Dock 4",
            returnable=False,
            domestic_international=ShippingScope.DOMESTIC,
        ),
        lots=lots if lots is not None else [
            Lot(lot_id="L1", units_quantity=5),
            Lot(lot_id="L2", serial_number="SN-9"),
        ],
    )


def sampling_request():
    return NewWorkRequest(
        kind=RequestKind.SAMPLING_REQUEST,
        username="bob",
        priority=Priority.P3,
        date_of_request=datetime(2026, 10, 18, 9, 0, 0),
        details=RequestDetails(),
        sampling=SamplingDetails(
            sampling_type="Reliability",
            qr_date=date(2026, 10, 25),
            project_name="Apollo",
        ),
        sampling_lots=[
            SamplingLot(
                lot_id="S1",
                unit_quantity=4,
                reliability_test="HTOL",
                test_condition="125C",
                attribute_to_tag="bin-2",
            )
        ],
    )


class FailingLineItemsRepository(SqlAlchemyWorkRequestRepository):
    async def _insert_line_items(self, request_id, request):
        raise RuntimeError("connection lost")


async def count_rows(session_maker, model):
    async with session_maker() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


async def create(session_maker, request, repository_class=SqlAlchemyWorkRequestRepository):
    async with session_maker() as session:
        use_case = CreateWorkRequestUseCase(repository_class(session), clock=lambda: CREATED_AT)
        return await use_case.execute(request)


async def fetch(session_maker, request_id):
    async with session_maker() as session:
        return await SqlAlchemyWorkRequestRepository(session).get_request(request_id)


async def change_status(session_maker, request_id, change, now):
    async with session_maker() as session:
        use_case = UpdateRequestStatusUseCase(SqlAlchemyWorkRequestRepository(session), clock=lambda: now)
        return await use_case.execute(request_id, change)


async def history(session_maker, request_id):
    async with session_maker() as session:
        return await SqlAlchemyWorkRequestRepository(session).list_history(request_id)


def test_created_request_round_trips(session_maker):
    request_id = run(create(session_maker, lot_transfer()))
    stored = run(fetch(session_maker, request_id))

    assert stored.id == request_id
    assert stored.kind == RequestKind.SHIPMENT_REQUEST
    assert stored.status == RequestStatus.NEW
    assert stored.date_of_request == datetime(2026, 10, 18, 9, 15, 30)
    assert stored.details.domestic_international == ShippingScope.DOMESTIC
    assert stored.details.returnable is False
    assert stored.sampling is None
    assert [lot.lot_id for lot in stored.lots] == ["L1", "L2"]
    assert stored.lots[1].units_quantity is None
    assert stored.lots[1].serial_number == "SN-9"
    assert list(stored.sampling_lots) == []
    assert stored.created_at == CREATED_AT
    assert stored.started_at is None
    assert run(history(session_maker, request_id)) == []


def test_sampling_request_uses_sampling_lots_table(session_maker):
    request_id = run(create(session_maker, sampling_request()))
    stored = run(fetch(session_maker, request_id))

    assert stored.sampling.qr_date == date(2026, 10, 25)
    assert stored.sampling.project_name == "Apollo"
    assert stored.sampling_lots[0].reliability_test == "HTOL"
    assert list(stored.lots) == []
    assert run(count_rows(session_maker, LotModel)) == 0
    assert run(count_rows(session_maker, SamplingLotModel)) == 1


def test_line_item_failure_rolls_back_parent(session_maker):
    with pytest.raises(PersistenceError):
        run(create(session_maker, lot_transfer(), FailingLineItemsRepository))

    assert run(count_rows(session_maker, WorkRequestModel)) == 0
    assert run(count_rows(session_maker, LotModel)) == 0


def test_constraint_violation_rolls_back_parent(session_maker):
    broken_lots = [Lot(lot_id="L1", units_quantity=1), Lot(lot_id=None)]

    with pytest.raises(PersistenceError):
        run(create(session_maker, lot_transfer(lots=broken_lots)))

    assert run(count_rows(session_maker, WorkRequestModel)) == 0
    assert run(count_rows(session_maker, LotModel)) == 0


def test_status_transitions_append_history(session_maker):
    request_id = run(create(session_maker, lot_transfer()))
    started = datetime(2026, 10, 18, 11, 0, 0)
    finished = datetime(2026, 10, 18, 15, 30, 0)

    run(change_status(session_maker, request_id, StatusChange(RequestStatus.IN_PROGRESS, executor="carol"), started))
    run(change_status(session_maker, request_id, StatusChange(RequestStatus.IN_PROGRESS), finished))
    run(change_status(session_maker, request_id, StatusChange(RequestStatus.COMPLETED), finished))

    stored = run(fetch(session_maker, request_id))
    entries = run(history(session_maker, request_id))

    assert stored.status == RequestStatus.COMPLETED
    assert stored.executor == "carol"
    assert stored.started_at == started
    assert stored.completed_at == finished
    assert stored.updated_at == finished
    assert [(entry.old_status, entry.new_status) for entry in entries] == [
        (RequestStatus.NEW, RequestStatus.IN_PROGRESS),
        (RequestStatus.IN_PROGRESS, RequestStatus.IN_PROGRESS),
        (RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED),
    ]
    assert entries[0].created_at == started


def test_issue_transition_stores_note(session_maker):
    request_id = run(create(session_maker, lot_transfer()))

    run(change_status(
        session_maker,
        request_id,
        StatusChange(RequestStatus.ISSUE, note="damaged"),
        datetime(2026, 10, 18, 12, 0, 0),
    ))

    stored = run(fetch(session_maker, request_id))
    entries = run(history(session_maker, request_id))

    assert stored.status == RequestStatus.ISSUE
    assert stored.issue_note == "damaged"
    assert len(entries) == 1
    assert entries[0].note == "damaged"
    assert run(count_rows(session_maker, RequestStatusHistory)) == 1
