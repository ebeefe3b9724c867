from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.work_requests.application.ports import WorkRequestRepository
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
    StatusHistoryEntry,
    WorkflowState,
    WorkRequest,
)
from database import (
    Lot as LotModel,
    RequestStatusHistory as RequestStatusHistoryModel,
    SamplingLot as SamplingLotModel,
    WorkRequest as WorkRequestModel,
)


def _optional_enum(enum_type, value):
    return enum_type(value) if value is not None else None


class SqlAlchemyWorkRequestRepository(WorkRequestRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_request(self, request: NewWorkRequest, created_at: datetime) -> int:
        details = request.details
        sampling = request.sampling
        new_request = WorkRequestModel(
            username=request.username,
            request_type=request.kind.value,
            task_priority=request.priority.value,
            date_of_request=request.date_of_request.replace(microsecond=0),
            facility_location=details.facility_location,
            receiver_name=details.receiver_name,
            qawr_number=details.qawr_number,
            jira_link=details.jira_link,
            lot_location=details.lot_location,
            attention_to=details.attention_to,
            returnable=details.returnable,
            domestic_international=(
                details.domestic_international.value if details.domestic_international else None
            ),
            shipping_address=details.shipping_address,
            sampling_type=sampling.sampling_type if sampling else None,
            qr_date=sampling.qr_date if sampling else None,
            project_name=sampling.project_name if sampling else None,
            status=RequestStatus.NEW.value,
            created_at=created_at,
            updated_at=created_at,
        )
        self._session.add(new_request)
        await self._session.flush()

        await self._insert_line_items(new_request.id, request)
        return new_request.id

    async def _insert_line_items(self, request_id: int, request: NewWorkRequest) -> None:
        """Insert every line item of the request in one bulk statement."""
        if request.kind.uses_sampling_lots:
            rows = [
                {
                    "request_id": request_id,
                    "lot_id": lot.lot_id,
                    "unit_quantity": lot.unit_quantity,
                    "reliability_test": lot.reliability_test,
                    "test_condition": lot.test_condition,
                    "attribute_to_tag": lot.attribute_to_tag,
                }
                for lot in request.sampling_lots
            ]
            await self._session.execute(insert(SamplingLotModel), rows)
        else:
            rows = [
                {
                    "request_id": request_id,
                    "lot_id": lot.lot_id,
                    "units_quantity": lot.units_quantity,
                    "serial_number": lot.serial_number,
                }
                for lot in request.lots
            ]
            await self._session.execute(insert(LotModel), rows)

    async def get_request(self, request_id: int) -> Optional[WorkRequest]:
        result = await self._session.execute(
            select(WorkRequestModel).where(WorkRequestModel.id == request_id)
        )
        req = result.scalar_one_or_none()
        if req is None:
            return None

        kind = RequestKind(req.request_type)
        lots: list[Lot] = []
        sampling_lots: list[SamplingLot] = []
        if kind.uses_sampling_lots:
            items_result = await self._session.execute(
                select(SamplingLotModel)
                .where(SamplingLotModel.request_id == request_id)
                .order_by(SamplingLotModel.id)
            )
            sampling_lots = [
                SamplingLot(
                    lot_id=item.lot_id,
                    unit_quantity=item.unit_quantity,
                    reliability_test=item.reliability_test,
                    test_condition=item.test_condition,
                    attribute_to_tag=item.attribute_to_tag,
                )
                for item in items_result.scalars().all()
            ]
        else:
            items_result = await self._session.execute(
                select(LotModel)
                .where(LotModel.request_id == request_id)
                .order_by(LotModel.id)
            )
            lots = [
                Lot(
                    lot_id=item.lot_id,
                    units_quantity=item.units_quantity,
                    serial_number=item.serial_number,
                )
                for item in items_result.scalars().all()
            ]

        sampling = None
        if kind.uses_sampling_lots:
            sampling = SamplingDetails(
                sampling_type=req.sampling_type,
                qr_date=req.qr_date,
                project_name=req.project_name,
            )

        return WorkRequest(
            id=req.id,
            kind=kind,
            username=req.username,
            priority=Priority(req.task_priority),
            date_of_request=req.date_of_request,
            details=RequestDetails(
                facility_location=req.facility_location,
                receiver_name=req.receiver_name,
                qawr_number=req.qawr_number,
                jira_link=req.jira_link,
                lot_location=req.lot_location,
                attention_to=req.attention_to,
                returnable=req.returnable,
                domestic_international=_optional_enum(ShippingScope, req.domestic_international),
                shipping_address=req.shipping_address,
            ),
            sampling=sampling,
            status=RequestStatus(req.status),
            executor=req.executor,
            issue_note=req.issue_note,
            started_at=req.started_at,
            completed_at=req.completed_at,
            created_at=req.created_at,
            updated_at=req.updated_at,
            lots=lots,
            sampling_lots=sampling_lots,
        )

    async def get_workflow_state(
        self, request_id: int, for_update: bool = False
    ) -> Optional[WorkflowState]:
        query = select(WorkRequestModel).where(WorkRequestModel.id == request_id)
        if for_update:
            query = query.with_for_update()

        result = await self._session.execute(query)
        req = result.scalar_one_or_none()
        if req is None:
            return None
        return WorkflowState(
            request_id=req.id,
            status=RequestStatus(req.status),
            executor=req.executor,
            issue_note=req.issue_note,
            started_at=req.started_at,
            completed_at=req.completed_at,
        )

    async def save_workflow_state(self, state: WorkflowState, updated_at: datetime) -> None:
        await self._session.execute(
            update(WorkRequestModel)
            .where(WorkRequestModel.id == state.request_id)
            .values(
                status=state.status.value,
                executor=state.executor,
                issue_note=state.issue_note,
                started_at=state.started_at,
                completed_at=state.completed_at,
                updated_at=updated_at,
            )
        )

    async def add_history_entry(self, entry: StatusHistoryEntry) -> None:
        history = RequestStatusHistoryModel(
            request_id=entry.request_id,
            old_status=entry.old_status.value if entry.old_status else None,
            new_status=entry.new_status.value,
            executor=entry.executor,
            note=entry.note,
            created_at=entry.created_at,
        )
        self._session.add(history)

    async def list_history(self, request_id: int) -> Sequence[StatusHistoryEntry]:
        result = await self._session.execute(
            select(RequestStatusHistoryModel)
            .where(RequestStatusHistoryModel.request_id == request_id)
            .order_by(RequestStatusHistoryModel.id)
        )
        return [
            StatusHistoryEntry(
                id=row.id,
                request_id=row.request_id,
                old_status=_optional_enum(RequestStatus, row.old_status),
                new_status=RequestStatus(row.new_status),
                executor=row.executor,
                note=row.note,
                created_at=row.created_at,
            )
            for row in result.scalars().all()
        ]

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
