import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence, Union


class RequestKind(str, enum.Enum):
    LOT_TRANSFER = "Lot Transfer"
    SHIPMENT_REQUEST = "Shipment Request"
    SCRAP_REQUEST = "Scrap Request"
    SAMPLING_REQUEST = "Sampling Request"

    @property
    def uses_sampling_lots(self) -> bool:
        return self is RequestKind.SAMPLING_REQUEST


class Priority(str, enum.Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class RequestStatus(str, enum.Enum):
    NEW = "New"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ISSUE = "Issue"


class ShippingScope(str, enum.Enum):
    DOMESTIC = "Domestic"
    INTERNATIONAL = "International"


@dataclass(frozen=True)
class Lot:
    lot_id: str
    units_quantity: Optional[int] = None
    serial_number: Optional[str] = None


@dataclass(frozen=True)
class SamplingLot:
    lot_id: str
    unit_quantity: int
    reliability_test: str
    test_condition: str
    attribute_to_tag: str


LineItem = Union[Lot, SamplingLot]


@dataclass(frozen=True)
class RequestDetails:
    """Optional descriptive fields shared by every request kind."""

    facility_location: Optional[str] = None
    receiver_name: Optional[str] = None
    qawr_number: Optional[str] = None
    jira_link: Optional[str] = None
    lot_location: Optional[str] = None
    attention_to: Optional[str] = None
    returnable: Optional[bool] = None
    domestic_international: Optional[ShippingScope] = None
    shipping_address: Optional[str] = None


@dataclass(frozen=True)
class SamplingDetails:
    sampling_type: str
    qr_date: date
    project_name: str


@dataclass(frozen=True)
class NewWorkRequest:
    """A validated request ready to be persisted."""

    kind: RequestKind
    username: str
    priority: Priority
    date_of_request: datetime
    details: RequestDetails
    lots: Sequence[Lot] = field(default_factory=list)
    sampling: Optional[SamplingDetails] = None
    sampling_lots: Sequence[SamplingLot] = field(default_factory=list)

    @property
    def line_items(self) -> Sequence[LineItem]:
        if self.kind.uses_sampling_lots:
            return self.sampling_lots
        return self.lots


@dataclass(frozen=True)
class WorkRequest:
    id: int
    kind: RequestKind
    username: str
    priority: Priority
    date_of_request: datetime
    details: RequestDetails
    status: RequestStatus
    created_at: datetime
    updated_at: datetime
    sampling: Optional[SamplingDetails] = None
    executor: Optional[str] = None
    issue_note: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    lots: Sequence[Lot] = field(default_factory=list)
    sampling_lots: Sequence[SamplingLot] = field(default_factory=list)


@dataclass(frozen=True)
class WorkflowState:
    """Mutable workflow fields of a request as read inside a status update."""

    request_id: int
    status: RequestStatus
    executor: Optional[str] = None
    issue_note: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class StatusChange:
    status: RequestStatus
    executor: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class StatusHistoryEntry:
    request_id: int
    old_status: Optional[RequestStatus]
    new_status: RequestStatus
    created_at: datetime
    executor: Optional[str] = None
    note: Optional[str] = None
    id: Optional[int] = None
