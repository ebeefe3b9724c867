"""
Schema validation for incoming work-request payloads.

Payloads arrive as untyped JSON objects. The ``requestType`` field selects one
of four variants; each variant is a pydantic model carrying only its own
fields. All violations are collected and raised together as a
``RequestValidationError``.
"""
from abc import abstractmethod
from datetime import date, datetime, time
from typing import Annotated, Any, Dict, List, Literal, Optional, Type

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    StringConstraints,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from app.work_requests.domain.errors import RequestValidationError, ValidationIssue
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

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]

RETURNABLE_ANSWERS = {"Yes": True, "No": False}

LINE_ITEMS_REQUIRED = "at least one line item required"
UNKNOWN_REQUEST_KIND = "unknown request kind"


# ==================== COERCION HELPERS ====================

def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def coerce_datetime(value: Any) -> Any:
    """Accept datetime, date or ISO-8601 text; aware values become local time."""
    if value is None:
        return value
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return _to_local_naive(datetime.fromisoformat(text))
        except ValueError:
            raise ValueError("invalid date") from None
    raise ValueError("invalid date")


def coerce_date(value: Any) -> Any:
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    return coerce_datetime(value).date()


def reject_boolean(value: Any) -> Any:
    """Quantities take numbers or numeric text; JSON booleans are not numbers."""
    if isinstance(value, bool):
        raise ValueError("must be a number")
    return value


NonNegativeQuantity = Annotated[NonNegativeInt, BeforeValidator(reject_boolean)]
PositiveQuantity = Annotated[PositiveInt, BeforeValidator(reject_boolean)]


def _today_from(info: ValidationInfo) -> date:
    context = info.context or {}
    today = context.get("today")
    return today if today is not None else date.today()


# ==================== PAYLOAD MODELS ====================

class PayloadModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class LotPayload(PayloadModel):
    lot_id: NonEmptyStr
    units_quantity: Optional[NonNegativeQuantity] = None
    serial_number: Optional[NonEmptyStr] = None

    def to_domain(self) -> Lot:
        return Lot(
            lot_id=self.lot_id,
            units_quantity=self.units_quantity,
            serial_number=self.serial_number,
        )


class SamplingLotPayload(PayloadModel):
    lot_id: NonEmptyStr
    unit_quantity: PositiveQuantity
    reliability_test: NonEmptyStr
    test_condition: NonEmptyStr
    attribute_to_tag: NonEmptyStr

    def to_domain(self) -> SamplingLot:
        return SamplingLot(
            lot_id=self.lot_id,
            unit_quantity=self.unit_quantity,
            reliability_test=self.reliability_test,
            test_condition=self.test_condition,
            attribute_to_tag=self.attribute_to_tag,
        )


class BaseRequestPayload(PayloadModel):
    """Fields shared by every request kind."""

    request_type: str
    username: NonEmptyStr
    task_priority: Priority
    date_of_request: datetime

    facility_location: Optional[NonEmptyStr] = None
    receiver_name: Optional[NonEmptyStr] = None
    qawr_number: Optional[NonEmptyStr] = None
    # jiraNumber is the name the legacy intake form submits
    jira_link: Optional[NonEmptyStr] = Field(
        default=None,
        validation_alias=AliasChoices("jiraLink", "jiraNumber", "jira_link"),
    )
    lot_location: Optional[NonEmptyStr] = None
    attention_to: Optional[NonEmptyStr] = None
    returnable: Optional[bool] = None
    domestic_international: Optional[ShippingScope] = None
    shipping_address: Optional[NonEmptyStr] = None

    @field_validator("date_of_request", mode="before")
    @classmethod
    def _coerce_date_of_request(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @field_validator("returnable", mode="before")
    @classmethod
    def _coerce_returnable(cls, value: Any) -> Any:
        if isinstance(value, str) and value in RETURNABLE_ANSWERS:
            return RETURNABLE_ANSWERS[value]
        return value

    def kind(self) -> RequestKind:
        return RequestKind(self.request_type)

    def details(self) -> RequestDetails:
        return RequestDetails(
            facility_location=self.facility_location,
            receiver_name=self.receiver_name,
            qawr_number=self.qawr_number,
            jira_link=self.jira_link,
            lot_location=self.lot_location,
            attention_to=self.attention_to,
            returnable=self.returnable,
            domestic_international=self.domestic_international,
            shipping_address=self.shipping_address,
        )

    @abstractmethod
    def to_domain(self) -> NewWorkRequest:
        ...


class LotRequestPayload(BaseRequestPayload):
    lots: List[LotPayload]

    @field_validator("lots")
    @classmethod
    def _require_lots(cls, value: List[LotPayload]) -> List[LotPayload]:
        if not value:
            raise ValueError(LINE_ITEMS_REQUIRED)
        return value

    def to_domain(self) -> NewWorkRequest:
        return NewWorkRequest(
            kind=self.kind(),
            username=self.username,
            priority=self.task_priority,
            date_of_request=self.date_of_request,
            details=self.details(),
            lots=[lot.to_domain() for lot in self.lots],
        )


class LotTransferPayload(LotRequestPayload):
    request_type: Literal["Lot Transfer"]


class ShipmentRequestPayload(LotRequestPayload):
    request_type: Literal["Shipment Request"]


class ScrapRequestPayload(LotRequestPayload):
    request_type: Literal["Scrap Request"]


class SamplingRequestPayload(BaseRequestPayload):
    request_type: Literal["Sampling Request"]
    sampling_type: NonEmptyStr
    qr_date: date
    project_name: NonEmptyStr
    sampling_lots: List[SamplingLotPayload]

    @field_validator("qr_date", mode="before")
    @classmethod
    def _coerce_qr_date(cls, value: Any) -> Any:
        return coerce_date(value)

    @field_validator("qr_date")
    @classmethod
    def _qr_date_not_in_past(cls, value: date, info: ValidationInfo) -> date:
        if value < _today_from(info):
            raise ValueError("QR date cannot be in the past")
        return value

    @field_validator("sampling_lots")
    @classmethod
    def _require_sampling_lots(cls, value: List[SamplingLotPayload]) -> List[SamplingLotPayload]:
        if not value:
            raise ValueError(LINE_ITEMS_REQUIRED)
        return value

    def to_domain(self) -> NewWorkRequest:
        return NewWorkRequest(
            kind=self.kind(),
            username=self.username,
            priority=self.task_priority,
            date_of_request=self.date_of_request,
            details=self.details(),
            sampling=SamplingDetails(
                sampling_type=self.sampling_type,
                qr_date=self.qr_date,
                project_name=self.project_name,
            ),
            sampling_lots=[lot.to_domain() for lot in self.sampling_lots],
        )


PAYLOAD_MODELS: Dict[RequestKind, Type[BaseRequestPayload]] = {
    RequestKind.LOT_TRANSFER: LotTransferPayload,
    RequestKind.SHIPMENT_REQUEST: ShipmentRequestPayload,
    RequestKind.SCRAP_REQUEST: ScrapRequestPayload,
    RequestKind.SAMPLING_REQUEST: SamplingRequestPayload,
}


class StatusUpdatePayload(PayloadModel):
    status: RequestStatus
    executor: Optional[NonEmptyStr] = None
    note: Optional[str] = None

    def to_domain(self) -> StatusChange:
        return StatusChange(status=self.status, executor=self.executor, note=self.note)


# ==================== ENTRY POINTS ====================

def _issue_message(error: Dict[str, Any]) -> str:
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    return error["msg"]


def issues_from_pydantic(exc: ValidationError) -> List[ValidationIssue]:
    return [
        ValidationIssue(
            path=".".join(str(part) for part in error["loc"]),
            message=_issue_message(error),
        )
        for error in exc.errors()
    ]


def _select_model(payload: Any) -> Type[BaseRequestPayload]:
    if not isinstance(payload, dict):
        raise RequestValidationError([ValidationIssue(path="", message="payload must be an object")])

    raw_kind = payload.get("requestType")
    if raw_kind is None:
        raise RequestValidationError(
            [ValidationIssue(path="requestType", message="request kind is required")]
        )
    try:
        return PAYLOAD_MODELS[RequestKind(raw_kind)]
    except (ValueError, TypeError):
        raise RequestValidationError(
            [ValidationIssue(path="requestType", message=UNKNOWN_REQUEST_KIND)]
        ) from None


def validate_request_payload(payload: Any, today: Optional[date] = None) -> NewWorkRequest:
    """Validate an intake payload and return the typed request it describes.

    ``today`` overrides the calendar day used for the QR date rule.
    """
    model = _select_model(payload)
    try:
        parsed = model.model_validate(payload, context={"today": today})
    except ValidationError as exc:
        raise RequestValidationError(issues_from_pydantic(exc)) from exc
    return parsed.to_domain()


def validate_status_update(payload: Any) -> StatusChange:
    if not isinstance(payload, dict):
        raise RequestValidationError([ValidationIssue(path="", message="payload must be an object")])
    try:
        parsed = StatusUpdatePayload.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(issues_from_pydantic(exc)) from exc
    return parsed.to_domain()
