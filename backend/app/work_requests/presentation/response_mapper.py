from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence, Union

from app.work_requests.domain.errors import ValidationIssue
from app.work_requests.domain.models import StatusHistoryEntry, WorkRequest

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: Optional[Union[datetime, date]]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    return value.isoformat()


def work_request_to_response(request: WorkRequest) -> Dict[str, Any]:
    details = request.details
    response: Dict[str, Any] = {
        "id": request.id,
        "requestType": request.kind.value,
        "username": request.username,
        "taskPriority": request.priority.value,
        "dateOfRequest": format_timestamp(request.date_of_request),
        "facilityLocation": details.facility_location,
        "receiverName": details.receiver_name,
        "qawrNumber": details.qawr_number,
        "jiraLink": details.jira_link,
        "lotLocation": details.lot_location,
        "attentionTo": details.attention_to,
        "returnable": details.returnable,
        "domesticInternational": (
            details.domestic_international.value if details.domestic_international else None
        ),
        "shippingAddress": details.shipping_address,
        "status": request.status.value,
        "executor": request.executor,
        "issueNote": request.issue_note,
        "startedAt": format_timestamp(request.started_at),
        "completedAt": format_timestamp(request.completed_at),
        "createdAt": format_timestamp(request.created_at),
        "updatedAt": format_timestamp(request.updated_at),
    }

    if request.sampling is not None:
        response.update(
            {
                "samplingType": request.sampling.sampling_type,
                "qrDate": format_timestamp(request.sampling.qr_date),
                "projectName": request.sampling.project_name,
                "samplingLots": [
                    {
                        "lotId": lot.lot_id,
                        "unitQuantity": lot.unit_quantity,
                        "reliabilityTest": lot.reliability_test,
                        "testCondition": lot.test_condition,
                        "attributeToTag": lot.attribute_to_tag,
                    }
                    for lot in request.sampling_lots
                ],
            }
        )
    else:
        response["lots"] = [
            {
                "lotId": lot.lot_id,
                "unitsQuantity": lot.units_quantity,
                "serialNumber": lot.serial_number,
            }
            for lot in request.lots
        ]

    return response


def history_entry_to_response(entry: StatusHistoryEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "requestId": entry.request_id,
        "oldStatus": entry.old_status.value if entry.old_status else None,
        "newStatus": entry.new_status.value,
        "executor": entry.executor,
        "note": entry.note,
        "createdAt": format_timestamp(entry.created_at),
    }


def validation_error_to_response(message: str, issues: Sequence[ValidationIssue]) -> Dict[str, Any]:
    return {
        "message": message,
        "issues": [{"path": issue.path, "message": issue.message} for issue in issues],
    }
