from datetime import date, timedelta


def lot_transfer_payload(**overrides):
    payload = {
        "username": "alice",
        "requestType": "Lot Transfer",
        "taskPriority": "P1",
        "dateOfRequest": "2026-10-18T09:30:00",
        "facilityLocation": "Fab 2",
        "lots": [{"lotId": "L1", "unitsQuantity": 5}],
    }
    payload.update(overrides)
    return payload


def sampling_payload(qr_date):
    return {
        "username": "bob",
        "requestType": "Sampling Request",
        "taskPriority": "P2",
        "dateOfRequest": "2026-10-18",
        "samplingType": "Reliability",
        "qrDate": qr_date.isoformat(),
        "projectName": "Apollo",
        "samplingLots": [
            {
                "lotId": "S1",
                "unitQuantity": "2",
                "reliabilityTest": "HTOL",
                "testCondition": "125C",
                "attributeToTag": "bin-2",
            }
        ],
    }


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_create_then_flag_issue(client):
    r = client.post("/api/requests", json=lot_transfer_payload())
    assert r.status_code == 201, r.text
    request_id = r.json()["id"]

    r = client.get(f"/api/requests/{request_id}")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "New"
    assert data["requestType"] == "Lot Transfer"
    assert data["dateOfRequest"] == "2026-10-18 09:30:00"
    assert data["lots"] == [{"lotId": "L1", "unitsQuantity": 5, "serialNumber": None}]
    assert "samplingLots" not in data

    r = client.patch(f"/api/requests/{request_id}/status", json={"status": "Issue", "note": "damaged"})
    assert r.status_code == 200, r.text
    assert r.json() == {"ok": True}

    data = client.get(f"/api/requests/{request_id}").json()
    assert data["status"] == "Issue"
    assert data["issueNote"] == "damaged"

    history = client.get(f"/api/requests/{request_id}/history").json()
    assert len(history) == 1
    assert history[0]["oldStatus"] == "New"
    assert history[0]["newStatus"] == "Issue"
    assert history[0]["note"] == "damaged"


def test_new_request_has_no_history(client):
    request_id = client.post("/api/requests", json=lot_transfer_payload()).json()["id"]

    r = client.get(f"/api/requests/{request_id}/history")
    assert r.status_code == 200
    assert r.json() == []


def test_create_sampling_request_due_today(client):
    r = client.post("/api/requests", json=sampling_payload(date.today()))
    assert r.status_code == 201, r.text

    data = client.get(f"/api/requests/{r.json()['id']}").json()
    assert data["samplingLots"][0]["unitQuantity"] == 2
    assert "lots" not in data


def test_create_sampling_request_in_the_past(client):
    r = client.post("/api/requests", json=sampling_payload(date.today() - timedelta(days=1)))
    assert r.status_code == 400
    body = r.json()
    assert body["issues"] == [{"path": "qrDate", "message": "QR date cannot be in the past"}]


def test_create_reports_every_issue(client):
    r = client.post("/api/requests", json=lot_transfer_payload(username="", lots=[]))
    assert r.status_code == 400
    body = r.json()
    assert body["message"]
    assert {issue["path"] for issue in body["issues"]} == {"username", "lots"}


def test_create_unknown_kind(client):
    r = client.post("/api/requests", json=lot_transfer_payload(requestType="Loan"))
    assert r.status_code == 400
    assert r.json()["issues"] == [{"path": "requestType", "message": "unknown request kind"}]


def test_create_malformed_json(client):
    r = client.post(
        "/api/requests",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert "issues" in r.json()


def test_update_status_invalid_id(client):
    r = client.patch("/api/requests/abc/status", json={"status": "Completed"})
    assert r.status_code == 400


def test_update_status_unknown_id(client):
    r = client.patch("/api/requests/999/status", json={"status": "Completed"})
    assert r.status_code == 404


def test_update_status_invalid_body(client):
    request_id = client.post("/api/requests", json=lot_transfer_payload()).json()["id"]

    r = client.patch(f"/api/requests/{request_id}/status", json={"status": "Done"})
    assert r.status_code == 400
    assert r.json()["issues"][0]["path"] == "status"

    assert client.get(f"/api/requests/{request_id}/history").json() == []


def test_in_progress_twice_keeps_started_at(client):
    request_id = client.post("/api/requests", json=lot_transfer_payload()).json()["id"]

    client.patch(f"/api/requests/{request_id}/status", json={"status": "In Progress", "executor": "carol"})
    started_at = client.get(f"/api/requests/{request_id}").json()["startedAt"]
    client.patch(f"/api/requests/{request_id}/status", json={"status": "In Progress"})
    data = client.get(f"/api/requests/{request_id}").json()

    assert started_at is not None
    assert data["startedAt"] == started_at
    assert data["executor"] == "carol"


def test_get_unknown_request(client):
    assert client.get("/api/requests/12345").status_code == 404
    assert client.get("/api/requests/0").status_code == 400
    assert client.get("/api/requests/12345/history").status_code == 404


def test_update_status_non_ascii_digit_id(client):
    r = client.patch("/api/requests/²/status", json={"status": "Completed"})
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid request id"}


def test_update_status_id_out_of_range(client):
    r = client.patch("/api/requests/99999999999999999999/status", json={"status": "Completed"})
    assert r.status_code == 400

    assert client.get("/api/requests/2147483648").status_code == 400
    assert client.get("/api/requests/2147483647").status_code == 404


def test_create_missing_lots(client):
    for request_type in ("Lot Transfer", "Shipment Request", "Scrap Request"):
        payload = lot_transfer_payload(requestType=request_type)
        del payload["lots"]

        r = client.post("/api/requests", json=payload)
        assert r.status_code == 400
        assert [issue["path"] for issue in r.json()["issues"]] == ["lots"]


def test_create_storage_failure_is_generic(client, monkeypatch):
    async def failing_insert(self, request_id, request):
        raise RuntimeError('insert into "lots" violates constraint lots_request_id_fkey')

    monkeypatch.setattr(
        "app.work_requests.infrastructure.sqlalchemy_repository."
        "SqlAlchemyWorkRequestRepository._insert_line_items",
        failing_insert,
    )

    r = client.post("/api/requests", json=lot_transfer_payload())
    assert r.status_code == 500
    assert r.json() == {"message": "Failed to save request"}
