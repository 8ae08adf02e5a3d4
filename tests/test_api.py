from movedispatch.config import settings

from .factories import WEBHOOK_SECRET

ADMIN_HEADERS = {"X-Actor-Role": "admin", "X-Actor-Id": "1"}
SALES_HEADERS = {"X-Actor-Role": "sales", "X-Actor-Id": "77"}
MOVER_HEADERS = {"X-Actor-Role": "mover", "X-Actor-Id": "301"}
CUSTOMER_HEADERS = {"X-Actor-Role": "customer", "X-Actor-Id": "501"}
WEBHOOK_HEADERS = {"X-Webhook-Secret": WEBHOOK_SECRET}


def _booking_body(start: str, end: str, trucks: int = 1, **extra) -> dict:
    body = {
        "startUtc": start,
        "endUtc": end,
        "requestedTrucks": trucks,
        "customerName": "Dana Moss",
        "customerEmail": "dana@example.com",
        "customerPhone": "555-0100",
        "moveFromAddress": "12 Elm St",
        "moveToAddress": "98 Oak Ave",
    }
    body.update(extra)
    return body


def _confirmed_booking(client, start: str, end: str, trucks: int = 1, headers=None) -> int:
    response = client.post(
        "/bookings",
        json=_booking_body(start, end, trucks),
        headers=headers or CUSTOMER_HEADERS,
    )
    assert response.status_code == 201
    booking_id = response.json()["bookingId"]
    response = client.post(
        f"/bookings/{booking_id}/confirm-payment", headers=WEBHOOK_HEADERS
    )
    assert response.status_code == 200
    return booking_id


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_overlapping_booking_returns_exhausted(client):
    first = client.post(
        "/bookings",
        json=_booking_body("2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z", 2),
        headers=CUSTOMER_HEADERS,
    )
    assert first.status_code == 201
    assert first.json()["holdExpiresAtUtc"] is not None

    second = client.post(
        "/bookings",
        json=_booking_body("2030-03-10T11:00:00Z", "2030-03-10T13:00:00Z", 2),
        headers=CUSTOMER_HEADERS,
    )
    assert second.status_code == 409
    assert second.json()["kind"] == "Exhausted"
    assert second.json()["code"] == "capacity_error"


def test_availability_reports_remaining_trucks(client):
    _confirmed_booking(client, "2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z", 2)

    response = client.get(
        "/availability",
        params={"fromUtc": "2030-03-10T09:00:00Z", "toUtc": "2030-03-10T13:00:00Z"},
    )
    assert response.status_code == 200
    assert [row["remainingCapacity"] for row in response.json()] == [3, 1, 1, 3]

    by_day = client.get(
        "/availability/by-day",
        params={"fromUtc": "2030-03-10T22:00:00Z", "toUtc": "2030-03-11T02:00:00Z"},
    )
    assert [day["date"] for day in by_day.json()] == ["2030-03-10", "2030-03-11"]


def test_availability_range_is_limited(client):
    response = client.get(
        "/availability",
        params={"fromUtc": "2030-01-01T00:00:00Z", "toUtc": "2030-12-31T00:00:00Z"},
    )
    assert response.status_code == 422
    assert response.json()["kind"] == "InvalidWindow"


def test_booking_visibility_by_role(client):
    booking_id = _confirmed_booking(client, "2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z")

    mine = client.get(f"/bookings/{booking_id}", headers=CUSTOMER_HEADERS)
    assert mine.status_code == 200
    assert mine.json()["status"] == "confirmed"

    other = client.get(
        f"/bookings/{booking_id}",
        headers={"X-Actor-Role": "customer", "X-Actor-Id": "999"},
    )
    assert other.status_code == 403
    assert client.get("/bookings", headers=ADMIN_HEADERS).json()[0]["id"] == booking_id


def test_system_role_cannot_be_claimed(client):
    response = client.get("/bookings", headers={"X-Actor-Role": "system"})
    assert response.status_code == 403


def test_reschedule_flow_over_http(client):
    booking_id = _confirmed_booking(client, "2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z")

    response = client.post(
        f"/bookings/{booking_id}/reschedule",
        json={
            "newStartUtc": "2030-03-11T10:00:00Z",
            "newEndUtc": "2030-03-11T12:00:00Z",
        },
        headers=CUSTOMER_HEADERS,
    )
    assert response.status_code == 200
    replacement_id = response.json()["bookingId"]
    assert replacement_id != booking_id

    confirmed = client.post(
        f"/bookings/{replacement_id}/confirm-payment", headers=WEBHOOK_HEADERS
    )
    assert confirmed.status_code == 200
    original = client.get(f"/bookings/{booking_id}", headers=ADMIN_HEADERS).json()
    replacement = client.get(f"/bookings/{replacement_id}", headers=ADMIN_HEADERS).json()
    assert original["status"] == "rescheduled"
    assert replacement["status"] == "confirmed"
    assert replacement["linkedToBookingId"] == booking_id
    assert replacement["rescheduleFeeAmountCents"] == 5000


def test_job_lifecycle_and_invoice_over_http(client):
    booking_id = _confirmed_booking(
        client, "2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z", headers=SALES_HEADERS
    )
    employee_ids = []
    for name in ("Ana", "Ben"):
        response = client.post(
            "/admin/employees",
            json={"fullName": name, "hourlyRateCents": 5000},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 201
        employee_ids.append(response.json()["id"])

    response = client.post(
        "/jobs",
        json={"bookingId": booking_id, "employeeIds": employee_ids},
        headers=SALES_HEADERS,
    )
    assert response.status_code == 201
    job = response.json()
    assert job["status"] == "scheduled"
    assert [member["fullName"] for member in job["assignedCrew"]] == ["Ana", "Ben"]

    skipped = client.post(
        f"/jobs/{job['id']}/status",
        json={"newStatus": "completed"},
        headers=MOVER_HEADERS,
    )
    assert skipped.status_code == 409
    assert skipped.json()["kind"] == "InvalidTransition"

    unknown = client.post(
        f"/jobs/{job['id']}/status", json={"newStatus": "flying"}, headers=MOVER_HEADERS
    )
    assert unknown.status_code == 422

    response = client.patch(
        f"/jobs/{job['id']}",
        json={
            "actualStartUtc": "2030-03-10T10:00:00Z",
            "actualEndUtc": "2030-03-10T13:00:00Z",
        },
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200

    preview = client.get(
        f"/jobs/{job['id']}/invoice-preview",
        params={"tipAmountCents": 1500},
        headers=ADMIN_HEADERS,
    ).json()
    assert preview["laborAmountCents"] == 30000
    assert preview["tripFeeCents"] == 0
    assert preview["totalBalanceCents"] == 30000 + 1500 - 10000
    assert "default_trip_fee" in preview["flags"]

    forced = client.post(
        f"/jobs/{job['id']}/status",
        json={"newStatus": "completed", "note": "closed by office"},
        headers=ADMIN_HEADERS,
    )
    assert forced.json()["status"] == "completed"

    stats = client.get("/sales/stats", headers=SALES_HEADERS).json()
    assert stats["completedMovesCount"] == 1
    assert stats["totalCommissionCents"] == 500
    rows = client.get("/sales/commissions", headers=SALES_HEADERS).json()
    assert rows[0]["isFinal"] is True


def test_admin_routes_require_admin(client):
    assert client.get("/admin/config", headers=SALES_HEADERS).status_code == 403

    config = client.get("/admin/config", headers=ADMIN_HEADERS).json()
    assert config["totalTrucks"] == 3

    response = client.post(
        "/admin/config",
        json={"salesDepositMinCents": 90000},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 422

    response = client.post(
        "/admin/config", json={"totalTrucks": 5}, headers=ADMIN_HEADERS
    )
    assert response.json()["totalTrucks"] == 5


def test_truck_and_rate_admin(client):
    created = client.post("/admin/trucks", json={"name": "Truck 1"}, headers=ADMIN_HEADERS)
    assert created.status_code == 201
    duplicate = client.post("/admin/trucks", json={"name": "truck 1"}, headers=ADMIN_HEADERS)
    assert duplicate.status_code == 422

    truck_id = created.json()["id"]
    updated = client.patch(
        f"/admin/trucks/{truck_id}", json={"isActive": False}, headers=ADMIN_HEADERS
    )
    assert updated.json()["isActive"] is False

    rate = client.post(
        "/admin/rates/special-items",
        json={"code": "piano", "label": "Piano", "priceCents": 15000},
        headers=ADMIN_HEADERS,
    )
    assert rate.status_code == 200
    rates = client.get("/admin/rates/special-items", headers=ADMIN_HEADERS).json()
    assert rates == [{"code": "piano", "label": "Piano", "priceCents": 15000, "isActive": True}]


def test_reaper_endpoint_expires_nothing_for_fresh_holds(client):
    client.post(
        "/bookings",
        json=_booking_body("2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z"),
        headers=CUSTOMER_HEADERS,
    )
    response = client.post("/admin/reaper/run", headers=ADMIN_HEADERS)
    assert response.json() == {"expiredBookingIds": [], "skippedBookingIds": []}


def test_time_entries_over_http(client):
    booking_id = _confirmed_booking(
        client, "2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z", headers=SALES_HEADERS
    )
    client.post(
        "/admin/employees",
        json={"userId": 301, "fullName": "Mo", "hourlyRateCents": 2000},
        headers=ADMIN_HEADERS,
    )
    job_id = client.post(
        "/jobs", json={"bookingId": booking_id}, headers=SALES_HEADERS
    ).json()["id"]

    entry = client.post(
        "/time-entries/check-in", json={"jobId": job_id}, headers=MOVER_HEADERS
    )
    assert entry.status_code == 200
    entry_id = entry.json()["id"]
    out = client.post(
        "/time-entries/check-out", json={"timeEntryId": entry_id}, headers=MOVER_HEADERS
    )
    assert out.json()["checkOutUtc"] is not None

    listed = client.get("/time-entries", headers=MOVER_HEADERS).json()
    assert [row["id"] for row in listed] == [entry_id]
    assert client.get(
        "/payroll/summary",
        params={"periodStartUtc": "2020-01-01T00:00:00Z"},
        headers=MOVER_HEADERS,
    ).status_code == 403


def test_payment_webhooks_require_shared_secret(client, monkeypatch):
    response = client.post(
        "/bookings",
        json=_booking_body("2030-03-10T10:00:00Z", "2030-03-10T12:00:00Z"),
        headers=CUSTOMER_HEADERS,
    )
    booking_id = response.json()["bookingId"]
    wrong = {"X-Webhook-Secret": "guess"}

    assert client.post(
        f"/bookings/{booking_id}/confirm-payment", headers=CUSTOMER_HEADERS
    ).status_code == 403
    assert client.post(
        f"/bookings/{booking_id}/confirm-payment", headers=wrong
    ).status_code == 403
    assert client.post(
        f"/bookings/{booking_id}/payment-failed", headers=wrong
    ).status_code == 403
    assert client.post(
        "/jobs/1/confirm-final-payment", json={"tipAmountCents": 0}, headers=wrong
    ).status_code == 403
    booking = client.get(f"/bookings/{booking_id}", headers=ADMIN_HEADERS).json()
    assert booking["status"] == "pendingPayment"

    monkeypatch.setattr(settings, "payment_webhook_secret", "")
    assert client.post(
        f"/bookings/{booking_id}/confirm-payment", headers=WEBHOOK_HEADERS
    ).status_code == 403

    monkeypatch.setattr(settings, "payment_webhook_secret", WEBHOOK_SECRET)
    confirmed = client.post(
        f"/bookings/{booking_id}/confirm-payment", headers=WEBHOOK_HEADERS
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"


def test_day_off_workflow_over_http(client):
    employee = client.post(
        "/admin/employees",
        json={"userId": 301, "fullName": "Mo", "hourlyRateCents": 2000},
        headers=ADMIN_HEADERS,
    ).json()

    schedule = client.put(
        f"/employee-availability/employees/{employee['id']}/schedule",
        json={"schedules": [{"dayOfWeek": 0, "startTime": "08:00:00", "endTime": "16:00:00"}]},
        headers=ADMIN_HEADERS,
    )
    assert schedule.status_code == 200
    assert client.get(
        "/employee-availability/my/schedule", headers=MOVER_HEADERS
    ).json()[0]["dayOfWeek"] == 0
    assert client.put(
        f"/employee-availability/employees/{employee['id']}/schedule",
        json={"schedules": []},
        headers=MOVER_HEADERS,
    ).status_code == 403

    created = client.post(
        "/employee-availability/my/day-off-requests",
        json={"dateUtc": "2030-03-10", "reason": "wedding"},
        headers=MOVER_HEADERS,
    )
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    pending = client.get(
        "/employee-availability/day-off-requests",
        params={"status": "pending"},
        headers=ADMIN_HEADERS,
    ).json()
    assert [(row["id"], row["employeeName"]) for row in pending] == [(request_id, "Mo")]

    invalid = client.patch(
        f"/employee-availability/day-off-requests/{request_id}",
        json={"status": "pending"},
        headers=ADMIN_HEADERS,
    )
    assert invalid.status_code == 422
    approved = client.patch(
        f"/employee-availability/day-off-requests/{request_id}",
        json={"status": "approved", "reviewNotes": "ok"},
        headers=ADMIN_HEADERS,
    )
    assert approved.json()["status"] == "approved"
    assert approved.json()["reviewedByUserId"] == 1

    withdrawn = client.delete(
        f"/employee-availability/my/day-off-requests/{request_id}",
        headers=MOVER_HEADERS,
    )
    assert withdrawn.status_code == 409
