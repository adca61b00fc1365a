from datetime import date, datetime, timedelta

from app.models import Notification, ServiceAreaConfig, UserAppointment, UserBill, UserHome, UserPendingRequest
from tests.support import auth_headers, make_appointment, make_home, make_user

NEW_HOME = {
    "nickName": "Lake Cabin",
    "address": "4 Pine Rd",
    "city": "Miami",
    "state": "Florida",
    "zipcode": "33139-1234",
    "numBeds": "3",
    "numBaths": "2",
    "timeToBeCompleted": "anytime",
}


def future(days: int = 7) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def restrict_to_massachusetts(db) -> None:
    db.add(ServiceAreaConfig(enabled=True, mode="list", states=["MA"], cities=[], zipcodes=[], is_active=True))
    db.commit()


# ============================================================================
# USER INFO / HOMES
# ============================================================================


def test_user_info_creates_missing_bill(client, db_session, homeowner, homeowner_headers) -> None:
    response = client.get("/api/v1/user-info", headers=homeowner_headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["user"]["username"] == "homeowner1"
    assert payload["homes"] == []
    assert payload["bill"]["totalDue"] == 0
    assert db_session.query(UserBill).filter(UserBill.user_id == homeowner.id).count() == 1


def test_add_home_normalizes_location(client, homeowner_headers) -> None:
    response = client.post("/api/v1/user-info/home", json=NEW_HOME, headers=homeowner_headers)

    assert response.status_code == 201
    payload = response.json()
    assert payload["home"]["state"] == "FL"
    assert payload["home"]["zipcode"] == "33139"
    assert payload["outsideServiceArea"] is False
    assert payload["outsideAreaMessage"] is None


def test_add_home_outside_service_area(client, db_session, homeowner_headers) -> None:
    restrict_to_massachusetts(db_session)

    payload = client.post("/api/v1/user-info/home", json=NEW_HOME, headers=homeowner_headers).json()

    assert payload["outsideServiceArea"] is True
    assert payload["outsideAreaMessage"]
    assert payload["home"]["outsideServiceArea"] is True


def test_add_home_rejects_bad_values(client, homeowner_headers) -> None:
    bad_zip = client.post("/api/v1/user-info/home", json={**NEW_HOME, "zipcode": "331"}, headers=homeowner_headers)
    assert bad_zip.status_code == 400
    assert bad_zip.json() == {"error": "Invalid zipcode"}

    bad_window = client.post(
        "/api/v1/user-info/home", json={**NEW_HOME, "timeToBeCompleted": "midnight"}, headers=homeowner_headers
    )
    assert bad_window.json() == {"error": "Invalid time window"}


def test_update_home_requires_ownership(client, db_session, homeowner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner)

    response = client.patch(
        "/api/v1/user-info/home", json={"id": home.id, "nickName": "Mine now"}, headers=cleaner_headers
    )
    assert response.status_code == 403

    missing = client.patch("/api/v1/user-info/home", json={"id": 999, "nickName": "x"}, headers=cleaner_headers)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Home not found"}


def test_update_home_fields(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)

    response = client.patch(
        "/api/v1/user-info/home",
        json={"id": home.id, "nickName": "Surf Shack", "specialNotes": "Dog is friendly"},
        headers=homeowner_headers,
    )

    assert response.status_code == 200
    assert response.json()["home"]["nickName"] == "Surf Shack"
    assert response.json()["home"]["specialNotes"] == "Dog is friendly"


def test_delete_home_removes_unpaid_appointments(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)
    make_appointment(db_session, home)
    make_appointment(db_session, home, days_ahead=14)

    response = client.request("DELETE", "/api/v1/user-info/home", json={"id": home.id}, headers=homeowner_headers)

    assert response.status_code == 200
    assert response.json()["appointmentsRemoved"] == 2
    assert db_session.query(UserHome).count() == 0
    assert db_session.query(UserAppointment).count() == 0


def test_delete_home_with_paid_history_is_refused(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)
    make_appointment(db_session, home, paid=True)

    response = client.request("DELETE", "/api/v1/user-info/home", json={"id": home.id}, headers=homeowner_headers)

    assert response.status_code == 400
    assert db_session.query(UserHome).count() == 1


def test_notifications_list_and_mark_read(client, db_session, homeowner, homeowner_headers) -> None:
    db_session.add_all(
        [
            Notification(user_id=homeowner.id, type="cleaner_request", title="One"),
            Notification(user_id=homeowner.id, type="cleaner_request", title="Two"),
        ]
    )
    db_session.commit()

    unread = client.get("/api/v1/user-info/notifications?unreadOnly=true", headers=homeowner_headers).json()
    assert len(unread["notifications"]) == 2

    marked = client.patch("/api/v1/user-info/notifications/read", headers=homeowner_headers).json()
    assert marked == {"success": True, "updated": 2}

    unread = client.get("/api/v1/user-info/notifications?unreadOnly=true", headers=homeowner_headers).json()
    assert unread["notifications"] == []


# ============================================================================
# BOOKING
# ============================================================================


def test_book_appointments_adds_to_bill(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)

    response = client.post(
        "/api/v1/appointments",
        json={
            "homeId": home.id,
            "dateArray": [
                {"date": future(3), "price": "150"},
                {"date": future(10), "price": "180", "bringSheets": "yes"},
            ],
        },
        headers=homeowner_headers,
    )

    assert response.status_code == 201
    appointments = response.json()["appointments"]
    assert [a["price"] for a in appointments] == ["150", "180"]
    assert appointments[1]["bringSheets"] == "yes"
    assert all(a["earlyAccessUntil"] for a in appointments)

    bill = client.get("/api/v1/user-info", headers=homeowner_headers).json()["bill"]
    assert bill["appointmentDue"] == 330
    assert bill["totalDue"] == 330


def test_booking_someone_elses_home_is_forbidden(client, db_session, homeowner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner)

    response = client.post(
        "/api/v1/appointments",
        json={"homeId": home.id, "dateArray": [{"date": future(), "price": "150"}]},
        headers=cleaner_headers,
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Not authorized to book this home"}


def test_booking_outside_service_area(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)
    restrict_to_massachusetts(db_session)

    response = client.post(
        "/api/v1/appointments",
        json={"homeId": home.id, "dateArray": [{"date": future(), "price": "150"}]},
        headers=homeowner_headers,
    )

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == "This home is outside our service area"
    assert payload["outsideServiceArea"] is True
    db_session.refresh(home)
    assert home.outside_service_area is True


def test_preferred_cleaner_homes_skip_early_access(client, db_session, homeowner, cleaner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner, preferred_cleaner_id=cleaner.id)

    response = client.post(
        "/api/v1/appointments",
        json={"homeId": home.id, "dateArray": [{"date": future(), "price": "150"}]},
        headers=homeowner_headers,
    )
    assert response.json()["appointments"][0]["earlyAccessUntil"] is None


def test_edit_appointment_moves_price_and_bill(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)
    booked = client.post(
        "/api/v1/appointments",
        json={"homeId": home.id, "dateArray": [{"date": future(), "price": "150"}]},
        headers=homeowner_headers,
    ).json()["appointments"][0]

    response = client.patch(
        f"/api/v1/appointments/{booked['id']}",
        json={"bringSheets": "yes", "bringTowels": "yes", "timeToBeCompleted": "12-2"},
        headers=homeowner_headers,
    )

    assert response.status_code == 200
    assert response.json()["appointment"]["price"] == "222"
    bill = client.get("/api/v1/user-info", headers=homeowner_headers).json()["bill"]
    assert bill["totalDue"] == 222


def test_edit_with_one_invalid_field_changes_nothing(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)
    booked = client.post(
        "/api/v1/appointments",
        json={"homeId": home.id, "dateArray": [{"date": future(), "price": "150"}]},
        headers=homeowner_headers,
    ).json()["appointments"][0]

    response = client.patch(
        f"/api/v1/appointments/{booked['id']}",
        json={"bringSheets": "yes", "bringTowels": "yes", "timeToBeCompleted": "midnight"},
        headers=homeowner_headers,
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid time window"}
    info = client.get("/api/v1/user-info", headers=homeowner_headers).json()
    assert info["bill"]["totalDue"] == 150
    assert info["appointments"][0]["price"] == "150"


def test_cancel_with_fee(client, db_session, homeowner, homeowner_headers) -> None:
    home = make_home(db_session, homeowner)
    booked = client.post(
        "/api/v1/appointments",
        json={"homeId": home.id, "dateArray": [{"date": future(), "price": "150"}]},
        headers=homeowner_headers,
    ).json()["appointments"][0]

    response = client.request(
        "DELETE", f"/api/v1/appointments/{booked['id']}", json={"fee": 25}, headers=homeowner_headers
    )

    assert response.status_code == 201
    assert response.json() == {"message": "Appointment Deleted"}
    bill = client.get("/api/v1/user-info", headers=homeowner_headers).json()["bill"]
    assert bill == {**bill, "appointmentDue": 0, "cancellationFee": 25, "totalDue": 25}


def test_cancel_someone_elses_appointment(client, db_session, homeowner, cleaner_headers) -> None:
    appointment = make_appointment(db_session, make_home(db_session, homeowner))
    response = client.delete(f"/api/v1/appointments/{appointment.id}", headers=cleaner_headers)
    assert response.status_code == 403


def test_linens_configuration(client, db_session, homeowner, homeowner_headers) -> None:
    appointment = make_appointment(db_session, make_home(db_session, homeowner))

    response = client.patch(
        f"/api/v1/appointments/{appointment.id}/linens",
        json={"sheetConfigurations": [{"bed": 1, "size": "queen"}]},
        headers=homeowner_headers,
    )

    assert response.json()["appointment"]["sheetConfigurations"] == [{"bed": 1, "size": "queen"}]
    assert response.json()["appointment"]["towelConfigurations"] is None


# ============================================================================
# MARKETPLACE
# ============================================================================


def test_unassigned_hides_early_access_jobs_from_regular_cleaners(
    client, db_session, homeowner, cleaner_headers
) -> None:
    home = make_home(db_session, homeowner)
    open_job = make_appointment(db_session, home)
    make_appointment(db_session, home, early_access_until=datetime.utcnow() + timedelta(minutes=20))
    make_appointment(db_session, home, has_been_assigned=True)
    make_appointment(db_session, home, days_ahead=-2)

    response = client.get("/api/v1/appointments/unassigned", headers=cleaner_headers)

    assert [a["id"] for a in response.json()["appointments"]] == [open_job.id]


def test_unassigned_skips_preferred_homes_until_opened(client, db_session, homeowner, cleaner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner, preferred_cleaner_id=cleaner.id)
    make_appointment(db_session, home)
    opened = make_appointment(db_session, home, open_to_market=True)

    response = client.get("/api/v1/appointments/unassigned", headers=cleaner_headers)
    assert [a["id"] for a in response.json()["appointments"]] == [opened.id]


def test_request_and_approve_flow(client, db_session, homeowner, cleaner, homeowner_headers, cleaner_headers) -> None:
    appointment = make_appointment(db_session, make_home(db_session, homeowner))
    body = {"id": cleaner.id, "appointmentId": appointment.id}

    sent = client.patch("/api/v1/appointments/request-employee", json=body, headers=cleaner_headers)
    assert sent.status_code == 200

    again = client.patch("/api/v1/appointments/request-employee", json=body, headers=cleaner_headers)
    assert again.status_code == 400
    assert again.json() == {"error": "Request already sent to the client"}

    pending = client.get("/api/v1/appointments/my-requests", headers=homeowner_headers).json()
    requests = pending["pendingRequestsEmployee"]
    assert len(requests) == 1
    assert requests[0]["employee"]["id"] == cleaner.id

    approved = client.patch(
        "/api/v1/appointments/approve-request",
        json={"requestId": requests[0]["id"], "approve": True},
        headers=homeowner_headers,
    )
    assert approved.json() == {"message": "Cleaner assigned successfully"}

    db_session.refresh(appointment)
    assert appointment.has_been_assigned is True
    assert appointment.employees_assigned == [str(cleaner.id)]
    assert db_session.query(UserPendingRequest).count() == 0

    detail = client.get(f"/api/v1/appointments/unassigned/{appointment.id}", headers=cleaner_headers).json()
    assert detail["employeesAssigned"][0]["username"] == "cleaner1"

    kinds = {n.type for n in db_session.query(Notification).all()}
    assert kinds == {"cleaner_request", "request_approved"}


def test_deny_request_through_approve_endpoint(
    client, db_session, homeowner, cleaner, homeowner_headers, cleaner_headers
) -> None:
    appointment = make_appointment(db_session, make_home(db_session, homeowner))
    client.patch(
        "/api/v1/appointments/request-employee",
        json={"id": cleaner.id, "appointmentId": appointment.id},
        headers=cleaner_headers,
    )
    request = db_session.query(UserPendingRequest).one()

    response = client.patch(
        "/api/v1/appointments/approve-request",
        json={"requestId": request.id, "approve": False},
        headers=homeowner_headers,
    )

    assert response.json() == {"message": "Request denied"}
    db_session.refresh(appointment)
    assert appointment.has_been_assigned is False


def test_cleaner_can_withdraw_request(client, db_session, homeowner, cleaner, cleaner_headers) -> None:
    appointment = make_appointment(db_session, make_home(db_session, homeowner))
    body = {"id": cleaner.id, "appointmentId": appointment.id}
    client.patch("/api/v1/appointments/request-employee", json=body, headers=cleaner_headers)

    response = client.patch("/api/v1/appointments/deny-request", json=body, headers=cleaner_headers)

    assert response.json() == {"message": "Request removed"}
    assert db_session.query(UserPendingRequest).count() == 0


def test_strangers_cannot_remove_requests(client, db_session, homeowner, cleaner, cleaner_headers) -> None:
    appointment = make_appointment(db_session, make_home(db_session, homeowner))
    body = {"id": cleaner.id, "appointmentId": appointment.id}
    client.patch("/api/v1/appointments/request-employee", json=body, headers=cleaner_headers)

    stranger = make_user(db_session, "nosy", "homeowner")
    response = client.patch("/api/v1/appointments/deny-request", json=body, headers=auth_headers(stranger))
    assert response.status_code == 403


def test_request_rules(client, db_session, homeowner, cleaner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner)
    early = make_appointment(db_session, home, early_access_until=datetime.utcnow() + timedelta(minutes=20))
    taken = make_appointment(db_session, home, has_been_assigned=True)

    as_someone_else = client.patch(
        "/api/v1/appointments/request-employee",
        json={"id": cleaner.id + 100, "appointmentId": early.id},
        headers=cleaner_headers,
    )
    assert as_someone_else.status_code == 403

    in_early_access = client.patch(
        "/api/v1/appointments/request-employee",
        json={"id": cleaner.id, "appointmentId": early.id},
        headers=cleaner_headers,
    )
    assert in_early_access.status_code == 403
    assert in_early_access.json() == {"error": "This job is in early access for platinum cleaners"}

    already_assigned = client.patch(
        "/api/v1/appointments/request-employee",
        json={"id": cleaner.id, "appointmentId": taken.id},
        headers=cleaner_headers,
    )
    assert already_assigned.json() == {"error": "This appointment is already assigned"}


def test_frozen_cleaner_cannot_request(client, db_session, homeowner, cleaner, cleaner_headers) -> None:
    appointment = make_appointment(db_session, make_home(db_session, homeowner))
    cleaner.account_frozen = True
    db_session.commit()

    response = client.patch(
        "/api/v1/appointments/request-employee",
        json={"id": cleaner.id, "appointmentId": appointment.id},
        headers=cleaner_headers,
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Your account is frozen"}


def test_large_home_needs_acknowledgment(client, db_session, homeowner, cleaner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner, num_beds="4", num_baths="3", time_to_be_completed="10-3")
    appointment = make_appointment(db_session, home)

    info = client.get(f"/api/v1/appointments/booking-info/{appointment.id}", headers=cleaner_headers).json()
    assert info["isLargeHome"] is True
    assert info["hasTimeConstraint"] is True
    assert "4 beds, 3 baths" in info["acknowledgmentMessage"]

    body = {"id": cleaner.id, "appointmentId": appointment.id}
    refused = client.patch("/api/v1/appointments/request-employee", json=body, headers=cleaner_headers)
    assert refused.status_code == 400
    assert refused.json()["error"] == "Acknowledgment required"
    assert refused.json()["requiresAcknowledgment"] is True

    accepted = client.patch(
        "/api/v1/appointments/request-employee", json={**body, "acknowledged": True}, headers=cleaner_headers
    )
    assert accepted.status_code == 200


def test_only_homeowners_see_their_requests(client, cleaner_headers) -> None:
    response = client.get("/api/v1/appointments/my-requests", headers=cleaner_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Homeowner access required"}


def test_unknown_appointment_is_404(client, cleaner_headers) -> None:
    response = client.get("/api/v1/appointments/booking-info/12345", headers=cleaner_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Appointment not found"}
