from app.models import UserCleanerAppointment, UserReview
from tests.support import make_appointment, make_home


def test_employee_info_lists_assigned_jobs(client, db_session, homeowner, cleaner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner)
    later = make_appointment(db_session, home, days_ahead=9)
    sooner = make_appointment(db_session, home, days_ahead=2)
    make_appointment(db_session, home, days_ahead=5)
    for appointment in (later, sooner):
        db_session.add(UserCleanerAppointment(appointment_id=appointment.id, employee_id=cleaner.id))
    db_session.commit()

    response = client.get("/api/v1/employee-info", headers=cleaner_headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["employee"]["id"] == cleaner.id
    assert [a["id"] for a in payload["appointments"]] == [sooner.id, later.id]


def test_employee_info_is_cleaner_only(client, homeowner_headers) -> None:
    response = client.get("/api/v1/employee-info", headers=homeowner_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Cleaner access required"}


def test_home_lookup(client, db_session, homeowner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner)

    assert client.get(f"/api/v1/employee-info/home/{home.id}", headers=cleaner_headers).json()["home"]["id"] == home.id
    assert client.get("/api/v1/employee-info/home/999", headers=cleaner_headers).json() == {"home": None}


def test_home_coordinates_prefer_stored_values(client, db_session, homeowner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner, latitude=0.0, longitude=12.5)

    response = client.get(f"/api/v1/employee-info/home/LL/{home.id}", headers=cleaner_headers)

    assert response.json() == {"latitude": 0.0, "longitude": 12.5}


def test_home_coordinates_fall_back_to_zipcode(client, db_session, homeowner, cleaner_headers) -> None:
    home = make_home(db_session, homeowner)

    coords = client.get(f"/api/v1/employee-info/home/LL/{home.id}", headers=cleaner_headers).json()

    assert 25 < coords["latitude"] < 26
    assert -81 < coords["longitude"] < -80


def test_home_coordinates_unknown(client, db_session, homeowner, cleaner_headers) -> None:
    missing = client.get("/api/v1/employee-info/home/LL/999", headers=cleaner_headers)
    assert missing.status_code == 404

    home = make_home(db_session, homeowner, zipcode="00000")
    response = client.get(f"/api/v1/employee-info/home/LL/{home.id}", headers=cleaner_headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Error fetching coordinates"}


def test_employee_schedule_lists_cleaners(client, cleaner, homeowner_headers) -> None:
    employees = client.get("/api/v1/employee-info/employeeSchedule", headers=homeowner_headers).json()["employees"]
    assert [e["username"] for e in employees] == ["cleaner1"]


def test_cleaner_profile_with_reviews(client, db_session, homeowner, cleaner, homeowner_headers) -> None:
    db_session.add(UserReview(user_id=cleaner.id, reviewer_id=homeowner.id, review=5, review_comment="Spotless"))
    db_session.commit()

    payload = client.get(f"/api/v1/employee-info/cleaner/{cleaner.id}", headers=homeowner_headers).json()

    assert payload["cleaner"]["firstName"] == "Cody"
    assert payload["reviews"][0]["reviewComment"] == "Spotless"

    other = client.get(f"/api/v1/employee-info/cleaner/{homeowner.id}", headers=homeowner_headers)
    assert other.status_code == 404


def test_update_shifts_orders_weekdays(client, cleaner_headers) -> None:
    response = client.post(
        "/api/v1/employee-info/shifts", json={"days": ["Friday", "Monday", "Friday"]}, headers=cleaner_headers
    )
    assert response.json()["user"]["daysWorking"] == ["Monday", "Friday"]

    bad = client.post("/api/v1/employee-info/shifts", json={"days": ["Funday"]}, headers=cleaner_headers)
    assert bad.status_code == 400
    assert bad.json() == {"error": "Invalid day: Funday"}
