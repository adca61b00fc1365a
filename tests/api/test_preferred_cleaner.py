import pytest

from app.models import Notification, UserAppointment, UserCleanerAppointment
from tests.support import auth_headers, make_appointment, make_home, make_user


@pytest.fixture
def preferred_home(db_session, homeowner, cleaner):
    return make_home(db_session, homeowner, preferred_cleaner_id=cleaner.id)


def test_perks_are_public(client) -> None:
    tiers = client.get("/api/v1/preferred-cleaner/perks").json()["tiers"]
    assert [t["tier"] for t in tiers] == ["bronze", "silver", "gold", "platinum"]


def test_client_appointments_grouping(client, db_session, preferred_home, cleaner, cleaner_headers) -> None:
    pending = make_appointment(db_session, preferred_home, days_ahead=1)
    upcoming = make_appointment(
        db_session, preferred_home, days_ahead=2, has_been_assigned=True, employees_assigned=[str(cleaner.id)]
    )
    declined = make_appointment(
        db_session, preferred_home, days_ahead=3, preferred_cleaner_declined=True, client_response_pending=True
    )
    make_appointment(db_session, preferred_home, days_ahead=4, open_to_market=True)
    make_appointment(db_session, preferred_home, days_ahead=-1)

    grouped = client.get("/api/v1/preferred-cleaner/my-client-appointments", headers=cleaner_headers).json()

    assert [a["id"] for a in grouped["pending"]] == [pending.id]
    assert [a["id"] for a in grouped["upcoming"]] == [upcoming.id]
    assert [a["id"] for a in grouped["declined"]] == [declined.id]
    assert grouped["declined"][0]["awaitingClientResponse"] is True
    assert grouped["pending"][0]["client"]["name"] == "Hana Owens"
    assert grouped["pending"][0]["home"]["address"] == "12 Ocean Ave, Miami"


def test_accept_assigns_the_preferred_cleaner(
    client, db_session, homeowner, preferred_home, cleaner, cleaner_headers
) -> None:
    appointment = make_appointment(db_session, preferred_home)

    response = client.post(f"/api/v1/preferred-cleaner/appointments/{appointment.id}/accept", headers=cleaner_headers)

    assert response.json()["appointment"]["assigned"] is True
    db_session.refresh(appointment)
    assert appointment.employees_assigned == [str(cleaner.id)]
    assert db_session.query(UserCleanerAppointment).count() == 1
    assert db_session.query(Notification).one().user_id == homeowner.id

    again = client.post(f"/api/v1/preferred-cleaner/appointments/{appointment.id}/accept", headers=cleaner_headers)
    assert again.json() == {"error": "This appointment is already assigned"}


def test_only_the_preferred_cleaner_may_answer(client, db_session, preferred_home) -> None:
    appointment = make_appointment(db_session, preferred_home)
    other = make_user(db_session, "other_cleaner", "cleaner")

    for action in ("accept", "decline"):
        response = client.post(
            f"/api/v1/preferred-cleaner/appointments/{appointment.id}/{action}", headers=auth_headers(other)
        )
        assert response.status_code == 403
        assert response.json() == {"error": "You are not the preferred cleaner for this home"}


def test_homeowners_cannot_use_cleaner_endpoints(client, homeowner_headers) -> None:
    response = client.get("/api/v1/preferred-cleaner/my-client-appointments", headers=homeowner_headers)
    assert response.status_code == 403


def decline(client, appointment, headers) -> dict:
    response = client.post(f"/api/v1/preferred-cleaner/appointments/{appointment.id}/decline", headers=headers)
    assert response.status_code == 200
    return response.json()


def test_decline_waits_for_the_client(
    client, db_session, homeowner, preferred_home, cleaner_headers, homeowner_headers
) -> None:
    appointment = make_appointment(db_session, preferred_home)

    result = decline(client, appointment, cleaner_headers)
    assert result["appointment"]["clientResponsePending"] is True

    again = client.post(f"/api/v1/preferred-cleaner/appointments/{appointment.id}/decline", headers=cleaner_headers)
    assert again.json() == {"error": "This appointment has already been declined"}

    waiting = client.get("/api/v1/preferred-cleaner/pending-responses", headers=homeowner_headers).json()
    assert [a["id"] for a in waiting["appointments"]] == [appointment.id]

    notice = db_session.query(Notification).one()
    assert notice.type == "preferred_cleaner_declined"
    assert notice.user_id == homeowner.id


def test_client_opens_declined_job_to_market(
    client, db_session, preferred_home, cleaner_headers, homeowner_headers
) -> None:
    appointment = make_appointment(db_session, preferred_home, price="150")
    decline(client, appointment, cleaner_headers)

    response = client.post(
        f"/api/v1/preferred-cleaner/appointments/{appointment.id}/respond",
        json={"action": "open_to_market"},
        headers=homeowner_headers,
    )

    payload = response.json()
    assert payload["action"] == "opened_to_market"
    assert payload["originalPrice"] == 150
    assert payload["newPrice"] == 200

    db_session.refresh(appointment)
    assert appointment.open_to_market is True
    assert appointment.client_response_pending is False
    assert appointment.business_owner_price == "150"
    assert appointment.price == "200"
    assert appointment.early_access_until is not None

    pending = client.get("/api/v1/preferred-cleaner/pending-responses", headers=homeowner_headers).json()
    assert pending["appointments"] == []


def test_client_cancels_declined_job(client, db_session, preferred_home, cleaner_headers, homeowner_headers) -> None:
    appointment = make_appointment(db_session, preferred_home)
    decline(client, appointment, cleaner_headers)

    response = client.post(
        f"/api/v1/preferred-cleaner/appointments/{appointment.id}/respond",
        json={"action": "cancel"},
        headers=homeowner_headers,
    )

    assert response.json()["action"] == "cancelled"
    assert db_session.query(UserAppointment).count() == 0


def test_respond_rules(client, db_session, preferred_home, homeowner_headers, cleaner_headers) -> None:
    appointment = make_appointment(db_session, preferred_home)
    url = f"/api/v1/preferred-cleaner/appointments/{appointment.id}/respond"

    invalid = client.post(url, json={"action": "ignore"}, headers=homeowner_headers)
    assert invalid.json() == {"error": "Invalid action. Must be 'cancel' or 'open_to_market'"}

    nothing_pending = client.post(url, json={"action": "cancel"}, headers=homeowner_headers)
    assert nothing_pending.json() == {"error": "No response is pending for this appointment"}

    decline(client, appointment, cleaner_headers)
    stranger = make_user(db_session, "stranger")
    not_yours = client.post(url, json={"action": "cancel"}, headers=auth_headers(stranger))
    assert not_yours.status_code == 403
    assert not_yours.json() == {"error": "This is not your appointment"}
