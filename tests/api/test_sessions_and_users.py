from app import rate_limiter
from app.models import TermsAndConditions, User, UserBill, UserTermsAcceptance
from tests.support import PASSWORD, auth_headers

SIGNUP = {
    "username": "newbie",
    "email": "New.Bie@Example.com",
    "password": "secret1",
    "type": "homeowner",
    "firstName": "New",
    "lastName": "Bie",
    "phone": "(555) 010-2030",
}


def test_health_and_root(client) -> None:
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json() == {"message": "Kleanr API is running"}


def test_signup_creates_user_bill_and_token(client, db_session) -> None:
    response = client.post("/api/v1/users", json=SIGNUP)

    assert response.status_code == 201
    payload = response.json()
    assert payload["token"]
    assert payload["user"]["email"] == "new.bie@example.com"
    assert payload["user"]["phone"] == "+15550102030"
    assert payload["user"]["notifications"] == ["email", "phone"]

    user = db_session.query(User).filter(User.username == "newbie").one()
    assert user.password != "secret1"
    assert db_session.query(UserBill).filter(UserBill.user_id == user.id).one().total_due == 0


def test_signup_token_opens_a_session(client) -> None:
    token = client.post("/api/v1/users", json=SIGNUP).json()["token"]
    response = client.get("/api/v1/user-sessions/current", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["user"]["username"] == "newbie"


def test_signup_rejections(client, homeowner) -> None:
    cases = [
        ({"type": "owner"}, "Type must be 'homeowner' or 'cleaner'"),
        ({"username": "TheOwnerGuy"}, "Username cannot contain the word 'owner'"),
        ({"email": "not-an-email"}, "Invalid email format"),
        ({"phone": "12345"}, "Phone number must be 10 digits for US numbers"),
        ({"username": "HOMEOWNER1"}, "Username already exists"),
        ({"email": homeowner.email}, "Email already exists"),
    ]
    for overrides, message in cases:
        response = client.post("/api/v1/users", json={**SIGNUP, **overrides})
        assert response.status_code == 400, overrides
        assert response.json() == {"error": message}


def test_signup_validation_errors_are_400(client) -> None:
    response = client.post("/api/v1/users", json={**SIGNUP, "password": "123"})
    assert response.status_code == 400
    assert "password" in response.json()["error"]


def test_signup_records_terms_acceptance(client, db_session) -> None:
    terms = TermsAndConditions(type="homeowner", version=3, title="Terms", content="Be nice", content_type="text")
    db_session.add(terms)
    db_session.commit()

    response = client.post("/api/v1/users", json={**SIGNUP, "termsId": terms.id})

    assert response.json()["user"]["termsAcceptedVersion"] == 3
    acceptance = db_session.query(UserTermsAcceptance).one()
    assert acceptance.terms_content_snapshot == "Be nice"
    assert acceptance.ip_address == "testclient"


def test_login_is_case_insensitive(client, homeowner) -> None:
    response = client.post("/api/v1/user-sessions/login", json={"username": "HomeOwner1", "password": PASSWORD})

    assert response.status_code == 200
    payload = response.json()
    assert payload["user"]["id"] == homeowner.id
    assert payload["user"]["lastLogin"] is not None
    assert payload["token"]


def test_login_with_wrong_password(client, homeowner) -> None:
    response = client.post("/api/v1/user-sessions/login", json={"username": "homeowner1", "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid username or password"}


def test_session_requires_a_valid_token(client) -> None:
    missing = client.get("/api/v1/user-sessions/current")
    assert missing.status_code == 401
    assert missing.json() == {"error": "Authorization token required"}

    bad = client.get("/api/v1/user-sessions/current", headers={"Authorization": "Bearer garbage"})
    assert bad.status_code == 401
    assert bad.json() == {"error": "Invalid or expired token"}


def test_login_is_rate_limited(client, homeowner, monkeypatch) -> None:
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "REDIS_URL", None)

    body = {"username": "homeowner1", "password": "wrong"}
    statuses = [client.post("/api/v1/user-sessions/login", json=body).status_code for _ in range(10)]
    assert set(statuses) == {401}

    blocked = client.post("/api/v1/user-sessions/login", json=body)
    assert blocked.status_code == 429
    assert blocked.json()["error"].startswith("Too many requests")
    assert int(blocked.headers["Retry-After"]) > 0


def test_security_headers_on_api_responses(client) -> None:
    response = client.get("/api/v1/service-areas/states")
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"


# ============================================================================
# PROFILE
# ============================================================================


def test_update_password(client, homeowner, homeowner_headers) -> None:
    wrong = client.patch(
        "/api/v1/users/update-password",
        json={"currentPassword": "bad", "newPassword": "brandnew"},
        headers=homeowner_headers,
    )
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Current password is incorrect"}

    ok = client.patch(
        "/api/v1/users/update-password",
        json={"currentPassword": PASSWORD, "newPassword": "brandnew"},
        headers=homeowner_headers,
    )
    assert ok.status_code == 200

    login = client.post("/api/v1/user-sessions/login", json={"username": "homeowner1", "password": "brandnew"})
    assert login.status_code == 200


def test_update_email_and_phone(client, homeowner_headers, cleaner) -> None:
    taken = client.patch("/api/v1/users/update-email", json={"email": cleaner.email}, headers=homeowner_headers)
    assert taken.status_code == 400
    assert taken.json() == {"error": "Email already exists"}

    changed = client.patch("/api/v1/users/update-email", json={"email": "Fresh@Mail.com"}, headers=homeowner_headers)
    assert changed.json()["email"] == "fresh@mail.com"

    phone = client.patch("/api/v1/users/update-phone", json={"phone": "555-222-3333"}, headers=homeowner_headers)
    assert phone.json()["phone"] == "+15552223333"

    cleared = client.patch("/api/v1/users/update-phone", json={"phone": ""}, headers=homeowner_headers)
    assert cleared.json()["phone"] is None


def test_notification_preferences(client, homeowner_headers) -> None:
    bad = client.patch("/api/v1/users/notifications", json={"notifications": ["pigeon"]}, headers=homeowner_headers)
    assert bad.status_code == 400
    assert bad.json() == {"error": "Unknown notification channel: pigeon"}

    ok = client.patch(
        "/api/v1/users/notifications", json={"notifications": ["email", "email"]}, headers=homeowner_headers
    )
    assert ok.json() == {"notifications": ["email"]}


def test_token_for_deleted_user_is_rejected(client, db_session, homeowner) -> None:
    headers = auth_headers(homeowner)
    db_session.delete(homeowner)
    db_session.commit()

    response = client.get("/api/v1/user-sessions/current", headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": "User not found"}
