import pytest

from app.models import Conversation, ConversationParticipant, Message
from tests.support import auth_headers, make_appointment, make_home, make_user


@pytest.fixture
def assigned_appointment(db_session, homeowner, cleaner):
    home = make_home(db_session, homeowner)
    return make_appointment(db_session, home, has_been_assigned=True, employees_assigned=[str(cleaner.id)])


def open_appointment_chat(client, appointment, headers) -> dict:
    response = client.post(
        "/api/v1/messages/conversation/appointment", json={"appointmentId": appointment.id}, headers=headers
    )
    assert response.status_code == 200
    return response.json()["conversation"]


def test_appointment_conversation_includes_client_cleaner_and_owner(
    client, db_session, homeowner, cleaner, owner, assigned_appointment, homeowner_headers, cleaner_headers
) -> None:
    conversation = open_appointment_chat(client, assigned_appointment, homeowner_headers)

    assert conversation["conversationType"] == "appointment"
    assert conversation["title"] == f"Appointment - {assigned_appointment.date.isoformat()}"
    assert {p["id"] for p in conversation["participants"]} == {homeowner.id, cleaner.id, owner.id}

    again = open_appointment_chat(client, assigned_appointment, cleaner_headers)
    assert again["id"] == conversation["id"]
    assert db_session.query(Conversation).count() == 1


def test_outsiders_cannot_open_appointment_conversation(client, db_session, assigned_appointment) -> None:
    stranger = make_user(db_session, "stranger", "cleaner")

    response = client.post(
        "/api/v1/messages/conversation/appointment",
        json={"appointmentId": assigned_appointment.id},
        headers=auth_headers(stranger),
    )
    assert response.status_code == 403

    missing = client.post(
        "/api/v1/messages/conversation/appointment", json={"appointmentId": 999}, headers=auth_headers(stranger)
    )
    assert missing.status_code == 404


def test_send_and_read_messages(
    client, assigned_appointment, homeowner_headers, cleaner_headers
) -> None:
    conversation = open_appointment_chat(client, assigned_appointment, homeowner_headers)

    sent = client.post(
        "/api/v1/messages/send",
        json={"conversationId": conversation["id"], "content": "  On my way!  "},
        headers=cleaner_headers,
    )
    assert sent.status_code == 201
    assert sent.json()["message"]["content"] == "On my way!"
    assert sent.json()["message"]["sender"]["username"] == "cleaner1"

    assert client.get("/api/v1/messages/unread-count", headers=homeowner_headers).json() == {"unreadCount": 1}
    assert client.get("/api/v1/messages/unread-count", headers=cleaner_headers).json() == {"unreadCount": 0}

    opened = client.get(f"/api/v1/messages/conversation/{conversation['id']}", headers=homeowner_headers).json()
    assert [m["content"] for m in opened["messages"]] == ["On my way!"]
    assert client.get("/api/v1/messages/unread-count", headers=homeowner_headers).json() == {"unreadCount": 0}

    listed = client.get("/api/v1/messages/conversations", headers=homeowner_headers).json()["conversations"]
    assert listed[0]["lastMessage"]["content"] == "On my way!"


def test_send_rules(client, db_session, assigned_appointment, homeowner_headers) -> None:
    conversation = open_appointment_chat(client, assigned_appointment, homeowner_headers)

    empty = client.post(
        "/api/v1/messages/send", json={"conversationId": conversation["id"], "content": "   "}, headers=homeowner_headers
    )
    assert empty.status_code == 400
    assert empty.json() == {"error": "Message content is required"}

    outsider = make_user(db_session, "outsider")
    denied = client.post(
        "/api/v1/messages/send",
        json={"conversationId": conversation["id"], "content": "hi"},
        headers=auth_headers(outsider),
    )
    assert denied.status_code == 403

    assigned_appointment.completed = True
    db_session.commit()
    closed = client.post(
        "/api/v1/messages/send", json={"conversationId": conversation["id"], "content": "hi"}, headers=homeowner_headers
    )
    assert closed.status_code == 403
    assert closed.json() == {"error": "Messaging is disabled for completed appointments"}


def test_support_conversation(client, db_session, homeowner, owner, homeowner_headers, owner_headers) -> None:
    first = client.post("/api/v1/messages/conversation/support", headers=homeowner_headers).json()["conversation"]
    second = client.post("/api/v1/messages/conversation/support", headers=homeowner_headers).json()["conversation"]

    assert first["id"] == second["id"]
    assert first["title"] == "Support - homeowner1"
    assert {p["id"] for p in first["participants"]} == {homeowner.id, owner.id}

    staff = client.post("/api/v1/messages/conversation/support", headers=owner_headers)
    assert staff.status_code == 400


def test_support_needs_an_owner(client, homeowner_headers) -> None:
    response = client.post("/api/v1/messages/conversation/support", headers=homeowner_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "No owner available"}


def test_broadcast_to_cleaners(client, db_session, cleaner, homeowner, owner_headers, homeowner_headers) -> None:
    make_user(db_session, "demo_cleaner", "cleaner", is_demo_account=True)

    response = client.post(
        "/api/v1/messages/broadcast",
        json={"content": "Holiday schedule posted", "targetAudience": "cleaners"},
        headers=owner_headers,
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["recipientCount"] == 1
    assert payload["conversation"]["title"] == "Company Announcement"
    assert payload["conversation"]["lastMessage"]["messageType"] == "broadcast"

    denied = client.post(
        "/api/v1/messages/broadcast", json={"content": "hi", "targetAudience": "all"}, headers=homeowner_headers
    )
    assert denied.status_code == 403

    bad_audience = client.post(
        "/api/v1/messages/broadcast", json={"content": "hi", "targetAudience": "pets"}, headers=owner_headers
    )
    assert bad_audience.json() == {"error": "Invalid target audience"}


def test_reactions_toggle(client, assigned_appointment, homeowner_headers, cleaner_headers) -> None:
    conversation = open_appointment_chat(client, assigned_appointment, homeowner_headers)
    message = client.post(
        "/api/v1/messages/send", json={"conversationId": conversation["id"], "content": "Done!"}, headers=cleaner_headers
    ).json()["message"]

    added = client.post(f"/api/v1/messages/{message['id']}/react", json={"emoji": "👍"}, headers=homeowner_headers)
    assert added.json()["action"] == "added"

    not_mine = client.delete(f"/api/v1/messages/{message['id']}/react/👍", headers=cleaner_headers)
    assert not_mine.status_code == 403

    removed = client.post(f"/api/v1/messages/{message['id']}/react", json={"emoji": "👍"}, headers=homeowner_headers)
    assert removed.json() == {"success": True, "action": "removed", "reaction": None}

    missing = client.delete(f"/api/v1/messages/{message['id']}/react/👍", headers=homeowner_headers)
    assert missing.status_code == 404


def test_delete_message_is_soft(client, db_session, assigned_appointment, homeowner_headers, cleaner_headers) -> None:
    conversation = open_appointment_chat(client, assigned_appointment, homeowner_headers)
    message = client.post(
        "/api/v1/messages/send", json={"conversationId": conversation["id"], "content": "oops"}, headers=cleaner_headers
    ).json()["message"]

    assert client.delete(f"/api/v1/messages/{message['id']}", headers=homeowner_headers).status_code == 403
    assert client.delete(f"/api/v1/messages/{message['id']}", headers=cleaner_headers).json() == {"success": True}

    opened = client.get(f"/api/v1/messages/conversation/{conversation['id']}", headers=cleaner_headers).json()
    assert opened["messages"][0]["content"] == "This message was deleted"
    assert opened["messages"][0]["isDeleted"] is True
    assert db_session.query(Message).one().content == "oops"


def test_only_owner_deletes_conversations(
    client, db_session, assigned_appointment, homeowner_headers, owner_headers
) -> None:
    conversation = open_appointment_chat(client, assigned_appointment, homeowner_headers)

    denied = client.delete(f"/api/v1/messages/conversation/{conversation['id']}", headers=homeowner_headers)
    assert denied.status_code == 403

    deleted = client.delete(f"/api/v1/messages/conversation/{conversation['id']}", headers=owner_headers)
    assert deleted.json() == {"success": True}
    assert db_session.query(Conversation).count() == 0
    assert db_session.query(ConversationParticipant).count() == 0


def test_mark_read_requires_participation(client, homeowner_headers) -> None:
    response = client.patch("/api/v1/messages/mark-read/42", headers=homeowner_headers)
    assert response.status_code == 403
