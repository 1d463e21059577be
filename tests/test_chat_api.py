# tests/test_chat_api.py
from techtool.core.auth import Principal, get_current_user
from techtool.models.user import User


def _session(client, title=None):
    r = client.post("/chat/sessions", json={"title": title} if title else {})
    assert r.status_code == 200
    return r.json()


def test_create_and_list_sessions(client):
    created = _session(client)
    assert created["title"] == "New Chat"
    assert created["user_id"] == "auth-alice"

    _session(client, "Printer on fire")
    titles = {s["title"] for s in client.get("/chat/sessions").json()}
    assert titles == {"New Chat", "Printer on fire"}


def test_messages_round_trip(client):
    session = _session(client)

    r = client.post("/chat/messages", json={"sessionId": session["id"], "sender": "user", "text": "hi"})
    assert r.status_code == 200
    client.post(
        "/chat/messages",
        json={"sessionId": session["id"], "sender": "bot", "text": "Filed HRB-1", "buttons": [{"label": "Open"}]},
    )

    messages = client.get(f"/chat/messages?sessionId={session['id']}").json()
    assert [m["sender"] for m in messages] == ["user", "bot"]
    assert messages[1]["buttons"] == [{"label": "Open"}]


def test_message_validation(client):
    session = _session(client)

    assert client.get("/chat/messages").json() == {"error": "Missing sessionId"}
    r = client.post("/chat/messages", json={"sessionId": session["id"], "sender": "user"})
    assert r.status_code == 400
    assert r.json() == {"error": "Missing required fields"}

    r = client.post("/chat/messages", json={"sessionId": "nope", "sender": "user", "text": "x"})
    assert r.status_code == 404
    assert r.json() == {"error": "Session not found"}


def test_sessions_are_private(client, db):
    session = _session(client)

    db.add(User(id="u-bob", name="Bob", email="bob@example.com", role="member"))
    db.commit()
    client.app.dependency_overrides[get_current_user] = lambda: Principal("auth-bob", "bob@example.com", "Bob")

    assert client.get("/chat/sessions").json() == []
    assert client.get(f"/chat/messages?sessionId={session['id']}").status_code == 404


def test_feedback_once_per_ticket(client):
    session = _session(client)
    body = {"sessionId": session["id"], "ticketId": "HRB-1", "rating": 5, "feedback": "fast"}

    r = client.post("/chat/feedback", json=body)
    assert r.status_code == 200
    assert r.json()["rating"] == 5

    again = client.post("/chat/feedback", json=body)
    assert again.status_code == 409
    assert again.json() == {"error": "Feedback already submitted"}

    listed = client.get(f"/chat/feedback?sessionId={session['id']}&ticketId=HRB-1").json()
    assert len(listed) == 1


def test_feedback_validation(client):
    session = _session(client)

    r = client.post("/chat/feedback", json={"sessionId": session["id"], "ticketId": "HRB-1", "rating": 6})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid rating"}

    r = client.post("/chat/feedback", json={"sessionId": session["id"], "rating": 3})
    assert r.json() == {"error": "Missing required fields"}


def test_storage_failure_is_reported_as_json(client, monkeypatch):
    from sqlalchemy.exc import OperationalError

    from techtool.api.routes import chat as chat_routes

    def boom(*args, **kwargs):
        raise OperationalError("select", {}, Exception("connection refused"))

    monkeypatch.setattr(chat_routes, "_own_session", boom)

    r = client.get("/chat/messages?sessionId=x")
    assert r.status_code == 500
    assert r.headers["content-type"].startswith("application/json")
    assert r.json()["error"].startswith("Failed to fetch chat messages. Server error:")

    r = client.post("/chat/messages", json={"sessionId": "x", "sender": "user", "text": "hi"})
    assert r.status_code == 500
    assert "connection refused" in r.json()["error"]

    r = client.post("/chat/feedback", json={"sessionId": "x", "ticketId": "HRB-1", "rating": 4})
    assert r.status_code == 500


def test_bot_replies_link_ticket_references(client):
    session = _session(client)

    r = client.post(
        "/chat/messages",
        json={"sessionId": session["id"], "sender": "bot", "text": "Created hrb-7, see [HRB-6](/tickets?ticket=HRB-6)"},
    )
    expected = "Created [hrb-7](/tickets?ticket=HRB-7), see [HRB-6](/tickets?ticket=HRB-6)"
    assert r.json()["text"] == expected

    client.post("/chat/messages", json={"sessionId": session["id"], "sender": "user", "text": "what about HRB-7?"})

    bot, user = client.get(f"/chat/messages?sessionId={session['id']}").json()
    assert bot["text"] == expected
    assert user["text"] == "what about HRB-7?"
