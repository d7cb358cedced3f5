import json


def test_root_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["service"] == "Mara - McMaster Remote Assistant"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["service"] == "Mara Chatbot API"
    assert health["persistence"] == "memory"
    assert health["timestamp"]


def test_unknown_path_is_404(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"error": "Endpoint not found", "path": "/api/nothing-here"}


def test_new_student_crisis_flow(client, llm):
    session = client.post("/api/session", json={"name": "Alex"})
    assert session.status_code == 200
    body = session.json()
    assert body["userType"] == "prospective"
    assert body["greeting"] == "Hi Alex! I'm Mara, your McMaster Remote Assistant. How can I help you today?"
    assert body["studentInfo"]["level"] == "Unknown"

    chat = client.post("/api/chat", json={
        "sessionId": body["sessionId"],
        "message": "I feel hopeless about this semester",
    })
    assert chat.status_code == 200
    reply = chat.json()

    assert reply["sessionId"] == body["sessionId"]
    assert reply["emotionalState"] == "crisis"
    assert reply["escalationRequired"] is True
    assert 40000 <= int(reply["chatId"]) <= 49999
    assert "1-866-925-5454" in reply["response"]
    assert "bennettl@mcmaster.ca" in reply["response"]
    assert f"Your Chat ID is: {reply['chatId']}" in reply["response"]
    assert reply["timestamp"]


def test_blank_or_missing_message_is_400(client):
    assert client.post("/api/chat", json={"message": "   "}).status_code == 400
    missing = client.post("/api/chat", json={"name": "Alex"})
    assert missing.status_code == 400
    assert missing.json() == {"error": "Message is required"}


def test_unknown_session_is_404(client):
    response = client.post("/api/chat", json={"sessionId": "nope", "message": "hi"})
    assert response.status_code == 404
    assert "error" in response.json()


def test_session_requires_name_or_known_chat_id(client):
    assert client.post("/api/session", json={}).status_code == 400
    assert client.post("/api/session", json={"chatId": "48888"}).status_code == 400


def test_same_chat_id_accumulates_history_without_database(client, services, llm):
    llm.reply = "Okay."

    first = client.post("/api/chat", json={"message": "Is the gym fee optional?", "name": "Sam", "chatId": 41234})
    second = client.post("/api/chat", json={"message": "What about the bus pass?", "chatId": "41234"})

    assert first.status_code == second.status_code == 200
    assert first.json()["sessionId"] != second.json()["sessionId"]
    assert second.json()["chatId"] == "41234"

    record = services.continuity.record("41234")
    assert len(record.message_history) == 4
    assert record.name == "Sam"


def test_resume_with_chat_id_returns_context(client, llm):
    llm.reply = "Noted."
    llm.summary = "Asked about gym and bus pass fees."
    session_id = client.post("/api/session", json={"name": "Alex", "studentNumber": "410622548"}).json()["sessionId"]
    client.post("/api/chat", json={"sessionId": session_id, "message": "Is the gym fee optional?"})
    chat = client.post("/api/chat", json={"sessionId": session_id, "message": "And the bus pass?"}).json()

    resumed = client.post("/api/session", json={"chatId": chat["chatId"]}).json()

    assert resumed["greeting"].startswith("Hi Alex!")
    assert resumed["userType"] == "current"
    assert resumed["studentInfo"]["program"] == "Software Engineering"
    assert resumed["previousContext"] == "Asked about gym and bus pass fees."
    assert len(resumed["messageHistory"]) == 4


def test_history_endpoint(client, llm):
    llm.reply = "Hi!"
    reply = client.post("/api/chat", json={"message": "hello", "name": "Alex"}).json()

    history = client.get(f"/api/history/{reply['sessionId']}").json()
    assert history["stats"]["messageCount"] == 2
    assert history["history"][0]["content"] == "hello"

    empty = client.get("/api/history/unknown").json()
    assert empty == {"history": [], "stats": {"messageCount": 0, "userMessages": 0, "assistantMessages": 0, "duration": 0}}


def test_contacts_endpoints(client):
    prospective = client.get("/api/contacts/fees", params={"userType": "prospective"}).json()
    assert prospective["email"] == "bennettl@mcmaster.ca"
    assert "available" in prospective["availability"]

    fees = client.get("/api/contacts/fees").json()
    assert fees["department"] == "MSU Student Council - Fee Inquiries"

    directory = client.get("/api/contacts", params={"userType": "prospective"}).json()
    assert set(directory) == {"admissions", "general"}
    assert len(client.get("/api/contacts").json()) == 7


def test_analytics_unavailable_without_database(client):
    response = client.get("/api/analytics")
    assert response.status_code == 503
    assert response.json() == {"error": "Analytics require database connection"}


def test_analytics_with_database(durable_client, llm):
    llm.reply = "Okay."
    llm.classification = json.dumps({
        "intent": "fee_inquiry", "emotionalState": "neutral", "needsRetrieval": True,
        "requiresEscalation": False, "category": "fees", "keywords": [],
    })
    durable_client.post("/api/chat", json={"message": "gym fee?", "name": "Alex"})

    response = durable_client.get("/api/analytics", params={"days": 30})
    assert response.status_code == 200
    body = response.json()
    assert body["days"] == 30
    rows = {(r["intent"], r["emotionalState"]): r["count"] for r in body["analytics"]}
    assert rows[("fee_inquiry", "neutral")] == 1

    assert durable_client.get("/health").json()["persistence"] == "database"


def test_invalid_analytics_days_is_400(durable_client):
    assert durable_client.get("/api/analytics", params={"days": 0}).status_code == 400


def test_pipeline_failure_returns_apology(client, services, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(services.knowledge, "search", explode)

    response = client.post("/api/chat", json={"message": "hello", "name": "Alex"})
    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "I apologize, but I encountered an error processing your message."
    assert "student.services@mcmaster.ca" in body["response"]
    assert "boom" not in json.dumps(body)


def test_lifespan_starts_and_stops(services):
    from fastapi.testclient import TestClient
    from mara.api.http_api import create_app

    with TestClient(create_app(services)) as client:
        assert client.get("/health").status_code == 200
