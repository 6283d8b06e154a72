import asyncio
from pathlib import Path

from fastapi.testclient import TestClient

from cloudrun_backend import create_app
from symptomdx.config import Settings
from symptomdx.orchestration import REJECTION_MESSAGE
from symptomdx.schemas import ChatRecord
from symptomdx.storage import LocalChatStore


def _client(tmp_path: Path) -> tuple[TestClient, LocalChatStore]:
    settings = Settings(
        inference_token=None,
        inference_mode="local",
        local_storage_dir=str(tmp_path),
    )
    store = LocalChatStore(settings)
    return TestClient(create_app(settings, store)), store


def test_health_reports_local_mode(tmp_path: Path):
    client, _ = _client(tmp_path)

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["inference_mode"] == "local"
    assert body["inference_token_configured"] is False


def test_classify_and_title_endpoints(tmp_path: Path):
    client, _ = _client(tmp_path)

    assert client.post("/v1/symptoms/classify", json={"text": "у меня болит голова"}).json()["is_symptom"] is True
    assert client.post("/v1/symptoms/classify", json={"text": "привет"}).json()["is_symptom"] is False
    assert client.post("/v1/titles", json={"text": "hello"}).json() == {"title": "Hello"}


def test_diagnosis_uses_stored_history(tmp_path: Path):
    client, store = _client(tmp_path)
    asyncio.run(store.save_chat(ChatRecord(user_id="u1", symptoms=["Сильно болит голова"])))

    response = client.post("/v1/diagnosis", json={"text": "головокружение", "user_id": "u1"})

    assert response.status_code == 200
    body = response.json()
    assert body["source_mode"] == "local"
    assert body["context_rules"] == ["dizziness_after_headache"]


def test_diagnosis_rejects_non_symptom_and_empty_text(tmp_path: Path):
    client, _ = _client(tmp_path)

    rejected = client.post("/v1/diagnosis", json={"text": "привет", "user_id": "u1"})
    empty = client.post("/v1/diagnosis", json={"text": "", "user_id": "u1"})
    missing_user = client.post("/v1/diagnosis", json={"text": "болит голова"})

    assert rejected.status_code == 400
    assert rejected.json()["detail"]["message"] == REJECTION_MESSAGE
    assert empty.status_code == 400
    assert missing_user.status_code == 422


def test_diagnosis_stream_emits_sse_events(tmp_path: Path):
    client, _ = _client(tmp_path)

    response = client.post("/v1/diagnosis/stream", json={"content": "У меня болит голова", "userId": "u1"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert "event: classifier.completed" in response.text
    assert "event: diagnosis.delta" in response.text
    assert "event: diagnosis.final" in response.text
    assert "головную боль" in response.text
