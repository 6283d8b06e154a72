import asyncio
from pathlib import Path

import httpx
import pytest

from symptomdx.classifier import SymptomClassifier
from symptomdx.config import Settings
from symptomdx.context import ContextAggregator
from symptomdx.fallback import synthesize
from symptomdx.gateway import InferenceGateway, UpstreamUnavailable
from symptomdx.orchestration import REJECTION_MESSAGE, DiagnosisOrchestrator, InvalidSymptomInput
from symptomdx.schemas import ChatRecord
from symptomdx.storage import LocalChatStore


class StaticContext:
    def __init__(self, history: list[str]):
        self.history = history
        self.users: list[str] = []

    async def load(self, user_id: str) -> list[str]:
        self.users.append(user_id)
        return list(self.history)


class RecordingGateway:
    endpoint = "stub://inference"

    def __init__(self, answer: str = "Удаленный диагноз: ОРВИ.", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.prompts: list[tuple[str, float | None]] = []

    async def infer(self, prompt: str, *, timeout_sec: float | None = None) -> str:
        self.prompts.append((prompt, timeout_sec))
        if self.error is not None:
            raise self.error
        return self.answer


def _settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "inference_url": "https://inference.test/models/demo",
        "inference_token": "hf_test_token",
        "inference_mode": "remote",
        "use_mock_ai": False,
        "classify_timeout_sec": 5.0,
        "diagnosis_timeout_sec": 10.0,
        "local_storage_dir": str(tmp_path),
    }
    values.update(overrides)
    return Settings(**values)


def _orchestrator(gateway, context, *, use_remote: bool = True) -> DiagnosisOrchestrator:
    return DiagnosisOrchestrator(
        classifier=SymptomClassifier(gateway, use_remote=False),
        gateway=gateway,
        context=context,
        use_remote=use_remote,
        diagnosis_timeout_sec=10.0,
    )


def test_remote_success_returns_remote_text_and_prompt_with_history():
    gateway = RecordingGateway()
    context = StaticContext(["болит горло", "температура"])
    orchestrator = _orchestrator(gateway, context)

    result = asyncio.run(orchestrator.generate_diagnosis("кашель и насморк", "u1"))

    assert result.source_mode == "remote"
    assert result.diagnosis_text == "Удаленный диагноз: ОРВИ."
    assert result.category is None
    assert context.users == ["u1"]
    prompt, timeout = gateway.prompts[0]
    assert prompt.startswith('Предыдущие симптомы пациента: "болит горло", "температура". ')
    assert "Текущие симптомы: кашель и насморк." in prompt
    assert "к какому специалисту обратиться" in prompt
    assert timeout == 10.0


def test_upstream_failure_falls_back_to_local_synthesis():
    gateway = RecordingGateway(error=UpstreamUnavailable("status", "HTTP 503", status_code=503))
    history = ["Сильно болит голова"]
    orchestrator = _orchestrator(gateway, StaticContext(history))

    events: list[tuple[str, dict]] = []

    async def emit(event_name, payload):
        events.append((event_name, payload))

    result = asyncio.run(orchestrator.generate_diagnosis("головокружение", "u1", emit))

    assert result.source_mode == "local"
    assert result.diagnosis_text == synthesize("головокружение", history)
    assert result.context_rules == ["dizziness_after_headache"]
    names = [name for name, _ in events]
    assert "inference.fallback" in names
    assert "inference.completed" not in names
    assert names[-1] == "diagnosis.final"
    fallback_payload = dict(events)["inference.fallback"]
    assert fallback_payload["reason"] == "status"
    assert fallback_payload["status_code"] == 503


def test_slow_upstream_degrades_to_local_without_raising(tmp_path: Path):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json=[{"generated_text": "too late"}])

    settings = _settings(tmp_path, diagnosis_timeout_sec=0.05)
    gateway = InferenceGateway(settings, transport=httpx.MockTransport(handler))
    orchestrator = DiagnosisOrchestrator(
        classifier=SymptomClassifier(gateway, use_remote=False),
        gateway=gateway,
        context=StaticContext([]),
        use_remote=True,
        diagnosis_timeout_sec=settings.diagnosis_timeout_sec,
    )

    result = asyncio.run(orchestrator.generate_diagnosis("У меня болит голова", "u1"))

    assert result.source_mode == "local"
    assert result.category == "headache"
    assert result.diagnosis_text


def test_malformed_inference_url_degrades_to_local(tmp_path: Path):
    settings = _settings(tmp_path, inference_url="http://[::1/x")
    gateway = InferenceGateway(settings, transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    orchestrator = DiagnosisOrchestrator(
        classifier=SymptomClassifier(gateway, use_remote=False),
        gateway=gateway,
        context=StaticContext([]),
        use_remote=True,
        diagnosis_timeout_sec=settings.diagnosis_timeout_sec,
    )

    events: list[tuple[str, dict]] = []

    async def emit(event_name, payload):
        events.append((event_name, payload))

    result = asyncio.run(orchestrator.generate_diagnosis("У меня болит голова", "u1", emit))

    assert result.source_mode == "local"
    assert result.category == "headache"
    assert dict(events)["inference.fallback"]["reason"] == "network"


def test_rejected_text_stops_before_context_and_inference():
    gateway = RecordingGateway()
    context = StaticContext(["болит голова"])
    orchestrator = _orchestrator(gateway, context)

    events: list[str] = []

    async def emit(event_name, payload):
        _ = payload
        events.append(event_name)

    with pytest.raises(InvalidSymptomInput) as info:
        asyncio.run(orchestrator.generate_diagnosis("привет", "u1", emit))

    assert info.value.message == REJECTION_MESSAGE
    assert events[-1] == "request.rejected"
    assert context.users == []
    assert gateway.prompts == []


def test_local_mode_skips_gateway():
    gateway = RecordingGateway()
    orchestrator = _orchestrator(gateway, StaticContext([]), use_remote=False)

    result = asyncio.run(orchestrator.generate_diagnosis("болит голова и горло", "u1"))

    assert orchestrator.inference_mode == "local"
    assert result.source_mode == "local"
    assert result.category == "headache"
    assert gateway.prompts == []
    assert "total" in result.latency_ms


def test_streamed_deltas_rebuild_the_diagnosis():
    orchestrator = _orchestrator(RecordingGateway(), StaticContext([]), use_remote=False)
    chunks: list[str] = []

    async def emit(event_name, payload):
        if event_name == "diagnosis.delta":
            chunks.append(payload["text"])

    result = asyncio.run(orchestrator.generate_diagnosis("сильный кашель по ночам уже неделю", "u1", emit))

    assert "".join(chunks) == result.diagnosis_text
    assert all(len(chunk) <= 120 for chunk in chunks)


def test_context_window_includes_current_chat(tmp_path: Path):
    settings = _settings(tmp_path)
    store = LocalChatStore(settings)
    asyncio.run(store.save_chat(ChatRecord(chat_id="current", user_id="u1", symptoms=["болит горло"])))

    orchestrator = _orchestrator(
        RecordingGateway(),
        ContextAggregator(store, limit=settings.context_chat_limit),
        use_remote=False,
    )
    result = asyncio.run(orchestrator.generate_diagnosis("поднялась температура", "u1"))

    assert result.category == "fever"
    assert result.context_rules == ["fever_after_sore_throat"]


def test_format_title_passthrough():
    assert DiagnosisOrchestrator.format_title("болит голова") == "Болит голова"
