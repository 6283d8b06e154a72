"""Cloud Run entrypoint for the symptomdx diagnosis API."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from symptomdx.classifier import SymptomClassifier
from symptomdx.config import Settings, get_settings
from symptomdx.context import ChatStore, ContextAggregator
from symptomdx.gateway import InferenceGateway
from symptomdx.orchestration import DiagnosisOrchestrator, InvalidSymptomInput
from symptomdx.schemas import (
    ClassifyRequest,
    ClassifyResponse,
    DiagnosisRequest,
    DiagnosisResult,
    TitleRequest,
    TitleResponse,
)
from symptomdx.sse import KEEP_ALIVE, format_sse
from symptomdx.storage import LocalChatStore
from symptomdx.utils import format_title, utc_now

EMPTY_MESSAGE = "Сообщение не может быть пустым"


def build_orchestrator(settings: Settings, store: ChatStore) -> DiagnosisOrchestrator:
    gateway = InferenceGateway(settings)
    use_remote = settings.remote_enabled
    return DiagnosisOrchestrator(
        classifier=SymptomClassifier(gateway, use_remote=use_remote, timeout_sec=settings.classify_timeout_sec),
        gateway=gateway,
        context=ContextAggregator(store, limit=settings.context_chat_limit),
        use_remote=use_remote,
        diagnosis_timeout_sec=settings.diagnosis_timeout_sec,
    )


def create_app(settings: Settings | None = None, store: ChatStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    store = store or LocalChatStore(settings)
    orchestrator = build_orchestrator(settings, store)

    app = FastAPI(title="symptomdx API (Cloud Run)", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    def _parse_diagnosis_request(payload: dict[str, Any]) -> DiagnosisRequest:
        try:
            request = DiagnosisRequest.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors()) from exc
        if not request.text:
            raise HTTPException(status_code=400, detail={"message": EMPTY_MESSAGE})
        return request

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "service": settings.app_name,
            "timestamp": utc_now().isoformat(),
            "inference_mode": orchestrator.inference_mode,
            "inference_token_configured": bool(settings.inference_token),
            "classify_timeout_sec": settings.classify_timeout_sec,
            "diagnosis_timeout_sec": settings.diagnosis_timeout_sec,
        }

    @app.post("/v1/symptoms/classify", response_model=ClassifyResponse)
    async def classify(payload: ClassifyRequest) -> ClassifyResponse:
        return ClassifyResponse(text=payload.text, is_symptom=await orchestrator.classify(payload.text))

    @app.post("/v1/titles", response_model=TitleResponse)
    async def title(payload: TitleRequest) -> TitleResponse:
        return TitleResponse(title=format_title(payload.text))

    @app.post("/v1/diagnosis", response_model=DiagnosisResult)
    async def diagnosis(payload: dict[str, Any] = Body(...)) -> DiagnosisResult:
        request = _parse_diagnosis_request(payload)
        try:
            return await orchestrator.generate_diagnosis(request.text, request.user_id)
        except InvalidSymptomInput as exc:
            raise HTTPException(status_code=400, detail={"message": exc.message}) from exc

    @app.post("/v1/diagnosis/stream")
    async def diagnosis_stream(payload: dict[str, Any] = Body(...)):
        request = _parse_diagnosis_request(payload)

        queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue()
        done = asyncio.Event()

        async def emit(event_name: str, event_payload: dict[str, Any]) -> None:
            envelope = {
                "event": event_name,
                "timestamp": utc_now().isoformat(),
                **event_payload,
            }
            await queue.put((event_name, envelope))

        async def runner() -> None:
            try:
                await orchestrator.generate_diagnosis(request.text, request.user_id, emit)
            except InvalidSymptomInput as exc:
                await emit("diagnosis.error", {"error": "invalid_input", "message": exc.message})
            except Exception as exc:
                await emit("diagnosis.error", {"error": "internal", "message": str(exc)})
            finally:
                done.set()

        task = asyncio.create_task(runner())

        async def event_gen():
            while True:
                if done.is_set() and queue.empty():
                    break
                try:
                    event_name, envelope = await asyncio.wait_for(queue.get(), timeout=0.75)
                    yield format_sse(event_name, envelope)
                except asyncio.TimeoutError:
                    yield KEEP_ALIVE
            await task

        return StreamingResponse(event_gen(), media_type="text/event-stream")

    return app


app = create_app()
