"""End-to-end diagnosis orchestration logic."""

from __future__ import annotations

from time import perf_counter
from typing import Any, Awaitable, Callable
from uuid import uuid4

from symptomdx.classifier import SymptomClassifier
from symptomdx.context import ContextAggregator
from symptomdx.fallback import synthesize_with_meta
from symptomdx.gateway import InferenceGateway, UpstreamUnavailable
from symptomdx.prompts import build_diagnosis_prompt
from symptomdx.schemas import DiagnosisResult
from symptomdx.utils import chunk_text, elapsed_ms, format_title, utc_now

EmitFn = Callable[[str, dict[str, Any]], Awaitable[None]]

REJECTION_MESSAGE = (
    'Пожалуйста, опишите только ваши медицинские симптомы. Например: "У меня болит голова и тошнит".'
)


class InvalidSymptomInput(ValueError):
    def __init__(self, text: str, message: str = REJECTION_MESSAGE):
        self.text = text
        self.message = message
        super().__init__(message)


async def _noop_emit(event_name: str, payload: dict[str, Any]) -> None:
    _ = (event_name, payload)


class DiagnosisOrchestrator:
    def __init__(
        self,
        classifier: SymptomClassifier,
        gateway: InferenceGateway | None,
        context: ContextAggregator,
        *,
        use_remote: bool = False,
        diagnosis_timeout_sec: float = 10.0,
    ):
        self._classifier = classifier
        self._gateway = gateway
        self._context = context
        self._use_remote = use_remote and gateway is not None
        self._diagnosis_timeout_sec = diagnosis_timeout_sec

    @property
    def inference_mode(self) -> str:
        return "remote" if self._use_remote else "local"

    async def classify(self, text: str) -> bool:
        return await self._classifier.is_symptom(text)

    @staticmethod
    def format_title(text: str) -> str:
        return format_title(text)

    async def _infer_remote(self, text: str, context_history: list[str]) -> str:
        prompt = build_diagnosis_prompt(text, context_history)
        return await self._gateway.infer(prompt, timeout_sec=self._diagnosis_timeout_sec)

    async def generate_diagnosis(
        self,
        text: str,
        user_id: str,
        emit: EmitFn | None = None,
    ) -> DiagnosisResult:
        emit = emit or _noop_emit
        request_id = str(uuid4())
        started = perf_counter()
        latency_ms: dict[str, int] = {}

        await emit(
            "request.accepted",
            {
                "request_id": request_id,
                "user_id": user_id,
                "timestamp": utc_now().isoformat(),
            },
        )

        t0 = perf_counter()
        is_symptom = await self.classify(text)
        latency_ms["classify"] = elapsed_ms(t0)
        await emit(
            "classifier.completed",
            {
                "request_id": request_id,
                "is_symptom": is_symptom,
                "mode": self._classifier.mode,
                "latency_ms": latency_ms["classify"],
            },
        )
        if not is_symptom:
            await emit("request.rejected", {"request_id": request_id, "reason": "not_a_symptom_description"})
            raise InvalidSymptomInput(text)

        t0 = perf_counter()
        context_history = await self._context.load(user_id)
        latency_ms["context"] = elapsed_ms(t0)
        await emit(
            "context.loaded",
            {
                "request_id": request_id,
                "symptom_count": len(context_history),
                "latency_ms": latency_ms["context"],
            },
        )

        result: DiagnosisResult | None = None
        if self._use_remote:
            await emit("inference.started", {"request_id": request_id, "endpoint": self._gateway.endpoint})
            t0 = perf_counter()
            try:
                remote_text = await self._infer_remote(text, context_history)
                latency_ms["inference"] = elapsed_ms(t0)
                result = DiagnosisResult(diagnosis_text=remote_text, source_mode="remote")
                await emit(
                    "inference.completed",
                    {"request_id": request_id, "latency_ms": latency_ms["inference"]},
                )
            except UpstreamUnavailable as exc:
                latency_ms["inference"] = elapsed_ms(t0)
                print(f"[symptomdx] diagnosis_fallback: {exc.reason}: {exc.detail}")
                await emit(
                    "inference.fallback",
                    {
                        "request_id": request_id,
                        "reason": exc.reason,
                        "status_code": exc.status_code,
                        "latency_ms": latency_ms["inference"],
                    },
                )

        if result is None:
            t0 = perf_counter()
            diagnosis_text, meta = synthesize_with_meta(text, context_history)
            latency_ms["synthesis"] = elapsed_ms(t0)
            result = DiagnosisResult(
                diagnosis_text=diagnosis_text,
                source_mode="local",
                category=meta["category"],
                context_rules=list(meta["context_rules"]),
            )

        latency_ms["total"] = elapsed_ms(started)
        result.latency_ms = latency_ms

        for chunk in chunk_text(result.diagnosis_text, size=120):
            await emit("diagnosis.delta", {"request_id": request_id, "text": chunk})

        await emit("diagnosis.final", {"request_id": request_id, **result.model_dump(mode="json")})
        return result
