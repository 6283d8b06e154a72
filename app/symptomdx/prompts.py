"""Prompt builders for the hosted text-generation model."""

from __future__ import annotations

DIAGNOSIS_INSTRUCTION = (
    "Дайте подробный анализ симптомов, предварительный диагноз с возможными причинами, "
    "и четкие рекомендации: к какому специалисту обратиться и какие анализы стоит сдать "
    "для подтверждения диагноза."
)


def build_classification_prompt(text: str) -> str:
    return f'Это описание медицинских симптомов? "{text}"'


def build_context_prefix(context_history: list[str]) -> str:
    if not context_history:
        return ""
    quoted = ", ".join(f'"{item}"' for item in context_history)
    return f"Предыдущие симптомы пациента: {quoted}. "


def build_diagnosis_prompt(text: str, context_history: list[str]) -> str:
    return f"{build_context_prefix(context_history)}Текущие симптомы: {text}. {DIAGNOSIS_INSTRUCTION}"
