"""Decides whether free text reads like a description of medical symptoms."""

from __future__ import annotations

from symptomdx.gateway import InferenceGateway
from symptomdx.prompts import build_classification_prompt

SYMPTOM_KEYWORDS = (
    "болит",
    "боль",
    "температура",
    "кашель",
    "насморк",
    "тошнота",
    "голова",
    "горло",
    "живот",
    "спина",
    "слабость",
    "утомляемость",
    "сыпь",
    "зуд",
    "давление",
    "одышка",
    "тяжело дышать",
    "озноб",
    "рвота",
    "понос",
    "диарея",
    "сухость",
    "першит",
    "головокружение",
    "бессонница",
    "аллергия",
    "заложенность",
    "мигрень",
    "простуда",
    "потливость",
    "судороги",
    "тремор",
    "чешется",
    "опухоль",
    "отек",
)

# Anything longer than this is accepted even without a keyword.
PERMISSIVE_LENGTH = 10

AFFIRMATIVE_TOKENS = ("да", "это симптом", "это описание симптом")
NEGATIVE_TOKEN = "нет"


def is_symptom_local(text: str) -> bool:
    lower_text = text.lower()
    return any(keyword in lower_text for keyword in SYMPTOM_KEYWORDS) or len(text) > PERMISSIVE_LENGTH


def parse_classifier_answer(answer: str) -> bool:
    lower_answer = answer.lower()
    if any(token in lower_answer for token in AFFIRMATIVE_TOKENS):
        return True
    return NEGATIVE_TOKEN not in lower_answer


class SymptomClassifier:
    def __init__(
        self,
        gateway: InferenceGateway | None,
        *,
        use_remote: bool = False,
        timeout_sec: float = 5.0,
    ):
        self._gateway = gateway
        self._use_remote = use_remote and gateway is not None
        self._timeout_sec = timeout_sec

    @property
    def mode(self) -> str:
        return "remote" if self._use_remote else "local"

    async def is_symptom(self, text: str) -> bool:
        if not self._use_remote:
            try:
                return is_symptom_local(text)
            except Exception as exc:
                print(f"[symptomdx] classifier_fallback: {type(exc).__name__}: {exc}")
                return True

        try:
            answer = await self._gateway.infer(build_classification_prompt(text), timeout_sec=self._timeout_sec)
            return parse_classifier_answer(answer)
        except Exception as exc:
            # Any upstream failure counts as a symptom.
            print(f"[symptomdx] classifier_fallback: {type(exc).__name__}: {exc}")
            return True
