"""Rule-based diagnosis synthesizer used when remote inference is unavailable."""

from __future__ import annotations

from dataclasses import dataclass

from symptomdx import templates

# Each predicate is a list of clauses; a clause matches when all of its keywords are
# substrings of the lower-cased text, and the predicate matches when any clause does.
Clauses = tuple[tuple[str, ...], ...]

FALLBACK_KEYWORDS = (
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
)

# Below this length a text without any known keyword gets the generic answer.
MIN_FREE_TEXT_LENGTH = 15

UNSPECIFIED = "unspecified"


def _matches(text: str, clauses: Clauses) -> bool:
    return any(all(keyword in text for keyword in clause) for clause in clauses)


def _keywords(clauses: Clauses) -> set[str]:
    return {keyword for clause in clauses for keyword in clause}


@dataclass(frozen=True)
class CategoryRule:
    category: str
    clauses: Clauses
    template: str

    def matches(self, lower_text: str) -> bool:
        return _matches(lower_text, self.clauses)


@dataclass(frozen=True)
class ContextRule:
    name: str
    current: Clauses
    history: Clauses
    note: str

    def fires(self, lower_text: str, lower_history: str) -> bool:
        return _matches(lower_text, self.current) and _matches(lower_history, self.history)


# Order is significant: the first matching category wins.
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("headache", (("голов", "бол"),), templates.HEADACHE_TEMPLATE),
    CategoryRule("sore_throat", (("горл", "бол"), ("горл", "першит")), templates.SORE_THROAT_TEMPLATE),
    CategoryRule("fever", (("температур",), ("жар",), ("лихорадк",)), templates.FEVER_TEMPLATE),
    CategoryRule("cough", (("кашл",),), templates.COUGH_TEMPLATE),
    CategoryRule("rhinitis", (("насморк",), ("заложен", "нос")), templates.RHINITIS_TEMPLATE),
    CategoryRule("abdominal_pain", (("живот", "бол"),), templates.ABDOMINAL_PAIN_TEMPLATE),
    CategoryRule("nausea_vomiting", (("тошнот",), ("рвот",)), templates.NAUSEA_VOMITING_TEMPLATE),
    CategoryRule("diarrhea", (("диаре",), ("понос",)), templates.DIARRHEA_TEMPLATE),
    CategoryRule("skin", (("сыпь",), ("зуд",)), templates.SKIN_TEMPLATE),
    CategoryRule(
        "dyspnea",
        (("одышк",), ("трудно дыша",), ("не хватает воздух",)),
        templates.DYSPNEA_TEMPLATE,
    ),
    CategoryRule("hypertension", (("давлен",), ("гиперт",)), templates.HYPERTENSION_TEMPLATE),
    CategoryRule("allergy", (("аллерг",),), templates.ALLERGY_TEMPLATE),
)

# Independent of each other and of the base category; every firing rule adds a note.
CONTEXT_RULES: tuple[ContextRule, ...] = (
    ContextRule(
        "dizziness_after_headache",
        current=(("головокружение",), ("слабость",)),
        history=(("голов", "бол"),),
        note=templates.DIZZINESS_AFTER_HEADACHE_NOTE,
    ),
    ContextRule(
        "fever_after_sore_throat",
        current=(("температур",),),
        history=(("горл", "бол"),),
        note=templates.FEVER_AFTER_SORE_THROAT_NOTE,
    ),
    ContextRule(
        "respiratory_progression",
        current=(("насморк",), ("кашель",)),
        history=(("температур", "горл"),),
        note=templates.RESPIRATORY_PROGRESSION_NOTE,
    ),
)

_RECOGNIZED_KEYWORDS = frozenset(
    set(FALLBACK_KEYWORDS)
    | {keyword for rule in CATEGORY_RULES for keyword in _keywords(rule.clauses)}
    | {keyword for rule in CONTEXT_RULES for keyword in _keywords(rule.current)}
)


def has_recognized_keyword(lower_text: str) -> bool:
    return any(keyword in lower_text for keyword in _RECOGNIZED_KEYWORDS)


def _select_rule(lower_text: str) -> CategoryRule | None:
    for rule in CATEGORY_RULES:
        if rule.matches(lower_text):
            return rule
    return None


def match_category(text: str) -> str:
    rule = _select_rule(text.lower())
    return rule.category if rule else UNSPECIFIED


def fired_context_rules(text: str, context_history: list[str]) -> list[ContextRule]:
    if not context_history:
        return []
    lower_text = text.lower()
    lower_history = " ".join(context_history).lower()
    return [rule for rule in CONTEXT_RULES if rule.fires(lower_text, lower_history)]


def synthesize_with_meta(text: str, context_history: list[str] | None = None) -> tuple[str, dict[str, object]]:
    history = list(context_history or [])
    lower_text = text.lower()

    if not has_recognized_keyword(lower_text) and len(lower_text) < MIN_FREE_TEXT_LENGTH:
        return templates.INSUFFICIENT_INFORMATION_MESSAGE, {"category": None, "context_rules": []}

    rule = _select_rule(lower_text)
    if rule is not None:
        category, body = rule.category, rule.template
    else:
        category, body = UNSPECIFIED, templates.UNSPECIFIED_TEMPLATE.format(symptoms=text)

    sections = [body.strip()]
    fired = fired_context_rules(text, history)
    for rule in fired:
        sections.append(f"{templates.CONTEXT_NOTE_HEADER}\n{rule.note.strip()}")

    return "\n\n".join(sections), {"category": category, "context_rules": [rule.name for rule in fired]}


def synthesize(text: str, context_history: list[str] | None = None) -> str:
    """Deterministic diagnosis text for ``text`` enriched by the recent history.

    Total over any string input: short unrecognized text yields a fixed advice
    message, everything else a category template plus any context notes.
    """
    diagnosis, _meta = synthesize_with_meta(text, context_history)
    return diagnosis
