from symptomdx import templates
from symptomdx.fallback import (
    CATEGORY_RULES,
    match_category,
    synthesize,
    synthesize_with_meta,
)


def test_headache_template_without_history():
    diagnosis = synthesize("У меня болит голова", [])

    assert diagnosis.startswith("**Анализ симптомов:**")
    assert "Вы описываете головную боль" in diagnosis
    assert "**Возможные причины:**" in diagnosis
    assert "**Рекомендации:**" in diagnosis
    assert "к неврологу" in diagnosis
    assert templates.CONTEXT_NOTE_HEADER not in diagnosis


def test_dizziness_after_headache_adds_context_note():
    diagnosis, meta = synthesize_with_meta("головокружение", ["Сильно болит голова"])

    assert meta["category"] != "headache"
    assert meta["context_rules"] == ["dizziness_after_headache"]
    assert templates.CONTEXT_NOTE_HEADER in diagnosis
    assert "Консультация отоневролога при выраженном головокружении" in diagnosis


def test_short_unrecognized_text_gets_generic_advice():
    assert synthesize("привет", []) == templates.INSUFFICIENT_INFORMATION_MESSAGE
    assert synthesize("", ["болит горло"]) == templates.INSUFFICIENT_INFORMATION_MESSAGE


def test_long_unrecognized_text_echoes_input():
    text = "что-то странное происходит со мной"
    diagnosis, meta = synthesize_with_meta(text, [])

    assert meta["category"] == "unspecified"
    assert f'"{text}"' in diagnosis
    assert "Рекомендую обратиться к терапевту" in diagnosis


def test_headache_wins_over_sore_throat():
    text = "болит голова и горло"
    assert CATEGORY_RULES[0].matches(text)
    assert CATEGORY_RULES[1].matches(text)
    assert match_category(text) == "headache"


def test_category_keywords_follow_priority_order():
    cases = {
        "першит в горле": "sore_throat",
        "высокая температура и кашляю": "fever",
        "сильно кашляю по ночам": "cough",
        "заложен нос уже неделю": "rhinitis",
        "болит живот после еды": "abdominal_pain",
        "тошнота с самого утра": "nausea_vomiting",
        "понос второй день": "diarrhea",
        "появилась сыпь на руках": "skin",
        "одышка при подъеме по лестнице": "dyspnea",
        "скачет давление вечером": "hypertension",
        "аллергия на цветение": "allergy",
    }
    for text, expected in cases.items():
        assert match_category(text) == expected, text


def test_fever_after_sore_throat_and_respiratory_progression_fire_independently():
    history = ["болит горло", "поднялась температура"]

    fever_text, fever_meta = synthesize_with_meta("температура 38 второй день", history)
    cough_text, cough_meta = synthesize_with_meta("появился насморк и кашель", history)

    assert fever_meta["category"] == "fever"
    assert fever_meta["context_rules"] == ["fever_after_sore_throat"]
    assert "ревматическая лихорадка" in fever_text

    assert cough_meta["category"] == "rhinitis"
    assert cough_meta["context_rules"] == ["respiratory_progression"]
    assert "вирусную этиологию" in cough_text


def test_multiple_context_notes_keep_rule_order():
    history = ["болит голова", "болит горло", "температура"]
    diagnosis, meta = synthesize_with_meta("слабость и температура", history)

    assert meta["context_rules"] == ["dizziness_after_headache", "fever_after_sore_throat"]
    assert diagnosis.count(templates.CONTEXT_NOTE_HEADER) == 2
    assert diagnosis.index("отоневролога") < diagnosis.index("ревматическая лихорадка")


def test_synthesize_is_deterministic():
    history = ["Болит горло", "Температура 38"]
    first = synthesize("Насморк и кашель", history)
    second = synthesize("Насморк и кашель", history)

    assert first == second
    assert first
