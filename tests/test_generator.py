import asyncio
import json
import anthropic
import httpx
import pytest
from conftest import LESSON_JSON, ROOT_DIR, FakeModelClient
from campaign_site.models import SurveyData
from campaign_site.services import (
    CuratedContentLibrary,
    Curriculum,
    LessonGenerator,
    LessonModelClient,
    LessonParseError,
    PromptBuilder,
    classify_failure,
    parse_lesson_json,
)
from campaign_site.services.generator import final_error_message, parse_json_text, sse_frame, strip_code_fences

SURVEY = SurveyData(
    grade_level="Årskurs 4-6",
    subject="Naturvetenskap",
    season="Vår",
    location="Park",
    duration="45 minuter",
    student_count=20,
)


def api_error(status: int) -> anthropic.APIStatusError:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return anthropic.APIStatusError(f"Error code: {status}", response=httpx.Response(status, request=request), body=None)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_generator(client, tmp_path, sleep):
    prompts_dir = ROOT_DIR / "prompts"
    prompts = PromptBuilder(prompts_dir, Curriculum(prompts_dir / "curriculum"), CuratedContentLibrary(ROOT_DIR / "curated-content"))
    return LessonGenerator(client, prompts, tmp_path / "logs", sleep=sleep)


def collect(generator, survey=SURVEY):
    async def run():
        return [event async for event in generator.generate(survey)]

    return asyncio.run(run())


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_parse_repairs_trailing_commas():
    assert parse_json_text('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}


def test_parse_extracts_object_from_prose():
    """Test that text around the JSON object is ignored after a failed parse"""
    assert parse_json_text('Här är lektionen:\n{"a": 1}\nLycka till!') == {"a": 1}


def test_parse_removes_control_characters():
    assert parse_json_text('{"a": "rad\x01"}') == {"a": "rad"}


def test_parse_empty_and_garbage():
    with pytest.raises(LessonParseError, match="Tom respons"):
        parse_json_text("   ")

    with pytest.raises(LessonParseError) as exc_info:
        parse_json_text("inte json alls")
    assert exc_info.value.raw_text == "inte json alls"


def test_incomplete_lesson_is_a_parse_error():
    with pytest.raises(LessonParseError):
        parse_lesson_json('{"title": "Bara titel"}')


def test_parse_lesson_json():
    lesson = parse_lesson_json("```json\n" + json.dumps(LESSON_JSON) + "\n```")
    assert lesson.title == "Mönsterjakt i skogen"
    assert lesson.safety.key_precautions == ["Bestäm samlingsplats", "Räkna eleverna"]


@pytest.mark.parametrize(
    "error, delay, retry",
    [
        (LessonParseError("x"), 10, True),
        (api_error(529), 20, True),
        (api_error(500), 20, True),
        (api_error(503), 20, True),
        (api_error(429), 30, True),
        (api_error(401), 0, False),
        (api_error(400), 20, True),
        (RuntimeError("boom"), 15, True),
    ],
)
def test_classify_failure(error, delay, retry):
    decision = classify_failure(error)
    assert decision.delay == delay
    assert decision.retry is retry


def test_final_error_messages():
    assert "oväntade svar" in final_error_message(LessonParseError("x"))
    assert "överbelastad" in final_error_message(api_error(529))
    assert "inte gå att nå" in final_error_message(RuntimeError("x"))


def test_successful_generation(tmp_path):
    """Test the progress and complete events of a successful run"""
    client = FakeModelClient()
    events = collect(make_generator(client, tmp_path, RecordingSleep()))

    assert [e["type"] for e in events] == ["progress", "progress", "complete"]
    assert events[0]["message"] == "Skapar din utelektion..."
    assert events[1]["step"] == 1
    assert events[2]["document"].startswith("# Mönsterjakt i skogen")
    assert events[2]["metadata"]["surveyData"]["gradeLevel"] == "Årskurs 4-6"
    assert [s["status"] for s in events[2]["metadata"]["steps"]] == ["complete", "complete"]
    assert len(client.calls) == 1
    assert len(list((tmp_path / "logs").glob("generation-*.json"))) == 1


def test_retries_once_after_parse_error(tmp_path):
    """Test that a parse failure waits 10 seconds and retries once"""
    sleep = RecordingSleep()
    client = FakeModelClient(replies=["inte json", json.dumps(LESSON_JSON)])

    events = collect(make_generator(client, tmp_path, sleep))

    assert sleep.delays == [10]
    assert len(client.calls) == 2
    messages = [e.get("message") for e in events if e["type"] == "progress"]
    assert "AI-svaret kunde inte tolkas. Försöker igen om 10 sekunder..." in messages
    assert "Försök 2: Genererar lektionsplan..." in messages
    assert events[-1]["type"] == "complete"


def test_second_failure_ends_with_error(tmp_path):
    sleep = RecordingSleep()
    client = FakeModelClient(replies=[api_error(529), api_error(529), json.dumps(LESSON_JSON)])

    events = collect(make_generator(client, tmp_path, sleep))

    assert sleep.delays == [20]
    assert len(client.calls) == 2
    assert events[-1] == {"type": "error", "error": "Claude är överbelastad just nu. Försök igen om några minuter."}


def test_authentication_error_is_not_retried(tmp_path):
    sleep = RecordingSleep()
    client = FakeModelClient(replies=[api_error(401)])

    events = collect(make_generator(client, tmp_path, sleep))

    assert sleep.delays == []
    assert len(client.calls) == 1
    assert events[-1] == {"type": "error", "error": "Autentiseringsfel. Kontakta support."}


def test_model_client_requires_api_key():
    client = LessonModelClient(None, "claude-sonnet-4-5")
    with pytest.raises(RuntimeError, match="ANTHROPIC_API_KEY"):
        asyncio.run(client.complete("system", "user"))


def test_sse_frame():
    assert sse_frame({"type": "error", "error": "Fel å"}) == 'data: {"type": "error", "error": "Fel å"}\n\n'
