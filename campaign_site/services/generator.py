"""Lesson generation: one model call, JSON repair and a single retry."""

import asyncio
import json
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional
import anthropic
from pydantic import BaseModel, ValidationError
from campaign_site.models.lesson import GenerationMetadata, LessonData, SurveyData
from .generation_logger import GenerationLogger
from .prompts import PromptBuilder

logger = logging.getLogger(__name__)

MAX_TOKENS = 4096
REQUEST_TIMEOUT = 300.0

CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?([\s\S]*?)\n?```$")
OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
TRAILING_COMMA_PATTERN = re.compile(r",(\s*[}\]])")
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")

STEP_GENERATE = "Genererar lektionsplan"
STEP_FORMAT = "Formaterar dokumentet"


class LessonParseError(Exception):
    """The model's reply could not be turned into a lesson."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class ModelResponse(BaseModel):
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0


class RetryDecision(BaseModel):
    message: str
    delay: float
    retry: bool = True


class LessonModelClient:
    """Streams one Anthropic Messages call and collects the text."""

    def __init__(self, api_key: Optional[str], model: str):
        self.api_key = api_key
        self.model = model
        self._client: Optional[anthropic.AsyncAnthropic] = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("ANTHROPIC_API_KEY environment variable is not set.")
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=REQUEST_TIMEOUT)
        return self._client

    async def complete(self, system: str, user: str) -> ModelResponse:
        """
        Run one generation call.

        Streaming keeps long Sonnet responses from hitting the connection timeout.

        Raises:
            anthropic.APIError: On API failures
        """
        parts = []
        async with self.client.messages.stream(
            model=self.model,
            max_tokens=MAX_TOKENS,
            system=system,
            messages=[{"role": "user", "content": user}],
        ) as stream:
            async for text in stream.text_stream:
                parts.append(text)
            message = await stream.get_final_message()

        usage = message.usage
        return ModelResponse(
            text="".join(parts),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cached_tokens=getattr(usage, "cache_read_input_tokens", None) or 0,
        )


def strip_code_fences(text: str) -> str:
    text = text.strip()
    match = CODE_FENCE_PATTERN.match(text)
    return match.group(1).strip() if match else text


def _extract_object(text: str) -> str:
    match = OBJECT_PATTERN.search(text)
    return match.group(0) if match else text


def parse_json_text(text: str) -> dict:
    """
    Parse model output as JSON, repairing common defects.

    Fix-ups are tried in order, each followed by extracting the outermost
    object: trailing commas, control characters, collapsed whitespace.

    Raises:
        LessonParseError: If the text is empty or no fix-up parses
    """
    clean = strip_code_fences(text)
    if not clean:
        raise LessonParseError("Tom respons från AI", text)

    try:
        return json.loads(clean)
    except json.JSONDecodeError:
        logger.warning("JSON parse attempt 1 failed, trying fixes")

    candidates = [
        TRAILING_COMMA_PATTERN.sub(r"\1", clean),
        CONTROL_CHAR_PATTERN.sub("", clean),
        re.sub(r"\s+", " ", re.sub(r"\r?\n", " ", clean)),
    ]
    for candidate in candidates:
        try:
            return json.loads(_extract_object(candidate))
        except json.JSONDecodeError:
            continue

    logger.error("JSON parse failed after all fix attempts")
    raise LessonParseError("Kunde inte tolka svar från AI", clean)


def parse_lesson_json(text: str) -> LessonData:
    data = parse_json_text(text)
    try:
        return LessonData.model_validate(data)
    except ValidationError as e:
        raise LessonParseError(f"Ofullständigt svar från AI: {e.error_count()} fel", text)


def _status_code(exc: Exception) -> Optional[int]:
    return getattr(exc, "status_code", None)


def classify_failure(exc: Exception) -> RetryDecision:
    """Map a failed attempt to the message shown to the user and the wait before retrying."""
    if isinstance(exc, LessonParseError):
        return RetryDecision(message="AI-svaret kunde inte tolkas. Försöker igen om 10 sekunder...", delay=10)

    if isinstance(exc, anthropic.APIError):
        status = _status_code(exc)
        if status == 529:
            return RetryDecision(message="Claude är överbelastad. Försöker igen om 20 sekunder...", delay=20)
        if status in (500, 503):
            return RetryDecision(message="Claude har tillfälliga problem. Försöker igen om 20 sekunder...", delay=20)
        if status == 429:
            return RetryDecision(message="För många förfrågningar. Försöker igen om 30 sekunder...", delay=30)
        if status == 401:
            return RetryDecision(message="Autentiseringsfel. Kontakta support.", delay=0, retry=False)
        return RetryDecision(message="Claude svarar inte. Försöker igen om 20 sekunder...", delay=20)

    return RetryDecision(message="Ett oväntat fel uppstod. Försöker igen om 15 sekunder...", delay=15)


def final_error_message(exc: Exception) -> str:
    if isinstance(exc, LessonParseError):
        return "AI-modellen returnerar oväntade svar. Försök igen om en stund."
    if isinstance(exc, anthropic.APIError) and _status_code(exc) == 529:
        return "Claude är överbelastad just nu. Försök igen om några minuter."
    return "Claude verkar inte gå att nå just nu. Försök igen senare."


class LessonGenerator:
    """Runs the two-attempt generation flow and reports progress events."""

    def __init__(
        self,
        client: LessonModelClient,
        prompts: PromptBuilder,
        logs_dir: Path,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.prompts = prompts
        self.logs_dir = logs_dir
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self.client.model

    async def _generate_lesson(self, survey: SurveyData, gen_log: GenerationLogger) -> LessonData:
        system, user = self.prompts.build_lesson_prompt(survey)
        gen_log.log_prompts(system, user)

        logger.info("Sending request to Claude")
        response = await self.client.complete(system, user)
        lesson = parse_lesson_json(response.text)

        gen_log.log_response(response.text, lesson.model_dump(by_alias=True))
        gen_log.log_token_usage(response.input_tokens, response.output_tokens, response.cached_tokens)
        return lesson

    async def generate(self, survey: SurveyData) -> AsyncIterator[dict]:
        """
        Generate a lesson plan, yielding progress, complete or error events.

        The first failure is classified and, unless it is an authentication
        error, retried once after the matching delay. A second failure ends
        the run with an error event.
        """
        session_id = str(uuid.uuid4())
        survey_dict = survey.model_dump(by_alias=True, exclude_none=True)
        gen_log = GenerationLogger(session_id, survey_dict, self.logs_dir)
        steps = [
            {"name": STEP_GENERATE, "status": "in_progress"},
            {"name": STEP_FORMAT, "status": "pending"},
        ]

        def progress(step: int, message: str) -> dict:
            return {"type": "progress", "step": step, "steps": [dict(s) for s in steps], "message": message}

        logger.info(f"Starting generation session: {session_id}")

        for attempt in (1, 2):
            retry = attempt > 1
            prefix = "Försök 2: " if retry else ""
            suffix = " (Retry)" if retry else ""

            if retry:
                logger.info("Retrying generation")
                steps[0]["status"] = "in_progress"
                steps[1]["status"] = "pending"

            try:
                yield progress(0, f"{prefix}{STEP_GENERATE}..." if retry else "Skapar din utelektion...")

                gen_log.start_step(1, f"Lesson Generation{suffix}", "Generate complete lesson with single API call", self.model)
                lesson = await self._generate_lesson(survey, gen_log)
                gen_log.end_step()

                steps[0]["status"] = "complete"
                steps[1]["status"] = "in_progress"
                yield progress(1, f"{prefix}{STEP_FORMAT}...")

                gen_log.start_step(2, f"Document Compilation{suffix}", "Compile markdown document", "local")
                metadata = GenerationMetadata(model=self.model, prompt_version=self.prompts.prompt_version())
                document = self.prompts.compile_final_document(lesson, survey, metadata)
                gen_log.end_step()
                steps[1]["status"] = "complete"
            except Exception as e:
                error_message = str(e) or type(e).__name__
                gen_log.end_step(error_message)

                if retry:
                    logger.error(f"Second attempt failed: {error_message}")
                    gen_log.fail(error_message)
                    gen_log.save_to_file()
                    logger.info(gen_log.summary())
                    yield {"type": "error", "error": final_error_message(e)}
                    return

                logger.error(f"First attempt failed: {error_message}")
                decision = classify_failure(e)
                if not decision.retry:
                    gen_log.fail(error_message)
                    gen_log.save_to_file()
                    yield {"type": "error", "error": decision.message}
                    return

                yield progress(0, decision.message)
                await self._sleep(decision.delay)
                continue

            gen_log.complete(document)
            gen_log.save_to_file()
            logger.info(gen_log.summary())

            yield {
                "type": "complete",
                "document": document,
                "metadata": {
                    "generatedAt": datetime.now(timezone.utc).isoformat(),
                    "surveyData": survey_dict,
                    "steps": steps,
                },
            }
            return


def sse_frame(event: dict) -> str:
    """Encode one Server-Sent Events frame."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
