"""Generated-lesson history kept in a visitor session."""

import json
import logging
import random
import re
import string
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from campaign_site.models.lesson import StoredLesson

logger = logging.getLogger(__name__)

MAX_LESSONS = 50
UNTITLED = "Untitled Lesson"

H1_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def generate_lesson_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    timestamp = re.sub(r"[:.]", "-", now.isoformat(timespec="milliseconds").replace("+00:00", "Z"))
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"lesson-{timestamp}-{suffix}"


def extract_title(markdown: str) -> str:
    """First H1 heading, else the first line cut to 50 characters."""
    match = H1_PATTERN.search(markdown)
    if match:
        return match.group(1).strip()
    first_line = markdown.split("\n")[0][:50]
    return first_line or UNTITLED


def hash_survey_data(survey_data: dict[str, Any]) -> str:
    """
    Stable 32-bit hash of the survey answers.

    Keys are sorted so that answer order does not matter.
    """
    text = json.dumps(survey_data, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000

    digits = string.digits + string.ascii_lowercase
    magnitude, encoded = abs(value), ""
    while True:
        magnitude, remainder = divmod(magnitude, 36)
        encoded = digits[remainder] + encoded
        if magnitude == 0:
            break
    return ("-" if value < 0 else "") + encoded


class LessonStorage:
    """Lesson history stored inside one session's data dict."""

    def __init__(self, session: dict[str, Any], clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.session = session
        self._clock = clock
        session.setdefault("lessons", [])
        session.setdefault("current_lesson_id", None)
        session.setdefault("generating_for_survey", None)

    @property
    def lessons(self) -> list[StoredLesson]:
        return self.session["lessons"]

    def save(self, markdown: str, survey_data: dict[str, Any]) -> StoredLesson:
        """
        Save a generated lesson as the newest entry and make it current.

        Returns:
            The stored lesson
        """
        now = self._clock()
        lesson = StoredLesson(
            id=generate_lesson_id(now),
            created_at=now.isoformat(),
            title=extract_title(markdown),
            survey_data=survey_data,
            markdown=markdown,
        )

        self.session["lessons"] = [lesson, *self.lessons][:MAX_LESSONS]
        self.session["current_lesson_id"] = lesson.id
        self.session["generating_for_survey"] = None

        logger.info(f"Saved lesson {lesson.id} ({len(self.lessons)} in history)")
        return lesson

    def get(self, lesson_id: str) -> Optional[StoredLesson]:
        return next((lesson for lesson in self.lessons if lesson.id == lesson_id), None)

    def current(self) -> Optional[StoredLesson]:
        current_id = self.session["current_lesson_id"]
        return self.get(current_id) if current_id else None

    def set_current(self, lesson_id: str) -> None:
        self.session["current_lesson_id"] = lesson_id

    def all(self) -> list[StoredLesson]:
        return list(self.lessons)

    def delete(self, lesson_id: str) -> bool:
        """Delete a lesson; if it was current, the newest remaining one becomes current."""
        remaining = [lesson for lesson in self.lessons if lesson.id != lesson_id]
        deleted = len(remaining) != len(self.lessons)
        self.session["lessons"] = remaining

        if self.session["current_lesson_id"] == lesson_id:
            self.session["current_lesson_id"] = remaining[0].id if remaining else None

        return deleted

    def set_generating(self, survey_data: dict[str, Any]) -> None:
        self.session["generating_for_survey"] = hash_survey_data(survey_data)
        self.session["current_lesson_id"] = None

    def is_generating(self, survey_data: dict[str, Any]) -> bool:
        return self.session["generating_for_survey"] == hash_survey_data(survey_data)

    def clear_generating(self) -> None:
        self.session["generating_for_survey"] = None
