"""Services for the application."""

from .activities import ActivityService
from .brevo import BrevoError, BrevoService, format_swedish_phone
from .cache import TTLCache
from .curated_content import CuratedContentLibrary, format_curated_content
from .curriculum import Curriculum
from .database import Database
from .generator import LessonGenerator, LessonModelClient, LessonParseError, classify_failure, parse_lesson_json
from .lesson_storage import LessonStorage
from .locations import LocationIndex, build_postal_data
from .names import NameRegistry
from .participant_processor import ParticipantProcessor
from .prompts import PromptBuilder
from .session import SessionManager
from .signatures import SignatureService

__all__ = [
    "ActivityService",
    "BrevoError",
    "BrevoService",
    "format_swedish_phone",
    "TTLCache",
    "CuratedContentLibrary",
    "format_curated_content",
    "Curriculum",
    "Database",
    "LessonGenerator",
    "LessonModelClient",
    "LessonParseError",
    "classify_failure",
    "parse_lesson_json",
    "LessonStorage",
    "LocationIndex",
    "build_postal_data",
    "NameRegistry",
    "ParticipantProcessor",
    "PromptBuilder",
    "SessionManager",
    "SignatureService",
]
