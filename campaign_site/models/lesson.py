"""Lesson plan models for the survey, the AI output and stored lessons."""

from typing import Any, Literal, Optional
from pydantic import Field
from .base import CamelModel


class SurveyData(CamelModel):
    """Answers from the lesson survey."""

    grade_level: str = Field("", description="'Årskurs 1-3' | 'Årskurs 4-6' | 'Årskurs 7-9'")
    subject: str = ""
    season: str = Field("", description="'Vår' | 'Sommar' | 'Höst' | 'Vinter'")
    location: str = Field("", description="e.g. 'Skolgård', 'Skog', 'Park'")
    duration: str = Field("", description="e.g. '45 minuter'")
    student_count: Optional[int] = None

    work_area: Optional[str] = None
    travel_time: Optional[int] = Field(None, description="Travel time in minutes (0-20)")
    current_theme: Optional[str] = None
    class_conditions: Optional[str] = None
    pedagogical_approach: Optional[str] = None

    def missing_required(self) -> bool:
        """True when any of the required answers is empty."""
        return not all(
            [
                self.grade_level,
                self.subject,
                self.season,
                self.location,
                self.duration,
                self.student_count,
            ]
        )


class ConceptItem(CamelModel):
    term: str
    explanation: str


class CurriculumConnection(CamelModel):
    central_content: list[str] = Field(default_factory=list)


class SafetyData(CamelModel):
    risk_summary: str
    key_precautions: list[str] = Field(default_factory=list)
    staffing_note: str = ""
    weather_note: str = ""


class PreparationData(CamelModel):
    steps: list[str] = Field(default_factory=list)
    materials: list[str] = Field(default_factory=list)


class LessonData(CamelModel):
    """Structured lesson returned by the model as JSON."""

    title: str
    about_activity: str
    preparation: PreparationData
    execution: str
    safety: SafetyData
    variations: list[str] = Field(default_factory=list)
    curriculum: CurriculumConnection
    concept_list: Optional[list[ConceptItem]] = None


class GenerationMetadata(CamelModel):
    model: str
    prompt_version: str


class StoredLesson(CamelModel):
    """Generated lesson kept in a visitor's history."""

    id: str
    created_at: str
    title: str
    survey_data: dict[str, Any]
    markdown: str


class LessonExportRequest(CamelModel):
    markdown: str = ""


class CuratedContent(CamelModel):
    """Partner tip inserted into generated lessons."""

    title: str = "Untitled"
    summary: str = ""
    url: str = ""
    icon: str = "📄"
    keywords: list[str] = Field(default_factory=list)
    seasons: list[str] = Field(default_factory=lambda: ["alla"])
    activities: list[str] = Field(default_factory=list)
    insert_after: Literal["mainActivity", "safety", "materials", "curriculum", "end"] = "end"
    priority: int = 3
    image: Optional[str] = None
    image_position: Literal["left", "right"] = "right"
    content: str = ""
    filename: str = ""
