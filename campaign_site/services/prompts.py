"""Prompt assembly and final document compilation for lesson plans."""

import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional
from campaign_site.models.lesson import GenerationMetadata, LessonData, SurveyData
from .curated_content import CuratedContentLibrary, format_curated_content
from .curriculum import Curriculum
from .template_engine import PromptTemplates

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"<!--\s*version:\s*([\d.]+)\s*-->")
VERSION_COMMENT_PATTERN = re.compile(r"<!--\s*version:\s*[\d.]+\s*-->\s*")


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


class PromptBuilder:
    """Builds the model prompts and turns the model's JSON into markdown."""

    def __init__(self, prompts_dir: Path, curriculum: Curriculum, curated: CuratedContentLibrary):
        self.prompts_dir = prompts_dir
        self.curriculum = curriculum
        self.curated = curated
        self.templates = PromptTemplates(prompts_dir)

    def prompt_version(self, filename: str = "system.md") -> str:
        """Read the ``<!-- version: X.Y -->`` marker, or "?" when absent."""
        try:
            content = (self.prompts_dir / filename).read_text(encoding="utf-8")
        except OSError:
            return "?"

        match = VERSION_PATTERN.search(content)
        return match.group(1) if match else "?"

    def _render(self, filename: str, data: dict) -> str:
        return VERSION_COMMENT_PATTERN.sub("", self.templates.render(filename, data), count=1)

    def build_lesson_prompt(self, survey: SurveyData) -> tuple[str, str]:
        """
        Build the system and user prompts for one generation call.

        Args:
            survey: Survey answers

        Returns:
            Tuple of (system, user) prompt text
        """
        expert_context = self.curriculum.load_expert_context(survey.grade_level, survey.subject)
        lgr22_context = self.curriculum.load_lgr22_context(survey.grade_level, survey.subject)

        system = self._render(
            "system.md",
            {
                "expertContext": expert_context,
                "lgr22Context": lgr22_context,
                "subject": survey.subject,
                "gradeLevel": survey.grade_level,
                "season": survey.season,
            },
        )

        user = self._render(
            "user.md",
            {
                "gradeLevel": survey.grade_level,
                "subject": survey.subject,
                "workArea": survey.work_area,
                "season": survey.season,
                "location": survey.location,
                "travelTime": survey.travel_time,
                "duration": survey.duration,
                "studentCount": survey.student_count,
                "currentTheme": survey.current_theme,
                "classConditions": survey.class_conditions,
                "pedagogicalApproach": survey.pedagogical_approach,
            },
        ).strip()

        return system, user

    def compile_final_document(
        self,
        lesson: LessonData,
        survey: SurveyData,
        metadata: Optional[GenerationMetadata] = None,
        generated_on: Optional[date] = None,
    ) -> str:
        """
        Render the lesson as the markdown document shown to the teacher.

        Curated tips are inserted after materials, the main activity, safety,
        the curriculum section and at the end.
        """
        curated = self.curated.for_lesson(
            title=lesson.title,
            introduction=lesson.about_activity,
            main_activity=lesson.execution,
            season=survey.season,
            subject=survey.subject,
            materials=lesson.preparation.materials,
        )

        def insert(point: str) -> str:
            items = curated.get(point)
            if not items:
                return ""
            return "\n" + "\n".join(format_curated_content(item) for item in items)

        overview_items = [
            survey.grade_level,
            survey.subject + (f" ({survey.work_area})" if survey.work_area else ""),
            survey.location + (f" ({survey.travel_time} min restid)" if survey.travel_time else ""),
            survey.season,
            survey.duration,
            f"{survey.student_count} elever",
            survey.pedagogical_approach,
        ]
        overview_spans = "".join(f'<span class="overview-item">{item}</span>' for item in overview_items if item)

        theme = ""
        if survey.current_theme:
            theme = f'<div class="overview-context"><strong>Tema:</strong> {survey.current_theme}</div>'
        conditions = ""
        if survey.class_conditions:
            conditions = f'<div class="overview-context"><strong>Förutsättningar:</strong> {survey.class_conditions}</div>'

        overview_html = f'\n<div class="overview-grid">{overview_spans}</div>\n{theme}\n{conditions}\n'

        concepts = ""
        if lesson.concept_list:
            concept_lines = "\n\n".join(f"**{c.term}:** {c.explanation}" for c in lesson.concept_list)
            concepts = f"\n\n## Begrepp att förklara\n{concept_lines}"

        generated_on = generated_on or date.today()
        tech_details = ""
        if metadata:
            tech_details = f"<br/>\nModell: {metadata.model}<br/>\nPromptversion: {metadata.prompt_version}"

        safety = lesson.safety
        return f"""# {lesson.title}

## Översikt
{overview_html}

## Om aktiviteten
{lesson.about_activity}

## Förberedelser
{_bullets(lesson.preparation.steps)}

### Material som behövs
{_bullets(lesson.preparation.materials)}
{insert("materials")}
## Genomförande
{lesson.execution}
{insert("mainActivity")}
## Säkerhet

{safety.risk_summary}

### Viktiga säkerhetsåtgärder
{_bullets(safety.key_precautions)}

**Bemanning:** {safety.staffing_note}

**Väder:** {safety.weather_note}
{insert("safety")}
## Variation och fördjupning
{_bullets(lesson.variations)}

## Koppling till centralt innehåll (Lgr22)
{_bullets(lesson.curriculum.central_content)}
{insert("curriculum")}{concepts}
{insert("end")}
---

<div class="tech-summary">
<strong>Teknisk information</strong><br/>
Genererad: {generated_on.isoformat()}{tech_details}
</div>
"""
