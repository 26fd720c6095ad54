"""Curriculum context discovered from the prompts/curriculum directory.

Layout::

    prompts/curriculum/
        arskurs-1-3/
            matematik/
                expert.md   pedagogical expertise and examples
                lgr22.md    curriculum (Lgr22) content
            idrott-och-halsa/
                ...
"""

import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

GRADE_LEVEL_DIRS = {
    "Årskurs 1-3": "arskurs-1-3",
    "Årskurs 4-6": "arskurs-4-6",
    "Årskurs 7-9": "arskurs-7-9",
}
REFERENCE_GRADE_DIR = "arskurs-1-3"

FALLBACK_SUBJECTS = ["Idrott och hälsa", "Matematik", "Naturvetenskap", "Språk och kommunikation"]
FALLBACK_LGR22 = "Allmän pedagogisk utveckling genom utomhusaktiviteter."

HEADING_PATTERN = re.compile(r"^#\s+(.+?)(?:\s+-\s+|$)")


def normalize_grade_level(grade_level: str) -> str:
    if grade_level in GRADE_LEVEL_DIRS:
        return GRADE_LEVEL_DIRS[grade_level]
    return re.sub(r"\s+", "-", grade_level.lower()).replace("å", "a")


def normalize_subject(subject: str) -> str:
    """Map a subject display name to its folder name ("Idrott och hälsa" -> "idrott-och-halsa")."""
    folder = subject.lower()
    folder = re.sub(r"\s+och\s+", "-och-", folder)
    folder = re.sub(r"\s+", "-", folder)
    return folder.replace("å", "a").replace("ä", "a").replace("ö", "o")


def _sort_with_status(options: list[dict]) -> list[dict]:
    return sorted(options, key=lambda o: (not o["enabled"], o["name"].lower()))


class Curriculum:
    """Loads subject expertise and Lgr22 content for the lesson prompts."""

    def __init__(
        self,
        curriculum_dir: Path,
        enabled_grade_levels: Optional[list[str]] = None,
        enabled_subjects: Optional[list[str]] = None,
    ):
        self.curriculum_dir = curriculum_dir
        self.enabled_grade_levels = enabled_grade_levels or []
        self.enabled_subjects = enabled_subjects or []

    def is_grade_level_enabled(self, grade_level: str) -> bool:
        # Empty configuration enables everything
        return not self.enabled_grade_levels or grade_level in self.enabled_grade_levels

    def is_subject_enabled(self, subject: str) -> bool:
        return not self.enabled_subjects or subject in self.enabled_subjects

    def _context_path(self, grade_level: str, subject: str, filename: str) -> Path:
        return self.curriculum_dir / normalize_grade_level(grade_level) / normalize_subject(subject) / filename

    def load_expert_context(self, grade_level: str, subject: str) -> str:
        """
        Load the pedagogical expert context for a grade level and subject.

        Returns:
            File contents, or a short generic role description if missing
        """
        path = self._context_path(grade_level, subject, "expert.md")
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to load expert context for {grade_level} - {subject}: {e}")
            return f"Du är specialist på {subject.lower()} för {grade_level.lower()}."

    def load_lgr22_context(self, grade_level: str, subject: str) -> str:
        path = self._context_path(grade_level, subject, "lgr22.md")
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to load Lgr22 context for {grade_level} - {subject}: {e}")
            return FALLBACK_LGR22

    @staticmethod
    def _display_name(folder: Path) -> Optional[str]:
        try:
            with open(folder / "expert.md", encoding="utf-8") as f:
                first_line = f.readline()
        except OSError:
            return None

        match = HEADING_PATTERN.match(first_line.strip())
        return match.group(1).strip() if match else None

    def _discover_subjects(self) -> list[str]:
        reference_dir = self.curriculum_dir / REFERENCE_GRADE_DIR
        subjects = []
        for folder in sorted(reference_dir.iterdir()):
            if not (folder / "expert.md").is_file():
                continue
            name = self._display_name(folder)
            if name:
                subjects.append(name)
        return subjects

    def _discover_grade_levels(self) -> list[str]:
        by_dir = {v: k for k, v in GRADE_LEVEL_DIRS.items()}
        return [by_dir[d.name] for d in self.curriculum_dir.iterdir() if d.is_dir() and d.name in by_dir]

    def available_subjects(self) -> list[str]:
        return [s["name"] for s in self.subjects_with_status() if s["enabled"]]

    def subjects_with_status(self) -> list[dict]:
        """
        List every subject found on disk with its enabled flag.

        Returns:
            List of {"name", "enabled"} dicts, enabled first, then alphabetical
        """
        try:
            subjects = self._discover_subjects()
        except OSError as e:
            logger.error(f"Failed to load subjects with status: {e}")
            subjects = FALLBACK_SUBJECTS

        return _sort_with_status([{"name": s, "enabled": self.is_subject_enabled(s)} for s in subjects])

    def grade_levels_with_status(self) -> list[dict]:
        try:
            grade_levels = self._discover_grade_levels()
        except OSError as e:
            logger.error(f"Failed to load grade levels with status: {e}")
            grade_levels = list(GRADE_LEVEL_DIRS)

        return _sort_with_status([{"name": g, "enabled": self.is_grade_level_enabled(g)} for g in grade_levels])
