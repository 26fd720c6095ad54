"""Partner tips matched into generated lesson plans."""

import logging
import re
from pathlib import Path
from typing import Optional
import yaml
from pydantic import ValidationError
from campaign_site.models.lesson import CuratedContent

logger = logging.getLogger(__name__)

FRONTMATTER_PATTERN = re.compile(r"^---\n([\s\S]*?)\n---\n([\s\S]*)$")
MAX_PER_INSERTION_POINT = 3
KEYWORD_SCORE = 10
SEASON_SCORE = 5

FIELD_ALIASES = {"insertAfter": "insert_after", "imagePosition": "image_position"}


def parse_frontmatter(text: str) -> tuple[dict, str]:
    """
    Split YAML frontmatter from a markdown body.

    Returns:
        Tuple of (metadata, body)

    Raises:
        yaml.YAMLError: If the frontmatter is not valid YAML
    """
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}, text

    frontmatter, body = match.groups()
    metadata = yaml.safe_load(frontmatter) or {}
    if not isinstance(metadata, dict):
        return {}, body.strip()

    return metadata, body.strip()


def keyword_pattern(keyword: str) -> re.Pattern:
    # Swedish letters count as word characters
    return re.compile(rf"(?:^|[^a-zåäö]){re.escape(keyword.lower())}(?:[^a-zåäö]|$)", re.IGNORECASE)


class CuratedContentLibrary:
    """Loads partner tips from the curated-content directory."""

    def __init__(self, content_dir: Path):
        self.content_dir = content_dir

    def load_all(self) -> list[CuratedContent]:
        """Load every enabled tip; README.md and priority 0 entries are skipped."""
        if not self.content_dir.is_dir():
            logger.warning(f"Curated content directory not found: {self.content_dir}")
            return []

        contents = []
        for path in sorted(self.content_dir.glob("*.md")):
            if path.name == "README.md":
                continue

            try:
                metadata, body = parse_frontmatter(path.read_text(encoding="utf-8"))
            except yaml.YAMLError as e:
                logger.warning(f"Skipping curated content {path.name}: {e}")
                continue

            if str(metadata.get("priority", "")).strip() == "0":
                continue

            fields = {FIELD_ALIASES.get(k, k): v for k, v in metadata.items()}
            fields.setdefault("priority", 3)
            try:
                contents.append(CuratedContent(**fields, content=body, filename=path.name))
            except ValidationError as e:
                logger.warning(f"Skipping curated content {path.name}: {e}")

        return contents

    def for_lesson(
        self,
        title: str,
        introduction: str,
        main_activity: str,
        season: str,
        subject: str,
        materials: Optional[list[str]] = None,
    ) -> dict[str, list[CuratedContent]]:
        """
        Select tips relevant to a lesson.

        At least one keyword must appear as a whole word in the lesson text.
        Matches score 10 per keyword, 5 for a season match and a priority
        boost of (4 - priority) * 3.

        Returns:
            Tips grouped by insertion point, best first, at most 3 per point
        """
        lesson_text = " ".join([title, introduction, main_activity, subject, *(materials or [])]).lower()
        season = season.lower()

        scored = []
        for item in self.load_all():
            matches = sum(1 for kw in item.keywords if kw and keyword_pattern(kw).search(lesson_text))
            if not matches:
                continue

            score = matches * KEYWORD_SCORE
            if "alla" in item.seasons or any(s.lower() in season for s in item.seasons):
                score += SEASON_SCORE
            score += (4 - item.priority) * 3
            scored.append((score, item))

        scored.sort(key=lambda pair: pair[0], reverse=True)

        grouped: dict[str, list[CuratedContent]] = {}
        for _, item in scored:
            group = grouped.setdefault(item.insert_after, [])
            if len(group) < MAX_PER_INSERTION_POINT:
                group.append(item)

        return grouped


def format_curated_content(item: CuratedContent) -> str:
    """Render a tip as the HTML card embedded in the lesson markdown."""
    has_image = bool(item.image)
    image_left = item.image_position == "left"

    text = f"""
<div class="curated-text">
<span class="curated-badge">Tips från Friluftsfrämjandet</span>
<h4 class="curated-title">{item.title}</h4>
<p class="curated-body">{item.content}</p>
<a href="{item.url}" target="_blank" rel="noopener noreferrer" class="curated-button">Läs mer</a>
</div>"""

    image = ""
    if has_image:
        image = f"""
<div class="curated-image">
<img src="{item.image}" alt="{item.title}" />
</div>"""

    inner = image + text if image_left else text + image

    classes = "curated-card"
    if has_image:
        classes += " curated-with-image"
    if image_left:
        classes += " curated-image-left"

    return f"""
<div class="{classes}">
{inner}
</div>
"""
