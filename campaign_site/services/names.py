"""Swedish first-name allow-list used to sanitize public display names."""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

FALLBACK_DISPLAY_NAME = "En supporter"


class NameRegistry:
    """Lookup of known Swedish first names (from SCB statistics)."""

    def __init__(self, names: Iterable[str]):
        self._names = {name.strip().lower() for name in names if name and name.strip()}

    @classmethod
    def from_file(cls, path: Path) -> "NameRegistry":
        """Load names from a JSON file shaped like {"names": [...]}."""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Name list not found at {path}, all names will be hidden")
            return cls([])
        return cls(data.get("names", []))

    def __len__(self) -> int:
        return len(self._names)

    def is_valid(self, name: Optional[str]) -> bool:
        if not name or not isinstance(name, str):
            return False
        return name.strip().lower() in self._names

    def sanitize_display_name(self, name: Optional[str]) -> Optional[str]:
        """
        Format a name for display.

        Returns:
            Capitalized name if it is a known first name, otherwise None
        """
        if not name or not isinstance(name, str):
            return None

        trimmed = name.strip()
        if not trimmed or not self.is_valid(trimmed):
            return None

        return trimmed[0].upper() + trimmed[1:].lower()

    def display_name_for_social_proof(self, first_name: Optional[str]) -> str:
        return self.sanitize_display_name(first_name) or FALLBACK_DISPLAY_NAME
