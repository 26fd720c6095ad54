"""Jinja2 environment for the prompt templates."""

import logging
from pathlib import Path
from typing import Any, Mapping
from jinja2 import Environment, FileSystemLoader, TemplateNotFound

logger = logging.getLogger(__name__)


def _blank_none(value: Any) -> Any:
    return "" if value is None else value


class PromptTemplates:
    """Renders the markdown prompt files under the prompts directory."""

    def __init__(self, prompts_dir: Path):
        self.prompts_dir = prompts_dir
        self.env = Environment(
            loader=FileSystemLoader(str(prompts_dir)),
            keep_trailing_newline=True,
            finalize=_blank_none,
        )

    def render(self, filename: str, data: Mapping[str, Any]) -> str:
        """
        Render a template file against a mapping of values.

        Undefined and None values render as empty strings.

        Raises:
            FileNotFoundError: If the template does not exist
        """
        try:
            template = self.env.get_template(filename)
        except TemplateNotFound:
            logger.error(f"Failed to load prompt template: {filename}")
            raise FileNotFoundError(f"Prompt template not found: {filename}")

        return template.render(**data)
