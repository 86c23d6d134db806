"""Template tier: canned narration rendered from Handlebars files.

Each event type has a file data/templates/<event_type>.hbs that renders to
a JSON object {"narration": str, "options": [...]}. A missing file, a render
error or output of the wrong shape all yield None, and the dispatcher
escalates to an LLM tier.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from jianghu.models import DispatchContext, NarrativeOutput

from .prompts import PromptError, build_narrator_context, render_prompt

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "data" / "templates"

_EVENT_TYPE_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class TemplateEngine:
    def __init__(self, template_dir: Path = TEMPLATES_DIR) -> None:
        self._dir = Path(template_dir)

    def has_template(self, event_type: str) -> bool:
        return bool(_EVENT_TYPE_RE.match(event_type)) and (self._dir / f"{event_type}.hbs").is_file()

    def render(self, event_type: str | None, context: DispatchContext) -> NarrativeOutput | None:
        if not event_type or not self.has_template(event_type):
            logger.warning("No narrative template for event type %r", event_type)
            return None

        source = (self._dir / f"{event_type}.hbs").read_text()
        try:
            rendered = render_prompt(source, build_narrator_context(context))
        except PromptError as e:
            logger.warning("Template %r failed to render: %s", event_type, e)
            return None

        try:
            data = json.loads(rendered)
        except json.JSONDecodeError as e:
            logger.warning("Template %r did not produce JSON: %s", event_type, e)
            return None
        if not isinstance(data, dict) or not isinstance(data.get("narration"), str) \
                or not isinstance(data.get("options"), list):
            logger.warning("Template %r output is missing narration or options", event_type)
            return None

        try:
            return NarrativeOutput.model_validate(data)
        except ValidationError as e:
            logger.warning("Template %r output is invalid: %s", event_type, e)
            return None
