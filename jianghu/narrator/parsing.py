"""Turning raw LLM text into NarrativeOutput.

Models wrap JSON in markdown fences, prepend chatter, or forget fields. The
parser tries hard to find an object and then fills gaps instead of failing:
nothing in here raises past parse_narrative_response().
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from jianghu.llm import GenerationResponse
from jianghu.models import EventChoice, EventResult, NarrativeOutput

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
_NUMBERING_RE = re.compile(r"^\d+\.\s*")


def backend_failure_output() -> NarrativeOutput:
    """Shown when the generation backend could not be reached."""
    return NarrativeOutput(
        narration=(
            "(The storyteller's mind drifts away. For a moment a strange force "
            "lets you glimpse the world as it truly is.)"
        ),
        options=[
            EventChoice(text="[debug] Check that the generation service is running", action="debug"),
            EventChoice(text="[debug] Read the error log", action="debug"),
            EventChoice(text="[debug] Try a different model", action="debug"),
        ],
    )


def malformed_output() -> NarrativeOutput:
    """Shown when the backend answered with something that is not usable narration."""
    return NarrativeOutput(
        narration=(
            "(The storyteller's words tangle into nonsense, as though they had "
            "seen something beyond understanding.)"
        ),
        options=[
            EventChoice(text="[debug] Check the structure of the returned JSON", action="debug"),
            EventChoice(text="[debug] Inspect the narrative response parser", action="debug"),
        ],
    )


def continue_option() -> EventChoice:
    return EventChoice(
        text="Continue...",
        action="narrate",
        result=EventResult(description="You decide to press on."),
    )


def _balanced_object(text: str) -> str | None:
    """The first {...} span whose braces balance, ignoring braces in strings."""
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _candidates(text: str) -> list[str]:
    found: list[str] = []
    fence = _FENCE_RE.search(text)
    if fence:
        found.append(fence.group(1))
    balanced = _balanced_object(text)
    if balanced:
        found.append(balanced)
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        found.append(text[start:end + 1])
    found.append(text.strip())
    return found


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Locate and decode the first JSON object in `text`, or None."""
    for candidate in _candidates(text):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _normalize_option(raw: Any) -> EventChoice | None:
    if isinstance(raw, str):
        raw = {"text": raw}
    if not isinstance(raw, dict) or not isinstance(raw.get("text"), str):
        return None

    text = _NUMBERING_RE.sub("", raw["text"]).strip()
    if not text:
        return None

    result = None
    if isinstance(raw.get("result"), dict):
        try:
            result = EventResult.model_validate(raw["result"])
        except ValidationError:
            logger.warning("Dropping invalid result for option %r", text)
    if result is None:
        result = EventResult(description=f'You chose "{text}".')

    return EventChoice(text=text, action="narrate", result=result)


def normalize_options(raw_options: Any) -> list[EventChoice]:
    """Clean up LLM options; never returns an empty list."""
    options: list[EventChoice] = []
    if isinstance(raw_options, list):
        options = [opt for opt in map(_normalize_option, raw_options) if opt is not None]
    if not options:
        logger.warning("LLM returned empty or invalid options: %r", raw_options)
        options = [continue_option()]
    return options


def parse_narrative_response(response: GenerationResponse) -> NarrativeOutput:
    if not response.success or not response.content:
        logger.error("Narrator backend failed: %s", response.error)
        return backend_failure_output()

    data = extract_json_object(response.content)
    if data is None:
        logger.error("Narrator reply is not JSON: %.200r", response.content)
        return malformed_output()
    if not isinstance(data.get("narration"), str):
        logger.error("Narrator reply is missing narration: %.200r", data)
        return malformed_output()

    return NarrativeOutput(narration=data["narration"], options=normalize_options(data.get("options")))
