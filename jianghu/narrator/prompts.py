"""Handlebars prompt rendering for the narrator and the story engine."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pybars

from jianghu.models import DispatchContext


PROMPTS_DIR = Path(__file__).parent.parent / "data" / "prompts"

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_json(this, value):
    """{{{json value}}} — the value JSON-encoded (use triple-stash)."""
    return json.dumps(value, ensure_ascii=False)


def _helper_jsonstr(this, options):
    """{{#jsonstr}}...{{/jsonstr}}: the rendered block as a JSON string."""
    return [json.dumps(str(options["fn"](this)).strip(), ensure_ascii=False)]


def _helper_take(this, options, items, count):
    """{{#take array N}}...{{/take}}: iterate over the first N items."""
    result = []
    for item in list(items)[:int(count)]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "json": _helper_json,
    "jsonstr": _helper_jsonstr,
    "take": _helper_take,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def render_named_prompt(name: str, context: dict[str, Any]) -> str:
    """Render data/prompts/<name>.hbs."""
    path = PROMPTS_DIR / f"{name}.hbs"
    try:
        source = path.read_text()
    except OSError as e:
        raise PromptError(f"Prompt {name!r} not found") from e
    return render_prompt(source, context)


# ── Narrator context ─────────────────────────────────────

STYLE_INSTRUCTIONS: dict[str, str] = {
    "fatalistic": (
        "Your voice is bleak and weighty. Speak of fate, of debts that come due "
        "and of heaven's will; every cause finds its effect."
    ),
    "humorous": (
        "Your voice is light and wry. Delight in the absurd turns of the jianghu "
        "and the contradictions of its heroes."
    ),
    "philosophical": (
        "Your voice is contemplative. Ask what chivalry truly is, where the Way "
        "ends and the demonic begins, and how one thought can change a life."
    ),
    "mad": (
        "Your voice is broken and feverish, all muttering and fragments, "
        "laughter and blood. The reader should feel uneasy."
    ),
}


def build_narrator_context(context: DispatchContext) -> dict[str, Any]:
    """Assemble template variables for the narrator prompt.

    Nested objects (player, world) are kept for long paths; flat keys give
    the prompt short names for the values it uses most.
    """
    data = context.model_dump(mode="json")
    data.update({
        "location_name": context.world.location.name,
        "location_description": context.world.location.description,
        "world_time": context.world.time,
        "world_summary": context.world.summary,
        "legacy_summary": context.legacy_summary or "None",
        "faction_context": context.faction_context or "None",
        "style_instruction": STYLE_INSTRUCTIONS.get(context.tone, ""),
    })
    return data
