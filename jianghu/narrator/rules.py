"""Narrative rules: which tier handles a given dispatch context."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from jianghu.models import DispatchContext, NarrativeRule, NarrativeTier

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent.parent / "data" / "narrative_rules.json"


class _RuleFile(BaseModel):
    rules: list[NarrativeRule]


def load_rules(path: Path = DEFAULT_RULES_PATH) -> list[NarrativeRule]:
    """Read {"rules": [...]} from `path`. Any problem means no rules."""
    try:
        rules = _RuleFile.model_validate_json(Path(path).read_text(encoding="utf-8")).rules
    except (OSError, UnicodeDecodeError, ValidationError) as e:
        logger.error("Failed to load narrative rules from %s: %s", path, e)
        return []
    logger.info("Loaded %d narrative rules from %s", len(rules), path)
    return rules


def _matches(conditions: dict[str, Any], fields: dict[str, Any]) -> bool:
    return all(key in fields and fields[key] == value for key, value in conditions.items())


def match_rule(rules: list[NarrativeRule], context: DispatchContext) -> NarrativeRule | None:
    """First rule whose every condition equals the context field, in order."""
    fields = context.model_dump(mode="json")
    for rule in rules:
        if _matches(rule.conditions, fields):
            logger.debug("Matched narrative rule: %s", rule.comment or "untitled rule")
            return rule
    return None


def determine_tier(rules: list[NarrativeRule], context: DispatchContext) -> tuple[NarrativeTier, str | None]:
    """(tier, model) for `context`; no match means the heavy tier."""
    rule = match_rule(rules, context)
    if rule is None:
        return NarrativeTier.HEAVY_LLM, None
    return rule.tier, rule.model
