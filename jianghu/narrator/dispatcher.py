"""Narrative dispatcher.

Routes a narration request to one of three tiers and always returns a
NarrativeOutput:

    template   canned Handlebars output keyed by event type; escalates to
               heavy when there is no usable template
    light_llm  a cheaper model named by the matching rule; escalates to heavy
               when the rule forgot to name one
    heavy_llm  the backend's default model; also the tier used when no rule
               matches

Backend and parsing failures never propagate: the player gets a diagnostic
narration with debug options instead.
"""

from __future__ import annotations

import logging

from jianghu.llm import GenerationBackend, GenerationRequest, GenerationResponse
from jianghu.models import DispatchContext, NarrativeOutput, NarrativeRule, NarrativeTier

from .monitoring import CostMonitor
from .parsing import backend_failure_output, parse_narrative_response
from .prompts import PromptError, build_narrator_context, render_named_prompt
from .rules import determine_tier
from .templates import TemplateEngine

logger = logging.getLogger(__name__)


class NarrativeDispatcher:
    def __init__(
        self,
        backend: GenerationBackend,
        rules: list[NarrativeRule] | None = None,
        templates: TemplateEngine | None = None,
        monitor: CostMonitor | None = None,
        default_model: str | None = None,
    ) -> None:
        self._backend = backend
        self._rules = list(rules or [])
        self._templates = templates or TemplateEngine()
        self._monitor = monitor or CostMonitor()
        self._default_model = default_model

    @property
    def rules(self) -> list[NarrativeRule]:
        return list(self._rules)

    def determine_tier(self, context: DispatchContext) -> tuple[NarrativeTier, str | None]:
        return determine_tier(self._rules, context)

    async def dispatch(self, context: DispatchContext) -> NarrativeOutput:
        tier, model = self.determine_tier(context)

        if tier is NarrativeTier.TEMPLATE:
            logger.debug("Dispatching %r to the template tier", context.event_type)
            output = self._templates.render(context.event_type, context)
            if output is not None:
                return output
            logger.warning("Template tier failed for %r, falling back to heavy LLM", context.event_type)
            return await self._generate(context, NarrativeTier.HEAVY_LLM, None)

        if tier is NarrativeTier.LIGHT_LLM:
            if not model:
                logger.warning("Light LLM rule has no model, falling back to heavy LLM")
                return await self._generate(context, NarrativeTier.HEAVY_LLM, None)
            return await self._generate(context, NarrativeTier.LIGHT_LLM, model)

        return await self._generate(context, NarrativeTier.HEAVY_LLM, None)

    async def _generate(
        self, context: DispatchContext, tier: NarrativeTier, model: str | None
    ) -> NarrativeOutput:
        try:
            prompt = render_named_prompt("narrator", build_narrator_context(context))
        except PromptError:
            logger.exception("Narrator prompt failed to render")
            return backend_failure_output()

        logger.debug("Dispatching to %s (model=%s, tone=%s)", tier.value, model, context.tone)
        response = await self._call_backend(GenerationRequest(prompt=prompt, format="json", model=model))
        self._record(tier, model or self._default_model, response)
        return parse_narrative_response(response)

    async def _call_backend(self, request: GenerationRequest) -> GenerationResponse:
        try:
            return await self._backend.generate(request)
        except Exception as e:
            logger.exception("Generation backend raised")
            return GenerationResponse(success=False, error=f"{type(e).__name__}: {e}")

    def _record(self, tier: NarrativeTier, model: str | None, response: GenerationResponse) -> None:
        try:
            self._monitor.record_call(tier, model, response.metadata)
        except Exception:
            logger.exception("Cost monitor failed")

    async def generate_raw(self, prompt: str) -> GenerationResponse:
        """JSON-format generation without tier routing or cost accounting."""
        response = await self._call_backend(GenerationRequest(prompt=prompt, format="json"))
        if not response.success or not response.content:
            return GenerationResponse(success=False, error=response.error or "Empty response")
        return response
