"""Tests for tier routing and the NarrativeDispatcher."""

import json
import logging

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from jianghu.llm import GenerationResponse, HttpBackend
from jianghu.models import NarrativeRule, NarrativeTier
from jianghu.narrator import CostMonitor, NarrativeDispatcher, load_rules
from jianghu.narrator.parsing import backend_failure_output, malformed_output
from jianghu.narrator.prompts import STYLE_INSTRUCTIONS
from jianghu.narrator.rules import determine_tier, match_rule

GOOD_REPLY = json.dumps({
    "narration": "The stranger lifts the brim of his hat.",
    "options": [{"text": "Greet him"}, {"text": "Walk past"}],
})


def _rule(tier: NarrativeTier, model: str | None = None, **conditions) -> NarrativeRule:
    return NarrativeRule(conditions=conditions, tier=tier, model=model)


def _ctx(dispatch_context, **update):
    return dispatch_context.model_copy(update=update)


@pytest.fixture
def monitor() -> CostMonitor:
    return CostMonitor()


@pytest.fixture
def dispatcher(backend, monitor) -> NarrativeDispatcher:
    return NarrativeDispatcher(backend, rules=load_rules(), monitor=monitor, default_model="qwen2:7b")


# ---------------------------------------------------------------------------
# Rule matching
# ---------------------------------------------------------------------------

class TestRules:
    def test_first_match_wins(self, dispatch_context) -> None:
        light = _rule(NarrativeTier.LIGHT_LLM, "small", event_type="social")
        heavy = _rule(NarrativeTier.HEAVY_LLM, event_type="social")
        ctx = _ctx(dispatch_context, event_type="social")
        assert determine_tier([light, heavy], ctx) == (NarrativeTier.LIGHT_LLM, "small")
        assert determine_tier([heavy, light], ctx) == (NarrativeTier.HEAVY_LLM, None)

    def test_all_conditions_must_match(self, dispatch_context) -> None:
        rule = _rule(NarrativeTier.LIGHT_LLM, "small", event_type="social", importance=1)
        assert match_rule([rule], _ctx(dispatch_context, event_type="social", importance=2)) is None
        assert match_rule([rule], _ctx(dispatch_context, event_type="social", importance=1)) is rule

    def test_no_match_is_heavy(self, dispatch_context) -> None:
        assert determine_tier([], dispatch_context) == (NarrativeTier.HEAVY_LLM, None)

    def test_unknown_field_never_matches(self, dispatch_context) -> None:
        rule = _rule(NarrativeTier.TEMPLATE, weather="rain")
        assert match_rule([rule], dispatch_context) is None

    def test_condition_on_none_field(self, dispatch_context) -> None:
        rule = _rule(NarrativeTier.TEMPLATE, event_type=None)
        assert match_rule([rule], dispatch_context) is rule

    @pytest.mark.parametrize("update, expected", [
        ({"event_type": "trade"}, (NarrativeTier.TEMPLATE, None)),
        ({"event_type": "social", "importance": 1}, (NarrativeTier.LIGHT_LLM, "qwen2:1.5b")),
        ({"event_type": "explore"}, (NarrativeTier.LIGHT_LLM, "qwen2:1.5b")),
        ({"event_type": "combat", "importance": 3}, (NarrativeTier.HEAVY_LLM, None)),
        ({"event_type": "combat"}, (NarrativeTier.HEAVY_LLM, None)),
    ])
    def test_bundled_rules(self, dispatcher: NarrativeDispatcher, dispatch_context, update, expected) -> None:
        assert dispatcher.determine_tier(_ctx(dispatch_context, **update)) == expected


class TestLoadRules:
    def test_bundled(self) -> None:
        rules = load_rules()
        assert len(rules) == 6
        assert rules[0].tier is NarrativeTier.TEMPLATE

    def test_missing_file(self, tmp_path, caplog) -> None:
        with caplog.at_level(logging.ERROR, logger="jianghu.narrator.rules"):
            assert load_rules(tmp_path / "missing.json") == []
        assert "missing.json" in caplog.text

    @pytest.mark.parametrize("content", [
        "{not json",
        json.dumps({"rules": [{"conditions": {}, "tier": "psychic"}]}),
        json.dumps([{"conditions": {}, "tier": "template"}]),
    ])
    def test_invalid_file(self, tmp_path, content: str) -> None:
        path = tmp_path / "rules.json"
        path.write_text(content)
        assert load_rules(path) == []

    def test_invalid_utf8_file(self, tmp_path, caplog) -> None:
        path = tmp_path / "rules.json"
        path.write_bytes(b'{"rules": [\xff\xfe]}')
        with caplog.at_level(logging.ERROR, logger="jianghu.narrator.rules"):
            assert load_rules(path) == []
        assert "rules.json" in caplog.text


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:
    async def test_template_tier_makes_no_backend_call(
        self, dispatcher: NarrativeDispatcher, backend, monitor: CostMonitor, dispatch_context,
    ) -> None:
        output = await dispatcher.dispatch(_ctx(dispatch_context, event_type="trade"))
        assert "pedlar" in output.narration
        assert backend.requests == []
        assert list(monitor.records) == []

    async def test_missing_template_falls_back_to_heavy(
        self, backend, monitor: CostMonitor, dispatch_context,
    ) -> None:
        dispatcher = NarrativeDispatcher(
            backend, rules=[_rule(NarrativeTier.TEMPLATE, event_type="duel")], monitor=monitor,
        )
        backend.queue(GOOD_REPLY)
        output = await dispatcher.dispatch(_ctx(dispatch_context, event_type="duel"))
        assert output.narration == "The stranger lifts the brim of his hat."
        assert len(backend.requests) == 1
        assert monitor.records[0]["tier"] == "heavy_llm"

    async def test_template_rule_without_event_type_falls_back(
        self, backend, monitor: CostMonitor, dispatch_context,
    ) -> None:
        dispatcher = NarrativeDispatcher(backend, rules=[_rule(NarrativeTier.TEMPLATE)], monitor=monitor)
        backend.queue(GOOD_REPLY)
        await dispatcher.dispatch(dispatch_context)
        assert monitor.records[0]["tier"] == "heavy_llm"

    async def test_light_tier_uses_rule_model(
        self, dispatcher: NarrativeDispatcher, backend, monitor: CostMonitor, dispatch_context,
    ) -> None:
        backend.queue(GOOD_REPLY)
        await dispatcher.dispatch(_ctx(dispatch_context, event_type="explore"))
        assert backend.requests[0].model == "qwen2:1.5b"
        record = monitor.records[0]
        assert (record["tier"], record["model"]) == ("light_llm", "qwen2:1.5b")
        assert record["total_tokens"] == 30

    async def test_light_tier_without_model_falls_back(
        self, backend, monitor: CostMonitor, dispatch_context, caplog,
    ) -> None:
        dispatcher = NarrativeDispatcher(
            backend, rules=[_rule(NarrativeTier.LIGHT_LLM, event_type="social")],
            monitor=monitor, default_model="qwen2:7b",
        )
        backend.queue(GOOD_REPLY)
        with caplog.at_level(logging.WARNING, logger="jianghu.narrator.dispatcher"):
            await dispatcher.dispatch(_ctx(dispatch_context, event_type="social"))
        assert backend.requests[0].model is None
        assert (monitor.records[0]["tier"], monitor.records[0]["model"]) == ("heavy_llm", "qwen2:7b")
        assert "no model" in caplog.text

    async def test_heavy_request(self, dispatcher: NarrativeDispatcher, backend, dispatch_context) -> None:
        backend.queue(GOOD_REPLY)
        output = await dispatcher.dispatch(_ctx(dispatch_context, event_type="combat", tone="humorous"))
        request = backend.requests[0]
        assert request.format == "json"
        assert request.model is None
        assert STYLE_INSTRUCTIONS["humorous"] in request.prompt
        assert dispatch_context.scene_summary in request.prompt
        assert [o.text for o in output.options] == ["Greet him", "Walk past"]

    async def test_backend_failure(
        self, dispatcher: NarrativeDispatcher, backend, monitor: CostMonitor, dispatch_context,
    ) -> None:
        backend.queue(GenerationResponse(success=False, error="Cannot connect"))
        assert await dispatcher.dispatch(dispatch_context) == backend_failure_output()
        assert len(monitor.records) == 1
        assert monitor.records[0]["total_tokens"] is None

    async def test_malformed_reply(self, dispatcher: NarrativeDispatcher, backend, dispatch_context) -> None:
        backend.queue("I would rather tell you a poem.")
        assert await dispatcher.dispatch(dispatch_context) == malformed_output()

    async def test_raising_backend_gives_diagnostic_output(
        self, monitor: CostMonitor, dispatch_context, caplog,
    ) -> None:
        class ExplodingBackend:
            async def generate(self, request):
                raise TypeError("unsupported operand type(s) for /: 'str' and 'float'")

        dispatcher = NarrativeDispatcher(ExplodingBackend(), monitor=monitor)
        with caplog.at_level(logging.ERROR, logger="jianghu.narrator.dispatcher"):
            assert await dispatcher.dispatch(dispatch_context) == backend_failure_output()
        assert "Generation backend raised" in caplog.text
        assert len(monitor.records) == 1
        assert monitor.records[0]["total_tokens"] is None

    async def test_odd_http_reply_gives_diagnostic_output(self, monitor: CostMonitor, dispatch_context) -> None:
        resp = MagicMock()
        resp.status_code = 200
        resp.raise_for_status = MagicMock()
        resp.json.return_value = {"response": GOOD_REPLY, "total_duration": "n/a"}
        dispatcher = NarrativeDispatcher(HttpBackend(base_url="http://localhost:11434"), monitor=monitor)
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=resp)):
            assert await dispatcher.dispatch(dispatch_context) == backend_failure_output()

    async def test_broken_monitor_does_not_break_dispatch(self, backend, dispatch_context, caplog) -> None:
        class BrokenMonitor(CostMonitor):
            def record_call(self, tier, model, metadata=None):
                raise RuntimeError("disk on fire")

        dispatcher = NarrativeDispatcher(backend, monitor=BrokenMonitor())
        backend.queue(GOOD_REPLY)
        with caplog.at_level(logging.ERROR, logger="jianghu.narrator.dispatcher"):
            output = await dispatcher.dispatch(dispatch_context)
        assert output.narration == "The stranger lifts the brim of his hat."
        assert "Cost monitor failed" in caplog.text


class TestGenerateRaw:
    async def test_success(self, dispatcher: NarrativeDispatcher, backend, monitor: CostMonitor) -> None:
        backend.queue('{"ok": true}')
        response = await dispatcher.generate_raw("Say ok.")
        assert response.success and response.content == '{"ok": true}'
        assert backend.requests[0].format == "json"
        assert list(monitor.records) == []

    async def test_failure(self, dispatcher: NarrativeDispatcher, backend) -> None:
        backend.queue(GenerationResponse(success=False, error="timed out"))
        response = await dispatcher.generate_raw("x")
        assert (response.success, response.error) == (False, "timed out")

    async def test_empty(self, dispatcher: NarrativeDispatcher, backend) -> None:
        backend.queue("")
        response = await dispatcher.generate_raw("x")
        assert (response.success, response.error) == (False, "Empty response")

    async def test_raising_backend(self) -> None:
        class ExplodingBackend:
            async def generate(self, request):
                raise KeyError("choices")

        response = await NarrativeDispatcher(ExplodingBackend()).generate_raw("x")
        assert response.success is False
        assert "KeyError" in response.error


class TestCostMonitor:
    def test_writes_json_lines(self, tmp_path) -> None:
        log = tmp_path / "logs" / "ai_cost.log"
        monitor = CostMonitor(log)
        monitor.record_call(NarrativeTier.LIGHT_LLM, "qwen2:1.5b")
        monitor.record_call(NarrativeTier.HEAVY_LLM, None)
        lines = [json.loads(line) for line in log.read_text().splitlines()]
        assert [line["tier"] for line in lines] == ["light_llm", "heavy_llm"]
        assert lines[0]["model"] == "qwen2:1.5b"
        assert "timestamp" in lines[0]
        assert lines == list(monitor.records)

    def test_unwritable_log_is_ignored(self, tmp_path, caplog) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        monitor = CostMonitor(blocker / "ai_cost.log")
        with caplog.at_level(logging.ERROR, logger="jianghu.narrator.monitoring"):
            monitor.record_call(NarrativeTier.HEAVY_LLM, "m")
        assert len(monitor.records) == 1
        assert "Failed to write cost record" in caplog.text

    def test_keeps_only_latest_records(self) -> None:
        monitor = CostMonitor(max_records=2)
        for model in ("a", "b", "c"):
            monitor.record_call(NarrativeTier.LIGHT_LLM, model)
        assert [r["model"] for r in monitor.records] == ["b", "c"]
