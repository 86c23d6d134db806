"""Narration: tier routing, prompt rendering and response parsing."""

from .context import build_context_summary, build_dispatch_context  # noqa: F401
from .dispatcher import NarrativeDispatcher  # noqa: F401
from .monitoring import CostMonitor  # noqa: F401
from .rules import load_rules  # noqa: F401
from .templates import TemplateEngine  # noqa: F401
