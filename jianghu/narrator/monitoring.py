"""Cost monitoring for LLM calls.

Purely observational: a failure to record is logged and otherwise ignored.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jianghu.llm import GenerationMetadata
from jianghu.models import NarrativeTier

logger = logging.getLogger(__name__)


class CostMonitor:
    """Keeps the latest `max_records` call records in memory and, when given a
    path, appends every record as a JSON line to a log file."""

    def __init__(self, log_path: Path | None = None, max_records: int = 1000) -> None:
        self._log_path = Path(log_path) if log_path else None
        self.records: deque[dict[str, Any]] = deque(maxlen=max_records)

    def record_call(
        self,
        tier: NarrativeTier,
        model: str | None,
        metadata: GenerationMetadata | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tier": tier.value,
            "model": model,
            **(metadata or GenerationMetadata()).model_dump(),
        }
        self.records.append(record)

        if self._log_path is None:
            return
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._log_path.open("a") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.error("Failed to write cost record to %s: %s", self._log_path, e)
