import random

import pytest

from jianghu.llm import GenerationMetadata, GenerationRequest, GenerationResponse
from jianghu.narrator import build_dispatch_context
from jianghu.storage import Storage
from jianghu.store import GameStore
from jianghu.world import create_initial_state


class StubBackend:
    """Deterministic generation backend stand-in for tests.

    Queue responses in call order with queue(); plain strings become
    successful responses. Raises if called more often than responses were
    queued.
    """

    def __init__(self) -> None:
        self._responses: list[GenerationResponse] = []
        self.requests: list[GenerationRequest] = []

    def queue(self, *responses: str | GenerationResponse) -> None:
        for r in responses:
            if isinstance(r, str):
                r = GenerationResponse(
                    success=True,
                    content=r,
                    metadata=GenerationMetadata(
                        prompt_tokens=10, completion_tokens=20, total_tokens=30, duration_seconds=0.5,
                    ),
                )
            self._responses.append(r)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(
                f"StubBackend: unexpected call (no responses queued). requests so far: {len(self.requests)}"
            )
        return self._responses.pop(0)


@pytest.fixture
def storage(tmp_path):
    return Storage(tmp_path / "data")


@pytest.fixture
def state():
    return create_initial_state("test-seed", player_name="Linghu")


@pytest.fixture
def store(state):
    return GameStore(state)


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def dispatch_context(state):
    return build_dispatch_context(
        state,
        scene_summary="A stranger in a bamboo hat watches you from the inn doorway.",
        world_summary="The rivers and lakes have been quiet of late.",
    )
