import os
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from jianghu.config import get_config
from jianghu.events import DEFAULT_CATALOG, EventEngine, load_event_catalog
from jianghu.factions import FactionSystem
from jianghu.llm import GenerationBackend, HttpBackend
from jianghu.narrator import CostMonitor, NarrativeDispatcher, load_rules
from jianghu.narrator.rules import DEFAULT_RULES_PATH
from jianghu.routes import router
from jianghu.session import GameSession
from jianghu.storage import Storage, seed_factions
from jianghu.store import GameStore
from jianghu.timekeeping import format_time
from jianghu.triggers import TriggerRegistry
from jianghu.world import create_initial_state

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def build_session(data_dir: Path, backend: GenerationBackend | None = None) -> GameSession:
    """Wire storage, store, engines and dispatcher from the config in data_dir."""
    config = get_config(data_dir)
    storage = Storage(data_dir)
    store = GameStore(create_initial_state(config["world_seed"]))
    rng = random.Random()

    backend = backend or HttpBackend.from_config(config["llm"])
    factions = FactionSystem(
        storage,
        clock=lambda: format_time(store.state.time),
        rng=rng,
        war_threshold=config["war_declaration_threshold"],
    )
    catalogs = [DEFAULT_CATALOG, *(Path(p) for p in config["event_catalogs"])]
    events = EventEngine(
        store,
        TriggerRegistry(),
        load_event_catalog(*catalogs),
        backend=backend,
        faction_system=factions,
        rng=rng,
    )
    rules_path = Path(config["narrative_rules_path"]) if config["narrative_rules_path"] else DEFAULT_RULES_PATH
    dispatcher = NarrativeDispatcher(
        backend,
        rules=load_rules(rules_path),
        monitor=CostMonitor(Path(data_dir) / "logs" / "ai_cost.log"),
        default_model=config["llm"]["model"],
    )
    return GameSession(
        store, events, factions, dispatcher, storage,
        tone=config["tone"],
        ticks_per_turn=config["ticks_per_turn"],
        dynamic_events=bool(config["dynamic_events"]),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    session: GameSession = app.state.session
    seed_factions(session.storage)
    session.events.initialize()
    if session.storage.get_npcs():
        await session.restore_from_archive()
    yield


def create_app(data_dir: Path | None = None, backend: GenerationBackend | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))

    app = FastAPI(title="Jianghu", lifespan=lifespan)
    app.state.data_dir = resolved
    app.state.session = build_session(resolved, backend)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
