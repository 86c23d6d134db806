"""FastAPI API endpoints under /api.

Endpoint groups: health/settings/factions, game (state, scene, choice),
saves (save slots and archival). Every handler reaches the game through
the GameSession held on app.state.
"""

from fastapi import APIRouter

from .game import router as game_router
from .saves import router as saves_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(game_router)
router.include_router(saves_router)
