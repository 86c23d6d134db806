"""Health check, settings and faction overview endpoints."""

from fastapi import APIRouter, Depends, Request

from jianghu.config import get_config, update_config
from jianghu.session import GameSession

from .models import get_session

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    """Get game settings (LLM connection, seed, tone, data files)."""
    return get_config(request.app.state.data_dir)


@router.patch("/settings")
async def update_settings(body: dict, request: Request):
    """Update game settings (partial merge). Takes effect on restart."""
    return update_config(request.app.state.data_dir, body)


@router.get("/factions")
async def list_factions(session: GameSession = Depends(get_session)):
    """All sects, their relationships, and whether a war has been declared."""
    return {
        "factions": [f.model_dump() for f in session.storage.get_factions()],
        "relationships": [r.model_dump() for r in session.storage.get_relationships()],
        "at_war": await session.factions.is_faction_war_happening(),
    }
