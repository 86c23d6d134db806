"""Save slot and archival endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from jianghu.archive import ArchiveError
from jianghu.serialization import SaveGameError
from jianghu.session import GameSession

from .models import get_session

router = APIRouter()


@router.get("/saves")
async def list_saves(session: GameSession = Depends(get_session)):
    """List used save slots."""
    return session.storage.list_saves()


@router.post("/saves/{slot}")
async def save_game(slot: str, session: GameSession = Depends(get_session)):
    """Save the current game into a slot."""
    try:
        session.save(slot)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"ok": True}


@router.post("/saves/{slot}/load")
async def load_game(slot: str, session: GameSession = Depends(get_session)):
    """Replace the current game with the one saved in a slot."""
    try:
        state = await session.load(slot)
    except SaveGameError as e:
        raise HTTPException(422, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    if state is None:
        raise HTTPException(404, "Save slot is empty")
    return state.model_dump(mode="json")


@router.post("/archive")
async def archive(session: GameSession = Depends(get_session)):
    """Archive NPCs and fire-once events to storage."""
    try:
        count = session.archive()
    except ArchiveError as e:
        raise HTTPException(500, str(e))
    return {"ok": True, "npcs": count}
