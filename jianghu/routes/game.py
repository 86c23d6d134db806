"""Game state, scene and choice endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from jianghu.session import GameSession

from .models import ChoiceBody, get_session

router = APIRouter()


@router.get("/state")
async def get_state(session: GameSession = Depends(get_session)):
    """The current game state."""
    return session.store.state.model_dump(mode="json")


@router.post("/scene")
async def next_scene(session: GameSession = Depends(get_session)):
    """Advance the world one turn and narrate the next scene."""
    scene = await session.next_scene()
    return scene.model_dump(mode="json")


@router.post("/choice")
async def choose(body: ChoiceBody, session: GameSession = Depends(get_session)):
    """Pick one of the options of the last scene.

    A trade or appraisal choice opens a follow-up scene whose options can be
    chosen next.
    """
    try:
        result = await session.choose(body.index)
    except IndexError as e:
        raise HTTPException(400, str(e))
    return {
        "result": result.model_dump(mode="json") if result else None,
        "player": session.store.state.player.model_dump(mode="json"),
        "follow_up": session.follow_up.model_dump(mode="json") if session.follow_up else None,
    }
