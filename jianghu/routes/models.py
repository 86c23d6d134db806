"""Pydantic request models and shared dependencies for API endpoints."""

from fastapi import Request
from pydantic import BaseModel, Field

from jianghu.session import GameSession


class ChoiceBody(BaseModel):
    index: int = Field(ge=0)


def get_session(request: Request) -> GameSession:
    return request.app.state.session
