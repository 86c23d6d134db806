"""Single-writer game state container and its reducers.

Reducers are pure (GameState, Action) -> GameState functions:

    reducer.py   root cases (replace_state, advance_time) + composition
    player.py    apply_event_result, inventory, experience, level-up
    events.py    event queue FIFO and the fire-once set
    world.py     NPC roster and scene NPCs
"""

from .core import GameStore, Subscriber, Thunk  # noqa: F401
from .player import apply_event_result  # noqa: F401
from .reducer import combine_reducers, game_reducer  # noqa: F401
