import random
from typing import List, Optional

import pytest
import pytest_asyncio

from config import Settings
from core.exceptions import PersistenceFailure
from core.game_state import GameState
from core.round_engine import RoundEngine


class MemoryGateway:
    """PersistenceGateway test double that keeps snapshots in memory."""

    def __init__(self, stored: Optional[GameState] = None, fail: bool = False):
        self.stored = stored
        self.fail = fail
        self.saved: List[GameState] = []

    def save(self, state: GameState) -> None:
        if self.fail:
            raise PersistenceFailure("disk full")
        self.saved.append(state)
        self.stored = state

    def load(self) -> Optional[GameState]:
        return self.stored


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        admin_secret="letmein",
        round_interval_ms=60_000,
    )


@pytest.fixture
def gateway():
    return MemoryGateway()


@pytest_asyncio.fixture
async def engine(settings, gateway):
    round_engine = RoundEngine(GameState(), gateway, settings, rng=random.Random(1234))
    await round_engine.start()
    yield round_engine
    await round_engine.stop()
