import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.exceptions import PersistenceFailure
from core.game_state import Account, GameState, RoundState, Wager
from core.persistence import SqlPersistenceGateway, load_game_state
from core.state_machine import RoundStateMachine
from database import Base
from models import GameSnapshot, RevealTrigger, RoundStatus, utcnow
from tests.conftest import MemoryGateway


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def build_state() -> GameState:
    now = utcnow()
    closed = RoundState.open(1, now, range(1, 11))
    closed.add_stake(4, 25)
    RoundStateMachine.transition(closed, RoundStatus.REVEALING)
    RoundStateMachine.close(closed, 9, now, RevealTrigger.AUTO)

    current = RoundState.open(2, now, range(1, 11))
    current.add_stake(6, 10)

    return GameState(
        accounts={
            "alice": Account("alice", 65, [Wager(1, 4, 25, now), Wager(2, 6, 10, now)], now),
        },
        rounds=[closed],
        chart=[9],
        next_round_id=3,
        current_round=current,
    )


def test_saved_state_loads_back_unchanged(session_factory):
    gateway = SqlPersistenceGateway(session_factory)
    state = build_state()

    gateway.save(state)
    gateway.save(state)
    loaded = gateway.load()

    assert loaded == state
    db = session_factory()
    try:
        assert db.query(GameSnapshot).count() == 1
    finally:
        db.close()


def test_load_without_snapshot_returns_none(session_factory):
    assert SqlPersistenceGateway(session_factory).load() is None


def test_corrupt_snapshot_starts_fresh(session_factory, caplog):
    db = session_factory()
    db.add(GameSnapshot(id=1, next_round_id=4, payload={"accounts": "not a mapping"}))
    db.commit()
    db.close()
    gateway = SqlPersistenceGateway(session_factory)

    with pytest.raises(PersistenceFailure):
        gateway.load()

    state = load_game_state(gateway)
    assert state == GameState()
    assert "starting fresh" in caplog.text


def test_save_failure_raises_persistence_failure(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path}/missing/dir/game.db")
    gateway = SqlPersistenceGateway(sessionmaker(bind=engine))

    with pytest.raises(PersistenceFailure):
        gateway.save(GameState())


def test_load_game_state_uses_stored_state():
    state = build_state()
    assert load_game_state(MemoryGateway(stored=state)) is state
    assert load_game_state(MemoryGateway()) == GameState()
