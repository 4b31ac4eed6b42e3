"""
Snapshot persistence

RoundEngine only depends on the PersistenceGateway protocol. The SQL
implementation stores the whole GameState as one JSON document, validated
on the way back in by the pydantic records below.
"""
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol
import logging

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import transactional
from models import GameSnapshot, RevealTrigger, RoundStatus, utcnow
from core.exceptions import PersistenceFailure
from core.game_state import Account, GameState, RoundState, Wager
from core.locks import with_snapshot_lock

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    def save(self, state: GameState) -> None:
        """Raises PersistenceFailure when the snapshot cannot be written."""

    def load(self) -> Optional[GameState]:
        """None when nothing is stored; PersistenceFailure when unreadable."""


# ============ Snapshot records ============

class WagerRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_id: int
    number: int
    amount: int
    placed_at: datetime


class AccountRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: str
    balance: int
    wagers: List[WagerRecord] = []
    created_at: datetime


class RoundRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_id: int
    opened_at: datetime
    totals: Dict[int, int]
    status: RoundStatus
    revealed_at: Optional[datetime] = None
    winning_number: Optional[int] = None
    trigger: Optional[RevealTrigger] = None


class GameStateRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    accounts: Dict[str, AccountRecord] = {}
    rounds: List[RoundRecord] = []
    chart: List[int] = []
    next_round_id: int = 1
    current_round: Optional[RoundRecord] = None

    @classmethod
    def from_state(cls, state: GameState) -> "GameStateRecord":
        return cls.model_validate(state)

    def to_state(self) -> GameState:
        return GameState(
            accounts={
                account_id: Account(
                    account_id=record.account_id,
                    balance=record.balance,
                    wagers=[Wager(**w.model_dump()) for w in record.wagers],
                    created_at=record.created_at,
                )
                for account_id, record in self.accounts.items()
            },
            rounds=[_round_from_record(r) for r in self.rounds],
            chart=list(self.chart),
            next_round_id=self.next_round_id,
            current_round=_round_from_record(self.current_round) if self.current_round else None,
        )


def _round_from_record(record: RoundRecord) -> RoundState:
    return RoundState(**record.model_dump())


# ============ SQL gateway ============

@transactional
def _write_snapshot(db: Session, payload: dict, next_round_id: int) -> GameSnapshot:
    row = with_snapshot_lock(db).first()
    if row is None:
        row = GameSnapshot(id=1)
        db.add(row)
    row.payload = payload
    row.next_round_id = next_round_id
    row.saved_at = utcnow()
    return row


class SqlPersistenceGateway:
    """Stores the GameState snapshot in the game_snapshots table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def save(self, state: GameState) -> None:
        payload = GameStateRecord.from_state(state).model_dump(mode="json")
        db = self._session_factory()
        try:
            _write_snapshot(db, payload, state.next_round_id)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to save snapshot: {e}") from e
        finally:
            db.close()
        logger.debug(f"Snapshot saved (next_round_id={state.next_round_id})")

    def load(self) -> Optional[GameState]:
        db = self._session_factory()
        try:
            row = db.query(GameSnapshot).filter(GameSnapshot.id == 1).first()
            if row is None:
                return None
            record = GameStateRecord.model_validate(row.payload)
        except (SQLAlchemyError, ValidationError, ValueError) as e:
            # ValueError: payload 不是合法 JSON
            raise PersistenceFailure(f"Failed to load snapshot: {e}") from e
        finally:
            db.close()
        return record.to_state()


def load_game_state(gateway: PersistenceGateway) -> GameState:
    """
    啟動時讀取遊戲狀態

    - 沒有 snapshot：全新的 GameState
    - snapshot 損毀或讀不到：記錄警告，視為沒有舊資料
    """
    try:
        state = gateway.load()
    except PersistenceFailure as e:
        logger.warning(f"Could not load saved game, starting fresh ({e})")
        return GameState()

    if state is None:
        logger.info("No saved game found, starting fresh")
        return GameState()

    logger.info(
        f"Loaded saved game: {len(state.accounts)} accounts, "
        f"{len(state.rounds)} rounds, next round {state.next_round_id}"
    )
    return state
