"""
ORM models and shared enums
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON

from database import Base


class RoundStatus(str, enum.Enum):
    OPEN = "OPEN"
    REVEALING = "REVEALING"
    CLOSED = "CLOSED"
    VOIDED = "VOIDED"


class RevealTrigger(str, enum.Enum):
    AUTO = "AUTO"
    ADMIN_FORCE = "ADMIN_FORCE"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameSnapshot(Base):
    """
    Whole-game snapshot, one row per game.

    The payload is the JSON form of GameStateRecord (see core/persistence.py);
    next_round_id and saved_at are duplicated as columns so operators can
    inspect the table without decoding the payload.
    """
    __tablename__ = "game_snapshots"

    id = Column(Integer, primary_key=True)
    next_round_id = Column(Integer, nullable=False, default=1)
    payload = Column(JSON, nullable=False)
    saved_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
