"""
Game state data types

GameState is the aggregate root: one instance is built at process start
(fresh or loaded from a snapshot) and handed to RoundEngine, which is the
only writer.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from models import RevealTrigger, RoundStatus, utcnow
from core.exceptions import InvalidStateTransition


@dataclass(frozen=True)
class Wager:
    round_id: int
    number: int
    amount: int
    placed_at: datetime


@dataclass
class Account:
    account_id: str
    balance: int = 0
    wagers: List[Wager] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    def wagers_in_round(self, round_id: int) -> List[Wager]:
        """
        回傳某回合的所有下注

        wagers 依時間排序且 round_id 單調遞增，從尾端往回掃描，
        遇到更早的回合即可停止
        """
        found = []
        for wager in reversed(self.wagers):
            if wager.round_id < round_id:
                break
            if wager.round_id == round_id:
                found.append(wager)
        found.reverse()
        return found


@dataclass
class RoundState:
    round_id: int
    opened_at: datetime
    totals: Mapping[int, int]
    status: RoundStatus = RoundStatus.OPEN
    revealed_at: Optional[datetime] = None
    winning_number: Optional[int] = None
    trigger: Optional[RevealTrigger] = None

    @classmethod
    def open(cls, round_id: int, opened_at: datetime, numbers: Iterable[int]) -> "RoundState":
        # every number gets an explicit zero, never a missing key
        return cls(round_id=round_id, opened_at=opened_at, totals={n: 0 for n in numbers})

    @property
    def total_staked(self) -> int:
        return sum(self.totals.values())

    @property
    def is_open(self) -> bool:
        return self.status == RoundStatus.OPEN

    def accepts(self, number: int) -> bool:
        return self.is_open and number in self.totals

    def add_stake(self, number: int, amount: int) -> None:
        if not self.is_open:
            raise InvalidStateTransition(f"Round {self.round_id} is {self.status.value}, not accepting stakes")
        self.totals[number] += amount

    def snapshot(self) -> "RoundState":
        """Read-only copy for callers outside the engine."""
        return replace(self, totals=MappingProxyType(dict(self.totals)))


@dataclass
class GameState:
    accounts: Dict[str, Account] = field(default_factory=dict)
    rounds: List[RoundState] = field(default_factory=list)
    chart: List[int] = field(default_factory=list)
    next_round_id: int = 1
    current_round: Optional[RoundState] = None

    def record_winner(self, number: int, capacity: int) -> None:
        self.chart.append(number)
        # FIFO：超過容量時淘汰最舊的
        if len(self.chart) > capacity:
            del self.chart[:len(self.chart) - capacity]

    def snapshot(self) -> "GameState":
        """
        Copy handed to the snapshot writer.

        Wagers are frozen and rounds in history never change after they close,
        so both are shared with the live state. Only the containers, the
        balances and the open round's totals are copied.
        """
        current = self.current_round
        return GameState(
            accounts={
                account_id: replace(account, wagers=list(account.wagers))
                for account_id, account in self.accounts.items()
            },
            rounds=list(self.rounds),
            chart=list(self.chart),
            next_round_id=self.next_round_id,
            current_round=replace(current, totals=dict(current.totals)) if current else None,
        )
