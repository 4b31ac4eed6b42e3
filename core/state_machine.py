"""
回合狀態機

所有 RoundState.status 的變更都必須經過這裡，集中檢查合法性：

    OPEN -> REVEALING -> CLOSED
    OPEN / REVEALING -> VOIDED（作廢，退還下注）

- 沒有 CLOSED -> OPEN：回合永遠不會重新開放
- winning_number / revealed_at 只能設定一次
"""
from datetime import datetime
from typing import Optional
import logging

from models import RevealTrigger, RoundStatus
from core.exceptions import InvalidStateTransition
from core.game_state import RoundState

logger = logging.getLogger(__name__)


class RoundStateMachine:
    ALLOWED = {
        RoundStatus.OPEN: {RoundStatus.REVEALING, RoundStatus.VOIDED},
        RoundStatus.REVEALING: {RoundStatus.CLOSED, RoundStatus.VOIDED},
        RoundStatus.CLOSED: set(),
        RoundStatus.VOIDED: set(),
    }

    @classmethod
    def transition(cls, round_state: RoundState, target: RoundStatus) -> RoundState:
        """
        轉換回合狀態

        異常：
            InvalidStateTransition: 不在 ALLOWED 表內的轉換
        """
        current = round_state.status
        if target not in cls.ALLOWED[current]:
            raise InvalidStateTransition(
                f"Round {round_state.round_id}: cannot go from {current.value} to {target.value}"
            )
        round_state.status = target
        logger.debug(f"Round {round_state.round_id}: {current.value} -> {target.value}")
        return round_state

    @classmethod
    def close(
        cls,
        round_state: RoundState,
        winning_number: int,
        revealed_at: datetime,
        trigger: RevealTrigger,
    ) -> RoundState:
        """
        REVEALING -> CLOSED，同時寫入開獎號碼

        前置條件：
            - 回合狀態必須是 REVEALING
            - 開獎號碼尚未設定（開獎結果不可修改）
        """
        if round_state.winning_number is not None:
            raise InvalidStateTransition(
                f"Round {round_state.round_id} already revealed {round_state.winning_number}"
            )
        if winning_number not in round_state.totals:
            raise InvalidStateTransition(
                f"Winning number {winning_number} is not part of round {round_state.round_id}"
            )
        cls.transition(round_state, RoundStatus.CLOSED)
        round_state.winning_number = winning_number
        round_state.revealed_at = revealed_at
        round_state.trigger = trigger
        return round_state

    @classmethod
    def void(
        cls,
        round_state: RoundState,
        voided_at: datetime,
        trigger: Optional[RevealTrigger] = None,
    ) -> RoundState:
        """
        OPEN / REVEALING -> VOIDED：回合作廢，沒有中獎號碼

        用途：
            - 開獎途中失敗
            - 讀回來的開放回合與目前設定不符
        """
        cls.transition(round_state, RoundStatus.VOIDED)
        round_state.revealed_at = voided_at
        round_state.trigger = trigger
        return round_state
