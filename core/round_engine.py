"""
Round Engine：管理回合的完整生命週期

職責：
1. 開新回合
2. 接受下注（扣款 + 累加號碼總額）
3. 開獎（自動或管理員強制），派彩，開下一回合
4. 帳戶的開戶 / 入帳 / 刪除
5. 把 snapshot 交給 PersistenceGateway（best-effort）

並發設計：
- 單一 writer：所有會修改 GameState 的請求都放進同一個 asyncio.Queue，
  由一個 worker task 依序執行；執行過程中沒有 await，所以每個請求都是原子的
- 自動開獎（Scheduler）和管理員開獎走同一個 queue，沒有第二條修改路徑
- 開獎請求帶著「呼叫當下開放中的回合 id」，worker 處理時如果該回合已經不是
  開放中的回合，就拒絕（RevealInProgress），所以同一回合只會開獎一次
- 下注歸屬於 worker 執行當下開放中的回合；開獎之後才處理的下注會進入下一回合
- 寫入 snapshot 不佔用 worker：worker 只標記狀態有變更，由另一個 task 複製後在 executor 寫入
"""
import asyncio
import random
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Mapping, Optional
import logging

from config import Settings
from models import RevealTrigger, RoundStatus, utcnow
from core.exceptions import (
    EngineNotRunning,
    InvalidInput,
    InvalidStateTransition,
    NumbersGameException,
    PersistenceFailure,
    RevealInProgress,
    RoundVoided,
)
from core.game_state import Account, GameState, RoundState, Wager
from core.ledger import Ledger
from core.persistence import PersistenceGateway
from core.state_machine import RoundStateMachine
from services.reveal_service import calculate_payouts, choose_winner, house_exposure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WagerReceipt:
    account_id: str
    round_id: int
    number: int
    amount: int
    balance: int
    placed_at: datetime


@dataclass(frozen=True)
class RevealSummary:
    round_id: int
    winning_number: int
    trigger: RevealTrigger
    payouts: Mapping[str, int]
    total_staked: int
    total_paid: int
    revealed_at: datetime


class RoundEngine:
    """回合生命週期管理器（single-writer actor）"""

    def __init__(
        self,
        state: GameState,
        persistence: PersistenceGateway,
        settings: Settings,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._state = state
        self._ledger = Ledger(state.accounts)
        self._persistence = persistence
        self._settings = settings
        self._rng = rng if rng is not None else random.Random(settings.reveal_seed)
        self._clock = clock

        self._requests: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.Task] = None
        self._snapshot_ready: Optional[asyncio.Event] = None
        self._snapshot_dirty = False
        self._worker_done = False
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # ============ Lifecycle ============

    async def start(self) -> None:
        """
        啟動 worker 與 snapshot writer

        - 讀回來的狀態有開放中的回合，且號碼範圍與目前設定相同：繼續該回合
          （已扣款的下注不會遺失）
        - 讀回來的回合與設定不符（範圍改過、totals 不完整、狀態不是 OPEN）：
          視為損毀，作廢並退還下注
        - 沒有開放中的回合：開一個新回合
        """
        if self._running:
            return

        self._requests = asyncio.Queue()
        self._snapshot_ready = asyncio.Event()
        self._worker_done = False
        self._running = True
        self._worker = asyncio.create_task(self._process_requests(), name="round-engine")
        self._writer = asyncio.create_task(self._write_snapshots(), name="snapshot-writer")

        current = self._state.current_round
        if current is not None and not self._matches_settings(current):
            await self._submit(self._discard_stale_round)

        current = self._state.current_round
        if current is None:
            await self.open_round()
        else:
            logger.info(f"Resuming round {current.round_id} from saved game")

    async def stop(self) -> None:
        """
        停止接受請求，處理完已排隊的請求，最後寫入一次 snapshot
        """
        if not self._running:
            return

        self._running = False
        # None 排在所有已接受的請求之後
        self._requests.put_nowait(None)
        await self._worker

        self._worker_done = True
        self._snapshot_ready.set()
        await self._writer
        logger.info("Round engine stopped")

    # ============ Public operations ============

    async def open_round(self) -> RoundState:
        return await self._submit(self._open_round)

    def current_round(self) -> RoundState:
        """
        取得目前開放中的回合（唯讀副本，不經過 queue，不會阻塞）

        異常：
            EngineNotRunning: 還沒有任何回合（engine 尚未啟動）
        """
        current = self._state.current_round
        if current is None:
            raise EngineNotRunning("No round is open")
        return current.snapshot()

    async def place_wager(self, account_id: str, number: int, amount: int) -> WagerReceipt:
        """
        下注

        流程：
        1. 驗證號碼與金額（同步拒絕，不排隊）
        2. 排入 queue，由 worker 扣款、記錄下注、累加回合總額

        返回：
            WagerReceipt，round_id 是實際計入的回合

        異常：
            InvalidInput: 號碼超出範圍或金額 <= 0
            AccountNotFound: 帳戶不存在
            InsufficientBalance: 餘額不足（不扣款）
        """
        self._validate_wager(number, amount)
        return await self._submit(self._place_wager, account_id, number, amount)

    async def reveal(self, trigger: RevealTrigger = RevealTrigger.AUTO) -> RevealSummary:
        """
        開獎

        異常：
            RevealInProgress: 這個回合已經被另一個請求開獎（沒有任何副作用）
            RoundVoided: 開獎途中失敗，回合作廢並退款，下一回合已經開放
        """
        current = self._state.current_round
        round_id = current.round_id if current is not None else None
        return await self._submit(self._reveal, round_id, trigger)

    async def register_account(self, account_id: str, initial_balance: int = 0) -> Account:
        return await self._submit(self._register_account, account_id, initial_balance)

    async def credit_account(self, account_id: str, amount: int) -> int:
        """管理員入帳，返回入帳後餘額"""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInput(f"Credit amount must be a positive integer, got {amount!r}")
        return await self._submit(self._credit_account, account_id, amount)

    async def remove_account(self, account_id: str) -> Account:
        return await self._submit(self._remove_account, account_id)

    # ============ Read helpers ============

    def get_account(self, account_id: str) -> Account:
        return _copy_account(self._ledger.get(account_id))

    def list_accounts(self) -> List[Account]:
        return [_copy_account(a) for a in self._ledger.accounts()]

    def round_history(self) -> List[RoundState]:
        return [r.snapshot() for r in self._state.rounds]

    def winning_chart(self) -> List[int]:
        return list(self._state.chart)

    # ============ Worker ============

    async def _submit(self, handler, *args):
        if not self._running:
            raise EngineNotRunning("Round engine is not running")
        future = asyncio.get_running_loop().create_future()
        self._requests.put_nowait((handler, args, future))
        return await future

    async def _process_requests(self) -> None:
        while True:
            request = await self._requests.get()
            if request is None:
                return

            handler, args, future = request
            try:
                result = handler(*args)
            except Exception as e:
                if not isinstance(e, NumbersGameException):
                    logger.error(f"Unexpected error in {handler.__name__}: {e}", exc_info=True)
                # 呼叫端可能已經取消，請求本身仍然完整執行過
                if not future.cancelled():
                    future.set_exception(e)
            else:
                if not future.cancelled():
                    future.set_result(result)

    # ============ Handlers（只在 worker 內執行） ============

    def _open_round(self) -> RoundState:
        current = self._state.current_round
        if current is not None:
            raise InvalidStateTransition(f"Round {current.round_id} is still open")

        round_state = RoundState.open(
            round_id=self._state.next_round_id,
            opened_at=self._clock(),
            numbers=self._settings.numbers,
        )
        self._state.next_round_id += 1
        self._state.current_round = round_state
        self._queue_snapshot()

        logger.info(f"Round {round_state.round_id} opened")
        return round_state.snapshot()

    def _place_wager(self, account_id: str, number: int, amount: int) -> WagerReceipt:
        round_state = self._state.current_round
        if round_state is None or not round_state.is_open:
            raise InvalidStateTransition("No round is accepting wagers")
        if not round_state.accepts(number):
            raise InvalidInput(f"Number {number} is not part of round {round_state.round_id}")

        wager = Wager(
            round_id=round_state.round_id,
            number=number,
            amount=amount,
            placed_at=self._clock(),
        )
        balance = self._ledger.debit_for_wager(account_id, wager)
        round_state.add_stake(number, amount)
        self._queue_snapshot()

        logger.info(
            f"Account {account_id} staked {amount} on {number} "
            f"in round {round_state.round_id} (balance {balance})"
        )
        return WagerReceipt(
            account_id=account_id,
            round_id=wager.round_id,
            number=number,
            amount=amount,
            balance=balance,
            placed_at=wager.placed_at,
        )

    def _reveal(self, round_id: Optional[int], trigger: RevealTrigger) -> RevealSummary:
        round_state = self._state.current_round
        if round_state is None or round_state.round_id != round_id or not round_state.is_open:
            logger.info(f"Reveal ({trigger.value}) of round {round_id} skipped: already revealed")
            raise RevealInProgress(round_id)

        # 1. OPEN -> REVEALING
        RoundStateMachine.transition(round_state, RoundStatus.REVEALING)
        totals = dict(round_state.totals)
        multiplier = self._settings.payout_multiplier

        try:
            if not self._matches_settings(round_state, RoundStatus.REVEALING):
                raise InvalidStateTransition(
                    f"Round {round_id} numbers {sorted(totals)} do not match the configured range"
                )
            # 2. 決定中獎號碼
            winning_number = choose_winner(totals, multiplier, self._rng)
            # 3. 計算派彩（還沒入帳）
            payouts = calculate_payouts(self._ledger.accounts(), round_id, winning_number, multiplier)
        except Exception as e:
            # 回合不能卡在 REVEALING：作廢、退款、照常開下一回合
            logger.error(f"Reveal of round {round_id} failed: {e}", exc_info=True)
            self._void_round(round_state, trigger)
            self._open_round()
            raise RoundVoided(round_id) from e

        credited = self._ledger.credit_winners(payouts)

        # 4. REVEALING -> CLOSED，移入歷史，更新走勢
        revealed_at = self._clock()
        RoundStateMachine.close(round_state, winning_number, revealed_at, trigger)
        self._state.rounds.append(round_state)
        self._state.current_round = None
        self._state.record_winner(winning_number, self._settings.chart_capacity)

        total_staked = sum(totals.values())
        total_paid = sum(credited.values())
        logger.info(
            f"Round {round_id} revealed ({trigger.value}): number {winning_number}, "
            f"staked {total_staked}, paid {total_paid} to {len(credited)} winner(s), "
            f"house exposure {house_exposure(totals, winning_number, multiplier)}"
        )

        # 5. 立刻開下一回合（會排入 snapshot）
        self._open_round()

        return RevealSummary(
            round_id=round_id,
            winning_number=winning_number,
            trigger=trigger,
            payouts=credited,
            total_staked=total_staked,
            total_paid=total_paid,
            revealed_at=revealed_at,
        )

    def _void_round(self, round_state: RoundState, trigger: Optional[RevealTrigger]) -> None:
        """作廢回合：退還每個帳戶在這回合的下注，回合移入歷史（沒有中獎號碼）"""
        refunds = {}
        for account in self._ledger.accounts():
            staked = sum(w.amount for w in account.wagers_in_round(round_state.round_id))
            if staked > 0:
                refunds[account.account_id] = staked
        refunded = self._ledger.refund_stakes(refunds)

        RoundStateMachine.void(round_state, self._clock(), trigger)
        self._state.rounds.append(round_state)
        self._state.current_round = None
        self._queue_snapshot()

        logger.warning(
            f"Round {round_state.round_id} voided, refunded {sum(refunded.values())} "
            f"to {len(refunded)} account(s)"
        )

    def _discard_stale_round(self) -> None:
        round_state = self._state.current_round
        if round_state is None or self._matches_settings(round_state):
            return

        if round_state.status in (RoundStatus.CLOSED, RoundStatus.VOIDED):
            # 已經結束卻還掛在 current：只需移入歷史
            logger.warning(f"Saved round {round_state.round_id} is {round_state.status.value}, moving to history")
            self._state.rounds.append(round_state)
            self._state.current_round = None
            self._queue_snapshot()
            return

        logger.warning(
            f"Saved round {round_state.round_id} ({round_state.status.value}, numbers {sorted(round_state.totals)}) "
            f"does not match numbers {self._settings.min_num}..{self._settings.max_num}"
        )
        self._void_round(round_state, None)

    def _matches_settings(self, round_state: RoundState, status: RoundStatus = RoundStatus.OPEN) -> bool:
        return round_state.status == status and set(round_state.totals) == set(self._settings.numbers)

    def _register_account(self, account_id: str, initial_balance: int) -> Account:
        account = self._ledger.open_account(account_id, initial_balance)
        self._queue_snapshot()
        return _copy_account(account)

    def _credit_account(self, account_id: str, amount: int) -> int:
        balance = self._ledger.credit(account_id, amount)
        self._queue_snapshot()
        logger.info(f"Credited {amount} to {account_id}, balance {balance}")
        return balance

    def _remove_account(self, account_id: str) -> Account:
        account = self._ledger.close_account(account_id)
        self._queue_snapshot()
        return account

    def _validate_wager(self, number, amount) -> None:
        low, high = self._settings.min_num, self._settings.max_num
        if isinstance(number, bool) or not isinstance(number, int) or not low <= number <= high:
            raise InvalidInput(f"Number must be between {low} and {high}, got {number!r}")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInput(f"Amount must be a positive integer, got {amount!r}")

    # ============ Snapshot writer ============

    def _queue_snapshot(self) -> None:
        # 只標記有變更；writer 醒來時才複製，連續多次變更只寫一份
        self._snapshot_dirty = True
        self._snapshot_ready.set()

    async def _write_snapshots(self) -> None:
        while True:
            await self._snapshot_ready.wait()
            self._snapshot_ready.clear()

            if self._snapshot_dirty:
                self._snapshot_dirty = False
                await self._save(self._state.snapshot())

            if self._worker_done and not self._snapshot_dirty:
                return

    async def _save(self, snapshot: GameState) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._persistence.save, snapshot)
        except PersistenceFailure as e:
            logger.error(f"Snapshot not saved, in-memory state stays authoritative: {e}", exc_info=True)
        except Exception as e:
            logger.error(f"Unexpected error while saving snapshot: {e}", exc_info=True)


def _copy_account(account: Account) -> Account:
    return replace(account, wagers=list(account.wagers))
