"""
Reveal Scheduler：每隔固定時間送出一次自動開獎請求

Scheduler 本身不碰遊戲狀態，只是 RoundEngine queue 的另一個 producer，
和管理員的強制開獎走同一條路，由 engine 決定誰生效。
"""
import asyncio
from typing import Optional
import logging

from models import RevealTrigger
from core.exceptions import RevealInProgress, RoundVoided
from core.round_engine import RoundEngine

logger = logging.getLogger(__name__)


class RevealScheduler:
    def __init__(self, engine: RoundEngine, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._engine = engine
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="reveal-scheduler")
        logger.info(f"Automatic reveal every {self._interval:g}s")

    def stop(self) -> None:
        """
        停止計時器

        不等待正在進行的開獎：已經排進 engine queue 的開獎請求會由
        engine worker 執行完畢，取消的只是 scheduler 這邊的等待
        """
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Reveal scheduler stopped")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        # 以固定頻率觸發：下一次的時間點從起點推算，不累積誤差
        next_fire = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            next_fire += self._interval
            await self._fire()

    async def _fire(self) -> None:
        try:
            summary = await self._engine.reveal(RevealTrigger.AUTO)
        except RevealInProgress as e:
            logger.info(f"Automatic reveal skipped: {e}")
        except RoundVoided as e:
            logger.warning(f"Automatic reveal voided the round: {e}")
        except Exception as e:
            logger.error(f"Automatic reveal failed: {e}", exc_info=True)
        else:
            logger.info(
                f"Automatic reveal of round {summary.round_id}: number {summary.winning_number}"
            )
