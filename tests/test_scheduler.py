import asyncio

import pytest

from core.scheduler import RevealScheduler
from models import RevealTrigger


async def test_scheduler_reveals_on_interval(engine):
    scheduler = RevealScheduler(engine, interval_seconds=0.05)
    scheduler.start()
    await asyncio.sleep(0.3)
    scheduler.stop()

    history = engine.round_history()
    assert len(history) >= 2
    assert all(r.trigger == RevealTrigger.AUTO for r in history)
    assert engine.current_round().round_id == len(history) + 1


async def test_stopped_scheduler_stops_revealing(engine):
    scheduler = RevealScheduler(engine, interval_seconds=0.05)
    scheduler.start()
    await asyncio.sleep(0.12)
    scheduler.stop()
    assert not scheduler.running

    revealed = len(engine.round_history())
    await asyncio.sleep(0.15)

    assert len(engine.round_history()) == revealed


async def test_admin_reveal_and_timer_share_one_queue(engine):
    scheduler = RevealScheduler(engine, interval_seconds=0.05)
    scheduler.start()
    try:
        for _ in range(5):
            await asyncio.gather(
                engine.reveal(RevealTrigger.ADMIN_FORCE),
                asyncio.sleep(0.02),
                return_exceptions=True,
            )
    finally:
        scheduler.stop()

    history = engine.round_history()
    # every round id closes once, in order
    assert [r.round_id for r in history] == list(range(1, len(history) + 1))
    assert engine.current_round().round_id == len(history) + 1


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        RevealScheduler(object(), interval_seconds=0)
