"""
開獎服務：決定中獎號碼與派彩

純計算邏輯，不持有任何狀態，也不改變回合狀態（由 RoundEngine 負責）
"""
import random
from typing import Dict, Iterable, Mapping, Optional, Tuple

from core.game_state import Account


def find_cheapest_number(totals: Mapping[int, int]) -> Optional[Tuple[int, int]]:
    """
    找出下注總額最小（但大於 0）的號碼

    同額時取較小的號碼

    返回：
        (number, amount)，沒有任何下注時返回 None
    """
    cheapest = None
    for number in sorted(totals):
        amount = totals[number]
        if amount > 0 and (cheapest is None or amount < cheapest[1]):
            cheapest = (number, amount)
    return cheapest


def choose_winner(
    totals: Mapping[int, int],
    payout_multiplier: int,
    rng: random.Random,
) -> int:
    """
    根據各號碼下注總額決定中獎號碼，壓低莊家的派彩風險

    規則（依優先順序）：
    1. 完全沒有下注：所有號碼中隨機挑一個
    2. 總下注 > 最小非零下注 × 賠率：開最小非零下注的號碼（莊家仍有賺）
    3. 否則有零下注號碼：從零下注號碼中隨機挑一個（完全不用派彩）
    4. 都沒有：開最小非零下注的號碼（虧損最小）

    只有情況 1 和 3 會用到亂數，其餘都是確定的結果

    參數：
        totals: {number: 總下注額}，每個號碼都必須有 key
        payout_multiplier: 賠率
        rng: 亂數來源（測試時可固定 seed）

    異常：
        ValueError: totals 是空的
    """
    if not totals:
        raise ValueError("Cannot choose a winner without any numbers")

    numbers = sorted(totals)
    cheapest = find_cheapest_number(totals)
    if cheapest is None:
        return rng.choice(numbers)

    cheapest_number, cheapest_amount = cheapest
    total_staked = sum(totals.values())
    if total_staked > cheapest_amount * payout_multiplier:
        return cheapest_number

    unbacked = [n for n in numbers if totals[n] == 0]
    if unbacked:
        return rng.choice(unbacked)

    return cheapest_number


def house_exposure(totals: Mapping[int, int], number: int, payout_multiplier: int) -> int:
    """
    若開出 number，莊家要付出的派彩減去收到的總下注

    正數表示莊家虧損，負數表示莊家獲利
    """
    return totals[number] * payout_multiplier - sum(totals.values())


def calculate_payouts(
    accounts: Iterable[Account],
    round_id: int,
    winning_number: int,
    payout_multiplier: int,
) -> Dict[str, int]:
    """
    計算一個回合的派彩

    每筆押中的下注得到 amount × payout_multiplier；
    同一帳戶的多筆下注加總

    返回：
        {account_id: payout}，只包含有中獎的帳戶
    """
    payouts: Dict[str, int] = {}
    for account in accounts:
        won = sum(
            wager.amount * payout_multiplier
            for wager in account.wagers_in_round(round_id)
            if wager.number == winning_number
        )
        if won > 0:
            payouts[account.account_id] = won
    return payouts
