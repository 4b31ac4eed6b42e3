"""
Ledger：帳戶餘額的唯一修改入口

職責：
1. 開戶 / 刪除帳戶
2. 下注扣款（debit，餘額不足則拒絕）
3. 派彩入帳（credit，永遠成功）
4. 作廢回合時退還下注（refund_stakes）

Ledger 不做排程，也不做鎖定；它由 RoundEngine 的 worker 呼叫，
而 worker 一次只處理一個請求，所以每一次 debit / credit 都是原子的。
"""
from typing import Dict, List, Mapping
import logging

from core.exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    InsufficientBalance,
    InvalidInput,
)
from core.game_state import Account, Wager

logger = logging.getLogger(__name__)


class Ledger:
    """帳戶與餘額"""

    def __init__(self, accounts: Dict[str, Account]):
        # 與 GameState.accounts 共用同一個 dict
        self._accounts = accounts

    def open_account(self, account_id: str, initial_balance: int = 0) -> Account:
        if not account_id:
            raise InvalidInput("Account id must not be empty")
        if initial_balance < 0:
            raise InvalidInput(f"Initial balance must not be negative, got {initial_balance}")
        if account_id in self._accounts:
            raise AccountAlreadyExists(account_id)

        account = Account(account_id=account_id, balance=initial_balance)
        self._accounts[account_id] = account
        logger.info(f"Opened account {account_id} with balance {initial_balance}")
        return account

    def close_account(self, account_id: str) -> Account:
        account = self.get(account_id)
        del self._accounts[account_id]
        logger.info(f"Closed account {account_id} (balance {account.balance})")
        return account

    def get(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def accounts(self) -> List[Account]:
        return list(self._accounts.values())

    def debit(self, account_id: str, amount: int) -> int:
        """
        下注扣款

        返回：
            扣款後的餘額

        異常：
            AccountNotFound: 帳戶不存在
            InsufficientBalance: 餘額 < amount（不會扣款）
        """
        account = self.get(account_id)
        if account.balance < amount:
            raise InsufficientBalance(account_id, account.balance, amount)
        account.balance -= amount
        return account.balance

    def debit_for_wager(self, account_id: str, wager: Wager) -> int:
        """扣款並把下注記錄到帳戶歷史（餘額不足時兩者都不發生）"""
        balance = self.debit(account_id, wager.amount)
        self._accounts[account_id].wagers.append(wager)
        return balance

    def credit(self, account_id: str, amount: int) -> int:
        account = self.get(account_id)
        account.balance += amount
        return account.balance

    def credit_winners(self, payouts: Mapping[str, int]) -> Dict[str, int]:
        """
        一次開獎的所有派彩

        參數：
            payouts: {account_id: amount}

        返回：
            實際入帳的 {account_id: amount}

        注意：
            - 派彩不會失敗；開獎到派彩之間帳戶被刪除的話，該筆派彩略過並記錄
        """
        credited = {}
        for account_id, amount in payouts.items():
            if account_id not in self._accounts:
                logger.warning(f"Skipping payout {amount} to removed account {account_id}")
                continue
            balance = self.credit(account_id, amount)
            credited[account_id] = amount
            logger.info(f"Credited payout {amount} to {account_id}, balance {balance}")
        return credited

    def refund_stakes(self, refunds: Mapping[str, int]) -> Dict[str, int]:
        """作廢回合時退還下注，返回實際退還的 {account_id: amount}"""
        refunded = {}
        for account_id, amount in refunds.items():
            if account_id not in self._accounts or amount <= 0:
                continue
            balance = self.credit(account_id, amount)
            refunded[account_id] = amount
            logger.info(f"Refunded {amount} to {account_id}, balance {balance}")
        return refunded
