"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class NumbersGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 輸入驗證 ============

class InvalidInput(NumbersGameException):
    """號碼超出範圍或金額不是正整數"""
    pass


# ============ Account 相關異常 ============

class AccountNotFound(NumbersGameException):
    """帳戶不存在"""
    def __init__(self, account_id):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class AccountAlreadyExists(NumbersGameException):
    """帳戶名稱已被使用"""
    def __init__(self, account_id):
        self.account_id = account_id
        super().__init__(f"Account {account_id} already exists")


class InsufficientBalance(NumbersGameException):
    """餘額不足以支付下注金額"""
    def __init__(self, account_id, balance: int, amount: int):
        self.account_id = account_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Account {account_id} has balance {balance}, cannot stake {amount}"
        )


# ============ Round 相關異常 ============

class RevealInProgress(NumbersGameException):
    """回合已經在開獎（或已開獎），這次請求被忽略，可稍後重試"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Reveal of round {round_id} already in progress")


class RoundVoided(NumbersGameException):
    """開獎途中失敗，回合作廢並退還下注，遊戲已進入下一回合"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} was voided and its stakes refunded")


class InvalidStateTransition(NumbersGameException):
    """非法的狀態轉換"""
    pass


class EngineNotRunning(NumbersGameException):
    """RoundEngine 尚未啟動或已經停止"""
    pass


# ============ 持久化 ============

class PersistenceFailure(NumbersGameException):
    """Snapshot 讀寫失敗（不致命，記錄後繼續）"""
    pass
