from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from models import RevealTrigger, RoundStatus


# ============ Account ============

class AccountCreate(BaseModel):
    account_id: str = Field(..., min_length=1, max_length=64)


class AccountCredit(BaseModel):
    amount: StrictInt = Field(..., gt=0)


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: str
    balance: int
    created_at: datetime


class WagerHistoryEntry(BaseModel):
    round_id: int
    number: int
    amount: int
    placed_at: datetime
    winning_number: Optional[int] = None
    payout: Optional[int] = None
    refunded: bool = False


# ============ Round ============

class WagerCreate(BaseModel):
    account_id: str
    # 號碼範圍由 RoundEngine 依設定檢查；"5"、5.0 這類輸入直接 422
    number: StrictInt
    amount: StrictInt = Field(..., gt=0)


class WagerReceiptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: str
    round_id: int
    number: int
    amount: int
    balance: int
    placed_at: datetime


class RoundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_id: int
    status: RoundStatus
    opened_at: datetime
    revealed_at: Optional[datetime] = None
    winning_number: Optional[int] = None
    trigger: Optional[RevealTrigger] = None
    totals: Dict[int, int]


class RevealSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_id: int
    winning_number: int
    trigger: RevealTrigger
    payouts: Dict[str, int]
    total_staked: int
    total_paid: int
    revealed_at: datetime


class ChartResponse(BaseModel):
    numbers: List[int]
