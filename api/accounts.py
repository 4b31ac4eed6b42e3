"""
Account API Endpoints

職責：
1. 開戶、查詢餘額與下注紀錄
2. 管理員：列出帳戶、入帳、刪除帳戶

帳戶登入驗證不在這個服務內，account_id 直接作為識別
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
import logging

from config import Settings
from schemas import AccountCreate, AccountCredit, AccountResponse, WagerHistoryEntry
from core.round_engine import RoundEngine
from core.exceptions import AccountAlreadyExists, AccountNotFound, InvalidInput
from services.history_service import get_account_wager_history
from api.deps import get_app_settings, get_engine, require_admin

router = APIRouter(prefix="/api/accounts", tags=["accounts"])
logger = logging.getLogger(__name__)


@router.post("", response_model=AccountResponse, status_code=201)
async def register_account(data: AccountCreate, engine: RoundEngine = Depends(get_engine)):
    """
    開戶（餘額從 0 開始，由管理員入帳）
    """
    try:
        account = await engine.register_account(data.account_id)
        logger.info(f"Account {account.account_id} registered")
        return AccountResponse.model_validate(account)

    except AccountAlreadyExists as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to register account: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[AccountResponse], dependencies=[Depends(require_admin)])
async def list_accounts(engine: RoundEngine = Depends(get_engine)):
    return [AccountResponse.model_validate(a) for a in engine.list_accounts()]


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(account_id: str, engine: RoundEngine = Depends(get_engine)):
    try:
        return AccountResponse.model_validate(engine.get_account(account_id))
    except AccountNotFound:
        raise HTTPException(status_code=404, detail="Account not found")


@router.get("/{account_id}/wagers", response_model=List[WagerHistoryEntry])
async def get_wager_history(
    account_id: str,
    engine: RoundEngine = Depends(get_engine),
    settings: Settings = Depends(get_app_settings),
):
    """
    取得帳戶的下注紀錄（依下注順序），已開獎的回合附上中獎號碼與派彩
    """
    try:
        account = engine.get_account(account_id)
    except AccountNotFound:
        raise HTTPException(status_code=404, detail="Account not found")

    history = get_account_wager_history(
        account, engine.round_history(), settings.payout_multiplier
    )
    return [WagerHistoryEntry(**entry) for entry in history]


@router.post(
    "/{account_id}/credit",
    response_model=AccountResponse,
    dependencies=[Depends(require_admin)],
)
async def credit_account(
    account_id: str,
    data: AccountCredit,
    engine: RoundEngine = Depends(get_engine),
):
    """
    管理員入帳
    """
    try:
        await engine.credit_account(account_id, data.amount)
        return AccountResponse.model_validate(engine.get_account(account_id))

    except AccountNotFound:
        raise HTTPException(status_code=404, detail="Account not found")
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to credit account: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{account_id}", status_code=204, dependencies=[Depends(require_admin)])
async def delete_account(account_id: str, engine: RoundEngine = Depends(get_engine)):
    try:
        await engine.remove_account(account_id)
    except AccountNotFound:
        raise HTTPException(status_code=404, detail="Account not found")
    except Exception as e:
        logger.error(f"Failed to delete account: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
