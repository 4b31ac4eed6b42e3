"""
Round API Endpoints

重點：
1. 所有狀態修改都交給 RoundEngine（單一 writer），這裡只做轉換與錯誤對應
2. 強制開獎和自動開獎走同一個 engine queue，重複請求得到 409
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
import logging

from models import RevealTrigger
from schemas import (
    ChartResponse,
    RevealSummaryResponse,
    RoundResponse,
    WagerCreate,
    WagerReceiptResponse,
)
from core.game_state import RoundState
from core.round_engine import RoundEngine
from core.exceptions import (
    AccountNotFound,
    EngineNotRunning,
    InsufficientBalance,
    InvalidInput,
    RevealInProgress,
    RoundVoided,
)
from api.deps import get_engine, require_admin

router = APIRouter(prefix="/api/rounds", tags=["rounds"])
logger = logging.getLogger(__name__)


def _round_response(round_state: RoundState) -> RoundResponse:
    return RoundResponse(
        round_id=round_state.round_id,
        status=round_state.status,
        opened_at=round_state.opened_at,
        revealed_at=round_state.revealed_at,
        winning_number=round_state.winning_number,
        trigger=round_state.trigger,
        totals=dict(round_state.totals),
    )


@router.get("/current", response_model=RoundResponse)
async def get_current_round(engine: RoundEngine = Depends(get_engine)):
    """
    取得當前回合資訊

    返回：
        - round_id: 回合編號
        - status: OPEN
        - totals: 每個號碼目前的下注總額
    """
    try:
        return _round_response(engine.current_round())
    except EngineNotRunning:
        raise HTTPException(status_code=503, detail="No active round")


@router.post("/current/wagers", response_model=WagerReceiptResponse, status_code=201)
async def place_wager(data: WagerCreate, engine: RoundEngine = Depends(get_engine)):
    """
    對當前回合下注

    注意：
        - 如果下注處理時回合剛好開獎，會計入下一回合，回傳的 round_id 為準
    """
    try:
        receipt = await engine.place_wager(data.account_id, data.number, data.amount)
        return WagerReceiptResponse.model_validate(receipt)

    except (InvalidInput, InsufficientBalance) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AccountNotFound:
        raise HTTPException(status_code=404, detail="Account not found")
    except Exception as e:
        logger.error(f"Failed to place wager: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post(
    "/reveal",
    response_model=RevealSummaryResponse,
    dependencies=[Depends(require_admin)],
)
async def force_reveal(engine: RoundEngine = Depends(get_engine)):
    """
    管理員強制開獎（Host endpoint）

    效果：
    - 立即結束當前回合、派彩、開下一回合
    - 自動開獎的計時器不重設，仍依原本的節奏觸發
    - 開獎途中失敗時回合作廢、下注退還，回傳 409
    """
    try:
        summary = await engine.reveal(RevealTrigger.ADMIN_FORCE)
        logger.info(f"Round {summary.round_id} force-revealed: {summary.winning_number}")
        return RevealSummaryResponse.model_validate(summary)

    except (RevealInProgress, RoundVoided) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to reveal round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/history", response_model=List[RoundResponse])
async def get_round_history(engine: RoundEngine = Depends(get_engine)):
    return [_round_response(r) for r in engine.round_history()]


@router.get("/chart", response_model=ChartResponse)
async def get_chart(engine: RoundEngine = Depends(get_engine)):
    """
    最近開出的號碼（舊到新）
    """
    return ChartResponse(numbers=engine.winning_chart())
