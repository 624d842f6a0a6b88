"""
Wallet API Endpoints

職責：
1. 查詢餘額、交易紀錄
2. 遊戲歷史與統計
3. 入金（管理員）
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import TransactionType
from schemas import (
    BalanceResponse,
    DepositRequest,
    HistoryEntry,
    TransactionResponse,
    WalletStatsResponse
)
from core.exceptions import InvalidAmount
from services import wallet_service
from services.history_service import get_player_history
from api.auth import require_admin

router = APIRouter(prefix="/api/wallet", tags=["wallet"])
logger = logging.getLogger(__name__)


@router.get("/{user_id}/balance", response_model=BalanceResponse)
def get_balance(user_id: str, db: Session = Depends(get_db)):
    return BalanceResponse(user_id=user_id, balance=wallet_service.get_balance(user_id, db))


@router.post(
    "/{user_id}/deposit",
    response_model=BalanceResponse,
    dependencies=[Depends(require_admin)]
)
def deposit(user_id: str, deposit_data: DepositRequest, db: Session = Depends(get_db)):
    """
    入金（管理員 endpoint）

    鏈上入金的確認不在這個服務處理，這裡只負責記帳。
    """
    try:
        balance = wallet_service.credit(
            user_id,
            deposit_data.amount,
            db,
            tx_type=TransactionType.DEPOSIT,
            description=deposit_data.description or "Deposit"
        )
        db.commit()

        logger.info(f"Deposited {deposit_data.amount} to {user_id}")
        return BalanceResponse(user_id=user_id, balance=balance)

    except InvalidAmount as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to deposit: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{user_id}/transactions", response_model=List[TransactionResponse])
def get_transactions(
    user_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    rows = wallet_service.list_transactions(user_id, db, limit=limit, offset=offset)
    return [TransactionResponse.model_validate(row) for row in rows]


@router.get("/{user_id}/history", response_model=List[HistoryEntry])
def get_history(
    user_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    game_type: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """遊戲歷史（最新的在前面）"""
    entries = get_player_history(user_id, db, limit=limit, offset=offset, game_type=game_type)
    return [HistoryEntry(**entry) for entry in entries]


@router.get("/{user_id}/stats", response_model=WalletStatsResponse)
def get_stats(user_id: str, db: Session = Depends(get_db)):
    """
    錢包統計

    返回：
        餘額、總下注、總贏得、總輸掉、淨損益、遊戲次數、勝率
    """
    try:
        return WalletStatsResponse(**wallet_service.get_wallet_stats(user_id, db))

    except Exception as e:
        logger.error(f"Failed to get wallet stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
