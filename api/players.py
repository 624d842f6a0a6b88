"""
Player API Endpoints

職責：
1. 玩家加入房間（下注）
2. 查詢房間內的下注
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import JoinResponse, StakeCreate, StakeResponse
from core.room_manager import RoomManager
from core.exceptions import (
    DuplicateStake,
    InsufficientBalance,
    InvalidAmount,
    RoomNotFound,
    RoomNotOpen,
    StakeOutOfBounds
)
from services.wallet_service import get_balance

router = APIRouter(prefix="/api/lottery/rooms", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{room_id}/join", response_model=JoinResponse)
def join_room(room_id: str, stake_data: StakeCreate, db: Session = Depends(get_db)):
    """
    加入房間（玩家 endpoint）

    前置條件：
    - 房間必須存在
    - 房間狀態必須是 OPEN（未關閉、未超過結算時間）
    - 金額在房間上下限內
    - 餘額足夠

    流程：
    1. RoomManager.place_stake（驗證、扣款、寫入下注，同一個 transaction）
    2. 返回累計下注與新餘額
    """
    try:
        stake = RoomManager.place_stake(db, room_id, stake_data.player, stake_data.amount)

        logger.info(f"Player {stake_data.player} joined room {room_id}")

        return JoinResponse(
            room_id=room_id,
            player=stake.player,
            stake=stake.stake,
            new_balance=get_balance(stake_data.player, db)
        )

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except (RoomNotOpen, StakeOutOfBounds, InvalidAmount, DuplicateStake, InsufficientBalance) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{room_id}/stakes", response_model=List[StakeResponse])
def get_room_stakes(room_id: str, db: Session = Depends(get_db)):
    try:
        RoomManager.get_room_by_id(db, room_id)
        return [StakeResponse.model_validate(row) for row in RoomManager.get_stakes(db, room_id)]

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except Exception as e:
        logger.error(f"Failed to get stakes: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
