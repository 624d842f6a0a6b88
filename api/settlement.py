"""
Settlement API Endpoints（管理員）

重點：
1. close / settle 都是條件式 UPDATE，同時送出的兩個請求只有一個會生效
2. 所有業務邏輯集中在 RoomManager
3. 已關閉 / 已結算回 409，前端據此重新整理房間狀態
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import logging

from database import get_db
from schemas import ActionResponse, SettleResponse
from core.room_manager import RoomManager
from core.exceptions import (
    AlreadyClosed,
    AlreadySettled,
    InvalidPayoutType,
    InvalidWinnerSelection,
    NoParticipants,
    NotClosedYet,
    RoomNotFound
)
from services.fairness_service import hash_seed
from api.auth import require_admin
from api.rooms import to_winner_response

router = APIRouter(
    prefix="/api/lottery/rooms",
    tags=["settlement"],
    dependencies=[Depends(require_admin)]
)
logger = logging.getLogger(__name__)


@router.post("/{room_id}/close", response_model=ActionResponse)
def close_room(room_id: str, db: Session = Depends(get_db)):
    """
    關閉房間（停止下注）

    效果：
    - closed = true（只在目前為 false 時寫入）
    - 重複關閉回 409
    """
    try:
        RoomManager.close_room(db, room_id)
        logger.info(f"Room {room_id} closed")
        return ActionResponse(status="ok")

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except AlreadyClosed as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to close room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{room_id}/settle", response_model=SettleResponse)
def settle_room(room_id: str, db: Session = Depends(get_db)):
    """
    結算房間

    前置條件：
    - 房間已關閉（或已超過結算時間）
    - 至少一位玩家下注

    抽獎種子在建立房間時已產生並公開雜湊（RoomResponse.settlement_seed_hash），
    結算回應公開種子本身，可用來驗證抽獎結果。

    返回：
        - winners: 得獎者（依名次）
        - total_pool: 總獎池
    """
    try:
        winners = RoomManager.settle_room(db, room_id)
        room = RoomManager.get_room_by_id(db, room_id)

        logger.info(f"Room {room_id} settled with {len(winners)} winner(s)")

        return SettleResponse(
            room_id=room_id,
            total_pool=RoomManager.get_total_pool(db, room_id),
            winners=[to_winner_response(w) for w in winners],
            seed=room.settlement_seed,
            seed_hash=hash_seed(room.settlement_seed)
        )

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except (AlreadySettled, AlreadyClosed) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (NotClosedYet, NoParticipants, InvalidPayoutType, InvalidWinnerSelection) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to settle room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
