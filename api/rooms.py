"""
Room API Endpoints

職責：
1. 房間列表（可依狀態 / 派彩類型篩選）
2. 房間詳情（玩家、獎池、倒數、得獎者）
3. 建立房間（管理員）
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import BettingRoom, PayoutType, RoomStatus
from schemas import RoomCreate, RoomListResponse, RoomResponse, WinnerResponse
from core.room_manager import RoomManager
from core.exceptions import InvalidPayoutType, InvalidRoomConfig, RoomNotFound
from services.room_status_service import derive_status, seconds_until_settlement
from services.fairness_service import hash_seed
from services.naming_service import shorten_address
from api.auth import require_admin

router = APIRouter(prefix="/api/lottery", tags=["rooms"])
logger = logging.getLogger(__name__)


def to_winner_response(winner) -> WinnerResponse:
    return WinnerResponse(
        address=winner.address,
        display_address=shorten_address(winner.address),
        prize=winner.prize,
        rank=winner.rank
    )


def build_room_response(room: BettingRoom, db: Session) -> RoomResponse:
    """把 Room 與其下注、得獎者組成 API 回應"""
    stakes = RoomManager.get_stakes(db, room.id)
    winners = RoomManager.get_winners(db, room.id)

    return RoomResponse(
        id=room.id,
        name=room.name,
        min_stake=room.min_stake,
        max_stake=room.max_stake,
        settlement_time=room.settlement_time,
        closed=room.closed,
        settled=room.settled,
        status=derive_status(room),
        payout_type=room.payout_type,
        created_by=room.created_by,
        seconds_left=seconds_until_settlement(room),
        players=[row.player for row in stakes],
        total_pool=sum((row.stake for row in stakes), 0),
        winners=[to_winner_response(w) for w in winners],
        settlement_seed_hash=hash_seed(room.settlement_seed) if room.settlement_seed else None,
        settlement_seed=room.settlement_seed if room.settled else None
    )


@router.get("/rooms", response_model=RoomListResponse)
def list_rooms(
    status: Optional[RoomStatus] = Query(None),
    payout_type: Optional[PayoutType] = Query(None),
    db: Session = Depends(get_db)
):
    """
    取得房間列表（依結算時間排序）

    參數：
        status: open / closed / settled（推導狀態）
        payout_type: winner_takes_all / split
    """
    try:
        rooms = RoomManager.list_rooms(db, status=status, payout_type=payout_type)
        return RoomListResponse(rooms=[build_room_response(room, db) for room in rooms])

    except Exception as e:
        logger.error(f"Failed to list rooms: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/rooms/{room_id}", response_model=RoomResponse)
def get_room(room_id: str, db: Session = Depends(get_db)):
    try:
        room = RoomManager.get_room_by_id(db, room_id)
        return build_room_response(room, db)

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except Exception as e:
        logger.error(f"Failed to get room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/rooms", response_model=RoomResponse, dependencies=[Depends(require_admin)])
def create_room(room_data: RoomCreate, db: Session = Depends(get_db)):
    """
    建立房間（管理員 endpoint）

    前置條件：
    - min_stake <= max_stake
    - settlement_time 在未來
    """
    try:
        room = RoomManager.create_room(
            db,
            room_data.min_stake,
            room_data.max_stake,
            room_data.settlement_time,
            room_data.payout_type,
            room_data.created_by,
            name=room_data.name
        )
        return build_room_response(room, db)

    except (InvalidRoomConfig, InvalidPayoutType) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/rooms/{room_id}/winners", response_model=List[WinnerResponse])
def get_room_winners(room_id: str, db: Session = Depends(get_db)):
    """結算後的得獎者（依名次排序），未結算時為空列表"""
    try:
        RoomManager.get_room_by_id(db, room_id)
        return [to_winner_response(w) for w in RoomManager.get_winners(db, room_id)]

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except Exception as e:
        logger.error(f"Failed to get winners: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
