"""
房間狀態機：OPEN -> CLOSED -> SETTLED

只能往前走，SETTLED 是終點。

狀態本身不儲存，而是由 closed / settled 兩個旗標推導；
狀態轉換一律以「條件式 UPDATE」寫入：

    UPDATE lottery_rooms SET closed = true
    WHERE id = ? AND closed = false

兩個請求同時關閉同一個房間時，只有一個會影響到資料列，
另一個拿到 rowcount = 0，轉成 AlreadyClosed / AlreadySettled。
"""
from datetime import datetime
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from models import BettingRoom, EventLog, RoomStatus
from core.exceptions import (
    AlreadyClosed,
    AlreadySettled,
    InvalidStateTransition,
    NotClosedYet,
    RoomNotFound
)
from services.room_status_service import derive_status, stored_status

logger = logging.getLogger(__name__)


class RoomStateMachine:
    """房間狀態轉換的唯一入口"""

    ALLOWED_TRANSITIONS: Dict[RoomStatus, List[RoomStatus]] = {
        RoomStatus.OPEN: [RoomStatus.CLOSED],
        RoomStatus.CLOSED: [RoomStatus.SETTLED],
        RoomStatus.SETTLED: [],
    }

    @classmethod
    def is_valid_transition(cls, current: RoomStatus, target: RoomStatus) -> bool:
        return target in cls.ALLOWED_TRANSITIONS.get(current, [])

    @staticmethod
    def current_status(room: BettingRoom, target: RoomStatus, now: Optional[datetime] = None) -> RoomStatus:
        """
        轉換的起點狀態

        關閉只看儲存的 closed 旗標：截止時間已過但旗標還沒寫入的房間，
        推導狀態雖然是 CLOSED，仍然可以（也應該）被關閉。
        結算看推導狀態，截止時間到了就可以結算。
        """
        if target == RoomStatus.CLOSED:
            return stored_status(room)
        return derive_status(room, now)

    @staticmethod
    def rejection(room_id: str, current: RoomStatus, target: RoomStatus) -> InvalidStateTransition:
        """把不合法的轉換對應到具體的異常"""
        if target == RoomStatus.CLOSED and current in (RoomStatus.CLOSED, RoomStatus.SETTLED):
            return AlreadyClosed(room_id)
        if target == RoomStatus.SETTLED and current == RoomStatus.OPEN:
            return NotClosedYet(room_id)
        if target == RoomStatus.SETTLED and current == RoomStatus.SETTLED:
            return AlreadySettled(room_id)
        return InvalidStateTransition(
            f"Cannot transition room {room_id} from {current.value} to {target.value}"
        )

    @classmethod
    def transition(
        cls,
        room_id: str,
        target: RoomStatus,
        db: Session,
        now: Optional[datetime] = None
    ) -> BettingRoom:
        """
        執行狀態轉換（條件式 UPDATE + 事件紀錄）

        參數：
            room_id: Room id
            target: 目標狀態（CLOSED 或 SETTLED）
            db: SQLAlchemy Session
            now: 目前時間（測試用）

        返回：
            更新後的 Room

        異常：
            RoomNotFound: Room 不存在
            AlreadyClosed / NotClosedYet / AlreadySettled: 狀態不允許
            InvalidStateTransition: 目標狀態不合法

        注意：
            - 不 commit，交由外層 @transactional 處理
        """
        room = db.query(BettingRoom).filter(BettingRoom.id == room_id).first()
        if not room:
            raise RoomNotFound(room_id)

        current = cls.current_status(room, target, now)
        if not cls.is_valid_transition(current, target):
            raise cls.rejection(room_id, current, target)

        if target == RoomStatus.CLOSED:
            affected = db.query(BettingRoom).filter(
                BettingRoom.id == room_id,
                BettingRoom.closed == False
            ).update({BettingRoom.closed: True}, synchronize_session=False)
            if affected == 0:
                logger.warning(f"Concurrent close detected for room {room_id}")
                raise AlreadyClosed(room_id)

        elif target == RoomStatus.SETTLED:
            # 截止時間到了但 closed 旗標沒寫入：結算時一起補上
            affected = db.query(BettingRoom).filter(
                BettingRoom.id == room_id,
                BettingRoom.settled == False
            ).update(
                {BettingRoom.closed: True, BettingRoom.settled: True},
                synchronize_session=False
            )
            if affected == 0:
                logger.warning(f"Concurrent settlement detected for room {room_id}")
                raise AlreadySettled(room_id)

        db.refresh(room)

        db.add(EventLog(
            room_id=room_id,
            event_type="ROOM_STATE_CHANGED",
            data={"from": current.value, "to": target.value}
        ))

        logger.info(f"Room {room_id} transitioned {current.value} -> {target.value}")
        return room
