"""
房間狀態服務：從儲存的旗標推導房間的有效狀態

規則（依序判斷，先符合者勝出）：
1. settled == True                 -> SETTLED
2. closed == True                  -> CLOSED
3. now >= settlement_time          -> CLOSED
4. 其他                            -> OPEN

純函式，不會修改房間；截止時間到了要把 closed 寫回資料庫，
必須透過 RoomManager.close_room 明確執行。
"""
from datetime import datetime, timezone
from typing import Optional

from models import RoomStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite 讀回來的 datetime 沒有時區，一律視為 UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def stored_status(room) -> RoomStatus:
    """只看儲存的旗標（不考慮截止時間）"""
    if room.settled:
        return RoomStatus.SETTLED
    if room.closed:
        return RoomStatus.CLOSED
    return RoomStatus.OPEN


def derive_status(room, now: Optional[datetime] = None) -> RoomStatus:
    """
    推導房間的有效狀態

    參數：
        room: 任何具有 settled、closed、settlement_time 屬性的物件
        now: 目前時間（預設為 UTC 現在時間，測試時可注入）

    返回：
        RoomStatus enum

    範例：
        settled=True                          -> RoomStatus.SETTLED
        closed=True, settled=False            -> RoomStatus.CLOSED
        旗標皆 False，但已超過 settlement_time -> RoomStatus.CLOSED
        旗標皆 False，尚未到 settlement_time   -> RoomStatus.OPEN
    """
    status = stored_status(room)
    if status != RoomStatus.OPEN:
        return status

    current = as_utc(now) if now is not None else utcnow()
    if current >= as_utc(room.settlement_time):
        return RoomStatus.CLOSED
    return RoomStatus.OPEN


def is_open(room, now: Optional[datetime] = None) -> bool:
    return derive_status(room, now) == RoomStatus.OPEN


def seconds_until_settlement(room, now: Optional[datetime] = None) -> int:
    """
    距離截止下注還剩幾秒（已截止則為 0）

    用途：
        房間列表顯示倒數計時
    """
    current = as_utc(now) if now is not None else utcnow()
    seconds_left = int((as_utc(room.settlement_time) - current).total_seconds())
    return max(seconds_left, 0)
