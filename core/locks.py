"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
SQLite 會忽略 FOR UPDATE，整個資料庫寫入本來就是序列化的
"""
from sqlalchemy.orm import Session, Query

from models import BettingRoom, Balance


def with_room_lock(room_id: str, db: Session) -> Query:
    """
    鎖定一個 Room（行級鎖）

    使用場景：
    - 下注時（避免在關閉的瞬間寫入新的下注）
    - 需要確保 Room 在整個 transaction 期間不被其他請求修改

    範例：
        room = with_room_lock(room_id, db).first()
        if not room:
            raise RoomNotFound(room_id)

    參數：
        room_id: Room 的 id
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待（避免 deadlock）
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(BettingRoom).filter(
        BettingRoom.id == room_id
    ).with_for_update(nowait=False)


def with_balance_lock(user_id: str, db: Session) -> Query:
    """
    鎖定一個玩家的餘額

    使用場景：
    - 扣款 / 入帳（讀取餘額與寫回之間不能被其他請求插隊）

    返回：
        Query object（呼叫 .first() 取得結果，可能為 None）
    """
    return db.query(Balance).filter(
        Balance.user_id == user_id
    ).with_for_update(nowait=False)
