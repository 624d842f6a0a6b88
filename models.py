"""
資料表定義

房間的有效狀態（OPEN / CLOSED / SETTLED）不直接儲存，
由 closed、settled 兩個旗標加上 settlement_time 推導，
見 services.room_status_service.derive_status。
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


AMOUNT = Numeric(30, 12)


class RoomStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    SETTLED = "settled"


class PayoutType(str, enum.Enum):
    WINNER_TAKES_ALL = "winner_takes_all"
    SPLIT = "split"


class StakePolicy(str, enum.Enum):
    ACCUMULATE = "accumulate"
    REJECT = "reject"


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    LOTTERY_ENTRY = "lottery_entry"
    LOTTERY_PRIZE = "lottery_prize"


class BettingRoom(Base):
    __tablename__ = "lottery_rooms"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(120), nullable=False)
    min_stake = Column(AMOUNT, nullable=False)
    max_stake = Column(AMOUNT, nullable=False)
    settlement_time = Column(DateTime(timezone=True), nullable=False, index=True)
    # 兩個旗標都只會 False -> True，不會回頭
    closed = Column(Boolean, nullable=False, default=False)
    settled = Column(Boolean, nullable=False, default=False)
    payout_type = Column(
        Enum(PayoutType, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False
    )
    created_by = Column(String(120), nullable=False)
    settlement_seed = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    stakes = relationship(
        "PlayerStake",
        back_populates="room",
        order_by="PlayerStake.created_at"
    )
    winners = relationship(
        "LotteryWinner",
        back_populates="room",
        order_by="LotteryWinner.rank"
    )


class PlayerStake(Base):
    __tablename__ = "lottery_entries"
    __table_args__ = (
        UniqueConstraint("room_id", "player", name="uq_lottery_entries_room_player"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("lottery_rooms.id"), nullable=False, index=True)
    player = Column(String(120), nullable=False)
    stake = Column(AMOUNT, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    room = relationship("BettingRoom", back_populates="stakes")


class LotteryWinner(Base):
    """WinnerInfo：結算時一次寫入，之後不再變動"""
    __tablename__ = "lottery_winners"
    __table_args__ = (
        UniqueConstraint("room_id", "rank", name="uq_lottery_winners_room_rank"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("lottery_rooms.id"), nullable=False, index=True)
    address = Column(String(120), nullable=False)
    prize = Column(AMOUNT, nullable=False)
    rank = Column(Integer, nullable=False)

    room = relationship("BettingRoom", back_populates="winners")


class Balance(Base):
    __tablename__ = "balances"

    user_id = Column(String(120), primary_key=True)
    amount = Column(AMOUNT, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(120), nullable=False, index=True)
    type = Column(
        Enum(TransactionType, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False
    )
    # 正數入帳，負數扣款
    amount = Column(AMOUNT, nullable=False)
    description = Column(String(255), nullable=True)
    reference_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class GameSession(Base):
    """錢包歷史紀錄，每位參與者每個房間一筆"""
    __tablename__ = "game_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(120), nullable=False, index=True)
    game_type = Column(String(32), nullable=False, default="lottery")
    bet_amount = Column(AMOUNT, nullable=False)
    payout = Column(AMOUNT, nullable=False, default=0)
    outcome = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("lottery_rooms.id"), nullable=True, index=True)
    event_type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
