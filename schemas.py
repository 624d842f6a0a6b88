from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import PayoutType, RoomStatus, TransactionType


# ============ Room ============

class RoomCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    min_stake: Decimal = Field(..., gt=0)
    max_stake: Decimal = Field(..., gt=0)
    settlement_time: datetime
    payout_type: PayoutType
    created_by: str = Field(..., min_length=1)


class WinnerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    address: str
    display_address: str
    prize: Decimal
    rank: int


class StakeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player: str
    stake: Decimal


class RoomResponse(BaseModel):
    id: str
    name: str
    min_stake: Decimal
    max_stake: Decimal
    settlement_time: datetime
    closed: bool
    settled: bool
    status: RoomStatus
    payout_type: PayoutType
    created_by: str
    seconds_left: int
    players: List[str]
    total_pool: Decimal
    winners: List[WinnerResponse] = []
    # 建立時就公開雜湊，結算後才公開種子本身
    settlement_seed_hash: Optional[str] = None
    settlement_seed: Optional[str] = None


class RoomListResponse(BaseModel):
    rooms: List[RoomResponse]


# ============ Stake ============

class StakeCreate(BaseModel):
    player: str = Field(..., min_length=1)
    amount: Decimal


class JoinResponse(BaseModel):
    room_id: str
    player: str
    stake: Decimal
    new_balance: Decimal


# ============ Settlement ============

class SettleResponse(BaseModel):
    room_id: str
    total_pool: Decimal
    winners: List[WinnerResponse]
    seed: str
    seed_hash: str


class ActionResponse(BaseModel):
    status: str


# ============ Wallet ============

class DepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None


class BalanceResponse(BaseModel):
    user_id: str
    balance: Decimal


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: TransactionType
    amount: Decimal
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: datetime


class HistoryEntry(BaseModel):
    id: str
    game_type: str
    bet_amount: Decimal
    payout: Decimal
    win: bool
    outcome: Dict[str, Any]
    created_at: datetime


class WalletStatsResponse(BaseModel):
    balance: Decimal
    total_wagered: Decimal
    total_won: Decimal
    total_lost: Decimal
    total_earnings: Decimal
    games_played: int
    wins: int
    losses: int
    win_rate: float
