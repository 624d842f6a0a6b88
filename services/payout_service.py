"""
派彩服務：結算時計算得獎者與獎金

純計算邏輯，不寫資料庫、不改房間狀態（由 RoomManager 負責）

派彩類型：
┌──────────────────┬─────────────────────────────────────────────┐
│ WINNER_TAKES_ALL │ 由注入的抽獎函式選出 1 人，獨得整個獎池       │
│ SPLIT            │ 所有下注者依下注比例分配獎池                  │
└──────────────────┴─────────────────────────────────────────────┘
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Callable, List, Optional, Sequence

from models import PayoutType, RoomStatus
from core.exceptions import (
    AlreadySettled,
    InvalidPayoutType,
    InvalidWinnerSelection,
    NoParticipants,
    NotClosedYet
)
from services.room_status_service import derive_status
from services.stake_ledger import StakeEntry

WinnerSelector = Callable[[Sequence[StakeEntry], str], str]

BPS_DENOMINATOR = Decimal(10000)


@dataclass(frozen=True)
class WinnerInfo:
    address: str
    prize: Decimal
    rank: int


def parse_payout_type(value) -> PayoutType:
    """
    把字串 / enum 轉成 PayoutType

    異常：
        InvalidPayoutType: 未知的值（不會默默退回預設值）
    """
    if isinstance(value, PayoutType):
        return value
    try:
        return PayoutType(value)
    except ValueError:
        raise InvalidPayoutType(value)


def total_pool(stakes: Sequence[StakeEntry]) -> Decimal:
    return sum((Decimal(s.stake) for s in stakes), Decimal(0))


def platform_fee(pool: Decimal, fee_bps: int, quantum: Decimal) -> Decimal:
    """平台抽成（無條件捨去到最小單位）"""
    if fee_bps <= 0:
        return Decimal(0)
    return (pool * Decimal(fee_bps) / BPS_DENOMINATOR).quantize(quantum, rounding=ROUND_DOWN)


def rank_stakes(stakes: Sequence[StakeEntry]) -> List[StakeEntry]:
    """下注金額由大到小，同額再依玩家識別排序，確保結果可重現"""
    return sorted(stakes, key=lambda s: (-Decimal(s.stake), s.player))


def split_prizes(
    stakes: Sequence[StakeEntry],
    distributable: Decimal,
    quantum: Decimal
) -> List[WinnerInfo]:
    """
    SPLIT：依下注比例分配

    每人獎金 = stake / total * distributable，無條件捨去到 quantum；
    捨去的差額（一定 >= 0）全部算給第 1 名，
    因此獎金總和恰好等於 distributable，且獎金依名次遞減。
    """
    ranked = rank_stakes(stakes)
    pool = total_pool(ranked)

    prizes = [
        (Decimal(s.stake) / pool * distributable).quantize(quantum, rounding=ROUND_DOWN)
        for s in ranked
    ]
    prizes[0] += distributable - sum(prizes)

    return [
        WinnerInfo(address=s.player, prize=prize, rank=index + 1)
        for index, (s, prize) in enumerate(zip(ranked, prizes))
    ]


def winner_takes_all(
    stakes: Sequence[StakeEntry],
    distributable: Decimal,
    select_winner: WinnerSelector,
    seed: str
) -> List[WinnerInfo]:
    winner = select_winner(list(stakes), seed)
    if winner not in {s.player for s in stakes}:
        raise InvalidWinnerSelection(f"Selected winner {winner!r} did not stake in this room")
    return [WinnerInfo(address=winner, prize=distributable, rank=1)]


def compute_winners(
    room,
    stakes: Sequence[StakeEntry],
    payout_type=None,
    seed: Optional[str] = None,
    select_winner: Optional[WinnerSelector] = None,
    now: Optional[datetime] = None,
    fee_bps: int = 0,
    quantum: Decimal = Decimal("0.000001")
) -> List[WinnerInfo]:
    """
    計算一個已關閉房間的得獎者

    前置條件：
    1. 房間狀態必須是 CLOSED（OPEN -> NotClosedYet，SETTLED -> AlreadySettled）
    2. stakes 不能是空的（NoParticipants）
    3. payout_type 必須是已知類型（InvalidPayoutType）

    參數：
        room: 房間
        stakes: 房間內所有下注
        payout_type: 派彩類型，None 表示使用房間設定
        seed: 抽獎種子（WINNER_TAKES_ALL 使用）
        select_winner: 抽獎函式 (stakes, seed) -> player（WINNER_TAKES_ALL 必填）
        now: 目前時間（測試用）
        fee_bps: 平台抽成（basis points）
        quantum: 金額最小單位

    返回：
        依名次排序的 WinnerInfo 列表

    後置條件：
        sum(prize) <= total pool
    """
    status = derive_status(room, now)
    if status == RoomStatus.OPEN:
        raise NotClosedYet(room.id)
    if status == RoomStatus.SETTLED:
        raise AlreadySettled(room.id)

    if not stakes:
        raise NoParticipants(room.id)

    payout_type = parse_payout_type(payout_type if payout_type is not None else room.payout_type)

    pool = total_pool(stakes)
    distributable = pool - platform_fee(pool, fee_bps, quantum)

    if payout_type == PayoutType.WINNER_TAKES_ALL:
        if select_winner is None:
            raise ValueError("WINNER_TAKES_ALL settlement requires a select_winner function")
        return winner_takes_all(stakes, distributable, select_winner, seed or "")

    if payout_type == PayoutType.SPLIT:
        return split_prizes(stakes, distributable, quantum)

    raise InvalidPayoutType(payout_type)
