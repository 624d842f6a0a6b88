"""
下注帳本：記錄一個房間內的玩家下注

純計算邏輯，不碰資料庫。RoomManager 會把資料庫內既有的下注
重播進帳本，驗證通過後再把結果寫回去。
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Dict, Iterable, List, Optional

from models import StakePolicy
from core.exceptions import (
    RoomNotOpen,
    StakeOutOfBounds,
    InvalidAmount,
    DuplicateStake
)
from services.room_status_service import derive_status, is_open

DEFAULT_QUANTUM = Decimal("0.000001")


@dataclass
class StakeEntry:
    player: str
    stake: Decimal


class StakeLedger:
    """
    單一房間的下注帳本

    不變量：
        get_total_pool() 永遠等於所有 StakeEntry.stake 的總和；
        被拒絕的下注不會改動帳本。
    """

    def __init__(
        self,
        stakes: Iterable[StakeEntry] = (),
        policy: StakePolicy = StakePolicy.ACCUMULATE,
        quantum: Decimal = DEFAULT_QUANTUM
    ):
        self.policy = StakePolicy(policy)
        self.quantum = Decimal(quantum)
        self._stakes: Dict[str, StakeEntry] = {}
        for entry in stakes:
            self._stakes[entry.player] = StakeEntry(entry.player, Decimal(entry.stake))

    def __len__(self) -> int:
        return len(self._stakes)

    def __contains__(self, player: str) -> bool:
        return player in self._stakes

    @property
    def stakes(self) -> List[StakeEntry]:
        """依第一次下注順序排列"""
        return list(self._stakes.values())

    @property
    def players(self) -> List[str]:
        return list(self._stakes.keys())

    def get_stake(self, player: str) -> Optional[StakeEntry]:
        return self._stakes.get(player)

    def get_total_pool(self) -> Decimal:
        return sum((entry.stake for entry in self._stakes.values()), Decimal(0))

    def place_stake(
        self,
        room,
        player: str,
        amount,
        now: Optional[datetime] = None
    ) -> StakeEntry:
        """
        下注

        前置條件（依序檢查）：
        1. 房間狀態必須是 OPEN            -> RoomNotOpen
        2. min_stake <= amount <= max_stake -> StakeOutOfBounds
        3. amount > 0                       -> InvalidAmount
           且小數位數不超過 quantum         -> InvalidAmount
        4. 重複下注：REJECT 政策直接拒絕    -> DuplicateStake
           ACCUMULATE 政策累加，但累加後仍不得超過 max_stake

        參數：
            room: 具有 id、min_stake、max_stake 與狀態旗標的房間
            player: 玩家識別
            amount: 下注金額
            now: 目前時間（測試用）

        返回：
            該玩家在帳本中的 StakeEntry（累加後的總額）
        """
        amount = Decimal(amount)
        min_stake = Decimal(room.min_stake)
        max_stake = Decimal(room.max_stake)

        if not is_open(room, now):
            raise RoomNotOpen(room.id, derive_status(room, now))

        if amount < min_stake or amount > max_stake:
            raise StakeOutOfBounds(amount, min_stake, max_stake)

        if amount <= 0:
            raise InvalidAmount(amount)

        if amount.quantize(self.quantum, rounding=ROUND_DOWN) != amount:
            raise InvalidAmount(amount, f"has more decimal places than {self.quantum}")

        existing = self._stakes.get(player)
        if existing is None:
            entry = StakeEntry(player, amount)
            self._stakes[player] = entry
            return entry

        if self.policy == StakePolicy.REJECT:
            raise DuplicateStake(room.id, player)

        total = existing.stake + amount
        if total > max_stake:
            raise StakeOutOfBounds(total, min_stake, max_stake)

        existing.stake = total
        return existing
