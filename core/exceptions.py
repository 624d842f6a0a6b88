"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class LotteryException(Exception):
    """所有房間 / 下注 / 結算異常的基類"""
    pass


# ============ Room 相關異常 ============

class RoomNotFound(LotteryException):
    """房間不存在"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class InvalidRoomConfig(LotteryException):
    """建立房間的參數不合法（下注上下限、結算時間）"""
    pass


class InvalidPayoutType(LotteryException):
    """未知的派彩類型，不允許退回預設值"""
    def __init__(self, payout_type):
        self.payout_type = payout_type
        super().__init__(f"Invalid payout type: {payout_type!r}")


# ============ Stake 相關異常 ============

class RoomNotOpen(LotteryException):
    """房間已關閉或已結算，不接受下注"""
    def __init__(self, room_id, status):
        self.room_id = room_id
        self.status = status
        super().__init__(f"Room {room_id} is not open for entries (status: {status.value})")


class StakeOutOfBounds(LotteryException):
    """下注金額超出房間的上下限"""
    def __init__(self, amount, min_stake, max_stake):
        self.amount = amount
        self.min_stake = min_stake
        self.max_stake = max_stake
        super().__init__(f"Stake must be between {min_stake} and {max_stake}, got {amount}")


class InvalidAmount(LotteryException):
    """金額必須大於 0，且不能比最小單位更細"""
    def __init__(self, amount, reason: str = "must be positive"):
        self.amount = amount
        super().__init__(f"Amount {reason}, got {amount}")


class DuplicateStake(LotteryException):
    """玩家已經在這個房間下注過了（reject 政策）"""
    def __init__(self, room_id, player):
        self.room_id = room_id
        self.player = player
        super().__init__(f"Player {player} has already joined room {room_id}")


class InsufficientBalance(LotteryException):
    """餘額不足"""
    def __init__(self, user_id, balance, amount):
        self.user_id = user_id
        self.balance = balance
        self.amount = amount
        super().__init__(f"Insufficient balance for {user_id}: has {balance}, needs {amount}")


# ============ 結算相關異常 ============

class NoParticipants(LotteryException):
    """沒有任何下注，無法產生得獎者"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} has no participants to settle")


class InvalidWinnerSelection(LotteryException):
    """抽獎函式回傳的得獎者不是房間內的玩家"""
    pass


# ============ 狀態轉換異常 ============

class InvalidStateTransition(LotteryException):
    """非法的狀態轉換"""
    pass


class AlreadyClosed(InvalidStateTransition):
    """房間已經關閉（或已結算）"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is already closed")


class NotClosedYet(InvalidStateTransition):
    """房間仍在開放下注，不能結算"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is still open")


class AlreadySettled(InvalidStateTransition):
    """房間已經結算過了"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is already settled")
