"""
Room Manager：管理下注房間的完整生命週期

職責：
1. 建立 Room（管理員）
2. 玩家下注（驗證 + 扣款 + 寫入下注）
3. 關閉 Room（OPEN -> CLOSED）
4. 結算 Room（CLOSED -> SETTLED，寫入得獎者、派彩、歷史紀錄）
5. 查詢 Room 資訊

原則：
- 單一職責：驗證與計算交給 services，狀態變更經過 RoomStateMachine
- 要嘛全部寫入、要嘛全部不寫：每個操作都包在 @transactional 內
- 資料結構優先：先檢查資料是否符合要求，再執行操作
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import logging
import uuid

from sqlalchemy.orm import Session

from database import get_settings, transactional
from models import (
    BettingRoom,
    EventLog,
    GameSession,
    LotteryWinner,
    PlayerStake,
    RoomStatus,
    StakePolicy,
    TransactionType
)
from core.state_machine import RoomStateMachine
from core.locks import with_room_lock
from core.exceptions import InvalidRoomConfig, RoomNotFound
from services.room_status_service import derive_status, utcnow, as_utc
from services.stake_ledger import StakeEntry, StakeLedger
from services.payout_service import (
    WinnerInfo,
    WinnerSelector,
    compute_winners,
    parse_payout_type,
    total_pool
)
from services.fairness_service import generate_seed, hash_seed, stake_weighted_pick
from services.naming_service import default_room_name
from services import wallet_service

logger = logging.getLogger(__name__)


class RoomManager:
    """Room 生命週期管理器"""

    @staticmethod
    @transactional
    def create_room(
        db: Session,
        min_stake,
        max_stake,
        settlement_time: datetime,
        payout_type,
        created_by: str,
        name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> BettingRoom:
        """
        建立新房間（狀態 OPEN）

        前置條件：
        1. 0 < min_stake <= max_stake，且兩者都是最小金額單位的整數倍
        2. settlement_time 必須在未來
        3. payout_type 必須是已知類型

        異常：
            InvalidRoomConfig: 上下限或結算時間不合法
            InvalidPayoutType: 未知的派彩類型
        """
        min_stake = Decimal(min_stake)
        max_stake = Decimal(max_stake)
        if min_stake <= 0 or max_stake <= 0 or min_stake > max_stake:
            raise InvalidRoomConfig(
                f"Invalid stake amounts: min={min_stake}, max={max_stake}"
            )

        quantum = get_settings().amount_quantum
        for bound in (min_stake, max_stake):
            if bound % quantum != 0:
                raise InvalidRoomConfig(
                    f"Stake bound {bound} is not a multiple of the amount unit {quantum}"
                )

        current = as_utc(now) if now is not None else utcnow()
        if as_utc(settlement_time) <= current:
            raise InvalidRoomConfig("Settlement time must be in the future")

        payout_type = parse_payout_type(payout_type)

        room_id = str(uuid.uuid4())
        room = BettingRoom(
            id=room_id,
            name=name or default_room_name(room_id),
            min_stake=min_stake,
            max_stake=max_stake,
            settlement_time=as_utc(settlement_time),
            closed=False,
            settled=False,
            payout_type=payout_type,
            created_by=created_by,
            settlement_seed=generate_seed()
        )
        db.add(room)
        db.flush()

        db.add(EventLog(
            room_id=room.id,
            event_type="ROOM_CREATED",
            data={
                "name": room.name,
                "min_stake": str(min_stake),
                "max_stake": str(max_stake),
                "payout_type": payout_type.value,
                "created_by": created_by,
                "seed_hash": hash_seed(room.settlement_seed),
            }
        ))

        logger.info(f"Created room {room.id} ({room.name}) by {created_by}")
        return room

    @staticmethod
    @transactional
    def place_stake(
        db: Session,
        room_id: str,
        player: str,
        amount,
        now: Optional[datetime] = None,
        policy: Optional[StakePolicy] = None
    ) -> PlayerStake:
        """
        玩家下注

        流程：
        1. 鎖定 Room
        2. 把既有下注重播進 StakeLedger，由帳本驗證（狀態、上下限、重複下注）
        3. 扣除玩家餘額
        4. 新增或更新 PlayerStake
        5. 記錄事件

        異常：
            RoomNotFound, RoomNotOpen, StakeOutOfBounds, InvalidAmount,
            DuplicateStake, InsufficientBalance

        注意：
            - 任何一步失敗都會 rollback，扣款不會單獨生效
        """
        room = with_room_lock(room_id, db).first()
        if not room:
            raise RoomNotFound(room_id)

        settings = get_settings()
        if policy is None:
            policy = StakePolicy(settings.stake_policy)

        existing_rows = RoomManager.get_stakes(db, room_id)
        ledger = StakeLedger(
            (StakeEntry(row.player, Decimal(row.stake)) for row in existing_rows),
            policy=policy,
            quantum=settings.amount_quantum
        )

        amount = Decimal(amount)
        entry = ledger.place_stake(room, player, amount, now=now)

        stake_row = next((row for row in existing_rows if row.player == player), None)
        if stake_row is None:
            stake_row = PlayerStake(id=str(uuid.uuid4()), room_id=room_id, player=player, stake=entry.stake)
            db.add(stake_row)
        else:
            stake_row.stake = entry.stake

        wallet_service.debit(
            player,
            amount,
            db,
            tx_type=TransactionType.LOTTERY_ENTRY,
            description=f"Lottery entry: {room.name}",
            reference_id=stake_row.id
        )

        db.add(EventLog(
            room_id=room_id,
            event_type="STAKE_PLACED",
            data={"player": player, "amount": str(amount), "total": str(entry.stake)}
        ))
        db.flush()

        logger.info(f"Player {player} staked {amount} in room {room_id} (total {entry.stake})")
        return stake_row

    @staticmethod
    @transactional
    def close_room(db: Session, room_id: str, now: Optional[datetime] = None) -> BettingRoom:
        """
        關閉房間（OPEN -> CLOSED）

        截止時間已過但旗標未寫入的房間也可以關閉（把旗標寫回去）。
        已關閉 / 已結算的房間會拋出 AlreadyClosed（不是冪等操作）。

        異常：
            RoomNotFound: Room 不存在
            AlreadyClosed: 已經關閉過
        """
        room = RoomStateMachine.transition(room_id, RoomStatus.CLOSED, db, now=now)

        db.add(EventLog(
            room_id=room_id,
            event_type="ROOM_CLOSED",
            data={}
        ))
        return room

    @staticmethod
    @transactional
    def settle_room(
        db: Session,
        room_id: str,
        select_winner: Optional[WinnerSelector] = None,
        now: Optional[datetime] = None
    ) -> List[LotteryWinner]:
        """
        結算房間（CLOSED -> SETTLED）

        前置條件：
        1. Room 必須存在
        2. 推導狀態必須是 CLOSED（OPEN -> NotClosedYet，SETTLED -> AlreadySettled）
        3. 至少有一筆下注（NoParticipants）

        流程：
        1. 計算得獎者（PayoutCalculator）
        2. 條件式 UPDATE 設定 settled（同時補上 closed）
        3. 寫入 LotteryWinner
        4. 得獎者入帳 + 交易紀錄
        5. 每位參與者寫一筆 GameSession
        6. 記錄事件

        參數：
            select_winner: 抽獎函式，None 時使用依下注加權的 HMAC 抽獎

        注意：
            - 抽獎種子在建立房間時就產生並公開雜湊，這裡只使用、不接受外部種子；
              結算後種子才會公開，任何人都能用它重算抽獎結果

        返回：
            依名次排序的 LotteryWinner 列表
        """
        room = with_room_lock(room_id, db).first()
        if not room:
            raise RoomNotFound(room_id)

        settings = get_settings()
        stake_rows = RoomManager.get_stakes(db, room_id)
        stakes = [StakeEntry(row.player, Decimal(row.stake)) for row in stake_rows]

        seed = room.settlement_seed
        if not seed:
            # 沒有預先承諾的種子（建立房間時未寫入），補一個以免卡住結算
            logger.warning(f"Room {room_id} has no committed seed, generating one at settlement")
            seed = generate_seed()

        winners: List[WinnerInfo] = compute_winners(
            room,
            stakes,
            seed=seed,
            select_winner=select_winner or stake_weighted_pick,
            now=now,
            fee_bps=settings.platform_fee_bps,
            quantum=settings.amount_quantum
        )

        room = RoomStateMachine.transition(room_id, RoomStatus.SETTLED, db, now=now)
        room.settlement_seed = seed

        pool = total_pool(stakes)
        stake_by_player = {s.player: s.stake for s in stakes}
        winner_rows = []
        for winner in winners:
            row = LotteryWinner(
                room_id=room_id,
                address=winner.address,
                prize=winner.prize,
                rank=winner.rank
            )
            db.add(row)
            winner_rows.append(row)

            if winner.prize > 0:
                wallet_service.credit(
                    winner.address,
                    winner.prize,
                    db,
                    tx_type=TransactionType.LOTTERY_PRIZE,
                    description=f"Lottery prize: {room.name} (rank {winner.rank})",
                    reference_id=room_id
                )

        rank_by_player = {w.address: w.rank for w in winners}
        prize_by_player = {w.address: w.prize for w in winners}
        for stake in stakes:
            won = stake.player in rank_by_player
            outcome = {
                "win": won,
                "room_id": room_id,
                "room_name": room.name,
                "total_pool": str(pool),
                "participant_count": len(stakes),
            }
            if won:
                outcome["rank"] = rank_by_player[stake.player]
            db.add(GameSession(
                user_id=stake.player,
                game_type="lottery",
                bet_amount=stake_by_player[stake.player],
                payout=prize_by_player.get(stake.player, Decimal(0)),
                outcome=outcome
            ))

        db.add(EventLog(
            room_id=room_id,
            event_type="ROOM_SETTLED",
            data={
                "total_pool": str(pool),
                "winners": [
                    {"address": w.address, "prize": str(w.prize), "rank": w.rank}
                    for w in winners
                ],
            }
        ))
        db.flush()

        logger.info(f"Room {room_id} settled: {len(winners)} winner(s), pool {pool}")
        return winner_rows

    @staticmethod
    def get_room_by_id(db: Session, room_id: str) -> BettingRoom:
        """
        異常：
            RoomNotFound: Room 不存在
        """
        room = db.query(BettingRoom).filter(BettingRoom.id == room_id).first()
        if not room:
            raise RoomNotFound(room_id)
        return room

    @staticmethod
    def list_rooms(
        db: Session,
        status: Optional[RoomStatus] = None,
        payout_type=None,
        now: Optional[datetime] = None
    ) -> List[BettingRoom]:
        """
        列出房間（依結算時間排序）

        status 篩選使用推導狀態，所以截止時間已過的房間會出現在 CLOSED 裡
        """
        query = db.query(BettingRoom)
        if payout_type is not None:
            query = query.filter(BettingRoom.payout_type == parse_payout_type(payout_type))

        rooms = query.order_by(BettingRoom.settlement_time.asc()).all()
        if status is not None:
            rooms = [room for room in rooms if derive_status(room, now) == status]
        return rooms

    @staticmethod
    def get_stakes(db: Session, room_id: str) -> List[PlayerStake]:
        return db.query(PlayerStake).filter(
            PlayerStake.room_id == room_id
        ).order_by(PlayerStake.created_at.asc(), PlayerStake.id).all()

    @staticmethod
    def get_winners(db: Session, room_id: str) -> List[LotteryWinner]:
        return db.query(LotteryWinner).filter(
            LotteryWinner.room_id == room_id
        ).order_by(LotteryWinner.rank.asc()).all()

    @staticmethod
    def get_total_pool(db: Session, room_id: str) -> Decimal:
        stakes = RoomManager.get_stakes(db, room_id)
        return sum((Decimal(row.stake) for row in stakes), Decimal(0))
