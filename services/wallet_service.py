"""
錢包服務：餘額、交易紀錄、統計

扣款與入帳都只 flush 不 commit，交由外層 transaction 處理，
這樣下注扣款和寫入下注紀錄會一起成功或一起失敗。
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import Balance, GameSession, Transaction, TransactionType
from core.exceptions import InsufficientBalance, InvalidAmount
from core.locks import with_balance_lock


def get_balance(user_id: str, db: Session) -> Decimal:
    """
    取得玩家餘額（沒有紀錄視為 0）
    """
    balance = db.query(Balance).filter(Balance.user_id == user_id).first()
    return Decimal(balance.amount) if balance else Decimal(0)


def credit(
    user_id: str,
    amount,
    db: Session,
    tx_type: TransactionType = TransactionType.DEPOSIT,
    description: Optional[str] = None,
    reference_id: Optional[str] = None
) -> Decimal:
    """
    入帳並寫一筆交易紀錄

    返回：
        入帳後的餘額
    """
    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidAmount(amount)

    balance = with_balance_lock(user_id, db).first()
    if balance is None:
        balance = Balance(user_id=user_id, amount=Decimal(0))
        db.add(balance)

    balance.amount = Decimal(balance.amount) + amount
    db.add(Transaction(
        user_id=user_id,
        type=tx_type,
        amount=amount,
        description=description,
        reference_id=reference_id
    ))
    db.flush()
    return Decimal(balance.amount)


def debit(
    user_id: str,
    amount,
    db: Session,
    tx_type: TransactionType = TransactionType.LOTTERY_ENTRY,
    description: Optional[str] = None,
    reference_id: Optional[str] = None
) -> Decimal:
    """
    扣款並寫一筆交易紀錄（金額記為負數）

    異常：
        InsufficientBalance: 餘額不足（不會扣成負數）

    返回：
        扣款後的餘額
    """
    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidAmount(amount)

    balance = with_balance_lock(user_id, db).first()
    current = Decimal(balance.amount) if balance else Decimal(0)
    if balance is None or current < amount:
        raise InsufficientBalance(user_id, current, amount)

    balance.amount = current - amount
    db.add(Transaction(
        user_id=user_id,
        type=tx_type,
        amount=-amount,
        description=description,
        reference_id=reference_id
    ))
    db.flush()
    return Decimal(balance.amount)


def list_transactions(
    user_id: str,
    db: Session,
    limit: int = 50,
    offset: int = 0
) -> List[Transaction]:
    """最新的在前面"""
    return (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id)
        .order_by(Transaction.created_at.desc(), Transaction.id)
        .offset(offset)
        .limit(limit)
        .all()
    )


def is_win(session: GameSession) -> bool:
    """lottery 紀錄在 outcome 裡有明確的 win 欄位；其他情況看派彩是否大於下注"""
    outcome = session.outcome or {}
    if isinstance(outcome.get("win"), bool):
        return outcome["win"]
    return Decimal(session.payout or 0) > Decimal(session.bet_amount or 0)


def get_wallet_stats(user_id: str, db: Session) -> Dict[str, Any]:
    """
    錢包統計

    返回：
        balance, total_wagered, total_won, total_lost, total_earnings,
        games_played, wins, losses, win_rate（百分比）
    """
    sessions = db.query(GameSession).filter(GameSession.user_id == user_id).all()

    total_wagered = Decimal(0)
    total_won = Decimal(0)
    total_lost = Decimal(0)
    wins = 0

    for session in sessions:
        bet_amount = Decimal(session.bet_amount or 0)
        payout = Decimal(session.payout or 0)
        total_wagered += bet_amount
        if is_win(session):
            wins += 1
            total_won += payout
        else:
            total_lost += bet_amount

    games_played = len(sessions)
    win_rate = (wins / games_played * 100) if games_played else 0.0

    return {
        "balance": get_balance(user_id, db),
        "total_wagered": total_wagered,
        "total_won": total_won,
        "total_lost": total_lost,
        "total_earnings": total_won - total_lost,
        "games_played": games_played,
        "wins": wins,
        "losses": games_played - wins,
        "win_rate": win_rate,
    }
