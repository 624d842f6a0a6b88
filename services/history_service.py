"""
Player history service.

Builds a per-player game history from ``game_sessions`` so the wallet page
can render wins and losses straight from the server, newest first.
"""
from decimal import Decimal
from typing import List, Dict, Any, Optional

from sqlalchemy.orm import Session

from models import GameSession
from services.wallet_service import is_win

MAX_HISTORY_LIMIT = 100


def get_player_history(
    user_id: str,
    db: Session,
    limit: int = 50,
    offset: int = 0,
    game_type: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Return the player's game sessions, latest first.

    ``limit`` is capped at MAX_HISTORY_LIMIT. Each entry carries a normalized
    ``win`` flag so the frontend does not have to know per-game outcome shapes.
    """
    limit = min(limit, MAX_HISTORY_LIMIT)

    query = db.query(GameSession).filter(GameSession.user_id == user_id)
    if game_type:
        query = query.filter(GameSession.game_type == game_type)

    rows = (
        query.order_by(GameSession.created_at.desc(), GameSession.id)
        .offset(offset)
        .limit(limit)
        .all()
    )

    history: List[Dict[str, Any]] = []
    for session in rows:
        history.append({
            "id": session.id,
            "game_type": session.game_type,
            "bet_amount": Decimal(session.bet_amount),
            "payout": Decimal(session.payout or 0),
            "win": is_win(session),
            "outcome": session.outcome or {},
            "created_at": session.created_at,
        })

    return history
