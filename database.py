from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import LotteryException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./blockwin_lottery.db"
    admin_token: str = ""

    # accumulate: 同一玩家重複下注會累加；reject: 第二次下注直接拒絕
    stake_policy: str = "accumulate"
    platform_fee_bps: int = 0
    amount_decimals: int = 6

    class Config:
        env_file = ".env"

    @property
    def amount_quantum(self) -> Decimal:
        """金額最小單位，例如 amount_decimals=6 -> Decimal('0.000001')"""
        return Decimal(1).scaleb(-self.amount_decimals)


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 連線會被 FastAPI 的 threadpool 共用，需要關掉 check_same_thread
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：每個請求一個 Session，請求結束時關閉

    commit 由 RoomManager 的 @transactional 或 endpoint 自己負責
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    讓一個 RoomManager 操作成為單一 transaction

    下注扣款、寫入下注、結算派彩都必須一起成功或一起失敗：
        @transactional
        def settle_room(db: Session, room_id: str, ...):
            db.add(LotteryWinner(...))
            wallet_service.credit(...)

    行為：
        - 正常返回：commit
        - LotteryException（業務規則拒絕）：記 warning、rollback、重新拋出
        - 其他異常：記 error（含 traceback）、rollback、重新拋出

    注意：
        - db 必須是第一個位置參數，或以 db= 關鍵字傳入
        - 被包住的函式內不要自己 commit
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except LotteryException as e:
            logger.warning(f"Transaction rejected in {func.__name__}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
