"""
管理員驗證

使用者登入協定不在這個服務的範圍內；管理員操作只用共享的
X-Admin-Token header 與設定中的 ADMIN_TOKEN 比對。
"""
import hmac
from typing import Optional

from fastapi import Header, HTTPException

from database import get_settings


def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    admin_token = get_settings().admin_token
    if not admin_token or not x_admin_token or not hmac.compare_digest(x_admin_token, admin_token):
        raise HTTPException(status_code=401, detail="admin token invalid")
