"""
Shared FastAPI dependencies
"""
from typing import Optional

from fastapi import Header, HTTPException, Request

from config import Settings
from core.round_engine import RoundEngine


def get_engine(request: Request) -> RoundEngine:
    return request.app.state.engine


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_admin(request: Request, x_admin_secret: Optional[str] = Header(None)) -> None:
    """
    管理員 endpoint 驗證：X-Admin-Secret header 必須等於設定中的 admin_secret
    """
    expected = get_app_settings(request).admin_secret
    if expected is None:
        raise HTTPException(status_code=500, detail="Admin secret not configured")
    if x_admin_secret != expected:
        raise HTTPException(status_code=403, detail="Forbidden")
