# driver_onboarding/deps.py
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from .config import settings


# ------------------ Driver identity ------------------

def get_current_driver_uid(
    request: Request,
    x_driver_uid: Optional[str] = Header(None, alias="X-Driver-Uid"),
) -> str:
    # 1) session set by the auth front
    sess = request.scope.get("session") or {}
    uid = (sess.get("driver_uid") or "").strip()
    if uid:
        return uid

    # 2) header from the trusted gateway
    if x_driver_uid and x_driver_uid.strip():
        return x_driver_uid.strip()

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Driver identity required",
    )


# ------------------ Admin guard ------------------

def require_admin(
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
) -> bool:
    expected = settings.ADMIN_TOKEN or ""
    if expected and x_admin_token and secrets.compare_digest(x_admin_token, expected):
        return True
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin only")
