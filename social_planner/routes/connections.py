"""
Platform connection routes.

Connections are platform-wide: one record per platform shared by every
user. Anyone signed in can see whether a platform is connected; only
admins can store or remove the record.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..auth import get_required_user, get_admin_user
from ..schemas.auth import ConnectionSave
from ..responses import success
from ..store import TokenStore
from ..worker.platform_upload import Platform

router = APIRouter(prefix="/api/connections", tags=["connections"])


def _check_platform(platform: str) -> str:
    if platform not in {p.value for p in Platform}:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown platform: {platform}")
    return platform


def _describe(info) -> dict:
    if info is None:
        return {"connected": False, "targets": [], "connected_at": None}
    return {
        "connected": True,
        # Target tokens stay server-side
        "targets": [{k: v for k, v in t.items() if k != "access_token"} for t in info.targets],
        "connected_at": info.connected_at.isoformat() if info.connected_at else None,
    }


@router.get("")
def connection_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    tokens = TokenStore(db)
    return {p.value: _describe(tokens.get_connection(p.value)) for p in Platform}


@router.put("/{platform}")
def save_connection(
    platform: str,
    connection: ConnectionSave,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    info = TokenStore(db).save_connection(_check_platform(platform), connection.credential, connection.targets)
    return {platform: _describe(info)}


@router.delete("/{platform}")
def delete_connection(
    platform: str,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    removed = TokenStore(db).delete_connection(_check_platform(platform))
    return success({"platform": platform, "removed": removed})
