from fastapi import Header, HTTPException, status
from typing import Optional
import uuid


async def get_tenant_id(x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID")) -> str:
    """Tenant of the caller, taken from the X-Tenant-ID header set by the gateway"""
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required"
        )

    try:
        return str(uuid.UUID(x_tenant_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid tenant ID format"
        )


async def get_actor_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> Optional[str]:
    """Acting user for audit columns; optional"""
    if not x_user_id:
        return None
    try:
        return str(uuid.UUID(x_user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID format"
        )
