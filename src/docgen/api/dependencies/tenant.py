from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, status


def get_tenant_id(x_tenant_id: Optional[str] = Header(None)) -> UUID:
    """
    Extract tenant ID from X-Tenant-ID header.
    Required for every document route.
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required"
        )

    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header must be a UUID"
        )
