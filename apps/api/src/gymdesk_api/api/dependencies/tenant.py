"""Tenant context resolved from forwarded request headers."""

from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException, status


async def require_organization_id(
    organization_header: str | None = Header(None, alias="X-Organization-Id"),
) -> UUID:
    """Every domain request is scoped to exactly one organization."""

    if not organization_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing organization context",
        )

    try:
        return UUID(organization_header)
    except ValueError as error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid organization identifier",
        ) from error
