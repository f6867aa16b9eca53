from fastapi import Depends, Header, HTTPException, status

from gymdesk_api.core.settings import settings


async def require_sweep_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    if not settings.sweep_api_key:
        return

    if x_api_key != settings.sweep_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )


def optional_sweep_api_key_dependency() -> Depends:
    return Depends(require_sweep_api_key)
