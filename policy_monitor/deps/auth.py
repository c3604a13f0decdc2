# policy_monitor/deps/auth.py
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader
from starlette import status

from policy_monitor.settings import Settings, get_settings

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def optional_api_key(
    request: Request,
    api_key: Optional[str] = Depends(api_key_header),
    cfg: Settings = Depends(get_settings),
) -> None:
    """
    Validate X-API-Key (or Authorization: Bearer) against DASH_API_KEY.

    No-op when DASH_API_KEY is unset, so local runs and cron triggers keep working.
    """
    expected = cfg.DASH_API_KEY
    if not expected:
        return None

    supplied = api_key
    auth_header = request.headers.get("authorization")
    if not supplied and auth_header:
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() == "bearer" and token:
            supplied = token

    if supplied != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid API key",
        )
    return None


__all__ = ["optional_api_key"]
