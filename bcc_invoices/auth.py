from fastapi import Header, HTTPException, Request

from .config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def require_api_key(request: Request, x_api_key: str | None = Header(default=None)):
    expected_key = get_app_settings(request).API_KEY
    # open access when no key is configured
    if expected_key is None:
        return
    if not x_api_key or x_api_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


async def current_actor(request: Request, x_user: str | None = Header(default=None)) -> str:
    """Who is asking, for logs and the printed document footer."""
    actor = x_user or "Unknown"
    request.state.actor = actor
    return actor
