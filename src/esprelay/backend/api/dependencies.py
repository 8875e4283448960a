"""
ESP Relay Backend API Dependencies

FastAPI dependency injection functions.
"""

from fastapi import HTTPException, Request, WebSocket, status

from ..services.hub import RelayHub


def _hub_from_state(state) -> RelayHub:
    hub = getattr(state, "hub", None)
    if hub is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Relay hub not started",
        )
    return hub


async def get_hub(request: Request) -> RelayHub:
    """HTTP 라우트용 릴레이 허브 (lifespan 에서 app.state.hub 에 등록됨).

    Example:
        @router.get("/connections")
        async def connections(hub: RelayHub = Depends(get_hub)):
            ...
    """
    return _hub_from_state(request.app.state)


async def get_ws_hub(websocket: WebSocket) -> RelayHub:
    """WebSocket 라우트용 릴레이 허브."""
    return _hub_from_state(websocket.app.state)
