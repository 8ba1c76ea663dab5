"""
API依赖项
"""
from fastapi import HTTPException, Request, status

from infrastructure.realtime.hub import Hub


def get_hub(request: Request) -> Hub:
    hub = getattr(request.app.state, "hub", None)
    if hub is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Realtime hub not initialized",
        )
    return hub
