import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..mcp.dispatcher import ToolDispatcher, get_dispatcher

router = APIRouter()

logger = logging.getLogger("genvr.health")


@router.get(
    "/health",
    tags=["Monitoring"],
    summary="Health check endpoint",
    include_in_schema=False,
)
@router.get(
    "/healthz",
    tags=["Monitoring"],
    summary="Kubernetes style health check endpoint",
    include_in_schema=False,
)
async def health_check(dispatcher: ToolDispatcher = Depends(get_dispatcher)):
    registry = dispatcher.registry
    logger.debug("Health probe received")
    return JSONResponse(
        content={
            "ok": True,
            "status": "ok",
            "registry": {
                "built": registry.built,
                "tools": len(registry),
                "unknown_categories": list(registry.unknown_categories),
            },
        },
        status_code=status.HTTP_200_OK,
    )
