"""Health and status endpoints"""

from fastapi import APIRouter, Depends, Request

from ..core.database import Database
from ..dependencies import get_database, get_node_red
from ..node_red_client import NodeRedClient

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(
    request: Request,
    db: Database = Depends(get_database),
    node_red: NodeRedClient = Depends(get_node_red),
):
    """Service health; Node-RED being down only degrades it"""
    health_status = {
        "status": "healthy",
        "version": request.app.version,
        "components": {}
    }

    try:
        await db.ping()
        health_status["components"]["database"] = "healthy"
    except Exception as e:
        health_status["components"]["database"] = f"unhealthy: {e}"
        health_status["status"] = "unhealthy"

    node_red_health = await node_red.health_check()
    if node_red_health["ok"]:
        health_status["components"]["node_red"] = "healthy"
    else:
        health_status["components"]["node_red"] = "unreachable"
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"

    return health_status
