# delivery_guard/api/routers/health.py

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check with correlation ID and tracked risk-record count."""
    container = request.app.state.container
    settings = container.settings
    return {
        "status": "ok",
        "correlation_id": request.state.correlation_id,
        "environment": settings.environment,
        "version": settings.version,
        "risk_records": len(container.risk_scorer),
    }
