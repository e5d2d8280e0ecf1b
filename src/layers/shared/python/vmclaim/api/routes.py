"""Health and status endpoints."""

from fastapi import APIRouter, Request

from vmclaim.models.base import utc_now

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness check for the container platform."""
    return {"status": "ok", "timestamp": utc_now().isoformat()}


@router.get("/status")
async def reconciler_status(request: Request):
    """Attempt counter, last outcome and next scheduled check."""
    reconciler = request.app.state.reconciler
    return reconciler.status().model_dump(mode="json")
