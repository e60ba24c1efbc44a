"""Health endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    settings = request.app.state.settings
    return {
        "status": "ok",
        "project_endpoint_configured": bool(settings.project_endpoint),
        "approval_mode": settings.approval_mode,
    }
