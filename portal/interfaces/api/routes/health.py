from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    """Liveness probe."""

    service = getattr(request.app.state, "realtime", None)
    return {"status": "ok", "realtime": bool(service and service.running)}
