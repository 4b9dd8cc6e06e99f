from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import settings
from ..metrics import registry
from ..models.common import utcnow
from ..providers import is_llm_configured
from ..store import AppFirestoreStore, get_store

router = APIRouter(tags=["health"])


@router.get("/healthz")
def health_check() -> dict[str, str]:
    """Liveness probe for the container platform."""
    return {"status": "ok"}


@router.get("/api/health")
def api_health(request_store: AppFirestoreStore = Depends(get_store)) -> dict[str, object]:
    """Service status with the configuration the clients care about."""
    return {
        "status": "OK",
        "timestamp": utcnow().isoformat(),
        "environment": settings.environment,
        "store": request_store.__class__.__name__,
        "llm": {
            "provider": settings.llm_provider,
            "model": settings.llm_model,
            "configured": is_llm_configured(),
        },
    }


@router.get("/api/test-store")
def test_store(request_store: AppFirestoreStore = Depends(get_store)) -> dict[str, object]:
    # Store failures surface through the StoreError handler as a 500.
    counts = request_store.ping()
    return {"success": True, "message": "Store connection OK", "counts": counts}


@router.get("/metrics")
def metrics() -> JSONResponse:
    """In-memory per-route p95, error, timeout and request counts."""
    return JSONResponse(content={"routes": registry.snapshot()})
