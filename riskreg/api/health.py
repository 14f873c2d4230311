"""Health check and register status endpoints."""
from fastapi import APIRouter, Depends

from riskreg.api.dependencies import get_registry
from riskreg.api.models import EntityCount, HealthResponse
from riskreg.domain.models import EntityKind
from riskreg.logging_config import get_logger
from riskreg.registry import Registry

logger = get_logger(name=__name__)

router = APIRouter(prefix="/v2/health", tags=["Health"])


@router.get("", response_model=HealthResponse)
def health_check(registry: Registry = Depends(get_registry)):
    """Verifies the entity store answers and returns entity counts."""
    entities = []
    status = "healthy"
    try:
        entities = [EntityCount(kind=kind.value, count=len(registry.store.list(kind))) for kind in EntityKind]
        pending = registry.queue.pending_count()
    except Exception as e:
        logger.warning("Entity store check failed: {}", e)
        status = "unhealthy"
        pending = 0

    return HealthResponse(
        status=status,
        store_backend=registry.store.backend,
        entities=entities,
        pending_changes=pending,
        open_sessions=len(registry.sessions),
    )
