"""Manual refresh and reconciler status."""

from fastapi import APIRouter, Depends

from learnchat.domain.schemas.user import UserRead
from learnchat.interfaces.api.deps import get_current_user
from learnchat.interfaces.deps import Services, get_services

router = APIRouter(prefix="/api/sync", tags=["Sync"])


def _status(services: Services) -> dict:
    reconciler = services.reconciler
    return {
        "running": reconciler.running,
        "partitions": list(reconciler.partitions),
        "interval_seconds": reconciler.interval_seconds,
        "last_synced_at": reconciler.last_synced_at,
        "polls": reconciler.polls,
        "failures": reconciler.failures,
        "versions": services.repo.partition_versions(),
    }


@router.get("/status")
def sync_status(
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    return _status(services)


@router.post("/refresh")
def refresh_now(
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    ok = services.reconciler.refresh_now()
    return {"ok": ok, **_status(services)}
