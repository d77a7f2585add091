"""Codemagic build tracking endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app_generator.api.deps import get_build_status
from app_generator.dtos.builds import (
    BuildHistoryCleanResponse,
    BuildHistoryImportRequest,
    BuildListResponse,
    BuildRefreshResponse,
    PollingResponse,
)
from app_generator.entities.build_record import BuildRecord
from app_generator.services.build_status_manager import BuildStatusManager

router = APIRouter(prefix="/builds", tags=["Builds"])


@router.get("", response_model=BuildListResponse)
def list_builds(
    app_name: str | None = Query(default=None, alias="appName"),
    recent_hours: int | None = Query(default=None, alias="recentHours", ge=1),
    manager: BuildStatusManager = Depends(get_build_status),
):
    if app_name:
        builds = manager.get_builds_by_app(app_name)
    elif recent_hours:
        builds = manager.get_recent_builds(recent_hours)
    else:
        builds = manager.load_build_history()
    return BuildListResponse(builds=builds, total=len(builds))


@router.get("/stats")
def build_stats(manager: BuildStatusManager = Depends(get_build_status)):
    return manager.get_build_stats()


@router.get("/export")
def export_builds(manager: BuildStatusManager = Depends(get_build_status)):
    return Response(
        content=manager.export_build_history(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="build-history.json"'},
    )


@router.post("/import")
def import_builds(body: BuildHistoryImportRequest, manager: BuildStatusManager = Depends(get_build_status)):
    if not manager.import_build_history(body.data):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid build history data",
        )
    return {"imported": True, "total": len(manager.load_build_history())}


@router.post("/clean", response_model=BuildHistoryCleanResponse)
def clean_expired_builds(manager: BuildStatusManager = Depends(get_build_status)):
    return BuildHistoryCleanResponse(removed=manager.clean_expired_builds())


@router.delete("")
def clear_builds(manager: BuildStatusManager = Depends(get_build_status)):
    return {"cleared": manager.clear_build_history()}


@router.get("/{build_id}", response_model=BuildRecord)
def get_build(build_id: str, manager: BuildStatusManager = Depends(get_build_status)):
    build = manager.get_build(build_id)
    if build is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Build {build_id} not found",
        )
    return build


@router.post("/{build_id}/refresh", response_model=BuildRefreshResponse)
async def refresh_build(
    build_id: str,
    force: bool = Query(default=True),
    manager: BuildStatusManager = Depends(get_build_status),
):
    """Fetch the remote status now; ``force`` also refreshes finished builds."""
    if manager.get_build(build_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Build {build_id} not found",
        )
    build = await manager.update_build_status(build_id, force=force)
    return BuildRefreshResponse(build=build or manager.get_build(build_id), updated=build is not None)


@router.post("/{build_id}/polling", response_model=PollingResponse)
def start_polling(build_id: str, manager: BuildStatusManager = Depends(get_build_status)):
    if manager.get_build(build_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Build {build_id} not found",
        )
    changed = manager.start_polling(build_id)
    return PollingResponse(build_id=build_id, polling=True, changed=changed)


@router.delete("/{build_id}/polling", response_model=PollingResponse)
def stop_polling(build_id: str, manager: BuildStatusManager = Depends(get_build_status)):
    changed = manager.stop_polling(build_id)
    return PollingResponse(build_id=build_id, polling=False, changed=changed)
