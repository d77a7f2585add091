"""Configuration document endpoints."""

from fastapi import APIRouter, Depends, Query, Response

from app_generator.api.deps import get_config_manager
from app_generator.dtos.config import ConfigImportRequest, ConfigSaveRequest, ConfigUpdateRequest
from app_generator.services.config_manager import ConfigManager

router = APIRouter(prefix="/config", tags=["Configuration"])


@router.get("")
def get_config(manager: ConfigManager = Depends(get_config_manager)):
    return {
        "config": manager.get_config(),
        "filePath": manager.current_path,
        "isDirty": manager.is_dirty,
    }


@router.patch("")
def update_config(body: ConfigUpdateRequest, manager: ConfigManager = Depends(get_config_manager)):
    """Apply dotted-path changes, e.g. ``{"changes": {"settings.packagePrefix": "com.acme"}}``."""
    return {"config": manager.update_many(body.changes), "isDirty": manager.is_dirty}


@router.post("/reset")
def reset_config(manager: ConfigManager = Depends(get_config_manager)):
    return {"config": manager.create_default_configuration()}


@router.get("/export")
def export_config(
    include_sensitive: bool = Query(default=False, alias="includeSensitive"),
    manager: ConfigManager = Depends(get_config_manager),
):
    return Response(
        content=manager.export_configuration(include_sensitive),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="cordova-generator-config.json"'},
    )


@router.post("/import")
def import_config(body: ConfigImportRequest, manager: ConfigManager = Depends(get_config_manager)):
    return {"config": manager.load_from_data(body.config, body.file_path)}


@router.post("/load")
def load_config_file(
    file_path: str = Query(..., alias="filePath"),
    manager: ConfigManager = Depends(get_config_manager),
):
    return {"config": manager.load_from_file(file_path), "filePath": manager.current_path}


@router.post("/save")
def save_config(body: ConfigSaveRequest, manager: ConfigManager = Depends(get_config_manager)):
    manager.save_configuration(body.file_path, body.include_sensitive)
    return {"saved": True, "filePath": manager.current_path}


@router.get("/recent")
def recent_files(manager: ConfigManager = Depends(get_config_manager)):
    return {"files": manager.get_recent_files()}


@router.get("/presets")
def list_presets(manager: ConfigManager = Depends(get_config_manager)):
    return {"presets": manager.get_configuration_presets()}


@router.post("/presets/{preset_id}")
def load_preset(preset_id: str, manager: ConfigManager = Depends(get_config_manager)):
    return {"config": manager.load_preset(preset_id), "isDirty": manager.is_dirty}
