"""FastAPI dependencies resolving services from the application container."""

from fastapi import Request

from app_generator.core.container import AppContainer
from app_generator.services.build_status_manager import BuildStatusManager
from app_generator.services.config_manager import ConfigManager
from app_generator.services.orchestrator import AppController
from app_generator.services.template_manager import TemplateManager


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_controller(request: Request) -> AppController:
    return get_container(request).controller


def get_build_status(request: Request) -> BuildStatusManager:
    return get_container(request).build_status


def get_templates(request: Request) -> TemplateManager:
    return get_container(request).templates


def get_config_manager(request: Request) -> ConfigManager:
    return get_container(request).config
