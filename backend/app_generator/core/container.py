"""
Application container - builds every client and manager once and wires them.

The FastAPI app keeps a single container on ``app.state.container``; tests
build their own with a memory store and mock transports.
"""

import logging
from typing import Optional

import httpx

from app_generator.config import settings
from app_generator.core.event_relay import RedisEventRelay
from app_generator.core.events import EventBus
from app_generator.database.store import KeyValueStore, create_store
from app_generator.services.amazon_appstore import AmazonAppstoreClient
from app_generator.services.build_status_manager import BuildStatusManager
from app_generator.services.codemagic import CodemagicClient
from app_generator.services.config_manager import ConfigManager
from app_generator.services.cordova_builder import CordovaBuilder
from app_generator.services.generator import AppGenerator
from app_generator.services.github.client import GitHubClient
from app_generator.services.github.uploader import RepositoryUploader
from app_generator.services.orchestrator import AppController
from app_generator.services.template_manager import TemplateManager

logger = logging.getLogger(__name__)


class AppContainer:
    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        redis_url: Optional[str] = None,
        config_path: Optional[str] = None,
    ):
        self.store = store or create_store()
        self.ui_events = EventBus("ui")

        self.github = GitHubClient(transport=transport)
        self.uploader = RepositoryUploader(self.github)
        self.codemagic = CodemagicClient(transport=transport)
        self.appstore = AmazonAppstoreClient(transport=transport)
        self.build_status = BuildStatusManager(self.codemagic, self.store)
        self.generator = AppGenerator()
        self.builder = CordovaBuilder()
        self.templates = TemplateManager(self.store)
        self.config = ConfigManager(self.store, file_path=config_path)

        self.controller = AppController(
            github=self.github,
            uploader=self.uploader,
            codemagic=self.codemagic,
            build_status=self.build_status,
            generator=self.generator,
            builder=self.builder,
            templates=self.templates,
            ui_events=self.ui_events,
        )
        self.appstore.events.relay_to(self.ui_events, "appstore")
        self.config.events.relay_to(self.ui_events, "config")

        self.event_relay: Optional[RedisEventRelay] = None
        redis_url = redis_url or settings.REDIS_URL
        if redis_url:
            self.event_relay = RedisEventRelay(redis_url)
            self.ui_events.on_any(self.event_relay)
            logger.info("Relaying UI events to Redis")

    def startup(self) -> None:
        """Load the configuration document and resume polling of unfinished builds."""
        self.config.load_default_configuration()
        resumed = self.build_status.start_polling_active_builds()
        logger.info(f"Resumed polling of {resumed} build(s)")

    def shutdown(self) -> None:
        self.build_status.stop_all_polling()
