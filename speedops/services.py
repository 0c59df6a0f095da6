"""
Service wiring.

Builds one set of services around a single gateway. The API uses the
process-wide instance from get_services(); tests install their own with
configure_services().
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .activity import ActivityRecorder
from .briefs import BriefGenerator
from .config import Settings, load_settings
from .dashboard import DashboardBackend
from .directory import WorkspaceDirectoryService
from .gateway import ResilientGateway
from .ingestion import ErrorQueueService
from .store import EntityStoreGateway, InMemoryEntityStore, JsonFileEntityStore
from .tasks import TaskService
from .transition_gate import HandoverPolicy, TransitionGate
from .workspaces import WorkspaceDirectory

logger = logging.getLogger("services")

STORE_STATE_FILE = "store.json"


@dataclass
class Services:
    settings: Settings
    gateway: EntityStoreGateway
    recorder: ActivityRecorder
    gate: TransitionGate
    tasks: TaskService
    errors: ErrorQueueService
    directory: WorkspaceDirectoryService
    workspaces: WorkspaceDirectory
    dashboard: DashboardBackend
    briefs: BriefGenerator


def build_store(settings: Settings) -> EntityStoreGateway:
    if settings.store_backend == "memory":
        return InMemoryEntityStore()
    if settings.store_backend == "file":
        return JsonFileEntityStore(settings.ensure_state_dir() / STORE_STATE_FILE)
    raise ValueError(f"Unknown store backend: {settings.store_backend}")


def build_services(
    settings: Optional[Settings] = None,
    store: Optional[EntityStoreGateway] = None,
    briefs: Optional[BriefGenerator] = None,
) -> Services:
    settings = settings or load_settings()
    gateway = ResilientGateway(
        store or build_store(settings),
        timeout=settings.gateway_timeout,
        max_attempts=settings.gateway_max_attempts,
        backoff_base=settings.gateway_backoff_base,
    )
    recorder = ActivityRecorder(gateway)
    gate = TransitionGate(gateway, recorder, policy=HandoverPolicy(require_proof=settings.require_proof))
    return Services(
        settings=settings,
        gateway=gateway,
        recorder=recorder,
        gate=gate,
        tasks=TaskService(gateway, recorder, gate),
        errors=ErrorQueueService(gateway, recorder),
        directory=WorkspaceDirectoryService(gateway, recorder),
        workspaces=WorkspaceDirectory(gateway),
        dashboard=DashboardBackend(gateway, recorder),
        briefs=briefs or BriefGenerator(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.gemini_timeout,
        ),
    )


# -----------------------------------------------------------------------------
# Singleton Instance
# -----------------------------------------------------------------------------
_services: Optional[Services] = None


def get_services() -> Services:
    """Get or create the process-wide services."""
    global _services
    if _services is None:
        _services = build_services()
        logger.info(f"Services initialized with {_services.settings.store_backend} store")
    return _services


def configure_services(services: Optional[Services]) -> None:
    """Install (or clear, with None) the process-wide services."""
    global _services
    _services = services
