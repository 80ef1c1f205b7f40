import threading
from typing import Optional

from fastapi import Request

from .config import Settings
from .services.scheduler import SweepScheduler
from .services.storage import GCSObjectStore, ObjectStore

_store: Optional[ObjectStore] = None
_store_lock = threading.Lock()


def shared_store(settings: Settings) -> ObjectStore:
    """Process-wide GCS store, created on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = GCSObjectStore(settings.bucket_name)
        return _store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ObjectStore:
    return shared_store(request.app.state.settings)


def get_scheduler(request: Request) -> SweepScheduler:
    return request.app.state.scheduler
