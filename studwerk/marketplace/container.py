"""Explicit wiring of the stores and coordinator over one document store.

Built once at startup and passed to whoever needs it; there are no
module-level instances.
"""

from collections.abc import Callable
from datetime import datetime

from studwerk.core.config import Settings
from studwerk.marketplace.applications import ApplicationStore
from studwerk.marketplace.jobs import JobStore
from studwerk.marketplace.lifecycle import LifecycleCoordinator
from studwerk.storage import get_store
from studwerk.storage.base import DocumentStore


class Marketplace:
    """Job store, application store and lifecycle coordinator sharing one backend."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store
        self.jobs = JobStore(store, self.settings.marketplace, clock)
        self.applications = ApplicationStore(store, self.jobs, clock)
        self.lifecycle = LifecycleCoordinator(store, self.jobs, self.applications)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Marketplace":
        return cls(get_store(settings.database), settings)

    def close(self) -> None:
        self.store.close()
