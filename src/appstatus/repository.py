"""
Abstract repository protocol for Application persistence.

Implement this protocol to plug in any storage backend
(DynamoDB, Postgres, SQLite, Redis, in-memory, etc.).
"""

from typing import Optional, Protocol, runtime_checkable

from appstatus.states import STATUS_CODES, AppStatus, Application


@runtime_checkable
class Repository(Protocol):
    """
    Storage interface for Applications.

    save and get must mark the returned instance as persisted; only
    persisted instances get their status changes logged.
    """

    def save(self, application: Application) -> Application:
        """Persist an application (create or update)."""
        ...

    def get(self, application_id: str) -> Optional[Application]:
        """Load a fresh instance by ID. Returns None if not found."""
        ...

    def delete(self, application_id: str) -> bool:
        """Delete an application by ID. Returns True if deleted."""
        ...

    def list_by_status(self, status: AppStatus, limit: int = 100) -> list[Application]:
        """List applications in a given status."""
        ...


class MemoryRepository:
    """
    In-memory repository for testing and prototyping.

    Stores serialized dicts, so every get returns a fresh instance.
    Not thread-safe. Not for production use.
    """

    def __init__(self) -> None:
        self._store: dict[str, dict] = {}

    def save(self, application: Application) -> Application:
        self._store[application.application_id] = application.to_dict()
        application.mark_persisted()
        return application

    def get(self, application_id: str) -> Optional[Application]:
        data = self._store.get(application_id)
        if data is None:
            return None
        application = Application.from_dict(data)
        application.mark_persisted()
        return application

    def delete(self, application_id: str) -> bool:
        if application_id in self._store:
            del self._store[application_id]
            return True
        return False

    def list_by_status(self, status: AppStatus, limit: int = 100) -> list[Application]:
        code = STATUS_CODES[AppStatus(status)]
        results = []
        for data in self._store.values():
            if data.get("status") == code and len(results) < limit:
                application = Application.from_dict(data)
                application.mark_persisted()
                results.append(application)
        return results
