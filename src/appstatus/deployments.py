"""
Deployment records owned by an application.

Implement DeploymentStore to plug in any storage backend.
"""

from typing import Optional, Protocol, runtime_checkable
from uuid import uuid4

from pydantic import BaseModel, Field

from appstatus.states import _now


class Deployment(BaseModel):
    """A deployment created from an application's resolved configuration."""

    deployment_id: str = Field(default_factory=lambda: f"dep-{uuid4().hex[:8]}", description="Unique deployment ID")
    application_id: str = Field(..., description="Owning application")
    strategy: str = Field(..., description="Deployment mechanism, copied from the config")
    created_at: str = Field(default_factory=_now, description="Creation timestamp")


@runtime_checkable
class DeploymentStore(Protocol):
    def create(self, application_id: str, strategy: str) -> Deployment:
        """Create and persist a deployment."""
        ...

    def destroy_all_for(self, application_id: str) -> int:
        """Delete every deployment of an application. Returns the count."""
        ...

    def list_for(self, application_id: str) -> list[Deployment]:
        """List deployments of an application."""
        ...


class MemoryDeploymentStore:
    """
    In-memory deployment store for testing and prototyping.

    Not thread-safe. Not for production use.
    """

    def __init__(self) -> None:
        self._store: dict[str, dict] = {}

    def create(self, application_id: str, strategy: str) -> Deployment:
        deployment = Deployment(application_id=application_id, strategy=strategy)
        self._store[deployment.deployment_id] = deployment.model_dump(mode="json")
        return deployment

    def destroy_all_for(self, application_id: str) -> int:
        doomed = [key for key, data in self._store.items() if data["application_id"] == application_id]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    def list_for(self, application_id: str) -> list[Deployment]:
        return [
            Deployment.model_validate(data)
            for data in self._store.values()
            if data["application_id"] == application_id
        ]

    def get(self, deployment_id: str) -> Optional[Deployment]:
        data = self._store.get(deployment_id)
        if data is None:
            return None
        return Deployment.model_validate(data)
