"""
Core state model for application status tracking.

Defines lifecycle states, events, the event registry, and the
Application record whose status only changes through registered events.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, PrivateAttr

from appstatus.config import ConfigFetcher, ConfigOutcome, DeploymentConfig, fetch_config
from appstatus.errors import ConfigError, NoDirectAssignmentError
from appstatus.repo_status import RawRepoStatus, RepoState, classify_repo_status


class AppStatus(str, Enum):
    """Lifecycle states of an application integration."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    INVALID_CONFIG_ERROR = "invalid_config_error"
    ARCHIVED = "archived"
    CONFIG_NOT_FOUND = "config_not_found"
    MERGE_QUEUE_DISABLED = "merge_queue_disabled"
    REPO_NOT_ACCESSIBLE = "repo_not_accessible"
    REPO_NOT_FOUND = "repo_not_found"


class StatusEvent(str, Enum):
    """Events that drive status transitions."""

    ACTIVATE = "activate"
    INACTIVATE = "inactivate"
    UPDATE_STATUS = "update_status"


# Persisted integer codes. Only storage adapters should care about these.
STATUS_CODES: dict[AppStatus, int] = {
    AppStatus.ACTIVE: 0,
    AppStatus.INACTIVE: 1,
    AppStatus.INVALID_CONFIG_ERROR: 2,
    AppStatus.ARCHIVED: 3,
    AppStatus.CONFIG_NOT_FOUND: 4,
    AppStatus.MERGE_QUEUE_DISABLED: 5,
    AppStatus.REPO_NOT_ACCESSIBLE: 6,
    AppStatus.REPO_NOT_FOUND: 7,
}

STATUS_BY_CODE: dict[int, AppStatus] = {code: status for status, code in STATUS_CODES.items()}

# Targets reachable by each event, from any current state.
VALID_TRANSITIONS: dict[StatusEvent, list[AppStatus]] = {
    StatusEvent.ACTIVATE: [AppStatus.ACTIVE],
    StatusEvent.INACTIVATE: [AppStatus.INACTIVE],
    StatusEvent.UPDATE_STATUS: [
        AppStatus.ACTIVE,
        AppStatus.ARCHIVED,
        AppStatus.MERGE_QUEUE_DISABLED,
        AppStatus.REPO_NOT_FOUND,
        AppStatus.REPO_NOT_ACCESSIBLE,
        AppStatus.CONFIG_NOT_FOUND,
        AppStatus.INVALID_CONFIG_ERROR,
        AppStatus.INACTIVE,
    ],
}


def _now() -> str:
    """UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StatusTransition(BaseModel):
    """Record of a single status change."""

    from_state: str = Field(..., description="Previous status")
    to_state: str = Field(..., description="New status")
    event: str = Field(..., description="Event that fired the transition")
    timestamp: str = Field(default_factory=_now, description="When the transition occurred (ISO 8601)")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional context")


class Application(BaseModel):
    """
    A registered application/repository integration.

    Holds the durable status plus per-instance caches for the resolved
    deployment configuration and the repository classification. The
    caches are never serialized: a freshly loaded instance starts empty.

    ``status`` cannot be assigned directly; use ``transition_to``.
    """

    application_id: str = Field(default_factory=lambda: f"app-{uuid4().hex[:8]}", description="Unique application ID")
    name: str = Field(..., description="Display name")
    repo: Optional[str] = Field(default=None, description="Repository identifier (e.g. owner/repo)")
    pipelines_enabled: bool = Field(default=True, description="Whether the application runs pipelines")
    status: AppStatus = Field(default=AppStatus.ACTIVE, description="Current status")
    transitions: list[StatusTransition] = Field(default_factory=list, description="Status change history")
    labels: dict[str, str] = Field(default_factory=dict, description="User-defined labels/tags")
    created_at: str = Field(default_factory=_now, description="Creation timestamp")
    updated_at: str = Field(default_factory=_now, description="Last update timestamp")

    _persisted: bool = PrivateAttr(default=False)
    _config_outcome: Optional[ConfigOutcome] = PrivateAttr(default=None)
    _repo_state: Optional[RepoState] = PrivateAttr(default=None)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "status":
            raise NoDirectAssignmentError()
        super().__setattr__(name, value)

    @property
    def persisted(self) -> bool:
        return self._persisted

    def mark_persisted(self) -> None:
        self._persisted = True

    # -- transitions --

    def can_transition(self, event: StatusEvent, new_status: AppStatus) -> bool:
        """Check if event may move this application to new_status."""
        return new_status in VALID_TRANSITIONS.get(event, [])

    def transition_to(
        self,
        new_status: AppStatus,
        event: StatusEvent,
        metadata: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Move to new_status if the event allows it.

        Returns True if the transition succeeded, False if unregistered.
        Self-transitions succeed without touching history.
        """
        if not self.can_transition(event, new_status):
            return False

        if new_status == self.status:
            return True

        self.transitions.append(
            StatusTransition(
                from_state=self.status.value,
                to_state=new_status.value,
                event=event.value,
                metadata=metadata or {},
            )
        )
        super().__setattr__("status", new_status)
        self.updated_at = _now()
        return True

    def _undo_transition(self, previous_status: AppStatus, previous_updated_at: str) -> None:
        """Revert the last status change, e.g. after a failed save."""
        self.transitions.pop()
        super().__setattr__("status", previous_status)
        self.updated_at = previous_updated_at

    # -- memoized lookups --

    def resolve_config(self, fetcher: ConfigFetcher) -> ConfigOutcome:
        """
        Resolve the deployment configuration once per instance.

        A classified failure is cached too, so later calls return it
        without asking the fetcher again.
        """
        if self._config_outcome is None:
            self._config_outcome = fetch_config(fetcher, self)
        return self._config_outcome

    @property
    def deployment_config(self) -> Optional[DeploymentConfig]:
        if self._config_outcome is None:
            return None
        return self._config_outcome.config

    @property
    def config_error(self) -> Optional[ConfigError]:
        if self._config_outcome is None:
            return None
        return self._config_outcome.error

    def repo_state(self, payload: Optional[RawRepoStatus] = None) -> Optional[RepoState]:
        """Classify the repository status once per instance."""
        if self._repo_state is None:
            self._repo_state = classify_repo_status(payload, self.pipelines_enabled)
        return self._repo_state

    # -- serialization --

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (for storage adapters)."""
        data = self.model_dump(mode="json")
        data["status"] = STATUS_CODES[self.status]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Application":
        """Deserialize from a plain dict. Accepts status codes or values."""
        data = dict(data)
        status = data.get("status")
        if status is not None and not isinstance(status, str):
            code = int(status)
            if code not in STATUS_BY_CODE:
                raise ValueError(f"Unknown persisted status code {code} for application {data.get('application_id')}")
            data["status"] = STATUS_BY_CODE[code]
        return cls.model_validate(data)


def create_application(
    name: str,
    repo: Optional[str] = None,
    pipelines_enabled: bool = True,
    labels: Optional[dict[str, str]] = None,
) -> Application:
    """
    Create a new Application in the ACTIVE state.

    Args:
        name: Display name
        repo: Repository identifier
        pipelines_enabled: Whether the application runs pipelines
        labels: User-defined labels/tags

    Returns:
        A new, not yet persisted Application.
    """
    return Application(
        name=name,
        repo=repo,
        pipelines_enabled=pipelines_enabled,
        labels=labels or {},
    )
