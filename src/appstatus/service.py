"""
ApplicationService — storage-agnostic status lifecycle manager.

Fires status events, persists the outcome, runs lifecycle hooks, and
manages the deployments an application owns. Bring your own Repository,
DeploymentStore and ConfigFetcher implementations.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from appstatus.config import ConfigFetcher, ConfigOutcome
from appstatus.deployments import Deployment, DeploymentStore
from appstatus.engine import GuardContext, select_target
from appstatus.errors import DeploymentConfigMissing
from appstatus.hooks import LoggingNotifier, LoggingStatusLog, Notifier, StatusLog, TransitionHook
from appstatus.repo_status import RawRepoStatus
from appstatus.repository import Repository
from appstatus.states import AppStatus, Application, StatusEvent, create_application

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    """Result of firing a status event."""

    success: bool
    application: Optional[Application]
    event: Optional[StatusEvent] = None
    error: Optional[str] = None
    previous_state: Optional[AppStatus] = None
    new_state: Optional[AppStatus] = None

    @property
    def changed(self) -> bool:
        return self.success and self.previous_state != self.new_state


class ApplicationService:
    """
    Service for managing Application status transitions.

    Events are fired on in-memory instances: the configuration and
    repository classification caches belong to the instance, so use
    ``refresh`` (which loads a fresh instance) for periodic checks.

    Example:
        from appstatus import ApplicationService, StaticConfigFetcher
        from appstatus.deployments import MemoryDeploymentStore
        from appstatus.repository import MemoryRepository

        service = ApplicationService(
            repository=MemoryRepository(),
            config_fetcher=StaticConfigFetcher(),
            deployments=MemoryDeploymentStore(),
        )

        app = service.create(name="billing", repo="org/billing")
        result = service.update_status(
            app,
            {"repo_found": True, "is_archived": False, "merge_queue_id": "mq-1"},
        )
    """

    def __init__(
        self,
        repository: Repository,
        config_fetcher: ConfigFetcher,
        deployments: DeploymentStore,
        notifier: Optional[Notifier] = None,
        status_log: Optional[StatusLog] = None,
        hooks: Optional[list[TransitionHook]] = None,
    ) -> None:
        self._repository = repository
        self._config_fetcher = config_fetcher
        self._deployments = deployments
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._status_log: StatusLog = status_log or LoggingStatusLog()
        self._hooks: list[TransitionHook] = hooks or []

    @property
    def repository(self) -> Repository:
        return self._repository

    @property
    def deployments(self) -> DeploymentStore:
        return self._deployments

    def add_hook(self, hook: TransitionHook) -> None:
        """Register a hook that fires after each successful transition."""
        self._hooks.append(hook)

    # -- events --

    def activate(self, application: Application, metadata: Optional[dict[str, Any]] = None) -> TransitionResult:
        return self._fire(application, StatusEvent.ACTIVATE, metadata=metadata)

    def inactivate(self, application: Application, metadata: Optional[dict[str, Any]] = None) -> TransitionResult:
        return self._fire(application, StatusEvent.INACTIVATE, metadata=metadata)

    def update_status(
        self,
        application: Application,
        repo_status: Optional[RawRepoStatus] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> TransitionResult:
        """
        Pick a status from the repository status and the deployment config.

        Classified config failures become states. An unclassified error
        raised by the config fetcher propagates and leaves the status as is.
        """
        return self._fire(application, StatusEvent.UPDATE_STATUS, repo_status=repo_status, metadata=metadata)

    def refresh(self, application_id: str, repo_status: Optional[RawRepoStatus] = None) -> TransitionResult:
        """Load a fresh instance and run update_status on it."""
        application = self._repository.get(application_id)
        if application is None:
            return TransitionResult(
                success=False,
                application=None,
                event=StatusEvent.UPDATE_STATUS,
                error=f"Application not found: {application_id}",
            )
        return self.update_status(application, repo_status)

    def _fire(
        self,
        application: Application,
        event: StatusEvent,
        repo_status: Optional[RawRepoStatus] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> TransitionResult:
        """
        Fire an event on an application.

        1. Evaluates the event's guards in order
        2. Commits the selected status (rejecting unregistered targets)
        3. Persists the application if it is already stored
        4. Runs the status log, notifier and registered hooks
        """
        previous_state = application.status
        repo_state = application.repo_state(repo_status) if event == StatusEvent.UPDATE_STATUS else None
        ctx = GuardContext(
            repo_state=repo_state,
            resolve_config=lambda: application.resolve_config(self._config_fetcher),
        )

        target = select_target(event, ctx)
        if target is None:
            return TransitionResult(
                success=False,
                application=application,
                event=event,
                error=(
                    f"No transition for {event.value} from {previous_state.value} "
                    f"(repo state: {repo_state.value if repo_state else 'unknown'}, "
                    f"config error: {type(application.config_error).__name__ if application.config_error else 'none'})"
                ),
                previous_state=previous_state,
            )

        previous_updated_at = application.updated_at
        if not application.transition_to(target, event, metadata):
            return TransitionResult(
                success=False,
                application=application,
                event=event,
                error=f"Unregistered transition: {previous_state.value} → {target.value} ({event.value})",
                previous_state=previous_state,
            )

        changed = target != previous_state
        if changed and application.persisted:
            try:
                self._repository.save(application)
            except Exception:
                application._undo_transition(previous_state, previous_updated_at)
                logger.error(f"[appstatus] {application.application_id}: save failed, status left at {previous_state.value}")
                raise
            logger.debug(f"[appstatus] {application.application_id}: saved with status {target.value}")
            self._run_hook("status log", self._status_log.record, application, previous_state, target, event)

        if target == AppStatus.INACTIVE:
            self._run_hook("notifier", self._notifier.notify, application.name)

        for hook in self._hooks:
            self._run_hook("hook", hook, application, previous_state, target, event)

        return TransitionResult(
            success=True,
            application=application,
            event=event,
            previous_state=previous_state,
            new_state=target,
        )

    def _run_hook(self, kind: str, hook: Callable[..., None], *args: Any) -> None:
        try:
            hook(*args)
        except Exception as e:
            logger.warning(f"[appstatus] Hook error ({kind}): {e}")

    # -- configuration and deployments --

    def resolve_config(self, application: Application) -> ConfigOutcome:
        """Resolve (once per instance) the application's deployment configuration."""
        return application.resolve_config(self._config_fetcher)

    def create_deployment(self, application: Application) -> Deployment:
        """
        Create a deployment from the currently resolved configuration.

        Raises DeploymentConfigMissing unless resolve_config succeeded on
        this instance.
        """
        config = application.deployment_config
        if config is None:
            raise DeploymentConfigMissing(
                f"No deployment configuration resolved for {application.application_id}"
            )
        logger.info(f"[appstatus] {application.application_id}: creating {config.strategy} deployment")
        return self._deployments.create(application.application_id, config.strategy)

    # -- records --

    def get(self, application_id: str) -> Optional[Application]:
        """Get a fresh application instance by ID."""
        return self._repository.get(application_id)

    def create(
        self,
        name: str,
        repo: Optional[str] = None,
        pipelines_enabled: bool = True,
        labels: Optional[dict[str, str]] = None,
    ) -> Application:
        """Create and persist a new application."""
        application = create_application(
            name=name,
            repo=repo,
            pipelines_enabled=pipelines_enabled,
            labels=labels,
        )
        self._repository.save(application)
        return application

    def remove(self, application_id: str) -> bool:
        """
        Remove an application and everything it owns.

        Deployments go first so none outlive their application.
        Returns True if the application existed.
        """
        removed = self._deployments.destroy_all_for(application_id)
        logger.info(f"[appstatus] {application_id}: deleted {removed} deployment(s)")
        return self._repository.delete(application_id)
