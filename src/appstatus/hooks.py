"""
Lifecycle hook collaborators.

The service calls a StatusLog on every real status change of a
persisted application and a Notifier whenever an application lands in
INACTIVE. The defaults write to the standard logging module.
"""

import logging
from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

from appstatus.states import AppStatus, StatusEvent

if TYPE_CHECKING:
    from appstatus.states import Application

logger = logging.getLogger(__name__)

# Type alias for extra transition hooks
TransitionHook = Callable[["Application", AppStatus, AppStatus, StatusEvent], None]


@runtime_checkable
class StatusLog(Protocol):
    def record(
        self,
        application: "Application",
        previous: AppStatus,
        new: AppStatus,
        event: StatusEvent,
    ) -> None:
        """Record a status change."""
        ...


@runtime_checkable
class Notifier(Protocol):
    def notify(self, application_name: str) -> None:
        """Announce that an application became inactive."""
        ...


class LoggingStatusLog:
    def record(
        self,
        application: "Application",
        previous: AppStatus,
        new: AppStatus,
        event: StatusEvent,
    ) -> None:
        logger.info(
            f"[appstatus] {application.application_id}: changing from {previous.value} "
            f"to {new.value} (event: {event.value})"
        )


class LoggingNotifier:
    def notify(self, application_name: str) -> None:
        logger.warning(f"[appstatus] notifying that {application_name} is inactive...")
