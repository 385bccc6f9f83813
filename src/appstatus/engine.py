"""
Guard tables for status events.

Each event maps to an ordered list of (target, guard) pairs. The first
guard that passes picks the target; if none passes the event is rejected.
The update_status order is a precedence policy: repository-level signals
outrank configuration failures, and among those access beats missing
config beats invalid config beats "not allowed".
"""

from dataclasses import dataclass
from typing import Callable, Optional

from appstatus.config import ConfigOutcome
from appstatus.errors import (
    AppNotAllowed,
    ConfigError,
    ConfigNotFound,
    InvalidConfigError,
    RepoNotAccessible,
)
from appstatus.repo_status import RepoState
from appstatus.states import AppStatus, StatusEvent


@dataclass(frozen=True)
class GuardContext:
    """
    Inputs visible to guards.

    resolve_config is only called by guards that need the configuration,
    so repository-level outcomes never trigger a fetch.
    """

    repo_state: Optional[RepoState]
    resolve_config: Callable[[], ConfigOutcome]

    @property
    def config(self) -> ConfigOutcome:
        return self.resolve_config()


Guard = Callable[[GuardContext], bool]


def _always(ctx: GuardContext) -> bool:
    return True


def _repo_is(state: RepoState) -> Guard:
    def guard(ctx: GuardContext) -> bool:
        return ctx.repo_state == state

    return guard


def _config_failed_with(kind: type[ConfigError]) -> Guard:
    def guard(ctx: GuardContext) -> bool:
        outcome = ctx.config
        return not outcome.ok and isinstance(outcome.error, kind)

    return guard


def _repo_active_and_configured(ctx: GuardContext) -> bool:
    return ctx.repo_state == RepoState.ACTIVE and ctx.config.ok


UPDATE_STATUS_GUARDS: list[tuple[AppStatus, Guard]] = [
    (AppStatus.ACTIVE, _repo_active_and_configured),
    (AppStatus.ARCHIVED, _repo_is(RepoState.ARCHIVED)),
    (AppStatus.MERGE_QUEUE_DISABLED, _repo_is(RepoState.MERGE_QUEUE_DISABLED)),
    (AppStatus.REPO_NOT_FOUND, _repo_is(RepoState.REPO_NOT_FOUND)),
    (AppStatus.REPO_NOT_ACCESSIBLE, _config_failed_with(RepoNotAccessible)),
    (AppStatus.CONFIG_NOT_FOUND, _config_failed_with(ConfigNotFound)),
    (AppStatus.INVALID_CONFIG_ERROR, _config_failed_with(InvalidConfigError)),
    (AppStatus.INACTIVE, _config_failed_with(AppNotAllowed)),
]

EVENT_GUARDS: dict[StatusEvent, list[tuple[AppStatus, Guard]]] = {
    StatusEvent.ACTIVATE: [(AppStatus.ACTIVE, _always)],
    StatusEvent.INACTIVATE: [(AppStatus.INACTIVE, _always)],
    StatusEvent.UPDATE_STATUS: UPDATE_STATUS_GUARDS,
}


def select_target(event: StatusEvent, ctx: GuardContext) -> Optional[AppStatus]:
    """Return the first target whose guard passes, or None."""
    for target, guard in EVENT_GUARDS.get(event, []):
        if guard(ctx):
            return target
    return None
