"""
Deployment configuration resolution.

Fetches an application's deployment configuration through a pluggable
ConfigFetcher, validates it, and classifies failures into the
ConfigError taxonomy. Bring your own fetcher for real backends.
"""

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from appstatus.errors import (
    AppNotAllowed,
    ConfigError,
    ConfigNotFound,
    InvalidConfigError,
    RepoNotAccessible,
)

if TYPE_CHECKING:
    from appstatus.states import Application

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = "kubernetes"


class DeploymentSettings(BaseModel):
    strategy: str = Field(..., min_length=1, description="Deployment mechanism (e.g. kubernetes)")
    prerequisites: bool = Field(default=False, description="Whether deployment prerequisites are met")


class DeploymentConfig(BaseModel):
    """Validated deployment configuration for an application."""

    deployment: DeploymentSettings

    @property
    def strategy(self) -> str:
        return self.deployment.strategy


RawConfig = Union[DeploymentConfig, Mapping[str, Any]]


@dataclass(frozen=True)
class ConfigOutcome:
    """Result of one configuration resolution: a config or a classified error."""

    config: Optional[DeploymentConfig] = None
    error: Optional[ConfigError] = None

    def __post_init__(self) -> None:
        if (self.config is None) == (self.error is None):
            raise ValueError("ConfigOutcome needs exactly one of config or error")

    @property
    def ok(self) -> bool:
        return self.config is not None


@runtime_checkable
class ConfigFetcher(Protocol):
    """
    Source of deployment configuration.

    Implementations return the raw configuration or raise one of the
    ConfigError subclasses. Any other exception is treated as unclassified.
    """

    def fetch(self, application: "Application") -> RawConfig:
        ...


class StaticConfigFetcher:
    """Returns the same configuration for every application."""

    def __init__(self, config: Optional[RawConfig] = None) -> None:
        if config is None:
            strategy = os.environ.get("APPSTATUS_DEFAULT_STRATEGY", DEFAULT_STRATEGY)
            config = {"deployment": {"strategy": strategy, "prerequisites": True}}
        self._config = config

    def fetch(self, application: "Application") -> RawConfig:
        return self._config


class MappingConfigFetcher:
    """
    Per-application configuration held in memory.

    Configs are keyed by the application's repo, falling back to its name.
    Useful for tests and for configuration loaded up front from a file.
    """

    def __init__(
        self,
        configs: Mapping[str, RawConfig],
        allowed: Optional[Iterable[str]] = None,
        inaccessible: Optional[Iterable[str]] = None,
    ) -> None:
        self._configs = dict(configs)
        self._allowed = set(allowed) if allowed is not None else None
        self._inaccessible = set(inaccessible or ())
        self.calls = 0

    def fetch(self, application: "Application") -> RawConfig:
        self.calls += 1
        key = application.repo or application.name
        if self._allowed is not None and key not in self._allowed:
            raise AppNotAllowed(f"Application not allowed: {key}")
        if key in self._inaccessible:
            raise RepoNotAccessible(f"Repository not accessible: {key}")
        if key not in self._configs:
            raise ConfigNotFound(f"No deployment configuration for {key}")
        return self._configs[key]


def fetch_config(fetcher: ConfigFetcher, application: "Application") -> ConfigOutcome:
    """
    Fetch and validate an application's deployment configuration.

    Classified failures come back as a failed ConfigOutcome. Anything
    else raised by the fetcher propagates unchanged.
    """
    logger.debug(f"[appstatus] {application.application_id}: retrieving config...")
    try:
        raw = fetcher.fetch(application)
    except ConfigError as e:
        logger.info(f"[appstatus] {application.application_id}: config unavailable ({type(e).__name__}: {e})")
        return ConfigOutcome(error=e)

    if isinstance(raw, DeploymentConfig):
        return ConfigOutcome(config=raw)

    try:
        config = DeploymentConfig.model_validate(raw)
    except ValidationError as e:
        logger.info(f"[appstatus] {application.application_id}: invalid config: {e.error_count()} error(s)")
        return ConfigOutcome(error=InvalidConfigError(f"Invalid deployment configuration: {e}"))

    logger.debug(f"[appstatus] {application.application_id}: config resolved (strategy={config.strategy})")
    return ConfigOutcome(config=config)
