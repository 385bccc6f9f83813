"""appstatus — A guarded status state machine for application/repository integrations."""

from appstatus.states import (
    AppStatus,
    StatusEvent,
    StatusTransition,
    Application,
    STATUS_CODES,
    VALID_TRANSITIONS,
    create_application,
)
from appstatus.config import (
    ConfigFetcher,
    ConfigOutcome,
    DeploymentConfig,
    MappingConfigFetcher,
    StaticConfigFetcher,
)
from appstatus.errors import (
    AppNotAllowed,
    AppStatusError,
    ConfigError,
    ConfigNotFound,
    DeploymentConfigMissing,
    InvalidConfigError,
    NoDirectAssignmentError,
    RepoNotAccessible,
)
from appstatus.repo_status import RepoState, RepoStatusPayload, classify_repo_status
from appstatus.service import (
    ApplicationService,
    TransitionResult,
)
from appstatus.deployments import Deployment, DeploymentStore
from appstatus.repository import Repository

__version__ = "0.1.0"

__all__ = [
    # State machine
    "AppStatus",
    "StatusEvent",
    "StatusTransition",
    "Application",
    "STATUS_CODES",
    "VALID_TRANSITIONS",
    "create_application",
    # Configuration
    "ConfigFetcher",
    "ConfigOutcome",
    "DeploymentConfig",
    "MappingConfigFetcher",
    "StaticConfigFetcher",
    # Repository status
    "RepoState",
    "RepoStatusPayload",
    "classify_repo_status",
    # Errors
    "AppStatusError",
    "ConfigError",
    "AppNotAllowed",
    "InvalidConfigError",
    "ConfigNotFound",
    "RepoNotAccessible",
    "DeploymentConfigMissing",
    "NoDirectAssignmentError",
    # Service
    "ApplicationService",
    "TransitionResult",
    # Storage protocols
    "Repository",
    "Deployment",
    "DeploymentStore",
]
