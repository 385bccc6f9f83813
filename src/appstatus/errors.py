"""
Error taxonomy for appstatus.

Configuration errors are routine: the transition engine converts each
kind into a target status. Everything else surfaces to the caller.
"""


class AppStatusError(Exception):
    """Base class for all appstatus errors."""

    default_message = "appstatus error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)


class ConfigError(AppStatusError):
    """A classified failure while fetching or validating deployment config."""

    default_message = "Deployment configuration unavailable"


class AppNotAllowed(ConfigError):
    default_message = "Application not allowed"


class InvalidConfigError(ConfigError):
    default_message = "Invalid deployment configuration"


class ConfigNotFound(ConfigError):
    default_message = "Deployment configuration not found"


class RepoNotAccessible(ConfigError):
    default_message = "Repository not accessible"


class DeploymentConfigMissing(AppStatusError):
    """Raised when a deployment is requested without a resolved configuration."""

    default_message = "No deployment configuration resolved"


class NoDirectAssignmentError(AppStatusError, AttributeError):
    """Raised on direct assignment to Application.status."""

    default_message = "status can only change through a transition event"
