"""
Repository status classification.

Maps the raw repository status reported by the hosting service, plus the
application's pipelines capability, onto a RepoState.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class RepoState(str, Enum):
    """Classification of a repository's activation posture."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    MERGE_QUEUE_DISABLED = "merge_queue_disabled"
    REPO_NOT_FOUND = "repo_not_found"


class RepoStatusPayload(BaseModel):
    """Raw repository status as reported by the hosting service."""

    model_config = ConfigDict(extra="ignore")

    repo_found: bool = Field(default=True, description="Whether the repository exists")
    is_archived: bool = Field(default=False, description="Whether the repository is archived")
    merge_queue_id: Optional[str] = Field(default=None, description="Merge queue identifier, if any")


RawRepoStatus = Union[RepoStatusPayload, Mapping[str, Any]]


def classify_repo_status(
    payload: Optional[RawRepoStatus],
    pipelines_enabled: bool = True,
) -> Optional[RepoState]:
    """
    Classify a repository status payload. First matching rule wins.

    Returns None when no payload is supplied.
    """
    logger.debug("[appstatus] populating repo status...")
    if payload is None:
        return None

    if not isinstance(payload, RepoStatusPayload):
        payload = RepoStatusPayload.model_validate(payload)
    logger.debug(f"[appstatus] repo status {payload.model_dump()}")

    if not payload.repo_found:
        repo_state = RepoState.REPO_NOT_FOUND
    elif payload.is_archived:
        repo_state = RepoState.ARCHIVED
    elif pipelines_enabled and payload.merge_queue_id:
        repo_state = RepoState.ACTIVE
    elif pipelines_enabled:
        repo_state = RepoState.MERGE_QUEUE_DISABLED
    else:
        repo_state = RepoState.ACTIVE

    logger.debug(f"[appstatus] returning repo state {repo_state.value}")
    return repo_state
