"""Historical record schemas.

PipelineRun and IncidentRecord are read-only snapshots of what the upstream
provider returned. The provider owns them; calculators only filter and reduce
them. Timestamps are timezone-aware UTC datetimes.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

INCIDENT_LABEL = "incident"


class RunOutcome(str, Enum):
    """How a pipeline run concluded.

    OTHER covers everything that is neither an explicit success nor an
    explicit failure: cancelled, skipped, timed out, and runs still in
    progress (which have no conclusion yet).
    """

    SUCCESS = "success"
    FAILURE = "failure"
    OTHER = "other"


class PipelineRun(BaseModel):
    """One CI/CD workflow run on a branch.

    Attributes:
        created_at: When the run was created.
        completed_at: When the run finished. None while the run is still
            in progress.
        outcome: Success, failure, or anything else.
        branch: Head branch the run executed against.
    """

    model_config = ConfigDict(frozen=True)

    created_at: datetime
    completed_at: datetime | None = None
    outcome: RunOutcome
    branch: str


class IncidentRecord(BaseModel):
    """A tracked incident issue.

    Attributes:
        created_at: When the incident was opened.
        closed_at: When the incident was closed. None for open issues.
        body: Free text. The restore-time calculator looks for the branch
            name in here.
        labels: Label names on the issue. Must contain "incident" for the
            record to count.
    """

    model_config = ConfigDict(frozen=True)

    created_at: datetime
    closed_at: datetime | None = None
    body: str = ""
    labels: frozenset[str] = Field(default_factory=frozenset)

    @property
    def is_incident(self) -> bool:
        return INCIDENT_LABEL in self.labels
