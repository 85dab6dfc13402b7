"""Result schemas.

Defines the output of a single calculator that yields more than one number
(DeploymentFrequencyResult) and the full computation output (MetricSnapshot).
MetricSnapshot is what the store records and what the webhook returns to the
caller as its synchronous acknowledgment.
"""

from pydantic import BaseModel, ConfigDict, Field


class DeploymentFrequencyResult(BaseModel):
    """Output of the deployment frequency calculator.

    Attributes:
        frequency: Qualifying runs per day over the window. Not bounded
            to 1.0 — a branch that runs CI five times a day reports 5.0.
        successful_count: Runs that concluded with success.
        failed_count: Every other qualifying run, including cancelled and
            in-progress runs.
    """

    model_config = ConfigDict(frozen=True)

    frequency: float = Field(default=0.0, ge=0.0)
    successful_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)


class MetricSnapshot(BaseModel):
    """The four DORA indicators for one branch at one moment.

    Built fresh on every event that resolves to a (repository, branch).
    Never merged with a previous snapshot — the next snapshot for the same
    branch replaces it wholesale in the store.

    Attributes:
        deployment_frequency: Runs per day in the last 30 days.
        lead_time_minutes: Mean duration of successful runs, in minutes.
        restore_time_hours: Mean open-to-close time of branch incidents,
            in hours.
        change_failure_rate: Failed runs over all runs, 0.0-1.0.
        successful_count: Successful runs in the window.
        failed_count: Non-successful runs in the window.
        branch: Branch the snapshot describes. Used as the gauge label.
    """

    model_config = ConfigDict(frozen=True)

    deployment_frequency: float = Field(ge=0.0)
    lead_time_minutes: float
    restore_time_hours: float
    change_failure_rate: float = Field(ge=0.0, le=1.0)
    successful_count: int = Field(ge=0)
    failed_count: int = Field(ge=0)
    branch: str
