"""DORA metric calculators."""

from calculators.change_failure_rate import change_failure_rate
from calculators.deployment_frequency import deployment_frequency
from calculators.lead_time import lead_time_for_changes
from calculators.restore_time import time_to_restore_service

__all__ = [
    "deployment_frequency",
    "lead_time_for_changes",
    "time_to_restore_service",
    "change_failure_rate",
]
