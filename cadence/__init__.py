"""
Cadence — recurring cleaning jobs, materialized and kept in sync with a calendar.

Public API:
    from cadence import CadenceApp, CadenceConfig, JobTemplate, generate_instances
"""

__version__ = "0.1.0"

# Core
from cadence.core.config import CadenceConfig
from cadence.core.errors import CadenceError, CalendarError, InvalidRuleError, NotConfiguredError
from cadence.core.types import (
    Frequency,
    JobInstance,
    JobStatus,
    JobTemplate,
    JobType,
    RecurrenceRule,
    SyncResult,
)

# Recurrence
from cadence.recurrence.expander import (
    generate_instances,
    get_next_occurrence,
    get_recurrence_description,
)

# Wiring
from cadence.app import CadenceApp

__all__ = [
    # Core
    "CadenceConfig",
    "CadenceError",
    "CalendarError",
    "InvalidRuleError",
    "NotConfiguredError",
    "Frequency",
    "JobInstance",
    "JobStatus",
    "JobTemplate",
    "JobType",
    "RecurrenceRule",
    "SyncResult",
    # Recurrence
    "generate_instances",
    "get_next_occurrence",
    "get_recurrence_description",
    # Wiring
    "CadenceApp",
]
