"""Export orchestration: stage sequencing, run state and statistics."""

from .models import (
    ExportRun,
    GroupMembershipOutcome,
    RunOutcome,
    RunState,
    RunStats,
    Stage,
)
from .runner import ExportRunner, RunContext, is_run_fatal, run_export

__all__ = [
    "ExportRun",
    "ExportRunner",
    "GroupMembershipOutcome",
    "RunContext",
    "RunOutcome",
    "RunState",
    "RunStats",
    "Stage",
    "is_run_fatal",
    "run_export",
]
