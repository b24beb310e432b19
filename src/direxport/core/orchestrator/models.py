"""
Export run data types.

RunStats is mutated while a run is in progress; ExportRun is the frozen
result handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from direxport.core.fetch.errors import FaultRecord
from direxport.core.publish.envelope import SourceType


class Stage(str, Enum):
    """Extraction stages, in execution order."""

    USERS = "users"
    GROUPS = "groups"
    MEMBERSHIPS = "memberships"


class RunState(str, Enum):
    """Run state machine positions."""

    STARTED = "Started"
    USERS_STAGE = "UsersStage"
    GROUPS_STAGE = "GroupsStage"
    MEMBERSHIPS_STAGE = "MembershipsStage"
    COMPLETED = "Completed"
    FAILED = "Failed"


STAGE_STATES = {
    Stage.USERS: RunState.USERS_STAGE,
    Stage.GROUPS: RunState.GROUPS_STAGE,
    Stage.MEMBERSHIPS: RunState.MEMBERSHIPS_STAGE,
}


class RunOutcome(str, Enum):
    """Terminal outcome of a run."""

    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass(frozen=True)
class GroupMembershipOutcome:
    """Result of exporting one group's members."""

    group_id: str
    success: bool
    record_count: int = 0
    fault: FaultRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "group_id": self.group_id,
            "success": self.success,
            "record_count": self.record_count,
            "fault": self.fault.to_dict() if self.fault else None,
        }


@dataclass
class RunStats:
    """Counters accumulated during a run."""

    users: int = 0
    groups: int = 0
    memberships: int = 0
    api_calls: int = 0
    batches_sent: int = 0

    group_ids: list[str] = field(default_factory=list)
    group_outcomes: list[GroupMembershipOutcome] = field(default_factory=list)

    def record(self, source_type: SourceType, count: int) -> None:
        """Add ``count`` processed records of ``source_type``."""
        if source_type is SourceType.USERS:
            self.users += count
        elif source_type is SourceType.GROUPS:
            self.groups += count
        else:
            self.memberships += count


@dataclass(frozen=True)
class ExportRun:
    """Aggregate result of one export execution."""

    export_id: str
    trigger_context: str
    started_at: datetime
    finished_at: datetime
    state: RunState
    outcome: RunOutcome
    include_extended_properties: bool = False

    users_processed: int = 0
    groups_processed: int = 0
    memberships_processed: int = 0
    api_calls: int = 0
    batches_sent: int = 0

    group_outcomes: tuple[GroupMembershipOutcome, ...] = ()

    # Set only when outcome is FAILED
    fault: FaultRecord | None = None
    failed_stage: Stage | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is RunOutcome.COMPLETED

    @property
    def duration_seconds(self) -> float:
        """Get run duration in seconds."""
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def total_groups(self) -> int:
        return len(self.group_outcomes)

    @property
    def successful_group_count(self) -> int:
        return sum(1 for outcome in self.group_outcomes if outcome.success)

    @property
    def failed_group_count(self) -> int:
        return sum(1 for outcome in self.group_outcomes if not outcome.success)

    @property
    def membership_success_rate(self) -> float:
        """Share of groups whose members were exported (1.0 with no groups)."""
        if not self.group_outcomes:
            return 1.0
        return self.successful_group_count / self.total_groups

    @property
    def failed_groups(self) -> list[GroupMembershipOutcome]:
        return [outcome for outcome in self.group_outcomes if not outcome.success]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "export_id": self.export_id,
            "trigger_context": self.trigger_context,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "state": self.state.value,
            "outcome": self.outcome.value,
            "include_extended_properties": self.include_extended_properties,
            "users_processed": self.users_processed,
            "groups_processed": self.groups_processed,
            "memberships_processed": self.memberships_processed,
            "api_calls": self.api_calls,
            "batches_sent": self.batches_sent,
            "total_groups": self.total_groups,
            "successful_group_count": self.successful_group_count,
            "failed_group_count": self.failed_group_count,
            "membership_success_rate": self.membership_success_rate,
            "fault": self.fault.to_dict() if self.fault else None,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
        }
