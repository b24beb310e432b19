"""Wire envelope for published records."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable


class SourceType(str, Enum):
    """Record kinds carried in the envelope ``sourceType`` field."""

    USERS = "users"
    GROUPS = "groups"
    GROUP_MEMBERS = "GroupMembers"


def build_envelopes(
    records: Iterable[dict[str, Any]],
    source_type: SourceType,
    export_id: str,
    export_timestamp: str,
    group_id: str | None = None,
) -> list[dict[str, Any]]:
    """Wrap raw directory records in the published envelope.

    Returns:
        One envelope per record, in input order
    """
    envelopes = []
    for record in records:
        envelope: dict[str, Any] = {
            "sourceType": source_type.value,
            "exportId": export_id,
            "exportTimestamp": export_timestamp,
        }
        if group_id is not None:
            envelope["groupId"] = group_id
        envelope["data"] = record
        envelopes.append(envelope)
    return envelopes
