"""Readiness status of Kubernetes Jobs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

CONDITION_RECONCILING = "Reconciling"
CONDITION_STALLED = "Stalled"
CONDITION_TRUE = "True"


class Status(str, Enum):
    IN_PROGRESS = "InProgress"
    FAILED = "Failed"
    CURRENT = "Current"
    TERMINATING = "Terminating"
    NOT_FOUND = "NotFound"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Condition:
    type: str
    status: str
    reason: str = ""
    message: str = ""


@dataclass
class StatusResult:
    status: Status
    message: str
    conditions: list[Condition] = field(default_factory=list)


def _int_field(obj: Mapping[str, Any], path: str, default: int) -> int:
    current: Any = obj
    for key in path.strip(".").split("."):
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    if isinstance(current, bool) or not isinstance(current, int):
        return default
    return current


def _conditions(obj: Mapping[str, Any]) -> list[Condition]:
    status = obj.get("status")
    if status is None:
        return []
    if not isinstance(status, Mapping):
        raise ValueError("status must be an object")
    raw = status.get("conditions")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("status.conditions must be a list")
    conditions = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValueError("status.conditions entries must be objects")
        values = {}
        for key in ("type", "status", "reason", "message"):
            value = item.get(key, "")
            if not isinstance(value, str):
                raise ValueError(f"condition field '{key}' must be a string")
            values[key] = value
        conditions.append(Condition(**values))
    return conditions


def job_conditions(obj: Mapping[str, Any]) -> StatusResult:
    """Compute the status of a Job from its spec, counters and conditions."""
    parallelism = _int_field(obj, ".spec.parallelism", 1)
    completions = _int_field(obj, ".spec.completions", parallelism)
    active = _int_field(obj, ".status.active", 1)
    succeeded = _int_field(obj, ".status.succeeded", 0)
    failed = _int_field(obj, ".status.failed", 0)

    for condition in _conditions(obj):
        if condition.type == "Complete" and condition.status == CONDITION_TRUE:
            return StatusResult(
                Status.CURRENT,
                f"Job Completed. succeeded: {succeeded}/{completions}",
                [],
            )
        if condition.type == "Failed" and condition.status == CONDITION_TRUE:
            message = f"Job Failed. failed: {failed}/{completions} error: {condition.message}"
            return StatusResult(
                Status.FAILED,
                message,
                [Condition(CONDITION_STALLED, CONDITION_TRUE, "JobFailed", condition.message)],
            )

    message = f"Job in progress. active: {active}"
    return StatusResult(
        Status.IN_PROGRESS,
        message,
        [Condition(CONDITION_RECONCILING, CONDITION_TRUE, "JobInProgress", message)],
    )