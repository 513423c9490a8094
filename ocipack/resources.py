"""Options and helpers for server-side apply and delete operations."""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .inventory import API_GROUP, FIELD_MANAGER, INSTANCE_KIND, ObjMetadata

OWNER_FIELD = FIELD_MANAGER
OWNER_GROUP = f"{INSTANCE_KIND.lower()}.{API_GROUP}"

FORCE_ACTION = f"action.{API_GROUP}/force"
IF_NOT_PRESENT_ACTION = f"action.{API_GROUP}/one-off"
PRUNE_ACTION = f"action.{API_GROUP}/prune"
ENABLED_VALUE = "enabled"
DISABLED_VALUE = "disabled"

PROPAGATION_BACKGROUND = "Background"


class Action(str, Enum):
    CREATED = "created"
    CONFIGURED = "configured"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ChangeSetEntry:
    """The outcome of an operation on one object."""

    obj_metadata: ObjMetadata
    group_version: str
    subject: str
    action: Action


@dataclass
class ApplyOptions:
    force: bool = False
    force_selector: dict[str, str] = field(default_factory=dict)
    if_not_present_selector: dict[str, str] = field(default_factory=dict)
    wait_timeout: float = 0.0


@dataclass
class DeleteOptions:
    propagation_policy: str = PROPAGATION_BACKGROUND
    inclusions: dict[str, str] = field(default_factory=dict)
    exclusions: dict[str, str] = field(default_factory=dict)


def select_objects_from_set(change_set: Iterable[ChangeSetEntry],
                            action: Action) -> list[dict[str, Any]]:
    """Return minimal objects for the change set entries with the given action."""
    entries = getattr(change_set, "entries", change_set)
    objects = []
    for entry in entries:
        if entry.action != action:
            continue
        meta = entry.obj_metadata
        api_version = f"{meta.group}/{entry.group_version}" if meta.group else entry.group_version
        metadata: dict[str, Any] = {}
        if meta.name:
            metadata["name"] = meta.name
        if meta.namespace:
            metadata["namespace"] = meta.namespace
        objects.append({"apiVersion": api_version, "kind": meta.kind, "metadata": metadata})
    return objects


def apply_options(force: bool, wait: float) -> ApplyOptions:
    """Default options for server-side apply; ``wait`` is the timeout in seconds."""
    return ApplyOptions(
        force=force,
        force_selector={FORCE_ACTION: ENABLED_VALUE},
        if_not_present_selector={IF_NOT_PRESENT_ACTION: ENABLED_VALUE},
        wait_timeout=wait,
    )


def delete_options(name: str, namespace: str) -> DeleteOptions:
    """Default options for deleting the objects owned by an instance."""
    return DeleteOptions(
        propagation_policy=PROPAGATION_BACKGROUND,
        inclusions={
            f"{OWNER_GROUP}/name": name,
            f"{OWNER_GROUP}/namespace": namespace,
        },
        exclusions={PRUNE_ACTION: DISABLED_VALUE},
    )


def to_unstructured(obj: Any) -> dict[str, Any]:
    """Convert a mapping or dataclass into an independent plain dictionary."""
    if isinstance(obj, Mapping):
        return copy.deepcopy(dict(obj))
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"cannot convert {type(obj).__name__} to an unstructured object")