"""Errors raised when an instance is owned by another bundle."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class InstanceOwnershipConflict:
    """An instance that exists and is owned by a different bundle, or by none."""

    instance_name: str
    current_owner_bundle: str = ""

    def describe(self) -> str:
        name = _quote(self.instance_name)
        if self.current_owner_bundle:
            return (f"instance {name} exists and is managed by another bundle "
                    f"{_quote(self.current_owner_bundle)}")
        return f"instance {name} exists and is not managed by any bundle"


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


class InstanceOwnershipConflictError(Exception):
    """One or more instances are owned by something other than the caller."""

    def __init__(self, conflicts: Iterable[InstanceOwnershipConflict]):
        self.conflicts = list(conflicts)
        super().__init__(self._message())

    def _message(self) -> str:
        parts = ["instance ownership conflict encountered. ", "Conflict: "]
        separator = "; " if len(self.conflicts) > 1 else ""
        for conflict in self.conflicts:
            parts.append(conflict.describe())
            parts.append(separator)
        return "".join(parts)

    def __iter__(self) -> Iterator[InstanceOwnershipConflict]:
        return iter(self.conflicts)

    def __len__(self) -> int:
        return len(self.conflicts)