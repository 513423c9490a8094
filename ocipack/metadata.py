"""OpenContainers annotations from command arguments and Git metadata."""

from __future__ import annotations

import subprocess
import time
from datetime import datetime, timezone

CREATED_ANNOTATION = "org.opencontainers.image.created"
SOURCE_ANNOTATION = "org.opencontainers.image.source"
REVISION_ANNOTATION = "org.opencontainers.image.revision"
VERSION_ANNOTATION = "org.opencontainers.image.version"

_GIT_TIMEOUT = 10.0


def _rfc3339(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_annotations(args: list[str]) -> dict[str, str]:
    """Parse ``key=value`` arguments into annotations."""
    annotations: dict[str, str] = {}
    for annotation in args:
        kv = annotation.split("=")
        if len(kv) != 2:
            raise ValueError(f"invalid annotation {annotation}, must be in the format key=value")
        annotations[kv[0]] = kv[1]
    return annotations


def _git(repo_path: str, deadline: float, *args: str) -> str | None:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        return None
    try:
        result = subprocess.run(
            ["git", *args], cwd=repo_path, capture_output=True, timeout=remaining, check=True
        )
    except (OSError, subprocess.SubprocessError):
        return None
    text = result.stdout.decode(errors="replace")
    return text if len(text) > 1 else None


def append_git_metadata(repo_path: str, annotations: dict[str, str]) -> None:
    """Set the created, source and revision annotations from Git.

    Without git or a repository only the created date is set, to the current time.
    """
    deadline = time.monotonic() + _GIT_TIMEOUT

    ts = _git(repo_path, deadline, "--no-pager", "log", "-1", "--format=%ct")
    if ts is None:
        annotations[CREATED_ANNOTATION] = _rfc3339(datetime.now(timezone.utc))
        return
    try:
        seconds = int(ts.removesuffix("\n"))
    except ValueError:
        pass
    else:
        annotations[CREATED_ANNOTATION] = _rfc3339(datetime.fromtimestamp(seconds, timezone.utc))

    if SOURCE_ANNOTATION not in annotations:
        repo = _git(repo_path, deadline, "config", "--get", "remote.origin.url")
        if repo is not None:
            annotations[SOURCE_ANNOTATION] = repo.removesuffix("\n")

    if REVISION_ANNOTATION not in annotations:
        commit = _git(repo_path, deadline, "show", "-s", "--format=%H")
        if commit is not None:
            annotations[REVISION_ANNOTATION] = commit.removesuffix("\n")