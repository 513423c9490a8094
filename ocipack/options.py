"""Connection options for registry operations."""

from __future__ import annotations

from dataclasses import dataclass

USER_AGENT = "ocipack"


@dataclass(frozen=True)
class RegistryOptions:
    """Authentication and transport settings for a registry client."""

    user_agent: str = USER_AGENT
    username: str | None = None
    password: str | None = None
    registry_token: str | None = None
    insecure: bool = False
    timeout: float | None = 60.0


def registry_options(credentials: str, insecure: bool) -> RegistryOptions:
    """Build options from ``user:password`` or a bare registry token."""
    username = password = token = None
    if credentials:
        parts = credentials.split(":", 1)
        if len(parts) == 1:
            token = parts[0]
        else:
            username, password = parts
    return RegistryOptions(
        username=username, password=password, registry_token=token, insecure=insecure
    )