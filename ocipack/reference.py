"""Parsing of ``oci://`` artifact addresses into registry references."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

ARTIFACT_PREFIX = "oci://"
DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"

_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[0-9a-fA-F]{32,}$")
_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")


@dataclass(frozen=True)
class Reference:
    """A reference to an artifact in a container registry, by tag or digest."""

    registry: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    @property
    def name(self) -> str:
        """The repository address without tag or digest."""
        return f"{self.registry}/{self.repository}"

    @property
    def identifier(self) -> str:
        """The digest if set, otherwise the tag."""
        return self.digest or self.tag or DEFAULT_TAG

    def with_digest(self, digest: str) -> Reference:
        return replace(self, tag=None, digest=digest)

    def with_tag(self, tag: str) -> Reference:
        return replace(self, tag=tag, digest=None)

    def __str__(self) -> str:
        if self.digest:
            return f"{self.name}@{self.digest}"
        return f"{self.name}:{self.tag or DEFAULT_TAG}"


def _split_repository(base: str) -> tuple[str, str]:
    first, sep, rest = base.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        registry, repository = first, rest
    else:
        registry, repository = DEFAULT_REGISTRY, base
    if not registry:
        raise ValueError("registry must not be empty")
    if registry == DEFAULT_REGISTRY and "/" not in repository:
        repository = f"library/{repository}"
    components = repository.split("/")
    for component in components:
        if not _COMPONENT_RE.match(component):
            raise ValueError(f"repository can only contain the characters "
                             f"'abcdefghijklmnopqrstuvwxyz0123456789_-./': {repository}")
    return registry, repository


def _parse_reference(text: str) -> Reference:
    digest = None
    base = text
    if "@" in text:
        base, digest = text.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise ValueError(f"invalid digest: {digest}")
    tag = None
    if base.rfind(":") > base.rfind("/"):
        base, tag = base.rsplit(":", 1)
        if not _TAG_RE.match(tag):
            raise ValueError(f"invalid tag: {tag}")
    if not base:
        raise ValueError("repository must not be empty")
    registry, repository = _split_repository(base)
    if digest is None and tag is None:
        tag = DEFAULT_TAG
    return Reference(registry, repository, tag, digest)


def parse_artifact_ref(oci_url: str) -> Reference:
    """Validate an ``oci://`` URL and return its reference."""
    if not oci_url.startswith(ARTIFACT_PREFIX):
        raise ValueError("URL must be in format 'oci://<domain>/<org>/<repo>'")
    url = oci_url[len(ARTIFACT_PREFIX):]
    try:
        return _parse_reference(url)
    except ValueError as err:
        raise ValueError(f"'{oci_url}' invalid URL: {err}") from err


def parse_artifact_url(oci_url: str) -> str:
    """Return the address of the artifact."""
    return str(parse_artifact_ref(oci_url))


def parse_repository_url(oci_url: str) -> str:
    """Return the address of the artifact repository."""
    return parse_artifact_ref(oci_url).name


def parse_digest(oci_url: str) -> Reference:
    """Return the digest reference held by the URL."""
    ref = parse_artifact_ref(oci_url)
    if ref.digest is None:
        raise ValueError(f"'{oci_url}' does not contain a digest")
    return ref