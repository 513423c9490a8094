"""Listing of artifact tags and module versions held in a registry."""

from __future__ import annotations

import requests
import semver

from .options import RegistryOptions
from .reference import DEFAULT_TAG, Reference, parse_artifact_ref
from .registry import ArtifactReference, ModuleReference, RegistryClient, RegistryError

_REQUEST_ERRORS = (RegistryError, requests.RequestException)


def _repository(oci_url: str) -> Reference:
    ref = parse_artifact_ref(oci_url)
    return Reference(ref.registry, ref.repository, tag=DEFAULT_TAG)


def _latest_digest(client: RegistryClient, repo: Reference) -> str | None:
    try:
        return client.digest(repo.with_tag(DEFAULT_TAG))
    except _REQUEST_ERRORS:
        return None


def _list_tags(client: RegistryClient, repo: Reference) -> list[str]:
    try:
        return client.list_tags(repo)
    except _REQUEST_ERRORS as err:
        raise RegistryError(f"listing tags failed: {err}",
                            getattr(err, "status_code", None)) from err


def _tag_digest(client: RegistryClient, repo: Reference, tag: str) -> str:
    try:
        return client.digest(repo.with_tag(tag))
    except _REQUEST_ERRORS as err:
        raise RegistryError(f"failed to get digest for '{tag}': {err}",
                            getattr(err, "status_code", None)) from err


def list_artifact_tags(oci_url: str, with_digest: bool,
                       options: RegistryOptions | None = None) -> list[ArtifactReference]:
    """Return the latest tag first, then every other tag in descending order."""
    repo = _repository(oci_url)
    client = RegistryClient(options)
    result: list[ArtifactReference] = []

    latest = _latest_digest(client, repo)
    if latest is not None:
        result.append(ArtifactReference(oci_url, DEFAULT_TAG, latest if with_digest else ""))

    tags = sorted(_list_tags(client, repo), reverse=True)
    for tag in tags:
        if tag == DEFAULT_TAG:
            continue
        digest = _tag_digest(client, repo, tag) if with_digest else ""
        result.append(ArtifactReference(oci_url, tag, digest))
    return result


def _strict_versions(tags: list[str]) -> list[semver.Version]:
    versions = []
    for tag in tags:
        try:
            versions.append(semver.Version.parse(tag))
        except ValueError:
            continue
    return versions


def list_module_versions(oci_url: str, with_digest: bool,
                         options: RegistryOptions | None = None) -> list[ModuleReference]:
    """Return the latest tag first, then the semver tags from newest to oldest."""
    repo = _repository(oci_url)
    client = RegistryClient(options)

    versions = sorted(_strict_versions(_list_tags(client, repo)), reverse=True)
    result: list[ModuleReference] = []

    latest = _latest_digest(client, repo)
    if latest is not None:
        result.append(ModuleReference(oci_url, DEFAULT_TAG, latest if with_digest else ""))

    for version in versions:
        text = str(version)
        digest = _tag_digest(client, repo, text) if with_digest else ""
        result.append(ModuleReference(oci_url, text, digest))
    return result