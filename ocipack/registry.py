"""A small client for the OCI distribution API."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

import requests

from .options import RegistryOptions
from .reference import Reference, parse_artifact_ref

OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
_ACCEPT = ", ".join([
    OCI_MANIFEST,
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
])
_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


class RegistryError(Exception):
    """A registry request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ArtifactReference:
    repository: str
    tag: str
    digest: str = ""


@dataclass(frozen=True)
class ModuleReference:
    repository: str
    version: str
    digest: str = ""
    annotations: dict[str, str] = field(default_factory=dict)


def _sha256(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


def _is_local(registry: str) -> bool:
    host = registry.rsplit(":", 1)[0] if registry.count(":") == 1 else registry
    return host in ("localhost", "127.0.0.1", "::1") or host.endswith((".localhost", ".local"))


def _media_type_of(raw: bytes) -> str:
    try:
        document = json.loads(raw)
    except ValueError:
        return OCI_MANIFEST
    if isinstance(document, dict) and isinstance(document.get("mediaType"), str):
        return document["mediaType"]
    return OCI_MANIFEST


class RegistryClient:
    """Talks to a container registry over HTTP."""

    def __init__(self, options: RegistryOptions | None = None, session: requests.Session | None = None):
        self.options = options or RegistryOptions()
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = self.options.user_agent
        self._tokens: dict[tuple[str, str], str] = {}

    def _base(self, ref: Reference) -> str:
        scheme = "http" if self.options.insecure or _is_local(ref.registry) else "https"
        return f"{scheme}://{ref.registry}/v2/{ref.repository}"

    def _authenticate(self, challenge: str, ref: Reference, actions: str) -> str | None:
        scheme = challenge.split(" ", 1)[0].lower()
        params = dict(_CHALLENGE_PARAM.findall(challenge))
        credentials = None
        if self.options.username is not None:
            credentials = (self.options.username, self.options.password or "")
        if scheme == "basic":
            if credentials is None:
                return None
            return requests.auth._basic_auth_str(*credentials)
        if scheme != "bearer" or "realm" not in params:
            return None
        query = {"scope": params.get("scope", f"repository:{ref.repository}:{actions}")}
        if "service" in params:
            query["service"] = params["service"]
        resp = self._session.get(params["realm"], params=query, auth=credentials,
                                 timeout=self.options.timeout)
        self._check(resp, "authentication")
        body = resp.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise RegistryError("authentication failed: no token in response")
        self._tokens[(ref.registry, ref.repository)] = token
        return f"Bearer {token}"

    def _request(self, method: str, ref: Reference, url: str, actions: str = "pull",
                 **kwargs) -> requests.Response:
        headers = dict(kwargs.pop("headers", {}))
        token = self._tokens.get((ref.registry, ref.repository)) or self.options.registry_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        resp = self._session.request(method, url, headers=headers,
                                     timeout=self.options.timeout, **kwargs)
        if resp.status_code == 401:
            auth = self._authenticate(resp.headers.get("WWW-Authenticate", ""), ref, actions)
            if auth:
                headers["Authorization"] = auth
                resp = self._session.request(method, url, headers=headers,
                                             timeout=self.options.timeout, **kwargs)
        return resp

    @staticmethod
    def _check(resp: requests.Response, what: str) -> None:
        if not resp.ok:
            raise RegistryError(f"{what} failed: {resp.status_code} {resp.text[:200]}",
                                resp.status_code)

    def _get_manifest(self, reference: Reference) -> tuple[bytes, str]:
        url = f"{self._base(reference)}/manifests/{reference.identifier}"
        resp = self._request("GET", reference, url, headers={"Accept": _ACCEPT})
        self._check(resp, f"fetching manifest of {reference}")
        return resp.content, resp.headers.get("Content-Type", OCI_MANIFEST)

    def _put_manifest(self, reference: Reference, raw: bytes, media_type: str) -> str:
        url = f"{self._base(reference)}/manifests/{reference.identifier}"
        resp = self._request("PUT", reference, url, "pull,push", data=raw,
                             headers={"Content-Type": media_type})
        self._check(resp, f"pushing manifest {reference}")
        return resp.headers.get("Docker-Content-Digest") or _sha256(raw)

    def digest(self, reference: Reference) -> str:
        """Return the manifest digest that the reference resolves to."""
        url = f"{self._base(reference)}/manifests/{reference.identifier}"
        resp = self._request("HEAD", reference, url, headers={"Accept": _ACCEPT})
        if resp.ok and resp.headers.get("Docker-Content-Digest"):
            return resp.headers["Docker-Content-Digest"]
        raw, _ = self._get_manifest(reference)
        return _sha256(raw)

    def list_tags(self, repository: Reference) -> list[str]:
        """Return every tag of the repository, following pagination."""
        tags: list[str] = []
        url: str | None = f"{self._base(repository)}/tags/list"
        while url:
            resp = self._request("GET", repository, url)
            self._check(resp, f"listing tags of {repository.name}")
            tags.extend(resp.json().get("tags") or [])
            next_link = resp.links.get("next", {}).get("url")
            url = urljoin(resp.url, next_link) if next_link else None
        return tags

    def manifest(self, reference: Reference) -> bytes:
        """Return the raw manifest of the reference."""
        return self._get_manifest(reference)[0]

    def pull_blob(self, repository: Reference, digest: str) -> bytes:
        """Download a blob and check it against its digest."""
        resp = self._request("GET", repository, f"{self._base(repository)}/blobs/{digest}")
        self._check(resp, f"pulling blob {digest}")
        data = resp.content
        if digest.startswith("sha256:") and _sha256(data) != digest:
            raise RegistryError(f"blob {digest} does not match its digest")
        return data

    def push_blob(self, repository: Reference, data: bytes) -> str:
        """Upload a blob unless it exists and return its digest."""
        digest = _sha256(data)
        base = self._base(repository)
        head = self._request("HEAD", repository, f"{base}/blobs/{digest}", "pull,push")
        if head.ok:
            return digest
        start = self._request("POST", repository, f"{base}/blobs/uploads/", "pull,push")
        self._check(start, "starting blob upload")
        location = urljoin(start.url, start.headers.get("Location", ""))
        put = self._request("PUT", repository, location, "pull,push", params={"digest": digest},
                            data=data, headers={"Content-Type": "application/octet-stream"})
        self._check(put, f"uploading blob {digest}")
        return digest

    def push_manifest(self, reference: Reference, manifest: bytes | dict) -> str:
        """Upload a manifest under the reference and return its digest."""
        if isinstance(manifest, dict):
            media_type = manifest.get("mediaType") or OCI_MANIFEST
            raw = json.dumps(manifest, separators=(",", ":")).encode()
        else:
            raw = manifest
            media_type = _media_type_of(raw)
        return self._put_manifest(reference, raw, media_type)

    def tag(self, reference: Reference, tag: str) -> str:
        """Point ``tag`` at the manifest the reference resolves to and return its digest."""
        raw, media_type = self._get_manifest(reference)
        return self._put_manifest(reference.with_tag(tag), raw, media_type)


def tag_artifact(oci_url: str, tag: str, options: RegistryOptions | None = None) -> str:
    """Add the tag to the remote artifact and return the tagged digest."""
    ref = parse_artifact_ref(oci_url)
    return RegistryClient(options).tag(ref, tag)