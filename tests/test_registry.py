import hashlib

import pytest
import responses

from ocipack.options import registry_options
from ocipack.reference import Reference
from ocipack.registry import RegistryClient, RegistryError, tag_artifact

BASE = "https://registry.example.com/v2/org/app"
REPO = Reference("registry.example.com", "org/app", tag="1.0.0")
MANIFEST = b'{"schemaVersion":2}'
CTYPE = "application/vnd.oci.image.manifest.v1+json"


def test_digest_from_header():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.HEAD, f"{BASE}/manifests/1.0.0",
                 headers={"Docker-Content-Digest": "sha256:" + "b" * 64})
        assert RegistryClient().digest(REPO) == "sha256:" + "b" * 64


def test_list_tags_paginated():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/tags/list", json={"tags": ["a"]},
                 headers={"Link": '</v2/org/app/tags/list?last=a>; rel="next"'})
        rsps.add(responses.GET, f"{BASE}/tags/list", json={"tags": ["b"]})
        assert RegistryClient().list_tags(REPO) == ["a", "b"]


def test_bearer_challenge():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/tags/list", status=401, headers={
            "WWW-Authenticate": 'Bearer realm="https://auth.example.com/token",service="registry.example.com"'})
        rsps.add(responses.GET, "https://auth.example.com/token", json={"token": "token"})
        rsps.add(responses.GET, f"{BASE}/tags/list", json={"tags": ["x"]})
        assert RegistryClient().list_tags(REPO) == ["x"]
        assert rsps.calls[-1].request.headers["Authorization"] == "Bearer token"


def test_error_status():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/tags/list", status=404, body="not found")
        with pytest.raises(RegistryError) as info:
            RegistryClient().list_tags(REPO)
        assert info.value.status_code == 404


def test_tag_artifact():
    tagged = "sha256:" + "d" * 64
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/manifests/1.0.0", body=MANIFEST, content_type=CTYPE)
        rsps.add(responses.PUT, f"{BASE}/manifests/latest", status=201,
                 headers={"Docker-Content-Digest": tagged})
        result = tag_artifact("oci://registry.example.com/org/app:1.0.0", "latest",
                              registry_options("", False))
        assert result == tagged
        put = rsps.calls[1].request
        assert put.body == MANIFEST
        assert put.headers["Content-Type"] == CTYPE


def test_push_manifest_dict_media_type():
    manifest = {"schemaVersion": 2, "mediaType": CTYPE}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, f"{BASE}/manifests/1.0.0", status=201,
                 headers={"Docker-Content-Digest": "sha256:" + "e" * 64})
        digest = RegistryClient().push_manifest(REPO, manifest)
        assert digest == "sha256:" + "e" * 64
        assert rsps.calls[0].request.headers["Content-Type"] == CTYPE


def test_push_blob():
    data = b"layer-bytes"
    with responses.RequestsMock() as rsps:
        rsps.add(responses.HEAD, f"{BASE}/blobs/sha256:{hashlib.sha256(data).hexdigest()}", status=404)
        rsps.add(responses.POST, f"{BASE}/blobs/uploads/", status=202,
                 headers={"Location": "/v2/org/app/blobs/uploads/abc?state=s"})
        rsps.add(responses.PUT, f"{BASE}/blobs/uploads/abc", status=201)
        digest = RegistryClient().push_blob(REPO, data)
        assert digest.replace(":", "%3A") in rsps.calls[2].request.url
        assert rsps.calls[2].request.body == data


def test_pull_blob_digest_mismatch():
    digest = "sha256:" + "c" * 64
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/blobs/{digest}", body=b"other")
        with pytest.raises(RegistryError, match="does not match"):
            RegistryClient().pull_blob(REPO, digest)


def test_localhost_uses_http():
    ref = Reference("localhost:5000", "app", tag="v1")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://localhost:5000/v2/app/manifests/v1", body=MANIFEST)
        assert RegistryClient().manifest(ref) == MANIFEST