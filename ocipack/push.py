"""Packaging of content and modules as OpenContainers artifacts and upload to a registry."""

from __future__ import annotations

import hashlib
import json
import tempfile
from pathlib import Path

from .build import build_artifact
from .options import RegistryOptions
from .reference import ARTIFACT_PREFIX, Reference, parse_artifact_ref
from .registry import OCI_MANIFEST, RegistryClient, RegistryError

CONFIG_MEDIA_TYPE = "application/vnd.ocipack.config.v1+json"
CONTENT_MEDIA_TYPE = "application/vnd.ocipack.content.v1.tar+gzip"
CONTENT_TYPE_ANNOTATION = "ocipack.dev/content-type"
MODULE_CONTENT_TYPE = "module"
MODULE_VENDOR_CONTENT_TYPE = "module/vendor"
ANY_CONTENT_TYPE = ""
TEMP_PREFIX = "ocipack"

_EMPTY_CONFIG = b"{}"
_VENDOR_IGNORE_PATHS = ["/*", "!/cue.mod"]
_MODULE_EXTRA_IGNORE = "cue.mod/"


def _package(dst_file: Path, content_path: str, ignore_paths: list[str], what: str) -> bytes:
    try:
        build_artifact(str(dst_file), content_path, ignore_paths)
    except OSError as err:
        raise OSError(f"packaging {what} failed: {err}") from err
    return dst_file.read_bytes()


def _push_image(client: RegistryClient, ref: Reference, annotations: dict[str, str] | None,
                layers: list[tuple[bytes, str]]) -> str:
    """Upload config, layers and manifest; return the digest URL of the artifact."""
    try:
        config_digest = client.push_blob(ref, _EMPTY_CONFIG)
        descriptors = [
            {
                "mediaType": CONTENT_MEDIA_TYPE,
                "size": len(data),
                "digest": client.push_blob(ref, data),
                "annotations": {CONTENT_TYPE_ANNOTATION: content_type},
            }
            for data, content_type in layers
        ]
        manifest: dict = {
            "schemaVersion": 2,
            "mediaType": OCI_MANIFEST,
            "config": {
                "mediaType": CONFIG_MEDIA_TYPE,
                "size": len(_EMPTY_CONFIG),
                "digest": config_digest,
            },
            "layers": descriptors,
        }
        if annotations:
            manifest["annotations"] = dict(annotations)
        raw = json.dumps(manifest, separators=(",", ":")).encode()
        client.push_manifest(ref, raw, OCI_MANIFEST)
    except RegistryError as err:
        raise RegistryError(f"pushing artifact failed: {err}", err.status_code) from err

    digest = "sha256:" + hashlib.sha256(raw).hexdigest()
    return f"{ARTIFACT_PREFIX}{ref.with_digest(digest)}"


def push_artifact(oci_url: str, content_path: str, ignore_paths: list[str], content_type: str,
                  annotations: dict[str, str] | None,
                  options: RegistryOptions | None = None) -> str:
    """Package the content in one annotated layer, push it and return the digest URL."""
    ref = parse_artifact_ref(oci_url)
    with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as tmp:
        data = _package(Path(tmp) / "artifact.tgz", content_path, list(ignore_paths), "content")
        return _push_image(RegistryClient(options), ref, annotations, [(data, content_type)])


def push_module(oci_url: str, content_path: str, ignore_paths: list[str],
                annotations: dict[str, str] | None,
                options: RegistryOptions | None = None) -> str:
    """Push a module as a vendor layer (cue.mod) and a module layer; return the digest URL."""
    ref = parse_artifact_ref(oci_url)
    with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as tmp:
        vendor = _package(Path(tmp) / "vendor.tgz", content_path,
                          _VENDOR_IGNORE_PATHS, "vendor layer")
        module = _package(Path(tmp) / "module.tgz", content_path,
                          [*ignore_paths, _MODULE_EXTRA_IGNORE], "module layer")
        return _push_image(RegistryClient(options), ref, annotations, [
            (vendor, MODULE_VENDOR_CONTENT_TYPE),
            (module, MODULE_CONTENT_TYPE),
        ])