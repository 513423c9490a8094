"""Download and extraction of OpenContainers artifacts and modules."""

from __future__ import annotations

import io
import json
import shutil
import tarfile
import tempfile
from contextlib import ExitStack
from pathlib import Path
from typing import BinaryIO

from .metadata import REVISION_ANNOTATION, VERSION_ANNOTATION
from .options import RegistryOptions
from .push import ANY_CONTENT_TYPE, CONFIG_MEDIA_TYPE, CONTENT_MEDIA_TYPE, \
    CONTENT_TYPE_ANNOTATION, TEMP_PREFIX
from .reference import ARTIFACT_PREFIX, Reference, parse_artifact_ref
from .registry import ModuleReference, RegistryClient, RegistryError

_EXTRACT_ERRORS = (tarfile.TarError, OSError, ValueError, EOFError)


def _untar(fileobj: BinaryIO, dst_path: str) -> None:
    """Extract directories and regular files of a tar+gzip stream below ``dst_path``."""
    root = Path(dst_path).resolve()
    root.mkdir(parents=True, exist_ok=True)
    with tarfile.open(fileobj=fileobj, mode="r:gz") as tar:
        for member in tar:
            target = (root / member.name).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"illegal file path in archive: {member.name}")
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
            elif member.isreg():
                target.parent.mkdir(parents=True, exist_ok=True)
                source = tar.extractfile(member)
                if source is None:
                    continue
                with source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                target.chmod((member.mode & 0o777) | 0o600)


def _fetch_manifest(client: RegistryClient, ref: Reference) -> dict:
    try:
        raw = client.manifest(ref)
    except RegistryError as err:
        raise RegistryError(f"pulling artifact manifest failed: {err}", err.status_code) from err
    try:
        manifest = json.loads(raw)
    except ValueError as err:
        raise RegistryError(f"parsing artifact manifest failed: {err}") from err
    if not isinstance(manifest, dict):
        raise RegistryError("parsing artifact manifest failed: not a JSON object")

    media_type = (manifest.get("config") or {}).get("mediaType", "")
    if media_type != CONFIG_MEDIA_TYPE:
        raise ValueError(f"unsupported artifact type '{media_type}', must be '{CONFIG_MEDIA_TYPE}'")
    return manifest


def _content_layers(manifest: dict) -> list[dict]:
    return [layer for layer in manifest.get("layers") or []
            if layer.get("mediaType") == CONTENT_MEDIA_TYPE]


def pull_artifact(oci_url: str, dst_path: str, content_type: str,
                  options: RegistryOptions | None = None) -> None:
    """Extract the artifact layers that match the content type into ``dst_path``."""
    ref = parse_artifact_ref(oci_url)
    client = RegistryClient(options)
    manifest = _fetch_manifest(client, ref)

    found = False
    for layer in _content_layers(manifest):
        layer_type = (layer.get("annotations") or {}).get(CONTENT_TYPE_ANNOTATION)
        if content_type != ANY_CONTENT_TYPE and layer_type != content_type:
            continue
        found = True
        digest = layer["digest"]
        try:
            blob = client.pull_blob(ref, digest)
        except RegistryError as err:
            raise RegistryError(f"pulling artifact layer {digest} failed: {err}",
                                err.status_code) from err
        try:
            _untar(io.BytesIO(blob), dst_path)
        except _EXTRACT_ERRORS as err:
            raise RegistryError(f"extracting artifact layer {digest} failed: {err}") from err

    if not found:
        if content_type:
            raise ValueError(f"no layer found in artifact with media type '{CONTENT_MEDIA_TYPE}' "
                             f"and content type '{content_type}'")
        raise ValueError(f"no layer found in artifact with media type '{CONTENT_MEDIA_TYPE}'")


def pull_module(oci_url: str, dst_path: str, cache_dir: str | None,
                options: RegistryOptions | None = None) -> ModuleReference:
    """Extract a module into ``dst_path``, keeping its layers in ``cache_dir`` when given."""
    ref = parse_artifact_ref(oci_url)
    client = RegistryClient(options)

    try:
        digest = client.digest(ref)
    except RegistryError as err:
        raise RegistryError(f"resolving digest of '{oci_url}' failed: {err}",
                            err.status_code) from err

    manifest = _fetch_manifest(client, ref)
    annotations = dict(manifest.get("annotations") or {})
    version = annotations.get(VERSION_ANNOTATION, annotations.get(REVISION_ANNOTATION, ""))
    module_ref = ModuleReference(
        repository=f"{ARTIFACT_PREFIX}{ref.name}",
        version=version,
        digest=digest,
        annotations=annotations,
    )

    with ExitStack() as stack:
        if not cache_dir:
            cache_dir = stack.enter_context(tempfile.TemporaryDirectory(prefix=TEMP_PREFIX))
        cache = Path(cache_dir)

        layers = _content_layers(manifest)
        if not layers:
            raise ValueError(f"no layer found in artifact with media type '{CONTENT_MEDIA_TYPE}'")

        for layer in layers:
            layer_digest = layer["digest"]
            cached = cache / f"{layer_digest.split(':', 1)[-1]}.tgz"

            if not cached.exists():
                try:
                    blob = client.pull_blob(ref, layer_digest)
                except RegistryError as err:
                    raise RegistryError(f"pulling layer {layer_digest} failed: {err}",
                                        err.status_code) from err
                try:
                    cached.write_bytes(blob)
                except OSError as err:
                    raise OSError(f"writing layer to storage failed: {err}") from err

            try:
                reader = open(cached, "rb")
            except OSError as err:
                raise OSError(f"reading layer from storage failed: {err}") from err
            with reader:
                try:
                    _untar(reader, dst_path)
                except _EXTRACT_ERRORS as err:
                    reader.close()
                    cached.unlink(missing_ok=True)
                    raise RegistryError(f"extracting layer {layer_digest} failed: {err}") from err

    return module_ref