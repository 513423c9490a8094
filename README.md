# ocipack

`ocipack` is a library that stores directories of configuration as OCI
artifacts in a container registry speaking the distribution API, and keeps
inventories of the Kubernetes objects installed from them.

It provides:

- `ocipack.reference`: validation of `oci://` addresses and their split into
  registry, repository, tag and digest;
- `ocipack.build`: packing of a directory into a reproducible tar+gzip
  archive, honouring gitignore-style exclusion patterns, leaving out symlinks
  and dropping owner ids and timestamps;
- `ocipack.metadata`: OpenContainers annotations from `key=value` arguments
  and from Git (created date, source URL, revision);
- `ocipack.options` and `ocipack.registry`: connection settings and a small
  HTTP client for the registry API (manifests, blobs, tags), with Basic and
  Bearer token authentication;
- `ocipack.push` and `ocipack.pull`: upload and download of plain artifacts
  (one layer) and modules (a vendored `cue.mod` layer and a content layer),
  with an optional on-disk cache of module layers;
- `ocipack.listing`: tags of an artifact, or the semver versions of a module,
  newest first and with `latest` at the top when it exists;
- `ocipack.signing`: signing and verification through the `cosign` command;
- `ocipack.inventory`, `ocipack.jobs`, `ocipack.resources` and
  `ocipack.conflicts`: inventory bookkeeping, Job readiness, default apply and
  delete options, and bundle ownership conflict errors.

## Installation

```
pip install ocipack
```

For running the test suite:

```
pip install "ocipack[test]"
pytest
```

## Addresses

Every registry operation takes an address of the form
`oci://<registry>/<org>/<repo>[:tag|@digest]`.

```python
from ocipack.reference import parse_artifact_url, parse_repository_url

parse_artifact_url("oci://ghcr.io/acme/modules/redis:1.0.0")
# 'ghcr.io/acme/modules/redis:1.0.0'
parse_repository_url("oci://ghcr.io/acme/modules/redis:1.0.0")
# 'ghcr.io/acme/modules/redis'
```

An address without the `oci://` prefix, or one that does not parse as a
reference, raises `ValueError`. `parse_digest` also raises when the address
carries no digest.

## Connection options

`registry_options(credentials, insecure)` accepts either `user:password`
credentials or a single registry token, and a flag that makes the client use
plain HTTP. Registries on `localhost` are always reached over plain HTTP.

## Publishing a module

```python
from ocipack.metadata import parse_annotations, append_git_metadata
from ocipack.options import registry_options
from ocipack.push import push_module
from ocipack.registry import tag_artifact

annotations = parse_annotations(["org.opencontainers.image.licenses=Apache-2.0"])
append_git_metadata("./my-module", annotations)

options = registry_options("", False)
digest_url = push_module(
    "oci://registry.example.com/modules/my-module:1.0.0",
    "./my-module",
    ["timoni.ignore"],
    annotations,
    options,
)
tag_artifact(digest_url, "latest", options)
```

`push_module` returns the `oci://...@sha256:...` address of the pushed
manifest. `push_artifact` does the same for a single-layer artifact and also
takes the content type recorded on its layer.

## Fetching

```python
from ocipack.pull import pull_artifact, pull_module
from ocipack.listing import list_module_versions

for ref in list_module_versions("oci://registry.example.com/modules/my-module", True, options):
    print(ref.version, ref.digest)

module = pull_module(
    "oci://registry.example.com/modules/my-module:1.0.0",
    "./out",
    "./cache",
    options,
)
print(module.version)
```

Pass an empty cache directory to `pull_module` to download layers into a
temporary directory that is removed afterwards. A cached layer that fails to
extract is removed from the cache. `pull_artifact` extracts only the layers
whose content type matches the one asked for (`""` matches any), and raises
`ValueError` when none does.

## Signing

```python
import logging

from ocipack.signing import sign_artifact, verify_artifact

log = logging.getLogger("ocipack")
sign_artifact(log, "cosign", digest_url, "cosign.key")
verify_artifact(log, "cosign", digest_url, "cosign.pub", "", "", "", "")
```

The `cosign` executable must be on `PATH`. Without a key, signing is keyless,
and verification needs a certificate identity and an OIDC issuer (each as an
exact value or a regular expression). Each line of the command's output is
passed to `log.info`; a non-zero exit raises `subprocess.CalledProcessError`.

## Inventories

`ocipack.inventory.InstanceManager` records the objects an instance applied as
`namespace_name_group_kind` entries, lists them back as minimal objects in
apply order and, with `diff`, returns the ones missing from a newer inventory
so they can be pruned. `ocipack.jobs.job_conditions` reports whether a Job
object is in progress, complete or failed. `ocipack.resources` holds the
default apply and delete options and selects the objects of a change set by
action.

## What it does not do

`ocipack` has no command-line program; it is used from Python. It does not
connect to a Kubernetes cluster: inventories, Job status and apply or delete
options work on plain dictionaries and data classes, and applying, waiting on
or deleting objects is left to the caller.