"""Inventory of the Kubernetes objects that belong to an instance."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .registry import ModuleReference

API_GROUP = "ocipack.dev"
API_VERSION = "v1alpha1"
INSTANCE_KIND = "Instance"
FIELD_MANAGER = "ocipack"

_FIELD_SEPARATOR = "_"
_COLON_TRANSLATOR = "__"

_KIND_ORDER = {kind: index for index, kind in enumerate([
    "CustomResourceDefinition",
    "Namespace",
    "ClusterClass",
    "RuntimeClass",
    "PriorityClass",
    "StorageClass",
    "VolumeSnapshotClass",
    "IngressClass",
    "GatewayClass",
    "ResourceQuota",
    "ServiceAccount",
    "Role",
    "ClusterRole",
    "RoleBinding",
    "ClusterRoleBinding",
    "ConfigMap",
    "Secret",
    "Service",
    "LimitRange",
    "Deployment",
    "StatefulSet",
    "CronJob",
    "PodDisruptionBudget",
    "MutatingWebhookConfiguration",
    "ValidatingWebhookConfiguration",
])}


@dataclass(frozen=True)
class ObjMetadata:
    """The identity of a Kubernetes object: namespace, name, group and kind."""

    namespace: str
    name: str
    group: str
    kind: str

    def __str__(self) -> str:
        name = self.name.replace(":", _COLON_TRANSLATOR)
        return _FIELD_SEPARATOR.join((self.namespace, name, self.group, self.kind))


def parse_obj_metadata(text: str) -> ObjMetadata:
    """Parse an inventory ID of the form ``namespace_name_group_kind``."""
    namespace, sep, rest = text.partition(_FIELD_SEPARATOR)
    if not sep:
        raise ValueError(f"unable to parse stored object metadata: {text}")
    rest, sep, kind = rest.rpartition(_FIELD_SEPARATOR)
    if not sep:
        raise ValueError(f"unable to parse stored object metadata: {text}")
    name, sep, group = rest.rpartition(_FIELD_SEPARATOR)
    if not sep:
        raise ValueError(f"unable to parse stored object metadata: {text}")
    name = name.replace(_COLON_TRANSLATOR, ":")
    if _FIELD_SEPARATOR in name:
        raise ValueError(f"too many fields within: {text}")
    return ObjMetadata(namespace, name, group, kind)


def _parse_group_version(api_version: str) -> tuple[str, str]:
    if not api_version or api_version == "/":
        return "", ""
    parts = api_version.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"unexpected GroupVersion string: {api_version}")


def _api_version(group: str, version: str) -> str:
    return f"{group}/{version}" if group else version


def _new_object(meta: ObjMetadata, version: str) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if meta.name:
        metadata["name"] = meta.name
    if meta.namespace:
        metadata["namespace"] = meta.namespace
    return {
        "apiVersion": _api_version(meta.group, version),
        "kind": meta.kind,
        "metadata": metadata,
    }


def obj_metadata_from_object(obj: Mapping[str, Any]) -> ObjMetadata:
    """Extract the identity of an unstructured Kubernetes object."""
    try:
        group, _ = _parse_group_version(obj.get("apiVersion") or "")
    except ValueError:
        group = ""
    metadata = obj.get("metadata") or {}
    return ObjMetadata(
        namespace=metadata.get("namespace") or "",
        name=metadata.get("name") or "",
        group=group,
        kind=obj.get("kind") or "",
    )


def _sort_key(obj: Mapping[str, Any]) -> tuple:
    meta = obj_metadata_from_object(obj)
    return (_KIND_ORDER.get(meta.kind, len(_KIND_ORDER)), meta.group, meta.kind,
            meta.namespace, meta.name)


def sort_objects(objects: Iterable[Mapping[str, Any]]) -> list:
    """Return the objects in apply order: by kind, then namespace and name."""
    return sorted(objects, key=_sort_key)


@dataclass
class ResourceRef:
    """An inventory entry: the object ID and its API version."""

    id: str
    version: str


@dataclass
class ResourceInventory:
    entries: list[ResourceRef] = field(default_factory=list)


@dataclass
class Instance:
    """An installed module instance and the objects it owns."""

    name: str = ""
    namespace: str = ""
    module: ModuleReference | None = None
    values: str = ""
    inventory: ResourceInventory | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    images: list[str] = field(default_factory=list)
    last_transition_time: str = ""
    kind: str = INSTANCE_KIND
    api_version: str = f"{API_GROUP}/{API_VERSION}"


@dataclass
class InstanceManager:
    """Operations on the inventory of an instance."""

    instance: Instance

    @classmethod
    def new(cls, name: str, namespace: str, values: str,
            module: ModuleReference | None) -> InstanceManager:
        return cls(Instance(name=name, namespace=namespace, module=module, values=values))

    def add_objects(self, objects: Iterable[Mapping[str, Any]]) -> None:
        """Record the given objects in the inventory, which must still be empty."""
        entries = []
        for obj in sort_objects(objects):
            _, version = _parse_group_version(obj.get("apiVersion") or "")
            entries.append(ResourceRef(id=str(obj_metadata_from_object(obj)), version=version))
        if self.instance.inventory is not None:
            raise ValueError(f"inventory already contains objects: {self.instance.inventory}")
        self.instance.inventory = ResourceInventory(entries)

    def version_of(self, obj_metadata: ObjMetadata) -> str:
        """Return the API version recorded for the object, or an empty string."""
        inventory = self.instance.inventory
        if inventory is not None:
            wanted = str(obj_metadata)
            for entry in inventory.entries:
                if entry.id == wanted:
                    return entry.version
        return ""

    def list_objects(self) -> list[dict[str, Any]]:
        """Return the inventory entries as minimal unstructured objects."""
        inventory = self.instance.inventory
        entries = inventory.entries if inventory is not None else []
        objects = [_new_object(parse_obj_metadata(entry.id), entry.version) for entry in entries]
        return sort_objects(objects)

    def list_meta(self) -> list[ObjMetadata]:
        """Return the identities held by the inventory."""
        inventory = self.instance.inventory
        if inventory is None:
            return []
        return [parse_obj_metadata(entry.id) for entry in inventory.entries]

    def diff(self, target: ResourceInventory | None) -> list[dict[str, Any]]:
        """Return the objects of this inventory that are missing from ``target``."""
        if self.instance.inventory is None or target is None:
            return []
        current = self.list_meta()
        wanted = set(InstanceManager(Instance(inventory=target)).list_meta())
        stale = [meta for meta in current if meta not in wanted]
        return sort_objects(_new_object(meta, self.version_of(meta)) for meta in stale)