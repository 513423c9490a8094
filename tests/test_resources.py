from dataclasses import dataclass

import pytest

from ocipack.inventory import ObjMetadata, obj_metadata_from_object
from ocipack.resources import (
    DISABLED_VALUE,
    ENABLED_VALUE,
    FORCE_ACTION,
    IF_NOT_PRESENT_ACTION,
    OWNER_GROUP,
    PRUNE_ACTION,
    Action,
    ChangeSetEntry,
    apply_options,
    delete_options,
    select_objects_from_set,
    to_unstructured,
)


def test_apply_options():
    opts = apply_options(True, 30.0)
    assert opts.force is True
    assert opts.wait_timeout == 30.0
    assert opts.force_selector == {FORCE_ACTION: ENABLED_VALUE}
    assert opts.if_not_present_selector == {IF_NOT_PRESENT_ACTION: ENABLED_VALUE}


def test_delete_options():
    opts = delete_options("app", "apps-ns")
    assert opts.propagation_policy == "Background"
    assert opts.inclusions == {
        f"{OWNER_GROUP}/name": "app",
        f"{OWNER_GROUP}/namespace": "apps-ns",
    }
    assert opts.exclusions == {PRUNE_ACTION: DISABLED_VALUE}


def test_select_objects_from_set_filters_by_action():
    deleted = ChangeSetEntry(ObjMetadata("default", "app", "apps", "Deployment"), "v1",
                             "Deployment/default/app", Action.DELETED)
    created = ChangeSetEntry(ObjMetadata("default", "cfg", "", "ConfigMap"), "v1",
                             "ConfigMap/default/cfg", Action.CREATED)
    core_deleted = ChangeSetEntry(ObjMetadata("", "ns", "", "Namespace"), "v1",
                                  "Namespace/ns", Action.DELETED)

    result = select_objects_from_set([deleted, created, core_deleted], Action.DELETED)

    assert [obj_metadata_from_object(o) for o in result] == [
        deleted.obj_metadata, core_deleted.obj_metadata,
    ]
    assert result[0]["apiVersion"].split("/") == [deleted.obj_metadata.group,
                                                  deleted.group_version]
    assert result[1]["apiVersion"] == core_deleted.group_version
    assert "namespace" not in result[1]["metadata"]


def test_select_objects_from_set_no_match():
    entry = ChangeSetEntry(ObjMetadata("default", "cfg", "", "ConfigMap"), "v1",
                           "ConfigMap/default/cfg", Action.UNCHANGED)
    assert select_objects_from_set([entry], Action.DELETED) == []


def test_to_unstructured_makes_deep_copy():
    original = {"kind": "Job", "spec": {"template": {"labels": {"app": "job"}}}}
    result = to_unstructured(original)
    assert result == original
    result["spec"]["template"]["labels"]["app"] = "changed"
    assert original["spec"]["template"]["labels"]["app"] == "job"


def test_to_unstructured_dataclass():
    @dataclass
    class Spec:
        replicas: int

    assert to_unstructured(Spec(replicas=3)) == {"replicas": 3}


def test_to_unstructured_rejects_other_types():
    with pytest.raises(TypeError):
        to_unstructured(42)