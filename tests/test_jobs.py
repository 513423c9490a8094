import pytest

from ocipack.jobs import (
    CONDITION_RECONCILING,
    CONDITION_STALLED,
    Status,
    job_conditions,
)
from ocipack.resources import to_unstructured


def _job(spec=None, status=None):
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {"name": "job"},
        "spec": spec or {},
        "status": status or {},
    }


def test_job_without_complete_condition_is_in_progress():
    result = job_conditions(to_unstructured(_job()))
    assert result.status == Status.IN_PROGRESS
    assert result.message == "Job in progress. active: 1"
    assert result.conditions[0].type == CONDITION_RECONCILING
    assert result.conditions[0].reason == "JobInProgress"


def test_job_with_complete_condition_true_is_current():
    job = _job(status={"conditions": [{"type": "Complete", "status": "True"}]})
    result = job_conditions(to_unstructured(job))
    assert result.status == Status.CURRENT
    assert result.message == "Job Completed. succeeded: 0/1"
    assert result.conditions == []


def test_job_with_complete_condition_false_is_in_progress():
    job = _job(status={"active": 2, "conditions": [{"type": "Complete", "status": "False"}]})
    result = job_conditions(job)
    assert result.status == Status.IN_PROGRESS
    assert result.message == "Job in progress. active: 2"


def test_completions_default_to_parallelism():
    job = _job(spec={"parallelism": 3},
               status={"succeeded": 3, "conditions": [{"type": "Complete", "status": "True"}]})
    assert job_conditions(job).message == "Job Completed. succeeded: 3/3"


def test_failed_job():
    job = _job(spec={"completions": 2},
               status={"failed": 3, "conditions": [
                   {"type": "Failed", "status": "True", "message": "BackoffLimitExceeded"}]})
    result = job_conditions(job)
    assert result.status == Status.FAILED
    assert result.message == "Job Failed. failed: 3/2 error: BackoffLimitExceeded"
    assert result.conditions[0].type == CONDITION_STALLED
    assert result.conditions[0].reason == "JobFailed"
    assert result.conditions[0].message == "BackoffLimitExceeded"


def test_malformed_conditions_raise():
    with pytest.raises(ValueError):
        job_conditions(_job(status={"conditions": "oops"}))