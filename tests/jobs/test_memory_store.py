"""Tests for InMemoryJobStore."""

from datetime import UTC, datetime

import pytest

from jobspine.core.enums import JobStatus
from jobspine.core.errors import JobNotFoundError
from jobspine.jobs.models import JobCreate, JobUpdate
from jobspine.jobs.store import InMemoryJobStore, JobStore

RAN_AT = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)
NEXT = datetime(2026, 3, 14, 9, 35, tzinfo=UTC)


class TestCrud:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, JobStore)

    def test_create_assigns_id_and_timestamps(self, store):
        job = store.create(JobCreate(name="a", cron_schedule="*/5 * * * *", type="email"))

        assert len(job.id) == 26
        assert job.status == JobStatus.ACTIVE
        assert job.created_at.tzinfo is not None
        assert job.last_run is None

    def test_find_by_id_missing(self, store):
        with pytest.raises(JobNotFoundError) as exc_info:
            store.find_by_id("nope")
        assert exc_info.value.message == "Job not found: nope"

    def test_returned_jobs_are_copies(self, store, make_job):
        job = make_job(data={"k": 1})
        job.data["k"] = 2
        job.name = "changed"

        stored = store.find_by_id(job.id)
        assert stored.data == {"k": 1}
        assert stored.name == "digest"

    def test_find_all_newest_first(self, store, make_job):
        ids = [make_job(name=f"job-{i}").id for i in range(3)]
        assert [j.id for j in store.find_all()] == list(reversed(ids))

    def test_find_all_filters_and_pages(self, store, make_job):
        make_job(type="email")
        make_job(type="email", status=JobStatus.PAUSED)
        make_job(type="report")

        assert len(store.find_all(type="email")) == 2
        assert len(store.find_all(status=JobStatus.PAUSED)) == 1
        assert len(store.find_all(limit=2)) == 2
        assert len(store.find_all(limit=2, offset=2)) == 1
        assert store.count(type="email") == 2
        assert store.count() == 3

    def test_find_active_jobs(self, store, make_job):
        active = make_job()
        make_job(status=JobStatus.PAUSED)
        assert [j.id for j in store.find_active_jobs()] == [active.id]

    def test_update_bumps_updated_at(self, store, make_job):
        job = make_job()
        updated = store.update(job.id, JobUpdate(description="new"))

        assert updated.description == "new"
        assert updated.updated_at >= job.updated_at
        assert updated.created_at == job.created_at

    def test_update_missing(self, store):
        with pytest.raises(JobNotFoundError):
            store.update("nope", JobUpdate(name="x"))

    def test_delete(self, store, make_job):
        job = make_job()
        store.delete(job.id)

        assert len(store) == 0
        with pytest.raises(JobNotFoundError):
            store.delete(job.id)


class TestBookkeeping:
    def test_mark_completed_sets_all_fields(self, store, make_job):
        job = make_job()
        updated = store.mark_completed(job.id, ran_at=RAN_AT, next_run=NEXT)

        assert updated.status == JobStatus.ACTIVE
        assert updated.last_run == RAN_AT
        assert updated.next_run == NEXT

    def test_mark_completed_without_next_run_keeps_old(self, store, make_job):
        job = make_job(next_run=NEXT)
        assert store.mark_completed(job.id, ran_at=RAN_AT).next_run == NEXT

    def test_mark_failed_leaves_next_run(self, store, make_job):
        job = make_job(next_run=NEXT)
        updated = store.mark_failed(job.id, ran_at=RAN_AT)

        assert updated.status == JobStatus.FAILED
        assert updated.last_run == RAN_AT
        assert updated.next_run == NEXT

    def test_update_next_run(self, store, make_job):
        job = make_job()
        assert store.update_next_run(job.id, NEXT).next_run == NEXT
        assert store.update_next_run(job.id, None).next_run is None

    def test_bookkeeping_on_missing_job(self, store):
        with pytest.raises(JobNotFoundError):
            store.mark_completed("nope", ran_at=RAN_AT)
        with pytest.raises(JobNotFoundError):
            store.mark_failed("nope", ran_at=RAN_AT)

    def test_naive_instants_normalized(self, store, make_job):
        job = make_job()
        updated = store.mark_completed(job.id, ran_at=RAN_AT.replace(tzinfo=None))
        assert updated.last_run == RAN_AT

    @pytest.mark.parametrize("held", [JobStatus.PAUSED, JobStatus.COMPLETED])
    def test_run_outcome_does_not_override_held_status(self, store, make_job, held):
        job = make_job()
        store.update(job.id, JobUpdate(status=held))

        completed = store.mark_completed(job.id, ran_at=RAN_AT, next_run=NEXT)
        assert completed.status == held
        assert completed.last_run == RAN_AT
        assert completed.next_run == NEXT

        assert store.mark_failed(job.id, ran_at=RAN_AT).status == held

    def test_failed_job_reactivated_by_successful_run(self, store, make_job):
        job = make_job()
        store.mark_failed(job.id, ran_at=RAN_AT)
        assert store.mark_completed(job.id, ran_at=RAN_AT).status == JobStatus.ACTIVE


def test_independent_instances():
    a, b = InMemoryJobStore(), InMemoryJobStore()
    a.create(JobCreate(name="a", cron_schedule="* * * * *", type="email"))
    assert len(b) == 0
