import json
from datetime import datetime, timedelta, timezone

import pytest

from print_spooler.core.models import JobStatus, PrintJob, PrintSettings
from print_spooler.core.store import SpoolerStore


def _job(name: str = "test.txt", status: JobStatus = JobStatus.QUEUED, **kwargs) -> PrintJob:
    job = PrintJob.create(name, "user1", PrintSettings.a4_default(), kwargs.pop("paths", []))
    job.status = status
    for key, value in kwargs.items():
        setattr(job, key, value)
    return job


@pytest.fixture
def store(tmp_path):
    return SpoolerStore(tmp_path / "spool")


def test_submit_creates_json_record(store):
    job = _job()
    store.submit(job)

    assert (store.spool_directory / f"{job.id}.json").is_file()
    assert [j.id for j in store.list_jobs()] == [job.id]


def test_submit_rejects_duplicate_ids(store):
    job = _job()
    store.submit(job)
    with pytest.raises(ValueError):
        store.submit(job)


def test_restart_loads_existing_jobs(tmp_path):
    spool = tmp_path / "spool"
    first = SpoolerStore(spool)
    job1 = _job("doc1.pdf", paths=["/tmp/doc1.pdf"])
    job2 = _job("doc2.png")
    job2.append_error("OSError: boom")
    first.submit(job1)
    first.submit(job2)

    restarted = SpoolerStore(spool)
    loaded = {j.id: j for j in restarted.list_jobs()}

    assert set(loaded) == {job1.id, job2.id}
    assert loaded[job1.id] == job1
    assert loaded[job2.id] == job2


def test_corrupt_record_is_skipped(tmp_path):
    spool = tmp_path / "spool"
    good = SpoolerStore(spool)
    job = _job()
    good.submit(job)
    (spool / "broken.json").write_text("{ not json", encoding="utf-8")
    (spool / "wrong-shape.json").write_text('{"status": "NOPE"}', encoding="utf-8")

    restarted = SpoolerStore(spool)

    assert [j.id for j in restarted.list_jobs()] == [job.id]


def test_list_jobs_orders_by_submission_time(store):
    base = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    late = _job("late", submitted_at=base + timedelta(minutes=5))
    early = _job("early", submitted_at=base)
    middle = _job("middle", submitted_at=base + timedelta(minutes=1))
    for j in (late, early, middle):
        store.submit(j)

    assert [j.document_name for j in store.list_jobs()] == ["early", "middle", "late"]


def test_returned_jobs_are_snapshots(store):
    job = _job()
    store.submit(job)

    snapshot = store.list_jobs()[0]
    snapshot.status = JobStatus.FAILED
    snapshot.append_error("local only")

    stored = store.get(job.id)
    assert stored.status is JobStatus.QUEUED
    assert stored.error_log == []


def test_update_persists_changes(tmp_path):
    spool = tmp_path / "spool"
    store = SpoolerStore(spool)
    job = _job()
    store.submit(job)

    job.status = JobStatus.PREVIEWING
    store.update(job)

    assert store.get(job.id).status is JobStatus.PREVIEWING
    assert SpoolerStore(spool).get(job.id).status is JobStatus.PREVIEWING


def test_update_unknown_job_is_noop(store):
    ghost = _job()
    store.update(ghost)
    assert store.list_jobs() == []
    assert not (store.spool_directory / f"{ghost.id}.json").exists()


@pytest.mark.parametrize(
    "status,allowed",
    [(s, s in (JobStatus.QUEUED, JobStatus.PRINTING)) for s in JobStatus],
)
def test_cancel_only_from_queued_or_printing(store, status, allowed):
    job = _job(status=status)
    store.submit(job)

    assert store.cancel(job.id) is allowed
    expected = JobStatus.CANCELLED if allowed else status
    assert store.get(job.id).status is expected


@pytest.mark.parametrize("status", list(JobStatus))
def test_retry_only_from_failed(store, status):
    job = _job(status=status)
    job.append_error("RuntimeError: first attempt")
    store.submit(job)

    result = store.retry(job.id)

    stored = store.get(job.id)
    if status is JobStatus.FAILED:
        assert result is True
        assert stored.status is JobStatus.QUEUED
        assert stored.error_log == []
    else:
        assert result is False
        assert stored.status is status
        assert len(stored.error_log) == 1


@pytest.mark.parametrize("status", list(JobStatus))
def test_confirm_print_only_from_previewing(store, status):
    job = _job(status=status)
    store.submit(job)

    assert store.confirm_print(job.id) is (status is JobStatus.PREVIEWING)
    expected = JobStatus.PRINTING if status is JobStatus.PREVIEWING else status
    assert store.get(job.id).status is expected


def test_transitions_on_unknown_job_are_noops(store):
    assert store.cancel("missing") is False
    assert store.retry("missing") is False
    assert store.confirm_print("missing") is False
    assert store.transition("missing", JobStatus.QUEUED, JobStatus.PREVIEWING) is None


def test_remove_deletes_record_and_spooled_sources(tmp_path, store):
    src = tmp_path / "notes.txt"
    src.write_text("hello", encoding="utf-8")
    job = _job()
    spooled = store.spool_source(src, job.id)
    job.source_paths = [spooled]
    store.submit(job)

    assert store.remove(job.id) is True

    assert store.get(job.id) is None
    assert not (store.spool_directory / f"{job.id}.json").exists()
    assert not (store.spool_directory / job.id).exists()
    assert SpoolerStore(store.spool_directory).list_jobs() == []
    assert store.remove(job.id) is False


def test_remove_is_not_restricted_to_terminal_states(store):
    job = _job(status=JobStatus.PRINTING)
    store.submit(job)
    assert store.remove(job.id) is True


def test_spool_source_copies_file(tmp_path, store):
    src = tmp_path / "my report.txt"
    src.write_text("line 1\nline 2\n", encoding="utf-8")

    spooled = store.spool_source(src, "job-1")

    assert spooled.startswith(str(store.spool_directory.resolve()))
    assert spooled.endswith("my_report.txt")
    with open(spooled, encoding="utf-8") as f:
        assert f.read() == "line 1\nline 2\n"


def test_spool_source_missing_file_raises(tmp_path, store):
    with pytest.raises(OSError):
        store.spool_source(tmp_path / "nope.txt", "job-1")


def test_count_by_status(store):
    store.submit(_job(status=JobStatus.QUEUED))
    store.submit(_job(status=JobStatus.QUEUED))
    store.submit(_job(status=JobStatus.FAILED))
    assert store.count_by_status() == {"QUEUED": 2, "FAILED": 1}


def test_naive_submission_time_loads_beside_aware_records(tmp_path):
    spool = tmp_path / "spool"
    first = SpoolerStore(spool)
    aware = _job("aware", submitted_at=datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
    first.submit(aware)
    naive = _job("naive").to_dict()
    naive["submittedAt"] = "2024-01-01T10:00:00"
    (spool / f"{naive['id']}.json").write_text(json.dumps(naive), encoding="utf-8")

    restarted = SpoolerStore(spool)
    jobs = restarted.list_jobs()

    assert [j.document_name for j in jobs] == ["aware", "naive"]
    assert jobs[1].submitted_at == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert restarted.first_with_status(JobStatus.QUEUED).id == aware.id


@pytest.mark.parametrize("status", list(JobStatus))
def test_mark_failed_only_from_previewing_or_printing(store, status):
    job = _job(status=status)
    store.submit(job)
    allowed = status in (JobStatus.PREVIEWING, JobStatus.PRINTING)

    assert store.mark_failed(job.id, "OSError: disk full") is allowed

    stored = store.get(job.id)
    if allowed:
        assert stored.status is JobStatus.FAILED
        assert len(stored.error_log) == 1
        assert stored.error_log[0].endswith(": OSError: disk full")
    else:
        assert stored.status is status
        assert stored.error_log == []


def test_mark_failed_unknown_job_is_noop(store):
    assert store.mark_failed("missing", "boom") is False
