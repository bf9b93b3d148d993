import gc
import threading
import time

import pytest

from image_assignment_server.errors import DecodeError
from image_assignment_server.models import Identity
from image_assignment_server.submission_recorder import (
    POLICY_ALWAYS,
    IdentityLocks,
    SubmissionRecorder,
)


@pytest.fixture
def split_project(splitter, make_master):
    splitter.split(make_master(7), 3, project_name="demo")


def _payload(resolver, assignment_id, labeled):
    data = resolver.resolve("demo", assignment_id).to_dict()
    data["numLabeledImages"] = labeled
    return data


def test_complete_submission_increments_once(split_project, recorder, resolver, storage):
    stored = recorder.record(_payload(resolver, "000001", 3))

    assert stored.progress.num_submissions == 1
    assert stored.submit_time > 0

    latest = storage.read_record(storage.latest_submission_path("demo", "000001"))
    assert latest["numSubmissions"] == 1
    assert latest["numLabeledImages"] == 3
    assert latest["submitTime"] == stored.submit_time


def test_incomplete_submission_does_not_increment(split_project, recorder, resolver):
    stored = recorder.record(_payload(resolver, "000000", 2))
    assert stored.progress.num_submissions == 0


def test_resubmitting_complete_state_does_not_increment_again(split_project, recorder, resolver):
    recorder.record(_payload(resolver, "000001", 3))
    stored = recorder.record(_payload(resolver, "000001", 3))
    assert stored.progress.num_submissions == 1


def test_completing_again_after_edit_increments(split_project, recorder, resolver):
    recorder.record(_payload(resolver, "000001", 3))
    recorder.record(_payload(resolver, "000001", 2))
    stored = recorder.record(_payload(resolver, "000001", 3))
    assert stored.progress.num_submissions == 2


def test_always_policy_increments_every_complete_submission(split_project, storage, resolver):
    recorder = SubmissionRecorder(storage, resolver, completion_policy=POLICY_ALWAYS)
    first = recorder.record(_payload(resolver, "000001", 3))
    second = recorder.record(first.to_dict())
    assert first.progress.num_submissions == 1
    assert second.progress.num_submissions == 2


def test_unknown_policy_is_rejected(storage, resolver):
    with pytest.raises(ValueError):
        SubmissionRecorder(storage, resolver, completion_policy="sometimes")


def test_every_submission_is_kept(split_project, recorder, resolver, storage):
    for labeled in (1, 2, 3):
        recorder.record(_payload(resolver, "000000", labeled))

    history = sorted(storage.submission_dir("demo", "000000").glob("*.json"))
    assert len(history) == 4
    assert sum(1 for path in history if path.name == "latest.json") == 1


def test_submission_leaves_assignment_untouched(split_project, recorder, resolver, storage):
    path = storage.assignment_path("demo", "000001")
    before = path.read_bytes()

    recorder.record(_payload(resolver, "000001", 3))

    assert path.read_bytes() == before


def test_submission_without_prior_record(recorder, storage):
    payload = {
        "projectName": "adhoc",
        "assignmentId": "000005",
        "taskSize": 2,
        "numLabeledImages": 2,
        "numSubmissions": 4,
    }
    stored = recorder.record(payload)
    assert stored.progress.num_submissions == 5
    assert storage.latest_submission_path("adhoc", "000005").exists()


@pytest.mark.parametrize(
    "payload",
    [None, [], "text", {"projectName": "demo", "assignmentId": "000000", "taskSize": "three"}],
)
def test_bad_payload_raises_and_writes_nothing(recorder, storage, payload):
    with pytest.raises(DecodeError):
        recorder.record(payload)
    assert not storage.submissions_dir.exists()


def test_log_snapshot_does_not_touch_latest_slot(split_project, recorder, resolver, storage):
    snapshot = recorder.record_log(_payload(resolver, "000000", 1))

    assert snapshot.submit_time > 0
    assert not storage.latest_submission_path("demo", "000000").exists()
    logs = list((storage.log_dir / "demo" / "000000").glob("*.json"))
    assert len(logs) == 1
    assert storage.read_record(logs[0])["numLabeledImages"] == 1


def test_log_snapshot_counts_complete_payload(split_project, recorder, resolver):
    snapshot = recorder.record_log(_payload(resolver, "000002", 3))
    assert snapshot.progress.num_submissions == 1


def test_concurrent_submissions_keep_latest_consistent(
    split_project, recorder, resolver, storage, monkeypatch
):
    workers = 8
    writes = []
    original = storage.write_record

    def slow_write(path, data):
        writes.append((data["workerId"], path.name))
        time.sleep(0.01)
        original(path, data)

    monkeypatch.setattr(storage, "write_record", slow_write)

    barrier = threading.Barrier(workers)
    stored = {}
    errors = []

    def submit(worker_id):
        payload = _payload(resolver, "000001", 3)
        payload["workerId"] = worker_id
        barrier.wait()
        try:
            stored[worker_id] = recorder.record(payload)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=submit, args=(f"w{i}",)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(writes) == 2 * workers
    # Each history write is immediately followed by the same worker's latest write.
    for history, latest in zip(writes[0::2], writes[1::2]):
        assert history[0] == latest[0]
        assert history[1] != "latest.json"
        assert latest[1] == "latest.json"

    last_worker = writes[-1][0]
    latest = storage.read_record(storage.latest_submission_path("demo", "000001"))
    assert latest == stored[last_worker].to_dict()
    assert latest["numSubmissions"] == 1
    assert all(s.progress.num_submissions == 1 for s in stored.values())

    history = [
        path
        for path in storage.submission_dir("demo", "000001").glob("*.json")
        if path.name != "latest.json"
    ]
    assert len(history) == workers


def test_identity_lock_is_shared_while_in_use():
    locks = IdentityLocks()
    first = locks.get(Identity("demo", "000000"))

    assert locks.get(Identity("demo", "000000")) is first
    assert locks.get(Identity("demo", "000001")) is not first


def test_identity_locks_are_dropped_after_use(split_project, recorder, resolver):
    for assignment_id in ("000000", "000001", "000002"):
        recorder.record(_payload(resolver, assignment_id, 1))
        recorder.record_log(_payload(resolver, assignment_id, 1))

    gc.collect()
    assert len(recorder._locks) == 0
