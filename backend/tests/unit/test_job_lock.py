"""Tests for the cross-process job lock"""
from helpdesk.repositories.job_lock_repo import JobLockRepository


def test_lock_is_exclusive(mongo_db):
    repo = JobLockRepository()

    assert repo.acquire("nightly", "server-a", 60)
    assert not repo.acquire("nightly", "server-b", 60)
    assert repo.get_lock("nightly")["locked_by"] == "server-a"


def test_release_lets_others_acquire(mongo_db):
    repo = JobLockRepository()
    repo.acquire("nightly", "server-a", 60)

    assert repo.release("nightly", "server-a")
    assert repo.acquire("nightly", "server-b", 60)


def test_only_holder_can_release(mongo_db):
    repo = JobLockRepository()
    repo.acquire("nightly", "server-a", 60)

    assert not repo.release("nightly", "server-b")
    assert not repo.acquire("nightly", "server-b", 60)


def test_expired_lock_can_be_taken(mongo_db):
    repo = JobLockRepository()
    repo.acquire("nightly", "crashed-server", 60)
    mongo_db.job_locks.update_one({"job_name": "nightly"}, {"$set": {"locked_until_ts": 0}})

    assert repo.acquire("nightly", "server-b", 60)


def test_locks_are_per_job(mongo_db):
    repo = JobLockRepository()

    assert repo.acquire("nightly", "server-a", 60)
    assert repo.acquire("hourly", "server-b", 60)
