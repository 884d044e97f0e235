from __future__ import annotations

from datetime import timedelta

from reliefdesk.core.scheduler import MATCHING_LOCK, LockManager
from reliefdesk.persistence.models import RunLock, utcnow


def test_acquire_and_release(session):
    locks = LockManager(session)

    assert locks.acquire(MATCHING_LOCK, "worker-a")
    assert locks.is_locked(MATCHING_LOCK)
    assert locks.holder(MATCHING_LOCK) == "worker-a"

    assert locks.release(MATCHING_LOCK, "worker-a")
    assert not locks.is_locked(MATCHING_LOCK)
    assert locks.holder(MATCHING_LOCK) is None


def test_second_holder_is_refused(session):
    locks = LockManager(session)
    locks.acquire(MATCHING_LOCK, "worker-a")

    assert not locks.acquire(MATCHING_LOCK, "worker-b")
    assert not locks.release(MATCHING_LOCK, "worker-b")
    assert locks.holder(MATCHING_LOCK) == "worker-a"


def test_same_holder_can_reacquire(session):
    locks = LockManager(session)
    locks.acquire(MATCHING_LOCK, "worker-a", ttl_minutes=1)

    assert locks.acquire(MATCHING_LOCK, "worker-a", ttl_minutes=60)
    lock = session.query(RunLock).filter_by(lock_name=MATCHING_LOCK).one()
    assert lock.expires_at > utcnow() + timedelta(minutes=30)


def test_expired_lock_can_be_taken_over(session):
    session.add(
        RunLock(
            lock_name=MATCHING_LOCK,
            holder_id="crashed-worker",
            acquired_at=utcnow() - timedelta(hours=2),
            expires_at=utcnow() - timedelta(hours=1),
        )
    )
    session.commit()
    locks = LockManager(session)

    assert not locks.is_locked(MATCHING_LOCK)
    assert locks.acquire(MATCHING_LOCK, "worker-b")
    assert locks.holder(MATCHING_LOCK) == "worker-b"


def test_cleanup_expired(session):
    session.add_all(
        [
            RunLock(lock_name="old", holder_id="x", expires_at=utcnow() - timedelta(minutes=5)),
            RunLock(lock_name="live", holder_id="y", expires_at=utcnow() + timedelta(minutes=5)),
        ]
    )
    session.commit()

    assert LockManager(session).cleanup_expired() == 1
    assert [lock.lock_name for lock in session.query(RunLock).all()] == ["live"]
