"""Job Lock Repository - Cross-process locks for scheduled jobs"""
from typing import Any, Dict, Optional
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from .mongo_client import get_collection
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class JobLockRepository:
    """
    Named locks with an expiry.

    Expiry is stored as epoch seconds (``locked_until_ts``) so the lock
    query compares plain numbers. A crashed holder loses the lock once the
    expiry passes.
    """

    def __init__(self):
        self._locks: Collection = get_collection("job_locks")

    def acquire(self, job_name: str, owner: str, lock_seconds: int) -> bool:
        """
        Try to take the lock using an atomic find-and-modify.

        Returns:
            True if this owner now holds the lock, False otherwise
        """
        now_ts = utc_now().timestamp()

        try:
            self._ensure_lock_document(job_name)
            result = self._locks.find_one_and_update(
                {"job_name": job_name, "locked_until_ts": {"$lte": now_ts}},
                {
                    "$set": {
                        "locked_until_ts": now_ts + lock_seconds,
                        "locked_by": owner,
                        "locked_at_ts": now_ts,
                    }
                }
            )
        except PyMongoError as e:
            logger.error(
                f"Database error acquiring lock {job_name}: {e}",
                extra={"action": "lock_acquire", "error_code": type(e).__name__}
            )
            return False

        if result is None:
            logger.info(f"Lock {job_name} is held by another process", extra={"action": "lock_acquire"})
            return False

        logger.debug(f"Lock {job_name} acquired by {owner}", extra={"action": "lock_acquire"})
        return True

    def release(self, job_name: str, owner: str) -> bool:
        """Release the lock if this owner holds it"""
        result = self._locks.update_one(
            {"job_name": job_name, "locked_by": owner},
            {"$set": {"locked_until_ts": 0, "locked_by": None}}
        )
        released = result.modified_count > 0
        if not released:
            logger.warning(f"Lock {job_name} was not held by {owner}", extra={"action": "lock_release"})
        return released

    def get_lock(self, job_name: str) -> Optional[Dict[str, Any]]:
        doc = self._locks.find_one({"job_name": job_name})
        if doc:
            doc.pop("_id", None)
        return doc

    def _ensure_lock_document(self, job_name: str) -> None:
        try:
            self._locks.update_one(
                {"job_name": job_name},
                {"$setOnInsert": {"job_name": job_name, "locked_until_ts": 0, "locked_by": None}},
                upsert=True
            )
        except DuplicateKeyError:
            # Created concurrently by another process
            pass
