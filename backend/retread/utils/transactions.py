import os
import tempfile
from contextlib import contextmanager
from typing import Iterator

from filelock import FileLock
from sqlalchemy.orm import Session


@contextmanager
def smart_transaction(session: Session) -> Iterator:
    """
    Commit everything done inside the block, or roll it all back on error.
    Works whether or not the session already autobegan a transaction
    (e.g. after a load), so callers never end up inside a savepoint that
    is released but never committed.
    Usage:
        with smart_transaction(db):
            ... DB work ...
    """
    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        raise


def lock_path(name: str) -> str:
    locks_dir = os.path.join(tempfile.gettempdir(), "retread_locks")
    os.makedirs(locks_dir, exist_ok=True)
    return os.path.join(locks_dir, f"{name}.lock")


@contextmanager
def store_lock(name: str = "shipments", timeout: float = 10.0) -> Iterator:
    """
    Serialise read-validate-write cycles on the shipment collection across
    worker processes. Raises filelock.Timeout when the lock stays busy.
    """
    lock = FileLock(lock_path(name))
    with lock.acquire(timeout=timeout):
        yield
