"""Detached background work that must never fail the request that spawned it."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

logger = structlog.get_logger()

_AFTER_COMMIT_KEY = "detached_after_commit"


class DetachedTaskGroup:
    """Fire-and-forget tasks with an error channel that only logs.

    Holds a strong reference to each task until it finishes so the event
    loop cannot garbage-collect it mid-flight.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self.failures = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and return immediately."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def spawn_after_commit(
        self,
        db: AsyncSession,
        factory: Callable[[], Coroutine[Any, Any, Any]],
        name: str | None = None,
    ) -> None:
        """Spawn ``factory()`` once the session's outermost transaction commits.

        Work queued inside a savepoint is dropped if that savepoint rolls
        back; everything queued is dropped if the transaction rolls back
        or the session closes without committing.
        """
        sync = db.sync_session
        txn = sync.get_nested_transaction() or sync.get_transaction()
        if txn is None:
            self.spawn(factory(), name=name)
            return
        _listen(sync)
        sync.info.setdefault(_AFTER_COMMIT_KEY, []).append((txn, self, factory, name))

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.warning("detached_task_failed", task=task.get_name(), error=str(exc), exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight tasks; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("detached_tasks_cancelled", count=len(still_running))


# ── Session hooks ──


def _listen(sync: Session) -> None:
    if not event.contains(sync, "after_commit", _run_after_commit):
        event.listen(sync, "after_commit", _run_after_commit)
        event.listen(sync, "after_soft_rollback", _drop_rolled_back)
        event.listen(sync, "after_transaction_end", _drop_on_close)


def _within(txn: SessionTransaction | None, ancestor: SessionTransaction) -> bool:
    while txn is not None:
        if txn is ancestor:
            return True
        txn = txn.parent
    return False


def _run_after_commit(sync: Session) -> None:
    # Also fires when a savepoint is released; only the outermost commit counts.
    if sync.get_nested_transaction() is not None:
        return
    queued = sync.info.pop(_AFTER_COMMIT_KEY, [])
    for _, group, factory, name in queued:
        group.spawn(factory(), name=name)


def _drop_rolled_back(sync: Session, previous_transaction: SessionTransaction) -> None:
    queued = sync.info.get(_AFTER_COMMIT_KEY)
    if not queued:
        return
    kept = [entry for entry in queued if not _within(entry[0], previous_transaction)]
    if len(kept) != len(queued):
        logger.debug("detached_work_dropped", count=len(queued) - len(kept))
    sync.info[_AFTER_COMMIT_KEY] = kept


def _drop_on_close(sync: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is None:
        sync.info.pop(_AFTER_COMMIT_KEY, None)


_group: DetachedTaskGroup | None = None


def init_detached() -> DetachedTaskGroup:
    global _group  # noqa: PLW0603
    _group = DetachedTaskGroup()
    return _group


async def close_detached(timeout: float | None = None) -> None:
    global _group  # noqa: PLW0603
    if _group is not None:
        await _group.drain(timeout)
        _group = None


def get_detached() -> DetachedTaskGroup:
    """Get the application's task group (FastAPI dependency)."""
    if _group is None:
        msg = "Detached task group not initialized. Call init_detached() first."
        raise RuntimeError(msg)
    return _group
