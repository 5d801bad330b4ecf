"""Background execution of git operations for the interactive interface."""

import itertools
import queue
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Deque, Dict, List, Optional

from worktree_hub.exceptions import TaskCancelledError, TaskRejectedError, TaskTimeoutError
from worktree_hub.logging_config import get_logger
from worktree_hub.models.task import TaskEvent, TaskKey, TaskOutcome
from worktree_hub.utils.threading import get_optimal_worker_count, get_python_threading_mode

logger = get_logger(__name__)

BUSY_QUEUE = "queue"
BUSY_REJECT = "reject"


@dataclass
class _Task:
    task_id: int
    key: TaskKey
    fn: Callable[..., Any]
    args: tuple
    kwargs: dict
    context: Any
    timeout: float
    started_at: Optional[float] = None
    cancelled: bool = False
    timed_out: bool = False


@dataclass
class _Completion:
    """Raw worker result; turned into a TaskEvent (or dropped) by ``poll``."""
    task: _Task
    outcome: TaskOutcome
    result: Any = None
    error: Optional[BaseException] = None


@dataclass
class _Pending:
    tasks: Deque[_Task] = field(default_factory=deque)


class TaskExecutor:
    """Runs tasks on a bounded thread pool with at most one task in flight per key.

    A submission whose key is busy is queued behind it (FIFO per key) or
    rejected, depending on ``busy_policy``. Workers never touch interface
    state: results travel through a single channel that the interactive
    loop drains with ``poll``, which never blocks.
    """

    def __init__(
        self,
        workers: Optional[int] = None,
        timeout: float = 600.0,
        busy_policy: str = BUSY_QUEUE,
        clock: Callable[[], float] = time.monotonic,
    ):
        if busy_policy not in (BUSY_QUEUE, BUSY_REJECT):
            raise ValueError(f"busy_policy must be '{BUSY_QUEUE}' or '{BUSY_REJECT}', got '{busy_policy}'")
        self.max_workers = get_optimal_worker_count(workers)
        self.timeout = timeout
        self.busy_policy = busy_policy
        self._clock = clock
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="worktree-hub-task")
        self._channel: "queue.SimpleQueue[Any]" = queue.SimpleQueue()
        self._lock = Lock()
        self._inflight: Dict[TaskKey, _Task] = {}
        self._pending: Dict[TaskKey, _Pending] = {}
        self._ids = itertools.count(1)
        self._closed = False
        logger.debug(f"Task executor started with {self.max_workers} workers ({get_python_threading_mode()})")

    def submit(
        self,
        key: TaskKey,
        fn: Callable[..., Any],
        *args: Any,
        context: Any = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> int:
        """Schedule ``fn(*args, **kwargs)`` under ``key``.

        Returns:
            The task id carried by the task's completion event

        Raises:
            TaskRejectedError: ``key`` is busy and the policy is to reject
        """
        task = _Task(
            task_id=next(self._ids),
            key=key,
            fn=fn,
            args=args,
            kwargs=kwargs,
            context=context,
            timeout=timeout if timeout is not None else self.timeout,
        )
        with self._lock:
            if self._closed:
                raise RuntimeError("executor is shut down")
            if key in self._inflight:
                if self.busy_policy == BUSY_REJECT:
                    raise TaskRejectedError(str(key))
                self._pending.setdefault(key, _Pending()).tasks.append(task)
                logger.debug(f"Queued task {task.task_id} ({key}) behind a running one")
                return task.task_id
            self._start(task)
        return task.task_id

    def _start(self, task: _Task) -> None:
        """Hand ``task`` to the pool. Caller holds the lock."""
        task.started_at = self._clock()
        self._inflight[task.key] = task
        logger.debug(f"Starting task {task.task_id} ({task.key})")
        self._pool.submit(self._run, task)

    def _run(self, task: _Task) -> None:
        try:
            result = task.fn(*task.args, **task.kwargs)
            completion = _Completion(task, TaskOutcome.SUCCEEDED, result=result)
        except Exception as e:
            logger.debug(f"Task {task.task_id} ({task.key}) failed: {e}")
            completion = _Completion(task, TaskOutcome.FAILED, error=e)

        # Publish before releasing the key so per-key events stay in order
        self._channel.put(completion)
        with self._lock:
            if self._inflight.get(task.key) is task:
                del self._inflight[task.key]
            pending = self._pending.get(task.key)
            if pending and pending.tasks and not self._closed:
                self._start(pending.tasks.popleft())
            if pending is not None and not pending.tasks:
                del self._pending[task.key]

    def poll(self) -> List[TaskEvent]:
        """Collect finished tasks and timeouts without blocking."""
        events: List[TaskEvent] = []
        self._check_timeouts()
        while True:
            try:
                item = self._channel.get_nowait()
            except queue.Empty:
                break
            if isinstance(item, TaskEvent):
                events.append(item)
                continue

            task = item.task
            if task.cancelled or task.timed_out:
                logger.debug(f"Discarding late result of task {task.task_id} ({task.key})")
                continue
            events.append(
                TaskEvent(
                    key=task.key,
                    task_id=task.task_id,
                    outcome=item.outcome,
                    result=item.result,
                    error=item.error,
                    context=task.context,
                )
            )
        return events

    def _check_timeouts(self) -> None:
        now = self._clock()
        with self._lock:
            overdue = [
                task
                for task in self._inflight.values()
                if not (task.timed_out or task.cancelled)
                and task.started_at is not None
                and now - task.started_at > task.timeout
            ]
            for task in overdue:
                # The key stays held until the worker actually returns
                task.timed_out = True
                logger.warning(f"Task {task.task_id} ({task.key}) timed out after {task.timeout:.0f}s")
                self._channel.put(
                    TaskEvent(
                        key=task.key,
                        task_id=task.task_id,
                        outcome=TaskOutcome.TIMED_OUT,
                        error=TaskTimeoutError(str(task.key), task.timeout),
                        context=task.context,
                    )
                )

    def cancel_worktree(self, worktree: str) -> int:
        """Cancel every running or queued task of ``worktree``.

        Running tasks cannot be interrupted; their results are discarded
        when they arrive.

        Returns:
            Number of tasks cancelled
        """
        cancelled: List[_Task] = []
        with self._lock:
            for key, task in self._inflight.items():
                if key.worktree == worktree and not (task.cancelled or task.timed_out):
                    task.cancelled = True
                    cancelled.append(task)
            for key in [k for k in self._pending if k.worktree == worktree]:
                cancelled.extend(self._pending.pop(key).tasks)

            for task in cancelled:
                task.cancelled = True
                self._channel.put(
                    TaskEvent(
                        key=task.key,
                        task_id=task.task_id,
                        outcome=TaskOutcome.CANCELLED,
                        error=TaskCancelledError(str(task.key)),
                        context=task.context,
                    )
                )
        if cancelled:
            logger.info(f"Cancelled {len(cancelled)} task(s) for worktree '{worktree}'")
        return len(cancelled)

    def is_busy(self, key: TaskKey) -> bool:
        with self._lock:
            return key in self._inflight

    def busy_worktrees(self) -> List[str]:
        """Worktrees with a running or queued task, for busy indicators."""
        with self._lock:
            names = {key.worktree for key in self._inflight}
            names.update(key.worktree for key, pending in self._pending.items() if pending.tasks)
        return sorted(names)

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            self._closed = True
            self._pending.clear()
        self._pool.shutdown(wait=wait, cancel_futures=True)
