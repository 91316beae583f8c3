"""
Linked cancellation scopes.

A render uses two levels: one browser scope per session and one attempt scope
per capture attempt, created as a child of the browser scope with its own
deadline. Cancelling a scope cancels its live children, the tasks spawned in
it and runs its teardown callbacks (listener unsubscription). Cancelling a
child never touches its parent or siblings.
"""
import asyncio
from typing import Awaitable, Callable, List, Optional, Set, TypeVar

from webrender.core.exceptions import DeadlineExceededError, ScopeCancelledError
from webrender.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEADLINE_EXCEEDED = "deadline exceeded"
TARGET_CRASHED = "target crashed"
BROWSER_DISCONNECTED = "browser disconnected"
DIALOG_FAILED = "dialog handling failed"
RELEASED = "released"


class CancelScope:
    """
    A cancellation boundary, optionally bounded by a deadline.

    Attributes:
        name (str): Label used in logs and errors.
        parent (Optional[CancelScope]): Enclosing scope, None for a root.
        timeout (Optional[float]): Seconds until the deadline fires, if any.
        deadline (Optional[float]): Event-loop time of the deadline.
        cancel_reason (Optional[str]): Set once the scope is cancelled.
        cancel_cause (Optional[BaseException]): Error that led to cancellation.
    """

    def __init__(self, name: str, parent: Optional['CancelScope'] = None,
                 timeout: Optional[float] = None):
        self.name = name
        self.parent = parent
        self.timeout = timeout
        self.deadline: Optional[float] = None
        self.cancel_reason: Optional[str] = None
        self.cancel_cause: Optional[BaseException] = None
        self._cancelled = False
        self._children: Set['CancelScope'] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._teardowns: List[Callable[[], None]] = []
        self._deadline_handle: Optional[asyncio.TimerHandle] = None

        if parent is not None and parent.cancelled:
            self.cancel(f"{parent.name} cancelled: {parent.cancel_reason}", parent.cancel_cause)
            return
        if parent is not None:
            parent._children.add(self)

        if timeout is not None:
            loop = asyncio.get_running_loop()
            self.deadline = loop.time() + timeout
            self._deadline_handle = loop.call_at(self.deadline, self._expire)

    def __repr__(self) -> str:
        state = f"cancelled: {self.cancel_reason}" if self._cancelled else "live"
        return f"<CancelScope {self.name!r} {state}>"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def deadline_exceeded(self) -> bool:
        return self.cancel_reason == DEADLINE_EXCEEDED

    @property
    def children(self) -> List['CancelScope']:
        return list(self._children)

    def child(self, name: str, timeout: Optional[float] = None) -> 'CancelScope':
        return CancelScope(name, parent=self, timeout=timeout)

    def _expire(self) -> None:
        self._deadline_handle = None
        logger.debug(f"Scope '{self.name}' hit its {self.timeout}s deadline.")
        self.cancel(DEADLINE_EXCEEDED)

    def cancel(self, reason: str = "cancelled", cause: Optional[BaseException] = None) -> None:
        """
        Cancels the scope and everything below it. Calling it again is a no-op.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self.cancel_reason = reason
        self.cancel_cause = cause

        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
            self._deadline_handle = None

        for child in list(self._children):
            child.cancel(f"{self.name} cancelled: {reason}", cause)

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()

        while self._teardowns:
            teardown = self._teardowns.pop()
            try:
                teardown()
            except Exception as e:
                logger.warning(f"Teardown callback failed in scope '{self.name}': {e}", exc_info=True)

        if self.parent is not None:
            self.parent._children.discard(self)

    def add_teardown(self, callback: Callable[[], None]) -> None:
        """Registers `callback` to run on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback()
            return
        self._teardowns.append(callback)

    def spawn(self, coro: Awaitable[None]) -> Optional[asyncio.Task]:
        """
        Runs `coro` as a detached task that lives no longer than the scope.
        Returns None (and closes the coroutine) when the scope is already
        cancelled.
        """
        if self._cancelled:
            coro.close()
            return None
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Background task in scope '{self.name}' failed: {exc}")

    async def run(self, coro: Awaitable[T]) -> T:
        """
        Awaits `coro` as the main line of execution of this scope.

        Raises:
            DeadlineExceededError: The scope's own deadline fired first.
            ScopeCancelledError: The scope was cancelled for any other reason.
        """
        if self._cancelled:
            coro.close()
            raise self.cancellation_error()

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled and task.cancelled():
                raise self.cancellation_error() from self.cancel_cause
            raise
        finally:
            self._tasks.discard(task)

    def cancellation_error(self):
        if self.deadline_exceeded:
            return DeadlineExceededError(f"scope '{self.name}' exceeded its {self.timeout}s deadline")
        return ScopeCancelledError(self.name, self.cancel_reason)
