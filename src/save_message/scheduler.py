from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable
from typing import Any

import anyio
from anyio.abc import TaskGroup

from .logging import get_logger

logger = get_logger(__name__)


class DeferredTasks:
    """Fixed-delay callbacks running inside the owner's task group.

    Scheduling the same key again cancels the earlier timer. Everything
    still waiting is cancelled when the task group exits.
    """

    def __init__(
        self,
        task_group: TaskGroup,
        *,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._task_group = task_group
        self._sleep = sleep
        self._scopes: dict[Hashable, anyio.CancelScope] = {}

    def __len__(self) -> int:
        return len(self._scopes)

    def schedule(
        self,
        key: Hashable,
        delay_s: float,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        self.cancel(key)
        scope = anyio.CancelScope()
        self._scopes[key] = scope
        self._task_group.start_soon(self._run, key, scope, delay_s, func, args)

    async def _run(
        self,
        key: Hashable,
        scope: anyio.CancelScope,
        delay_s: float,
        func: Callable[..., Awaitable[Any]],
        args: tuple[Any, ...],
    ) -> None:
        try:
            with scope:
                await self._sleep(delay_s)
                if self._scopes.get(key) is scope:
                    del self._scopes[key]
                await func(*args)
        except Exception:
            logger.exception("deferred.failed", key=repr(key))
        finally:
            if self._scopes.get(key) is scope:
                del self._scopes[key]

    def cancel(self, key: Hashable) -> bool:
        scope = self._scopes.pop(key, None)
        if scope is None:
            return False
        scope.cancel()
        logger.debug("deferred.cancelled", key=repr(key))
        return True

    def cancel_all(self) -> None:
        for key in list(self._scopes):
            self.cancel(key)

    def delete_later(
        self,
        delete: Callable[[int, int], Awaitable[Any]],
        chat_id: int,
        message_id: int,
        delay_s: float,
    ) -> None:
        self.schedule(
            _delete_key(chat_id, message_id), delay_s, delete, chat_id, message_id
        )

    def cancel_delete(self, chat_id: int, message_id: int) -> bool:
        return self.cancel(_delete_key(chat_id, message_id))


def _delete_key(chat_id: int, message_id: int) -> tuple[str, int, int]:
    return ("delete", chat_id, message_id)
