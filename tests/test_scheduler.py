import anyio
import pytest

from save_message.scheduler import DeferredTasks
from tests.telegram_fakes import RecordingSleep


@pytest.mark.anyio
async def test_runs_callback_after_delay() -> None:
    sleep = RecordingSleep()
    seen: list[tuple[int, int]] = []

    async def delete(chat_id: int, message_id: int) -> bool:
        seen.append((chat_id, message_id))
        return True

    async with anyio.create_task_group() as tg:
        deferred = DeferredTasks(tg, sleep=sleep)
        deferred.delete_later(delete, 1, 2, 60)
        deferred.delete_later(delete, 1, 3, 1)

    assert sorted(sleep.delays) == [1, 60]
    assert sorted(seen) == [(1, 2), (1, 3)]


@pytest.mark.anyio
async def test_cancel_prevents_callback() -> None:
    seen: list[int] = []
    released = anyio.Event()

    async def gated_sleep(_: float) -> None:
        await released.wait()

    async def record(value: int) -> None:
        seen.append(value)

    async with anyio.create_task_group() as tg:
        deferred = DeferredTasks(tg, sleep=gated_sleep)
        deferred.schedule("a", 5, record, 1)
        deferred.schedule("b", 5, record, 2)
        await anyio.wait_all_tasks_blocked()
        assert len(deferred) == 2
        assert deferred.cancel("a") is True
        assert deferred.cancel("a") is False
        released.set()

    assert seen == [2]
    assert len(deferred) == 0


@pytest.mark.anyio
async def test_rescheduling_same_key_replaces_timer() -> None:
    seen: list[int] = []
    released = anyio.Event()

    async def gated_sleep(_: float) -> None:
        await released.wait()

    async def record(value: int) -> None:
        seen.append(value)

    async with anyio.create_task_group() as tg:
        deferred = DeferredTasks(tg, sleep=gated_sleep)
        deferred.schedule("k", 5, record, 1)
        deferred.schedule("k", 5, record, 2)
        await anyio.wait_all_tasks_blocked()
        released.set()

    assert seen == [2]


@pytest.mark.anyio
async def test_cancel_all_and_delete_keys() -> None:
    seen: list[int] = []

    async def forever(_: float) -> None:
        await anyio.sleep_forever()

    async def delete(chat_id: int, message_id: int) -> None:
        seen.append(message_id)

    async with anyio.create_task_group() as tg:
        deferred = DeferredTasks(tg, sleep=forever)
        deferred.delete_later(delete, 1, 10, 60)
        deferred.delete_later(delete, 1, 11, 60)
        await anyio.wait_all_tasks_blocked()
        assert deferred.cancel_delete(1, 10) is True
        deferred.cancel_all()

    assert seen == []
    assert len(deferred) == 0


@pytest.mark.anyio
async def test_failing_callback_is_logged_not_raised() -> None:
    async def boom() -> None:
        raise RuntimeError("gone")

    async with anyio.create_task_group() as tg:
        deferred = DeferredTasks(tg, sleep=RecordingSleep())
        deferred.schedule("x", 1, boom)

    assert len(deferred) == 0
