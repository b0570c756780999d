import anyio
import pytest

from save_message.handlers import handle_callback, handle_non_general_message
from save_message.messages import WARNING_NON_GENERAL_TOPIC
from save_message.scheduler import DeferredTasks
from save_message.state import ConversationState
from save_message.store import TopicStore
from tests.telegram_fakes import (
    CHAT_ID,
    FakeBot,
    RecordingSleep,
    make_ctx,
    make_message,
    make_query,
)


@pytest.mark.anyio
async def test_off_topic_message_is_removed_with_warning(
    fake_bot: FakeBot, store: TopicStore
) -> None:
    sleep = RecordingSleep()

    async with anyio.create_task_group() as tg:
        ctx = make_ctx(tg, bot=fake_bot, store=store, sleep=sleep)
        await handle_non_general_message(
            ctx, make_message("chatting in a topic", message_id=33, thread_id=501)
        )

    deleted = [call["message_id"] for call in fake_bot.calls_to("delete_message")]
    assert deleted[0] == 33
    warning = fake_bot.calls_to("send_message")[0]
    assert warning["text"] == WARNING_NON_GENERAL_TOPIC
    assert warning["message_thread_id"] == 501
    assert warning["parse_mode"] == "Markdown"
    [[button]] = warning["reply_markup"].inline_keyboard
    assert button.text == "Ok"
    assert button.callback_data == "detectMessageOnOtherTopic_ok_33"
    # The warning itself is removed after a minute.
    assert sleep.delays == [60.0]
    assert deleted[1] == 1001


class _GateSleep:
    """Blocks until released so pending deletions stay scheduled."""

    def __init__(self) -> None:
        self.release = anyio.Event()

    async def __call__(self, delay: float) -> None:
        await self.release.wait()


@pytest.mark.anyio
async def test_ok_dismisses_warning_and_cancels_timer(
    fake_bot: FakeBot, store: TopicStore
) -> None:
    gate = _GateSleep()

    async with anyio.create_task_group() as tg:
        ctx = make_ctx(tg, bot=fake_bot, store=store)
        ctx.deferred = DeferredTasks(tg, sleep=gate)
        await handle_non_general_message(
            ctx, make_message(message_id=33, thread_id=501)
        )
        await anyio.wait_all_tasks_blocked()
        assert len(ctx.deferred) == 1

        await handle_callback(
            ctx, make_query("detectMessageOnOtherTopic_ok_33", message_id=1001)
        )
        assert len(ctx.deferred) == 0
        gate.release.set()

    deleted = [call["message_id"] for call in fake_bot.calls_to("delete_message")]
    assert deleted == [33, 1001]


@pytest.mark.anyio
async def test_ok_needs_no_pending_message(
    fake_bot: FakeBot, store: TopicStore
) -> None:
    async with anyio.create_task_group() as tg:
        ctx = make_ctx(tg, bot=fake_bot, store=store, state=ConversationState())
        await handle_callback(
            ctx, make_query("detectMessageOnOtherTopic_ok_5", message_id=77)
        )

    assert fake_bot.calls_to("delete_message") == [
        {"chat_id": CHAT_ID, "message_id": 77}
    ]
    assert fake_bot.sent_texts() == []


@pytest.mark.anyio
async def test_ok_without_numeric_id_still_dismisses(
    fake_bot: FakeBot, store: TopicStore
) -> None:
    async with anyio.create_task_group() as tg:
        ctx = make_ctx(tg, bot=fake_bot, store=store)
        await handle_callback(
            ctx, make_query("detectMessageOnOtherTopic_ok_x", message_id=78)
        )

    assert fake_bot.calls_to("delete_message") == [
        {"chat_id": CHAT_ID, "message_id": 78}
    ]
    assert fake_bot.sent_texts() == []
