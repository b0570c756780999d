import anyio
import pytest

from save_message.handlers import handle_bot_mention, handle_command, parse_command
from save_message.handlers.commands import is_bot_mention
from save_message.messages import (
    BOT_MENU_MESSAGE,
    CHOOSE_OPTION_MESSAGE,
    ERROR_NO_TOPICS,
    ERROR_TOPICS_FAILED,
    HELP_MESSAGE,
    WELCOME_MESSAGE,
)
from save_message.settings import DEFAULT_BOT_USERNAMES
from save_message.store import TopicStore
from save_message.telegram.api_models import ForumTopic
from save_message.topics import TopicLookupError
from tests.telegram_fakes import FakeBot, make_ctx, make_message


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("/start", "start"),
        ("/help extra words", "help"),
        ("/TOPICS", "topics"),
        ("/addtopic@savemessagebot", "addtopic"),
        ("/help@SaveMessagBot", "help"),
        ("/help@otherbot", None),
        ("/unknown", None),
        ("start", None),
        ("", None),
    ],
)
def test_parse_command(text: str, expected: str | None) -> None:
    assert parse_command(text, DEFAULT_BOT_USERNAMES) == expected


def test_bot_mention_is_case_insensitive() -> None:
    assert is_bot_mention("hey @SaveMessageBot", DEFAULT_BOT_USERNAMES)
    assert not is_bot_mention("hey @someone", DEFAULT_BOT_USERNAMES)


async def _command(bot: FakeBot, store: TopicStore, command: str) -> None:
    async with anyio.create_task_group() as tg:
        ctx = make_ctx(tg, bot=bot, store=store)
        await handle_command(ctx, make_message(f"/{command}"), command)


@pytest.mark.anyio
async def test_start_and_help(fake_bot: FakeBot, store: TopicStore) -> None:
    await _command(fake_bot, store, "start")
    await _command(fake_bot, store, "help")

    start, help_ = fake_bot.calls_to("send_message")
    assert start["text"] == WELCOME_MESSAGE
    assert start["parse_mode"] is None
    assert help_["text"] == HELP_MESSAGE
    assert help_["parse_mode"] == "Markdown"


@pytest.mark.anyio
async def test_topics_lists_names(fake_bot: FakeBot, store: TopicStore) -> None:
    fake_bot.topics = [
        ForumTopic(message_thread_id=501, name="Work"),
        ForumTopic(message_thread_id=502, name="Books"),
    ]

    await _command(fake_bot, store, "topics")

    sent = fake_bot.calls_to("send_message")[0]
    assert sent["text"] == "\N{FILE FOLDER} **Your Topics:**\n• Work\n• Books\n"
    assert sent["parse_mode"] == "Markdown"


@pytest.mark.anyio
async def test_topics_escapes_markdown_in_names(
    fake_bot: FakeBot, store: TopicStore
) -> None:
    fake_bot.topics = [
        ForumTopic(message_thread_id=501, name="to_do"),
        ForumTopic(message_thread_id=502, name="*starred* [x]"),
    ]

    await _command(fake_bot, store, "topics")

    sent = fake_bot.calls_to("send_message")[0]
    assert sent["text"] == (
        "\N{FILE FOLDER} **Your Topics:**\n• to\\_do\n• \\*starred\\* \\[x]\n"
    )
    assert sent["parse_mode"] == "Markdown"


@pytest.mark.anyio
async def test_topics_when_none(fake_bot: FakeBot, store: TopicStore) -> None:
    await _command(fake_bot, store, "topics")

    assert fake_bot.sent_texts() == [ERROR_NO_TOPICS]


@pytest.mark.anyio
async def test_topics_lookup_failure(fake_bot: FakeBot, store: TopicStore) -> None:
    fake_bot.list_topics_fails = True
    await store.close()

    async with anyio.create_task_group() as tg:
        ctx = make_ctx(tg, bot=fake_bot, store=store)
        with pytest.raises(TopicLookupError):
            await handle_command(ctx, make_message("/topics"), "topics")

    assert fake_bot.sent_texts() == [ERROR_TOPICS_FAILED]


@pytest.mark.anyio
async def test_addtopic_offers_create_button(
    fake_bot: FakeBot, store: TopicStore
) -> None:
    await _command(fake_bot, store, "addtopic")

    sent = fake_bot.calls_to("send_message")[0]
    assert sent["text"] == CHOOSE_OPTION_MESSAGE
    buttons = sent["reply_markup"].inline_keyboard
    assert [[b.callback_data for b in row] for row in buttons] == [
        ["create_topic_menu"]
    ]


@pytest.mark.anyio
async def test_mention_shows_menu(fake_bot: FakeBot, store: TopicStore) -> None:
    async with anyio.create_task_group() as tg:
        ctx = make_ctx(tg, bot=fake_bot, store=store)
        await handle_bot_mention(ctx, make_message("@savemessagebot hi"))

    sent = fake_bot.calls_to("send_message")[0]
    assert sent["text"] == BOT_MENU_MESSAGE
    assert [b.callback_data for row in sent["reply_markup"].inline_keyboard for b in row] == [
        "create_topic_menu",
        "show_all_topics_menu",
    ]
