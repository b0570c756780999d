import pytest

from save_message.state import (
    Conversation,
    ConversationState,
    Phase,
    TopicCreationContext,
    TTLMap,
)
from tests.telegram_fakes import CHAT_ID, USER_ID, make_message


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.anyio
async def test_ttl_map_expires_entries() -> None:
    clock = FakeClock()
    items: TTLMap[str, int] = TTLMap(10, clock=clock)

    await items.set("a", 1)
    clock.now += 5
    await items.set("b", 2)
    assert await items.get("a") == 1

    clock.now += 6
    assert await items.get("a") is None
    assert await items.get("b") == 2
    assert await items.items() == [("b", 2)]

    clock.now += 10
    assert await items.pop("b") is None
    assert await items.items() == []


@pytest.mark.anyio
async def test_ttl_map_set_refreshes_expiry() -> None:
    clock = FakeClock()
    items: TTLMap[str, int] = TTLMap(10, clock=clock)

    await items.set("a", 1)
    clock.now += 8
    await items.set("a", 2)
    clock.now += 8
    assert await items.get("a") == 2


def test_conversation_phase_invariants() -> None:
    creation = TopicCreationContext(chat_id=CHAT_ID)

    with pytest.raises(ValueError):
        Conversation(phase=Phase.AWAITING_TOPIC_NAME)
    with pytest.raises(ValueError):
        Conversation(phase=Phase.IDLE, creation=creation)

    conv = Conversation.awaiting_topic_name(creation)
    assert conv.phase is Phase.AWAITING_TOPIC_NAME
    assert conv.creation is creation
    assert Conversation.idle().phase is Phase.IDLE


def test_creation_context_carries_message() -> None:
    msg = make_message(message_id=33)

    assert TopicCreationContext(chat_id=CHAT_ID, message=msg).original_message_id == 33
    assert TopicCreationContext(chat_id=CHAT_ID).original_message_id is None


@pytest.mark.anyio
async def test_topic_creation_is_last_write_wins() -> None:
    state = ConversationState()
    first = TopicCreationContext(chat_id=CHAT_ID, message=make_message(message_id=1))
    second = TopicCreationContext(chat_id=CHAT_ID, message=make_message(message_id=2))

    await state.begin_topic_creation(USER_ID, first)
    await state.begin_topic_creation(USER_ID, second)

    assert await state.topic_creation(CHAT_ID, USER_ID) == second
    assert await state.close_topic_creation(CHAT_ID, USER_ID) == second
    assert await state.topic_creation(CHAT_ID, USER_ID) is None
    assert (await state.conversation(CHAT_ID, USER_ID)).phase is Phase.IDLE


@pytest.mark.anyio
async def test_selection_does_not_replace_name_prompt() -> None:
    state = ConversationState()
    creation = TopicCreationContext(chat_id=CHAT_ID)

    await state.await_selection(CHAT_ID, USER_ID)
    assert (await state.conversation(CHAT_ID, USER_ID)).phase is Phase.AWAITING_SELECTION

    await state.begin_topic_creation(USER_ID, creation)
    await state.await_selection(CHAT_ID, USER_ID)
    await state.finish_selection(CHAT_ID, USER_ID)
    assert await state.topic_creation(CHAT_ID, USER_ID) == creation


@pytest.mark.anyio
async def test_selection_lives_as_long_as_its_keyboard() -> None:
    clock = FakeClock()
    state = ConversationState(pending_ttl_s=3600, topic_name_ttl_s=60, clock=clock)

    await state.await_selection(CHAT_ID, USER_ID)
    clock.now += 61
    assert (await state.conversation(CHAT_ID, USER_ID)).phase is Phase.AWAITING_SELECTION

    clock.now += 3600
    assert (await state.conversation(CHAT_ID, USER_ID)).phase is Phase.IDLE


@pytest.mark.anyio
async def test_ttl_map_per_entry_lifetime() -> None:
    clock = FakeClock()
    items: TTLMap[str, int] = TTLMap(10, clock=clock)

    await items.set("short", 1)
    await items.set("long", 2, ttl_s=100)
    clock.now += 11

    assert await items.items() == [("long", 2)]


@pytest.mark.anyio
async def test_topic_creation_expires() -> None:
    clock = FakeClock()
    state = ConversationState(topic_name_ttl_s=60, clock=clock)

    await state.begin_topic_creation(USER_ID, TopicCreationContext(chat_id=CHAT_ID))
    clock.now += 61

    assert await state.topic_creation(CHAT_ID, USER_ID) is None


@pytest.mark.anyio
async def test_pending_and_keyboard_locations() -> None:
    state = ConversationState()
    msg = make_message(message_id=10)
    other = make_message(message_id=11)

    await state.register_pending(CHAT_ID, ["Work_10", "retry_10"], msg)
    await state.register_pending(CHAT_ID, ["Work_11"], other)
    await state.record_keyboard(CHAT_ID, ["Work_10"], 500)
    await state.record_keyboard(CHAT_ID, ["retry_10"], 501)
    await state.record_keyboard(CHAT_ID, ["Work_11"], 502)

    assert await state.pending_message(CHAT_ID, "retry_10") == msg
    assert await state.pending_message(CHAT_ID + 1, "retry_10") is None
    assert await state.keyboard_location(CHAT_ID, "Work_10") == 500
    assert await state.keyboard_locations_for(CHAT_ID, 10) == [500, 501]

    await state.forget_message(CHAT_ID, 10)

    assert await state.pending_message(CHAT_ID, "Work_10") is None
    assert await state.keyboard_locations_for(CHAT_ID, 10) == []
    assert await state.pending_message(CHAT_ID, "Work_11") == other


@pytest.mark.anyio
async def test_recently_moved_is_consumed_once() -> None:
    state = ConversationState()

    await state.mark_recently_moved(CHAT_ID, 10)

    assert await state.consume_recently_moved(CHAT_ID, 10) is True
    assert await state.consume_recently_moved(CHAT_ID, 10) is False
    assert await state.consume_recently_moved(CHAT_ID, 11) is False
