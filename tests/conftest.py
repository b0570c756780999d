from pathlib import Path

import pytest

from save_message.store import TopicStore
from tests.telegram_fakes import FakeBot, RecordingSleep, open_store


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def store(tmp_path: Path) -> TopicStore:
    return open_store(tmp_path)
