from pathlib import Path

import anyio
import pytest
from typer.testing import CliRunner

from save_message import __version__, cli
from save_message.settings import BotSettings
from save_message.store import TopicStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def _write_config(tmp_path: Path, **extra: str) -> Path:
    lines = ['bot_token = "1:abc"', 'openai_api_key = "sk-test"']
    lines += [f'{key} = "{value}"' for key, value in extra.items()]
    path = tmp_path / "save-message.toml"
    path.write_text("\n".join(lines) + "\n")
    return path


def test_version() -> None:
    result = CliRunner().invoke(cli.app, ["--version"])

    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_run_reports_missing_token(tmp_path: Path) -> None:
    config = tmp_path / "save-message.toml"
    config.write_text('openai_api_key = "sk-test"\n')

    result = CliRunner().invoke(cli.app, ["run", "--config", str(config)])

    assert result.exit_code == 1
    assert "Missing bot token" in result.output


def test_run_starts_bot_with_loaded_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list[BotSettings] = []

    async def fake_run_bot(settings: BotSettings) -> None:
        seen.append(settings)

    monkeypatch.setattr(cli, "run_bot", fake_run_bot)
    config = _write_config(tmp_path, openai_model="gpt-4o-mini")

    result = CliRunner().invoke(cli.app, ["run", "--config", str(config)])

    assert result.exit_code == 0
    assert [s.openai_model for s in seen] == ["gpt-4o-mini"]


def test_topics_prints_stored_topics(tmp_path: Path) -> None:
    db = tmp_path / "bot.db"

    async def seed() -> None:
        store = TopicStore(db)
        try:
            await store.add_topic(-1001, "Work", 501)
            await store.add_topic(-1001, "Books", 502)
        finally:
            await store.close()

    anyio.run(seed)
    config = _write_config(tmp_path, database_path=str(db))

    result = CliRunner().invoke(
        cli.app, ["topics", "--config", str(config), "--", "-1001"]
    )

    assert result.exit_code == 0
    assert result.output.splitlines() == ["502\tBooks", "501\tWork"]


def test_topics_empty_chat(tmp_path: Path) -> None:
    config = _write_config(tmp_path, database_path=str(tmp_path / "bot.db"))

    result = CliRunner().invoke(cli.app, ["topics", "--config", str(config), "5"])

    assert result.exit_code == 0
    assert "no topics stored for chat 5" in result.output
