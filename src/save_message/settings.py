from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from .config import (
    ENV_BOT_TOKEN,
    ENV_OPENAI_API_KEY,
    ConfigError,
    apply_env_overrides,
    load_config,
)

DEFAULT_BOT_USERNAMES = ("@savemessagbot", "@savemessagebot")


class BotSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    bot_token: SecretStr
    openai_api_key: SecretStr
    openai_model: str = "gpt-3.5-turbo"
    openai_base_url: str = "https://api.openai.com/v1"
    database_path: Path = Path("bot.db")
    allowed_chat_ids: list[int] = Field(default_factory=list)
    bot_usernames: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BOT_USERNAMES)
    )

    polling_timeout_s: int = Field(default=10, ge=0, le=50)
    retry_delay_s: float = Field(default=2.0, ge=0)
    suggestion_timeout_s: float = Field(default=10.0, gt=0)

    original_delete_delay_s: float = Field(default=1.0, ge=0)
    confirmation_delete_delay_s: float = Field(default=60.0, ge=0)
    warning_delete_delay_s: float = Field(default=60.0, ge=0)

    pending_ttl_s: float = Field(default=24 * 60 * 60, gt=0)
    topic_name_ttl_s: float = Field(default=15 * 60, gt=0)
    recently_moved_ttl_s: float = Field(default=5 * 60, gt=0)


def _missing_secret_message(field: str, config_path: Path | None) -> str | None:
    where = f"add `{field}` to {config_path}" if config_path else "add it to a config file"
    if field == "bot_token":
        return f"Missing bot token. Set {ENV_BOT_TOKEN} or {where}."
    if field == "openai_api_key":
        return f"Missing OpenAI API key. Set {ENV_OPENAI_API_KEY} or {where}."
    return None


def validate_settings_data(data: dict, *, config_path: Path | None) -> BotSettings:
    try:
        settings = BotSettings.model_validate(data)
    except ValidationError as exc:
        for error in exc.errors():
            loc = error.get("loc") or ()
            if error.get("type") == "missing" and loc:
                message = _missing_secret_message(str(loc[0]), config_path)
                if message is not None:
                    raise ConfigError(message) from None
        source = config_path if config_path is not None else "settings"
        raise ConfigError(f"Invalid config in {source}: {exc}") from exc
    if not settings.bot_token.get_secret_value().strip():
        raise ConfigError("Invalid `bot_token`; expected a non-empty string.")
    if not settings.openai_api_key.get_secret_value().strip():
        raise ConfigError("Invalid `openai_api_key`; expected a non-empty string.")
    return settings


def load_settings(path: str | Path | None = None) -> tuple[BotSettings, Path | None]:
    config, config_path = load_config(path)
    merged = apply_env_overrides(config)
    return validate_settings_data(merged, config_path=config_path), config_path
