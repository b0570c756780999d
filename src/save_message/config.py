from __future__ import annotations

import os
import tomllib
from pathlib import Path

# Environment variable names for secrets
ENV_BOT_TOKEN = "TELEGRAM_BOT_TOKEN"
ENV_OPENAI_API_KEY = "OPENAI_API_KEY"

LOCAL_CONFIG_NAME = Path(".save-message") / "save-message.toml"
HOME_CONFIG_PATH = Path.home() / ".save-message" / "save-message.toml"


class ConfigError(RuntimeError):
    pass


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config(path: str | Path | None = None) -> tuple[dict, Path | None]:
    """Load the TOML config.

    An explicit path must exist. Without one the local and home locations are
    tried in order, and a missing file yields an empty config so the bot can
    run from environment variables alone.
    """
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate
    return {}, None


def apply_env_overrides(config: dict) -> dict:
    """Return a copy of ``config`` with secrets taken from the environment.

    Environment variables take precedence over the config file.
    """
    merged = dict(config)
    env_token = os.environ.get(ENV_BOT_TOKEN)
    if env_token and env_token.strip():
        merged["bot_token"] = env_token.strip()
    env_key = os.environ.get(ENV_OPENAI_API_KEY)
    if env_key and env_key.strip():
        merged["openai_api_key"] = env_key.strip()
    return merged
