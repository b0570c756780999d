from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

import anyio
import httpx
import msgspec

from ..logging import get_logger
from .api_models import (
    ForumTopic,
    InlineKeyboardMarkup,
    Message,
    MessageId,
    Update,
    User,
)

logger = get_logger(__name__)

T = TypeVar("T")

_RETRY_AFTER_RE = re.compile(r"retry after (\d+)", re.IGNORECASE)


class TelegramRetryAfter(Exception):
    def __init__(self, retry_after: float) -> None:
        super().__init__(f"retry after {retry_after}")
        self.retry_after = retry_after


class GatewayError(RuntimeError):
    """A Telegram call the caller cannot continue without has failed."""

    def __init__(self, method: str, detail: str | None = None) -> None:
        message = f"telegram {method} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.method = method


class BotClient(Protocol):
    async def close(self) -> None: ...

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 10,
        allowed_updates: list[str] | None = None,
    ) -> list[Update] | None: ...

    async def get_me(self) -> User | None: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        message_thread_id: int | None = None,
        parse_mode: str | None = None,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> Message | None: ...

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        parse_mode: str | None = None,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> Message | None: ...

    async def delete_message(self, chat_id: int, message_id: int) -> bool: ...

    async def copy_message(
        self,
        chat_id: int,
        from_chat_id: int,
        message_id: int,
        *,
        message_thread_id: int | None = None,
    ) -> int | None: ...

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> bool: ...

    async def create_forum_topic(self, chat_id: int, name: str) -> ForumTopic | None: ...

    async def get_forum_topics(self, chat_id: int) -> list[ForumTopic] | None: ...


def _retry_after_from_payload(payload: dict[str, Any]) -> float | None:
    params = payload.get("parameters")
    if isinstance(params, dict):
        retry_after = params.get("retry_after")
        if isinstance(retry_after, (int, float)):
            return float(retry_after)
    description = payload.get("description")
    if isinstance(description, str):
        return _retry_after_from_description(description)
    return None


def _retry_after_from_description(description: str) -> float | None:
    match = _RETRY_AFTER_RE.search(description)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def _retry_after_from_response(resp: httpx.Response) -> float | None:
    try:
        payload = resp.json()
    except Exception:
        payload = None
    if isinstance(payload, dict):
        retry_after = _retry_after_from_payload(payload)
        if retry_after is not None:
            return retry_after
    return _retry_after_from_description(resp.text)


def _convert(value: Any, kind: type[T], *, method: str) -> T | None:
    if value is None:
        return None
    try:
        return msgspec.convert(value, type=kind)
    except msgspec.ValidationError as e:
        logger.error(
            "telegram.bad_result",
            method=method,
            error=str(e),
            result=value,
        )
        return None


class TelegramClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = 120,
        client: httpx.AsyncClient | None = None,
        *,
        max_retries: int = 3,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"https://api.telegram.org/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None
        self._max_retries = max_retries
        self._sleep = sleep

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, method: str, json_data: dict[str, Any]) -> Any | None:
        logger.debug("telegram.request", method=method, payload=json_data)
        try:
            resp = await self._client.post(f"{self._base}/{method}", json=json_data)
        except httpx.HTTPError as e:
            logger.error(
                "telegram.network_error",
                method=method,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            return None

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            if resp.status_code == 429:
                retry_after = _retry_after_from_response(resp)
                if retry_after is not None:
                    logger.info(
                        "telegram.rate_limited",
                        method=method,
                        status=resp.status_code,
                        retry_after=retry_after,
                    )
                    raise TelegramRetryAfter(retry_after) from e
            logger.error(
                "telegram.http_error",
                method=method,
                status=resp.status_code,
                error=str(e),
                body=resp.text,
            )
            return None

        try:
            payload = resp.json()
        except Exception as e:
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                error=str(e),
                error_type=e.__class__.__name__,
                body=resp.text,
            )
            return None

        if not isinstance(payload, dict):
            logger.error("telegram.invalid_payload", method=method, payload=payload)
            return None

        if not payload.get("ok"):
            retry_after = _retry_after_from_payload(payload)
            if retry_after is not None:
                logger.info(
                    "telegram.rate_limited",
                    method=method,
                    retry_after=retry_after,
                )
                raise TelegramRetryAfter(retry_after)
            logger.error("telegram.api_error", method=method, payload=payload)
            return None

        logger.debug("telegram.response", method=method, payload=payload)
        return payload.get("result")

    async def _call(self, method: str, json_data: dict[str, Any]) -> Any | None:
        attempt = 0
        while True:
            try:
                return await self._post(method, json_data)
            except TelegramRetryAfter as exc:
                attempt += 1
                if attempt > self._max_retries:
                    logger.error(
                        "telegram.rate_limited.giving_up",
                        method=method,
                        attempts=attempt,
                    )
                    return None
                await self._sleep(exc.retry_after)

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 10,
        allowed_updates: list[str] | None = None,
    ) -> list[Update] | None:
        params: dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            params["offset"] = offset
        if allowed_updates is not None:
            params["allowed_updates"] = allowed_updates
        result = await self._call("getUpdates", params)
        if not isinstance(result, list):
            return None
        updates: list[Update] = []
        for item in result:
            update = _convert(item, Update, method="getUpdates")
            if update is not None:
                updates.append(update)
            elif isinstance(item, dict) and isinstance(item.get("update_id"), int):
                # Keep the offset moving past updates we cannot decode.
                updates.append(Update(update_id=item["update_id"]))
        return updates

    async def get_me(self) -> User | None:
        return _convert(await self._call("getMe", {}), User, method="getMe")

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        message_thread_id: int | None = None,
        parse_mode: str | None = None,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> Message | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
        }
        if message_thread_id is not None:
            params["message_thread_id"] = message_thread_id
        if parse_mode is not None:
            params["parse_mode"] = parse_mode
        if reply_markup is not None:
            params["reply_markup"] = msgspec.to_builtins(reply_markup)
        result = await self._call("sendMessage", params)
        return _convert(result, Message, method="sendMessage")

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        parse_mode: str | None = None,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> Message | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
        }
        if parse_mode is not None:
            params["parse_mode"] = parse_mode
        if reply_markup is not None:
            params["reply_markup"] = msgspec.to_builtins(reply_markup)
        result = await self._call("editMessageText", params)
        if result is True:
            # Inline messages report success without a body.
            return Message(message_id=message_id)
        return _convert(result, Message, method="editMessageText")

    async def delete_message(self, chat_id: int, message_id: int) -> bool:
        res = await self._call(
            "deleteMessage",
            {
                "chat_id": chat_id,
                "message_id": message_id,
            },
        )
        return bool(res)

    async def copy_message(
        self,
        chat_id: int,
        from_chat_id: int,
        message_id: int,
        *,
        message_thread_id: int | None = None,
    ) -> int | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "from_chat_id": from_chat_id,
            "message_id": message_id,
        }
        if message_thread_id is not None:
            params["message_thread_id"] = message_thread_id
        result = _convert(
            await self._call("copyMessage", params), MessageId, method="copyMessage"
        )
        return result.message_id if result is not None else None

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> bool:
        params: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text is not None:
            params["text"] = text
        return bool(await self._call("answerCallbackQuery", params))

    async def create_forum_topic(self, chat_id: int, name: str) -> ForumTopic | None:
        result = await self._call(
            "createForumTopic", {"chat_id": chat_id, "name": name}
        )
        return _convert(result, ForumTopic, method="createForumTopic")

    async def get_forum_topics(self, chat_id: int) -> list[ForumTopic] | None:
        result = await self._call("getForumTopics", {"chat_id": chat_id})
        if isinstance(result, dict):
            result = result.get("topics")
        if not isinstance(result, list):
            return None
        return _convert(result, list[ForumTopic], method="getForumTopics")
