"""LLM-backed folder suggestions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import httpx
import msgspec

from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"
MAX_TOKENS = 64

SYSTEM_PROMPT = (
    "You are an assistant that helps organize messages into folders (topics) "
    "for a Telegram user."
)

_RULES = (
    "IMPORTANT RULES:\n"
    "1. ALWAYS check if any existing topics are relevant to this message FIRST\n"
    "2. If an existing topic is relevant, include it in your suggestions\n"
    "3. Only suggest NEW topics if NO existing topics are relevant\n"
    "4. Never suggest 'General' as it's the default topic\n"
    "5. Prioritize existing topics over new ones when both are relevant\n"
)


class SuggestionError(RuntimeError):
    pass


class SuggestionOracle(Protocol):
    async def suggest_folders(self, text: str, known: Sequence[str]) -> list[str]: ...


class _ChoiceMessage(msgspec.Struct, forbid_unknown_fields=False):
    content: str | None = None


class _Choice(msgspec.Struct, forbid_unknown_fields=False):
    message: _ChoiceMessage


class _Completion(msgspec.Struct, forbid_unknown_fields=False):
    choices: list[_Choice] = msgspec.field(default_factory=list)


def build_prompt(text: str, known: Sequence[str]) -> str:
    prompt = f"Given the following message: '{text}'\n"
    if known:
        prompt += f"Existing topics: [{', '.join(known)}]\n"
        prompt += _RULES
        prompt += (
            "Suggest 2-3 relevant topics for this message. "
            "Return only a comma-separated list of topic names."
        )
    else:
        prompt += (
            "Suggest 2-3 relevant topic names for this message. "
            "Never suggest 'General' as it's the default topic. "
            "Return only a comma-separated list of topic names."
        )
    return prompt


def parse_folders(content: str) -> list[str]:
    return [name for part in content.split(",") if (name := part.strip())]


class OpenAISuggestionOracle:
    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 15,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("OpenAI API key is empty")
        self._api_key = api_key
        self._model = model
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def suggest_folders(self, text: str, known: Sequence[str]) -> list[str]:
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(text, known)},
            ],
            "max_tokens": MAX_TOKENS,
        }
        try:
            resp = await self._client.post(
                self._url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "oracle.request_failed",
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise SuggestionError(f"OpenAI request failed: {e}") from e

        try:
            completion = msgspec.json.decode(resp.content, type=_Completion)
        except msgspec.DecodeError as e:
            logger.error("oracle.bad_response", error=str(e), body=resp.text)
            raise SuggestionError(f"OpenAI response decode error: {e}") from e
        if not completion.choices:
            raise SuggestionError("No choices returned from OpenAI")

        folders = parse_folders(completion.choices[0].message.content or "")
        if not folders:
            raise SuggestionError("OpenAI returned no folder names")
        logger.info("oracle.suggested", folders=folders, known=len(known))
        return folders
