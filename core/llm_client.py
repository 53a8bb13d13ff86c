"""Ollama HTTP client for non-streaming chat requests and model listing."""

import logging
from typing import Any, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from config.settings import (
    CHAT_ENDPOINT,
    MODEL_LIST_TIMEOUT,
    OLLAMA_BASE_URL,
    REQUEST_TIMEOUT,
    TAGS_ENDPOINT,
)
from core.errors import BadStatus, ConnectionFailed, ParseFailed, RequestTimedOut
from models.schemas import ChatRequest, ChatResponse, ChatTurn, Message, SamplingParams

logger = logging.getLogger(__name__)


def build_conversation(
    system_prompt: str,
    history: Sequence[Message],
    user_text: str,
) -> List[ChatTurn]:
    """System prompt (if any), then stored history in order, then the new user turn."""
    conversation = []
    if system_prompt:
        conversation.append(ChatTurn(role="system", content=system_prompt))
    conversation.extend(ChatTurn(role=m.role, content=m.content) for m in history)
    conversation.append(ChatTurn(role="user", content=user_text))
    return conversation


def _name_of(item: Any, keys: Sequence[str]) -> Optional[str]:
    if isinstance(item, dict):
        for key in keys:
            value = item.get(key)
            if isinstance(value, str):
                return value
    return None


def _extract_model_names(payload: Any) -> List[str]:
    """Pull model names from either tags response shape, deduplicated in order."""
    names = []
    if isinstance(payload, dict):
        models = payload.get("models")
        if isinstance(models, list):
            for item in models:
                name = _name_of(item, ("model", "name"))
                if name is not None:
                    names.append(name)
    elif isinstance(payload, list):
        for item in payload:
            name = item if isinstance(item, str) else _name_of(item, ("name", "model"))
            if name is not None:
                names.append(name)
    return list(dict.fromkeys(names))


class OllamaClient:
    """Stateless request/response exchange with a local Ollama server."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        timeout: Optional[float] = REQUEST_TIMEOUT,
        list_timeout: Optional[float] = MODEL_LIST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.list_timeout = list_timeout
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def generate(
        self,
        conversation: Sequence[ChatTurn],
        model: str,
        params: SamplingParams,
    ) -> str:
        """Send one chat request and return the reply content.

        Raises ConnectionFailed, RequestTimedOut, BadStatus or ParseFailed.
        Nothing is retried.
        """
        request = ChatRequest(model=model, messages=list(conversation), stream=False, parameters=params)
        logger.debug("POST %s model=%s turns=%d", CHAT_ENDPOINT, model, len(request.messages))
        try:
            response = await self._http.post(CHAT_ENDPOINT, json=request.model_dump())
        except httpx.TimeoutException as e:
            raise RequestTimedOut(f"Request to {self.base_url} timed out") from e
        except httpx.TransportError as e:
            raise ConnectionFailed(f"Could not reach {self.base_url}: {e}") from e

        if not response.is_success:
            raise BadStatus(response.status_code, response.reason_phrase)

        try:
            payload = ChatResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ParseFailed(f"Unexpected response body: {e}") from e
        return payload.message.content

    async def list_models(self) -> List[str]:
        """Best-effort list of installed model names; empty on any failure."""
        try:
            response = await self._http.get(TAGS_ENDPOINT, timeout=self.list_timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Could not list models: %s", e)
            return []
        return _extract_model_names(payload)
