# src/chat_bridge/providers/openai_compat.py
from __future__ import annotations
import json
import threading
from typing import Any, Dict, List, Optional, Union

import requests
from loguru import logger

from chat_bridge.core.errors import (
    APIError,
    BridgeError,
    ContextCancelled,
    InvalidCredentials,
    ProviderConnectionError,
    StreamingFailed,
)
from chat_bridge.core.ports import ChatRequest, ProviderConfig, ProviderSpec
from chat_bridge.core.stream import ChatStream

SSE_PREFIX = "data: "
SSE_DONE = "data: [DONE]"

HEALTH_TIMEOUT = 10.0
CONNECT_TIMEOUT = 10.0

SPECS = (
    ProviderSpec(
        key="openai",
        name="OpenAI",
        description="GPT models from OpenAI",
        default_model="gpt-4o-mini",
        needs_api_key=True,
        models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo"),
        base_url="https://api.openai.com/v1",
    ),
    ProviderSpec(
        key="deepseek",
        name="DeepSeek",
        description="DeepSeek chat and reasoning models",
        default_model="deepseek-chat",
        needs_api_key=True,
        models=("deepseek-chat", "deepseek-reasoner"),
        base_url="https://api.deepseek.com/v1",
    ),
    ProviderSpec(
        key="openrouter",
        name="OpenRouter",
        description="Many vendors' models behind one OpenAI-compatible API",
        default_model="openai/gpt-4o-mini",
        needs_api_key=True,
        models=(
            "openai/gpt-4o-mini",
            "openai/gpt-4o",
            "anthropic/claude-3.5-sonnet",
            "meta-llama/llama-3.1-70b-instruct",
        ),
        base_url="https://openrouter.ai/api/v1",
    ),
    ProviderSpec(
        key="lmstudio",
        name="LM Studio",
        description="Local models served by LM Studio",
        default_model="local-model",
        needs_api_key=False,
        base_url="http://localhost:1234/v1",
    ),
    ProviderSpec(
        key="ollama",
        name="Ollama",
        description="Local models served by Ollama's OpenAI-compatible endpoint",
        default_model="llama3.1:8b-instruct",
        needs_api_key=False,
        base_url="http://localhost:11434/v1",
    ),
)


def parse_sse_line(line: Union[str, bytes]) -> Optional[str]:
    """
    Decode one SSE line into the text delta it carries.
    Returns None for anything to ignore: blank lines, the [DONE] terminator,
    non-data lines, malformed JSON and chunks without content.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line or line == SSE_DONE or not line.startswith(SSE_PREFIX):
        return None

    try:
        chunk = json.loads(line[len(SSE_PREFIX):])
    except ValueError:
        return None

    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class OpenAICompatibleProvider:
    """
    Chat-completions client for OpenAI and servers speaking the same protocol.
    - health: GET <base>/models
    - stream_chat: POST <base>/chat/completions with stream=true, parsed as SSE
    """

    def __init__(self, spec: ProviderSpec, config: ProviderConfig, *, session: Optional[requests.Session] = None):
        self.spec = spec
        self.api_key = config.api_key or ""
        self.base_url = (config.base_url or spec.base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError(f"No base URL for provider '{spec.key}'")
        self.model = config.model or spec.default_model
        self.temperature = config.temperature
        self.timeout = config.timeout
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return self.spec.key

    @property
    def default_model(self) -> str:
        return self.model

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_models(self, cancel: Optional[threading.Event]) -> requests.Response:
        if cancel is not None and cancel.is_set():
            raise ContextCancelled()
        url = f"{self.base_url}/models"
        logger.debug(f"http_get | provider={self.name} | url={url}")
        try:
            resp = self.session.get(url, headers=self._headers(), timeout=self.timeout or HEALTH_TIMEOUT)
        except requests.RequestException as e:
            if cancel is not None and cancel.is_set():
                raise ContextCancelled() from e
            raise ProviderConnectionError(f"connection failed: {e}") from e

        # Cancelled while the request was in flight: the answer no longer counts
        if cancel is not None and cancel.is_set():
            resp.close()
            raise ContextCancelled()
        if resp.status_code == 401:
            raise InvalidCredentials(f"invalid credentials for provider '{self.name}'")
        if not 200 <= resp.status_code < 300:
            raise APIError(resp.status_code, resp.text)
        return resp

    def health(self, *, cancel: Optional[threading.Event] = None) -> None:
        resp = self._get_models(cancel)
        logger.debug(f"health_ok | provider={self.name} | status={resp.status_code}")

    def models(self, *, cancel: Optional[threading.Event] = None) -> List[str]:
        if self.spec.models:
            return list(self.spec.models)
        # Local servers advertise whatever is loaded
        resp = self._get_models(cancel)
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise APIError(resp.status_code, resp.text)
        return [str(m["id"]) for m in data if isinstance(m, dict) and "id" in m]

    def _build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model or self.model,
            "messages": request.wire_messages(),
            "temperature": request.temperature,
            "stream": True,
        }
        if request.max_tokens > 0:
            payload["max_tokens"] = request.max_tokens
        return payload

    def stream_chat(self, request: ChatRequest, *, cancel: Optional[threading.Event] = None) -> ChatStream:
        return ChatStream.spawn(
            lambda stream: self._stream_worker(request, stream),
            cancel=cancel,
            name=f"{self.name}-stream",
        )

    def _stream_worker(self, request: ChatRequest, stream: ChatStream) -> None:
        cancel = stream.cancel_event
        if cancel.is_set():
            raise ContextCancelled()

        url = f"{self.base_url}/chat/completions"
        logger.debug(f"http_post | provider={self.name} | url={url} | model={request.model} | messages={len(request.messages)}")
        try:
            resp = self.session.post(
                url,
                json=self._build_payload(request),
                headers=self._headers(),
                stream=True,
                timeout=(CONNECT_TIMEOUT, self.timeout),
            )
        except requests.RequestException as e:
            if cancel.is_set() or stream.abandoned:
                raise ContextCancelled() from e
            raise ProviderConnectionError(f"connection failed: {e}") from e

        with resp:
            stream.on_close(resp.close)
            if resp.status_code != 200:
                raise APIError(resp.status_code, resp.text)

            try:
                for line in resp.iter_lines(chunk_size=None):
                    if cancel.is_set() or stream.abandoned:
                        raise ContextCancelled()
                    piece = parse_sse_line(line)
                    if piece is None:
                        continue
                    if not stream.emit(piece):
                        raise ContextCancelled()
            except BridgeError:
                raise
            except Exception as e:
                # Closing the response from the consumer side surfaces here too
                if cancel.is_set() or stream.abandoned:
                    raise ContextCancelled() from e
                raise StreamingFailed(f"stream read failed: {e}") from e

        logger.debug(f"stream_eof | provider={self.name}")


def _factory_for(spec: ProviderSpec):
    def create(config: ProviderConfig) -> OpenAICompatibleProvider:
        return OpenAICompatibleProvider(spec, config)
    return create


def register(registry) -> None:
    for spec in SPECS:
        registry.register_provider(spec)
        registry.register_factory(spec.key, _factory_for(spec))
