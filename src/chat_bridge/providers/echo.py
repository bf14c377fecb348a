from __future__ import annotations
from typing import List, Optional, Sequence
import threading
import time

from chat_bridge.core.errors import ContextCancelled
from chat_bridge.core.ports import ChatRequest, ProviderSpec
from chat_bridge.core.stream import ChatStream

SPEC = ProviderSpec(
    key="echo",
    name="Echo",
    description="Offline stub that repeats the last prompt back",
    default_model="echo",
    needs_api_key=False,
    models=("echo",),
)


class EchoProvider:
    """
    Offline stub: replies with the last user message (or a fixed word list).
    Streaming yields one word at a time with a small delay to simulate tokens.
    """

    def __init__(self, model: str = "", token_delay: float = 0.05, words: Optional[Sequence[str]] = None):
        self.model = model or SPEC.default_model
        self.token_delay = float(token_delay)
        self.words = list(words) if words is not None else None

    @property
    def name(self) -> str:
        return SPEC.key

    @property
    def default_model(self) -> str:
        return self.model

    def models(self, *, cancel: Optional[threading.Event] = None) -> List[str]:
        return list(SPEC.models)

    def health(self, *, cancel: Optional[threading.Event] = None) -> None:
        if cancel is not None and cancel.is_set():
            raise ContextCancelled()

    def _reply_words(self, request: ChatRequest) -> List[str]:
        if self.words is not None:
            return list(self.words)
        last_user = next((m.content for m in reversed(request.messages) if m.role == "user"), "")
        return last_user.split()

    def stream_chat(self, request: ChatRequest, *, cancel: Optional[threading.Event] = None) -> ChatStream:
        words = self._reply_words(request)

        def gen(stream: ChatStream) -> None:
            last_idx = len(words) - 1
            for i, w in enumerate(words):
                if not stream.emit(w + ("" if i == last_idx else " ")):
                    raise ContextCancelled()
                if self.token_delay > 0:
                    time.sleep(self.token_delay)

        return ChatStream.spawn(gen, cancel=cancel, name="echo-stream")


def register(registry) -> None:
    registry.register_provider(SPEC)
    registry.register_factory(SPEC.key, lambda cfg: EchoProvider(model=cfg.model))
