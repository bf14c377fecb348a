from __future__ import annotations
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Protocol, Tuple, runtime_checkable

from .stream import ChatStream

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """
    Parameters for one streaming call. 'messages' is a snapshot of the
    conversation history; providers must not keep a reference to the live list.
    """
    model: str
    messages: Tuple[Message, ...]
    temperature: float = 0.7
    max_tokens: int = 0            # 0 => let the backend decide
    system_prompt: Optional[str] = None

    def wire_messages(self) -> List[Dict[str, str]]:
        out = [m.as_dict() for m in self.messages]
        if self.system_prompt:
            out.insert(0, {"role": "system", "content": self.system_prompt})
        return out


@dataclass(frozen=True)
class ProviderConfig:
    api_key: str = ""
    base_url: Optional[str] = None
    model: str = ""
    temperature: float = 0.7
    timeout: Optional[float] = None


@dataclass(frozen=True)
class ProviderSpec:
    key: str
    name: str
    description: str = ""
    default_model: str = ""
    needs_api_key: bool = True
    models: Tuple[str, ...] = field(default_factory=tuple)
    base_url: Optional[str] = None


@runtime_checkable
class Provider(Protocol):
    """
    Interface the bridge uses to talk to any LLM backend.
    'cancel' is the run's cancellation token; None means the call is never cancelled.
    """

    @property
    def name(self) -> str: ...

    @property
    def default_model(self) -> str: ...

    def models(self, *, cancel: Optional[threading.Event] = None) -> List[str]: ...

    def stream_chat(self, request: ChatRequest, *, cancel: Optional[threading.Event] = None) -> ChatStream:
        """
        Start a streaming completion and return immediately.
        Text arrives on the returned stream; exactly one terminal event follows.
        """
        ...

    def health(self, *, cancel: Optional[threading.Event] = None) -> None:
        """Raise InvalidCredentials / APIError / ProviderConnectionError on failure."""
        ...


class ConfigSupplier(Protocol):
    def api_key(self, provider: str) -> str: ...

    def base_url(self, provider: str) -> Optional[str]: ...

    def default_model(self, provider: str) -> str: ...

    def timeout(self, provider: str) -> Optional[float]: ...

    def has_any_credentials(self) -> bool:
        """True when an API key is configured for at least one known provider."""
        ...

    def validate(self) -> None:
        """Raise MissingCredentialsError, naming every key variable, when has_any_credentials() is False."""
        ...
