from __future__ import annotations
import enum
import queue
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from .errors import BridgeError, ContextCancelled, ProviderError, StreamTimeout
from .ports import ChatRequest, ConfigSupplier, Message, Provider, ProviderConfig
from .stream import ChatStream, StreamError, StreamEvent, TextChunk


class BridgeState(str, enum.Enum):
    IDLE = "idle"
    CONFIGURING_AGENTS = "configuring_agents"
    HEALTH_CHECKING = "health_checking"
    ROUND_ACTIVE = "round_active"
    ROUND_COMPLETE = "round_complete"
    FINISHED = "finished"
    ABORTED = "aborted"


@dataclass(frozen=True)
class AgentOptions:
    """What the caller asks for on one side of the bridge."""
    label: str
    provider: str
    model: str = ""          # "" => supplier default, then provider default
    temperature: float = 0.7


@dataclass
class Agent:
    label: str
    provider: Provider
    temperature: float


@dataclass(frozen=True)
class BridgePolicy:
    """
    max_rounds: number of replies to produce (one per round).
    max_tokens: output ceiling passed on every request.
    idle_timeout: seconds allowed between two stream events before the run aborts.
    round_pause: pacing delay between rounds, for readable terminal output.
    """
    max_rounds: int = 10
    max_tokens: int = 800
    idle_timeout: float = 30.0
    round_pause: float = 0.5
    poll_interval: float = 0.05


@dataclass
class BridgeResult:
    rounds: int
    history: List[Message]


class BridgeObserver:
    """
    Presentation hooks. The bridge never formats output itself; it reports
    what happens here. Every hook is a no-op so callers override only what they show.
    """

    def state_changed(self, state: BridgeState) -> None:
        pass

    def agent_ready(self, agent: Agent) -> None:
        pass

    def round_started(self, round_no: int, max_rounds: int, agent: Agent) -> None:
        pass

    def text_received(self, agent: Agent, text: str) -> None:
        pass

    def round_finished(self, round_no: int, agent: Agent, reply: str) -> None:
        pass


def _tag(exc: Exception, label: str) -> BridgeError:
    if isinstance(exc, BridgeError):
        if exc.agent is None:
            exc.agent = label
        return exc
    err = ProviderError(str(exc) or exc.__class__.__name__, agent=label)
    err.__cause__ = exc
    return err


class BridgeSession:
    """
    Relays one conversation between two agents.

    History is a single flat list owned by this object. Each round appends the
    prompt as 'user', streams the speaker's reply, appends it as 'assistant',
    then hands the reply to the other agent as its next 'user' prompt.
    Providers only ever see tuple snapshots of it.
    """

    def __init__(
        self,
        agent_a: Agent,
        agent_b: Agent,
        *,
        policy: Optional[BridgePolicy] = None,
        observer: Optional[BridgeObserver] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.agent_a = agent_a
        self.agent_b = agent_b
        self.policy = policy or BridgePolicy()
        self.observer = observer or BridgeObserver()
        self.cancel = cancel if cancel is not None else threading.Event()
        self.state = BridgeState.IDLE
        self.rounds_completed = 0
        self._history: List[Message] = []

    @property
    def history(self) -> List[Message]:
        return list(self._history)

    def _set_state(self, state: BridgeState) -> None:
        self.state = state
        logger.debug(f"bridge_state | state={state.value}")
        self.observer.state_changed(state)

    def check_health(self) -> None:
        """Probe A then B; the first failure aborts before any conversation starts."""
        self._set_state(BridgeState.HEALTH_CHECKING)
        for agent in (self.agent_a, self.agent_b):
            if self.cancel.is_set():
                raise ContextCancelled(agent=agent.label)
            try:
                agent.provider.health(cancel=self.cancel)
            except Exception as e:
                tagged = _tag(e, agent.label)
                if tagged is e:
                    raise
                raise tagged from e
            logger.info(f"agent_ready | agent={agent.label} | provider={agent.provider.name} | model={agent.provider.default_model}")
            self.observer.agent_ready(agent)

    def run(self, starter: str) -> BridgeResult:
        try:
            self.check_health()
            speaker, listener = self.agent_a, self.agent_b
            text = starter
            for round_no in range(1, self.policy.max_rounds + 1):
                # Cancellation is terminal: never open another round after it
                if self.cancel.is_set():
                    raise ContextCancelled(agent=speaker.label)
                text = self.run_round(round_no, speaker, text)
                speaker, listener = listener, speaker
                if round_no < self.policy.max_rounds and self.policy.round_pause > 0:
                    time.sleep(self.policy.round_pause)
        except BridgeError as e:
            self._set_state(BridgeState.ABORTED)
            logger.warning(f"bridge_aborted | rounds={self.rounds_completed} | {e.describe()}")
            raise
        except KeyboardInterrupt:
            self.cancel.set()
            self._set_state(BridgeState.ABORTED)
            raise

        self._set_state(BridgeState.FINISHED)
        logger.info(f"bridge_finished | rounds={self.rounds_completed}")
        return BridgeResult(rounds=self.rounds_completed, history=self.history)

    def run_round(self, round_no: int, agent: Agent, prompt: str) -> str:
        self._set_state(BridgeState.ROUND_ACTIVE)
        self._history.append(Message("user", prompt))
        self.observer.round_started(round_no, self.policy.max_rounds, agent)

        request = ChatRequest(
            model=agent.provider.default_model,
            messages=tuple(self._history),
            temperature=agent.temperature,
            max_tokens=self.policy.max_tokens,
        )
        logger.info(f"round_start | round={round_no} | agent={agent.label} | history={len(self._history)}")

        parts: List[str] = []
        stream: Optional[ChatStream] = None
        try:
            stream = agent.provider.stream_chat(request, cancel=self.cancel)
            while True:
                event = self._next_event(stream)
                if isinstance(event, TextChunk):
                    parts.append(event.text)
                    self.observer.text_received(agent, event.text)
                elif isinstance(event, StreamError):
                    raise event.error
                else:
                    break
        except Exception as e:
            tagged = _tag(e, agent.label)
            if tagged is e:
                raise
            raise tagged from e
        finally:
            if stream is not None:
                stream.close()

        reply = "".join(parts)
        self._history.append(Message("assistant", reply))
        self.rounds_completed += 1
        self._set_state(BridgeState.ROUND_COMPLETE)
        logger.info(f"round_done | round={round_no} | agent={agent.label} | chars={len(reply)}")
        self.observer.round_finished(round_no, agent, reply)
        return reply

    def _next_event(self, stream: ChatStream) -> StreamEvent:
        # Race: next event vs. cancellation vs. idle timeout (restarted per event)
        idle = self.policy.idle_timeout
        deadline = time.monotonic() + idle
        while True:
            if self.cancel.is_set():
                raise ContextCancelled()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise StreamTimeout(idle)
            try:
                return stream.get(timeout=min(remaining, self.policy.poll_interval))
            except queue.Empty:
                continue


def configure_agent(registry, supplier: ConfigSupplier, options: AgentOptions) -> Agent:
    key = options.provider.lower()
    config = ProviderConfig(
        api_key=supplier.api_key(key),
        base_url=supplier.base_url(key),
        model=options.model or supplier.default_model(key),
        temperature=options.temperature,
        timeout=supplier.timeout(key),
    )
    try:
        provider = registry.new_provider(key, config)
    except Exception as e:
        tagged = _tag(e, options.label)
        if tagged is e:
            raise
        raise tagged from e
    logger.debug(f"agent_configured | agent={options.label} | provider={key} | model={provider.default_model}")
    return Agent(label=options.label, provider=provider, temperature=options.temperature)


def run_bridge(
    registry,
    supplier: ConfigSupplier,
    agent_a: AgentOptions,
    agent_b: AgentOptions,
    starter: str,
    *,
    policy: Optional[BridgePolicy] = None,
    observer: Optional[BridgeObserver] = None,
    cancel: Optional[threading.Event] = None,
) -> BridgeResult:
    """
    Configure both agents through the registry, health-check them, then relay
    up to policy.max_rounds replies starting from 'starter'.
    Raises a BridgeError tagged with the failing agent on any abort.
    """
    observer = observer or BridgeObserver()
    observer.state_changed(BridgeState.CONFIGURING_AGENTS)
    try:
        a = configure_agent(registry, supplier, agent_a)
        b = configure_agent(registry, supplier, agent_b)
    except BridgeError:
        observer.state_changed(BridgeState.ABORTED)
        raise

    session = BridgeSession(a, b, policy=policy, observer=observer, cancel=cancel)
    return session.run(starter)
