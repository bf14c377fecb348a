from __future__ import annotations
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Union

from loguru import logger

from .errors import BridgeError, StreamingFailed, StreamTimeout


@dataclass(frozen=True)
class TextChunk:
    text: str


@dataclass(frozen=True)
class StreamError:
    error: BridgeError


@dataclass(frozen=True)
class StreamClosed:
    pass


StreamEvent = Union[TextChunk, StreamError, StreamClosed]


class ChatStream:
    """
    Single-producer / single-consumer channel for one streaming call.

    The producer (a worker thread) emits any number of TextChunk events followed
    by exactly one terminal event: StreamClosed on success, StreamError otherwise.
    The queue holds at most 'buffer' events, so a slow consumer slows the reader.

    The consumer may abandon the stream with close(); the producer then stops at
    its next emit and any registered close callbacks (e.g. the HTTP response's
    close) run so a blocked network read is released.
    """

    def __init__(
        self,
        cancel: Optional[threading.Event] = None,
        *,
        buffer: int = 1,
        poll_interval: float = 0.05,
    ):
        self._queue: "queue.Queue[StreamEvent]" = queue.Queue(maxsize=max(1, int(buffer)))
        self._cancel = cancel if cancel is not None else threading.Event()
        self._poll = float(poll_interval)
        self._abandoned = threading.Event()
        self._terminated = False
        self._lock = threading.Lock()
        self._close_callbacks: List[Callable[[], None]] = []

    @classmethod
    def spawn(
        cls,
        target: Callable[["ChatStream"], None],
        *,
        cancel: Optional[threading.Event] = None,
        name: str = "chat-stream",
        **kwargs,
    ) -> "ChatStream":
        """
        Run target(stream) on a daemon thread. A normal return closes the stream;
        an exception becomes the terminal StreamError.
        """
        stream = cls(cancel, **kwargs)

        def run() -> None:
            try:
                target(stream)
            except BridgeError as e:
                stream.fail(e)
            except Exception as e:
                logger.debug(f"stream_worker_error | thread={name} | {e!r}")
                stream.fail(e)
            else:
                stream.finish()

        threading.Thread(target=run, name=name, daemon=True).start()
        return stream

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    @property
    def abandoned(self) -> bool:
        return self._abandoned.is_set()

    # ----- producer side -----

    def emit(self, text: str) -> bool:
        """
        Hand one text chunk to the consumer, blocking while the buffer is full.
        Returns False (chunk dropped) once the run is cancelled or the stream abandoned.
        """
        event = TextChunk(text)
        while not (self._abandoned.is_set() or self._cancel.is_set()):
            try:
                self._queue.put(event, timeout=self._poll)
                return True
            except queue.Full:
                continue
        return False

    def finish(self) -> None:
        self._terminate(StreamClosed())

    def fail(self, error: BaseException) -> None:
        if not isinstance(error, BridgeError):
            wrapped = StreamingFailed(str(error) or error.__class__.__name__)
            wrapped.__cause__ = error
            error = wrapped
        self._terminate(StreamError(error))

    def on_close(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._abandoned.is_set():
                self._close_callbacks.append(callback)
                return
        # Already abandoned: release the resource straight away
        self._run_callback(callback)

    def _terminate(self, event: StreamEvent) -> None:
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
        while not self._abandoned.is_set():
            try:
                self._queue.put(event, timeout=self._poll)
                return
            except queue.Full:
                continue

    # ----- consumer side -----

    def get(self, timeout: Optional[float] = None) -> StreamEvent:
        """Next event; raises queue.Empty if nothing arrives within 'timeout' seconds."""
        return self._queue.get(timeout=timeout)

    def iter_text(self, idle_timeout: Optional[float] = None) -> Iterator[str]:
        """
        Convenience consumer: yield text until the stream closes, raise the
        stream's error, or raise StreamTimeout after 'idle_timeout' seconds of silence.
        """
        try:
            while True:
                try:
                    event = self.get(timeout=idle_timeout)
                except queue.Empty:
                    raise StreamTimeout(idle_timeout or 0.0) from None
                if isinstance(event, TextChunk):
                    yield event.text
                elif isinstance(event, StreamError):
                    raise event.error
                else:
                    return
        finally:
            self.close()

    def close(self) -> None:
        with self._lock:
            if self._abandoned.is_set():
                return
            self._abandoned.set()
            callbacks, self._close_callbacks = self._close_callbacks, []
        for cb in callbacks:
            self._run_callback(cb)

    @staticmethod
    def _run_callback(cb: Callable[[], None]) -> None:
        try:
            cb()
        except Exception as e:
            logger.debug(f"stream_close_callback_failed | {e!r}")
