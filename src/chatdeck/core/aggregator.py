from __future__ import annotations
import logging
import threading
import time
from typing import Iterable, List, Optional

from .errors import StreamCancelled
from .events import StreamEvent, StreamResult
from .ports import ChatProvider, EventCallback, Message

_logger = logging.getLogger(__name__)


class CancelToken:
    """Set from any thread; checked by the aggregator between frames."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class StreamAggregator:
    """
    Folds StreamEvents into an answer buffer and a reasoning buffer.

    - events are forwarded to on_event in arrival order, empty fragments are dropped
    - the latest non-null reasoning_tokens wins (providers often send it on the last frame)
    - without an explicit count, reasoning_tokens falls back to len(reasoning_text)
    """

    def __init__(self, on_event: Optional[EventCallback] = None):
        self.on_event = on_event
        self._answer: List[str] = []
        self._reasoning: List[str] = []
        self._reasoning_tokens: Optional[int] = None
        self._started = time.monotonic()
        self.events_seen = 0

    @property
    def answer_text(self) -> str:
        return "".join(self._answer)

    @property
    def reasoning_text(self) -> str:
        return "".join(self._reasoning)

    def feed(self, event: StreamEvent) -> bool:
        """Fold one event. Returns True when it was forwarded to on_event."""
        if event.reasoning_tokens is not None:
            self._reasoning_tokens = event.reasoning_tokens
        if not event.text:
            return False

        (self._reasoning if event.is_reasoning else self._answer).append(event.text)
        self.events_seen += 1
        if self.on_event is not None:
            self.on_event(event)
        return True

    def discard(self) -> None:
        self._answer.clear()
        self._reasoning.clear()
        self._reasoning_tokens = None

    def result(self) -> StreamResult:
        reasoning = self.reasoning_text
        tokens = self._reasoning_tokens if self._reasoning_tokens is not None else len(reasoning)
        return StreamResult(
            answer_text=self.answer_text,
            reasoning_text=reasoning,
            reasoning_tokens=tokens,
            elapsed_ms=int((time.monotonic() - self._started) * 1000),
        )


def fold_events(
    events: Iterable[StreamEvent],
    aggregator: StreamAggregator,
    cancel: Optional[CancelToken] = None,
) -> StreamResult:
    iterator = iter(events)
    try:
        for event in iterator:
            if cancel is not None and cancel.cancelled:
                raise StreamCancelled("Stream cancelled by caller")
            aggregator.feed(event)
        if cancel is not None and cancel.cancelled:
            raise StreamCancelled("Stream cancelled by caller")
    except StreamCancelled:
        aggregator.discard()
        _logger.info("Stream cancelled after %d fragments", aggregator.events_seen)
        raise
    finally:
        # Generators release their HTTP response on close()
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
    return aggregator.result()


def run_stream(
    provider: ChatProvider,
    conversation: List[Message],
    model_id: str,
    on_event: Optional[EventCallback] = None,
    cancel: Optional[CancelToken] = None,
) -> StreamResult:
    """
    Drive exactly one streaming call and return its StreamResult.
    Failures propagate unchanged; callbacks already delivered are not retracted.
    """
    aggregator = StreamAggregator(on_event)
    _logger.debug("Starting stream provider=%s model=%s turns=%d",
                  getattr(provider, "name", "?"), model_id, len(conversation))
    result = fold_events(provider.stream_events(conversation, model_id), aggregator, cancel)
    _logger.debug("Stream finished in %dms (answer=%d chars, reasoning=%d chars)",
                  result.elapsed_ms, len(result.answer_text), len(result.reasoning_text))
    return result
